"""
Testes para app/services/threads.py

Cobre:
- Note top-level com hashtag e link → Blog + Note raiz
- Note só com hashtag ou só com link → descartado
- Resposta a Note acompanhado → herda blog e raiz
- Resposta de resposta → raiz propagada sem percorrer a cadeia
- Resposta a Note desconhecido → descartada, nada é criado
- Entrega repetida, inclusive concorrente → um único Note e um único Blog
- Dois Notes sobre o mesmo blog → um único Blog
- Autor que não pode ser derreferenciado → InvalidAccount
- Delete: remove só o Note, ignora URIs desconhecidas, exige o autor
- Like / Undo Like; Like reentregue conta de novo
"""

import asyncio

import pytest

from app.activitypub.activities import Outcome, Post
from app.errors import InvalidAccount
from app.services.threads import ThreadService

from conftest import REMOTE_URI, FakeTransport, make_descriptor

BLOG_URL = "https://blog.example/post-1"
OTHER_AUTHOR = "https://pixelfed.social/users/beltrano"


def _root_post(uri="https://mastodon.social/statuses/1", content=None, author=REMOTE_URI) -> Post:
    if content is None:
        content = f'<p>Comentários sobre <a href="{BLOG_URL}">o post</a> #fediscus</p>'
    return Post(uri=uri, author=author, content=content)


def _reply(uri, parent, author=OTHER_AUTHOR) -> Post:
    return Post(uri=uri, author=author, content="<p>Concordo!</p>", in_reply_to=parent)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport(make_descriptor(REMOTE_URI), make_descriptor(OTHER_AUTHOR))


@pytest.fixture
def service(storage, transport) -> ThreadService:
    return ThreadService(storage, transport, "#fediscus")


# ---------------------------------------------------------------------------
# Top-level
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_top_level_post_creates_blog_and_root_note(service, storage):
    outcome = await service.handle_create(_root_post())

    assert outcome is Outcome.HANDLED
    blog = await storage.blog_by_url(BLOG_URL)
    note = await storage.note_by_uri("https://mastodon.social/statuses/1")
    author = await storage.account_by_uri(REMOTE_URI)
    assert blog is not None
    assert note.blog_id == blog.id
    assert note.reply_to_id is None
    assert note.root_id is None
    assert note.account_id == author.id


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    [
        "<p>Só a hashtag #fediscus</p>",
        f'<p>Só o link <a href="{BLOG_URL}">post</a></p>',
    ],
)
async def test_post_failing_a_gate_is_discarded(service, storage, transport, content):
    outcome = await service.handle_create(_root_post(content=content))

    assert outcome is Outcome.DISCARDED
    assert await storage.count_notes() == 0
    assert await storage.blog_by_url(BLOG_URL) is None
    # O autor só é buscado depois da classificação
    assert await storage.account_by_uri(REMOTE_URI) is None


@pytest.mark.asyncio
async def test_two_posts_about_same_blog_share_it(service, storage):
    await service.handle_create(_root_post("https://mastodon.social/statuses/1"))
    await service.handle_create(_root_post("https://mastodon.social/statuses/2"))

    first = await storage.note_by_uri("https://mastodon.social/statuses/1")
    second = await storage.note_by_uri("https://mastodon.social/statuses/2")
    assert first.blog_id == second.blog_id


@pytest.mark.asyncio
async def test_duplicate_create_is_a_no_op(service, storage):
    assert await service.handle_create(_root_post()) is Outcome.HANDLED
    assert await service.handle_create(_root_post()) is Outcome.HANDLED

    assert await storage.count_notes() == 1


@pytest.mark.asyncio
async def test_unknown_author_raises_invalid_account(storage):
    service = ThreadService(storage, FakeTransport(), "#fediscus")

    with pytest.raises(InvalidAccount):
        await service.handle_create(_root_post())

    assert await storage.count_notes() == 0


# ---------------------------------------------------------------------------
# Respostas
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reply_chain_propagates_root_and_blog(service, storage):
    await service.handle_create(_root_post("https://m/r"))
    await service.handle_create(_reply("https://m/c1", "https://m/r"))
    await service.handle_create(_reply("https://m/c2", "https://m/c1", author=REMOTE_URI))

    root = await storage.note_by_uri("https://m/r")
    c1 = await storage.note_by_uri("https://m/c1")
    c2 = await storage.note_by_uri("https://m/c2")
    assert c1.reply_to_id == root.id
    assert c1.root_id == root.id
    assert c2.reply_to_id == c1.id
    assert c2.root_id == root.id
    assert c2.blog_id == root.blog_id


@pytest.mark.asyncio
async def test_reply_to_unknown_parent_is_discarded(service, storage):
    # Mesmo com hashtag e link, a resposta a algo desconhecido é ignorada
    post = Post(
        uri="https://m/c1",
        author=OTHER_AUTHOR,
        content=f'<a href="{BLOG_URL}">x</a> #fediscus',
        in_reply_to="https://m/desconhecido",
    )

    outcome = await service.handle_create(post)

    assert outcome is Outcome.DISCARDED
    assert await storage.count_notes() == 0
    assert await storage.blog_by_url(BLOG_URL) is None


@pytest.mark.asyncio
async def test_reply_after_parent_deleted_is_discarded(service, storage):
    await service.handle_create(_root_post("https://m/r"))
    await service.handle_delete("https://m/r", REMOTE_URI)

    outcome = await service.handle_create(_reply("https://m/c1", "https://m/r"))

    assert outcome is Outcome.DISCARDED


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_delete_removes_only_that_note(service, storage):
    await service.handle_create(_root_post("https://m/r"))
    await service.handle_create(_reply("https://m/c1", "https://m/r"))
    root = await storage.note_by_uri("https://m/r")

    outcome = await service.handle_delete("https://m/r", REMOTE_URI)

    assert outcome is Outcome.HANDLED
    assert await storage.note_by_uri("https://m/r") is None
    reply = await storage.note_by_uri("https://m/c1")
    assert reply.root_id == root.id


@pytest.mark.asyncio
async def test_delete_unknown_note_is_a_no_op(service):
    assert await service.handle_delete("https://m/nada", REMOTE_URI) is Outcome.HANDLED


@pytest.mark.asyncio
async def test_delete_by_someone_else_raises_invalid_account(service, storage):
    await service.handle_create(_root_post("https://m/r"))

    with pytest.raises(InvalidAccount):
        await service.handle_delete("https://m/r", OTHER_AUTHOR)

    assert await storage.note_by_uri("https://m/r") is not None


# ---------------------------------------------------------------------------
# Likes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_like_and_unlike_tracked_note(service, storage):
    await service.handle_create(_root_post("https://m/r"))

    assert await service.handle_like("https://m/r") is Outcome.HANDLED
    assert (await storage.note_by_uri("https://m/r")).likes == 1
    assert await service.handle_unlike("https://m/r") is Outcome.HANDLED
    assert (await storage.note_by_uri("https://m/r")).likes == 0


@pytest.mark.asyncio
async def test_like_untracked_note_is_discarded(service):
    assert await service.handle_like("https://m/nada") is Outcome.DISCARDED
    assert await service.handle_unlike("https://m/nada") is Outcome.DISCARDED


@pytest.mark.asyncio
async def test_repeated_like_counts_twice(service, storage):
    await service.handle_create(_root_post("https://m/r"))

    await service.handle_like("https://m/r")
    await service.handle_like("https://m/r")

    assert (await storage.note_by_uri("https://m/r")).likes == 2


# ---------------------------------------------------------------------------
# Entregas concorrentes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_concurrent_duplicate_creates_store_one_note_and_blog(service, storage):
    outcomes = await asyncio.gather(*(service.handle_create(_root_post()) for _ in range(5)))

    assert outcomes == [Outcome.HANDLED] * 5
    assert await storage.count_notes() == 1
    blog = await storage.blog_by_url(BLOG_URL)
    note = await storage.note_by_uri("https://mastodon.social/statuses/1")
    assert note.blog_id == blog.id

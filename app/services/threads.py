"""
app/services/threads.py

Classificação e encadeamento dos Notes recebidos.

Um Note é acompanhado quando:
- é top-level, carrega a hashtag e tem pelo menos um link (o primeiro
  link identifica o Blog comentado); ou
- responde a um Note que já acompanhamos (resolvido só no banco local,
  nunca buscado na rede).

Respostas a Notes desconhecidos são descartadas junto com toda a
sub-thread, mesmo que tenham hashtag e link.
"""

import logging

from app.activitypub.activities import Outcome, Post
from app.activitypub.transport import Transport
from app.errors import AlreadyExists, InvalidAccount, NotFound
from app.services.content import subject_url
from app.storage.base import Storage
from app.storage.types import Account, Blog, Note

log = logging.getLogger(__name__)


class ThreadService:
    def __init__(self, storage: Storage, transport: Transport, tag: str) -> None:
        self.storage = storage
        self.transport = transport
        self.tag = tag

    async def handle_create(self, post: Post) -> Outcome:
        if await self.storage.note_by_uri(post.uri) is not None:
            log.info(f"Note {post.uri} já acompanhado, ignorando entrega repetida")
            return Outcome.HANDLED

        if post.in_reply_to is not None:
            parent = await self.storage.note_by_uri(post.in_reply_to)
            if parent is None:
                log.debug(f"Note {post.uri} responde a um Note desconhecido, ignorando")
                return Outcome.DISCARDED
            author = await self._author(post)
            note = await self._create_reply(post, author, parent)
        else:
            url = subject_url(post, self.tag)
            if url is None:
                log.debug(f"Note {post.uri} sem {self.tag} ou sem link, ignorando")
                return Outcome.DISCARDED
            author = await self._author(post)
            blog = await self._blog(url)
            note = await self._create(post, author, blog)

        if note is not None:
            log.info(f"Note {note.uri} acompanhado (blog={note.blog_id}, raiz={note.root_id})")
        return Outcome.HANDLED

    async def handle_delete(self, uri: str, actor: str | None = None) -> Outcome:
        """Remove só o Note apagado; as respostas mantêm as referências."""
        note = await self.storage.note_by_uri(uri)
        if note is None:
            log.info(f"Delete de {uri}, que não acompanhamos")
            return Outcome.HANDLED
        if actor is not None:
            author = await self.storage.account_by_id(note.account_id)
            if author is None or author.uri != actor:
                raise InvalidAccount(f"{actor} is not the author of {uri}")
        try:
            await self.storage.delete_note_by_id(note.id)
        except NotFound:
            # Apagado por outra entrega concorrente
            pass
        log.info(f"Note {uri} removido")
        return Outcome.HANDLED

    async def handle_like(self, uri: str) -> Outcome:
        # Contador simples, sem registro de quem curtiu: um Like reentregue conta duas vezes
        try:
            await self.storage.like_note(uri)
        except NotFound:
            log.debug(f"Like de {uri}, que não acompanhamos")
            return Outcome.DISCARDED
        return Outcome.HANDLED

    async def handle_unlike(self, uri: str) -> Outcome:
        try:
            await self.storage.unlike_note(uri)
        except NotFound:
            log.debug(f"Undo Like de {uri}, que não acompanhamos")
            return Outcome.DISCARDED
        return Outcome.HANDLED

    # -----------------------------------------------------------------------
    # Materialização
    # -----------------------------------------------------------------------

    async def _author(self, post: Post) -> Account:
        actor = await self.transport.dereference_actor(post.author)
        if actor is None:
            raise InvalidAccount(f"Author {post.author} of {post.uri} not found")
        return await self.storage.upsert_account(actor)

    async def _blog(self, url: str) -> Blog:
        blog = await self.storage.blog_by_url(url)
        if blog is not None:
            return blog
        try:
            return await self.storage.create_blog(url)
        except AlreadyExists:
            # Outro Note criou o mesmo Blog entre a leitura e o insert
            blog = await self.storage.blog_by_url(url)
            if blog is None:
                raise
            return blog

    async def _create(self, post: Post, author: Account, blog: Blog) -> Note | None:
        return await self._insert_note(post, author, None, None, blog.id)

    async def _create_reply(self, post: Post, author: Account, parent: Note) -> Note | None:
        # A raiz se propaga sem percorrer a cadeia: ou o pai já tem raiz,
        # ou o próprio pai é a raiz.
        root_id = parent.root_id if parent.root_id is not None else parent.id
        return await self._insert_note(post, author, parent.id, root_id, parent.blog_id)

    async def _insert_note(self, post: Post, author: Account, reply_to_id, root_id, blog_id) -> Note | None:
        try:
            return await self.storage.create_note(
                author.id, post.uri, reply_to_id, root_id, blog_id
            )
        except AlreadyExists:
            log.info(f"Note {post.uri} criado por outra entrega concorrente")
            return None

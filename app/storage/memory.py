"""
app/storage/memory.py

Backend em memória do contrato de armazenamento.

Usado nos testes e como implementação de referência: cada coleção tem
um único asyncio.Lock, de modo que verificar a unicidade e inserir
acontecem na mesma seção crítica, como um insert com restrição no banco.
"""

import asyncio
import itertools
from dataclasses import replace
from datetime import datetime, timezone

from app.errors import AlreadyExists, NotFound
from app.storage.types import (
    Account,
    AccountId,
    ActorDescriptor,
    Blog,
    BlogId,
    Follow,
    FollowId,
    Note,
    NoteId,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStorage:
    def __init__(self) -> None:
        self._accounts: dict[AccountId, Account] = {}
        self._follows: dict[FollowId, Follow] = {}
        self._blogs: dict[BlogId, Blog] = {}
        self._notes: dict[NoteId, Note] = {}

        self._accounts_lock = asyncio.Lock()
        self._follows_lock = asyncio.Lock()
        self._blogs_lock = asyncio.Lock()
        self._notes_lock = asyncio.Lock()

        self._account_ids = itertools.count(1)
        self._follow_ids = itertools.count(1)
        self._blog_ids = itertools.count(1)
        self._note_ids = itertools.count(1)

    # -----------------------------------------------------------------------
    # Accounts
    # -----------------------------------------------------------------------

    async def create_account(
        self, actor: ActorDescriptor, private_key: str | None = None
    ) -> Account:
        local = private_key is not None
        async with self._accounts_lock:
            for account in self._accounts.values():
                if account.uri == actor.uri:
                    raise AlreadyExists(f"Account {actor.uri} already exists")
                if local and account.local:
                    raise AlreadyExists("A local account already exists")
            now = _now()
            account = Account(
                id=AccountId(next(self._account_ids)),
                uri=actor.uri,
                created_at=now,
                updated_at=now,
                username=actor.username,
                host=actor.host,
                inbox=actor.inbox,
                outbox=actor.outbox,
                shared_inbox=actor.shared_inbox,
                public_key=actor.public_key,
                private_key=private_key,
                local=local,
            )
            self._accounts[account.id] = account
            return account

    async def upsert_account(self, actor: ActorDescriptor) -> Account:
        async with self._accounts_lock:
            existing = self._find_account(actor.uri)
            now = _now()
            if existing is not None:
                account = replace(
                    existing,
                    updated_at=now,
                    username=actor.username,
                    host=actor.host,
                    inbox=actor.inbox,
                    outbox=actor.outbox,
                    shared_inbox=actor.shared_inbox,
                    public_key=actor.public_key,
                )
            else:
                account = Account(
                    id=AccountId(next(self._account_ids)),
                    uri=actor.uri,
                    created_at=now,
                    updated_at=now,
                    username=actor.username,
                    host=actor.host,
                    inbox=actor.inbox,
                    outbox=actor.outbox,
                    shared_inbox=actor.shared_inbox,
                    public_key=actor.public_key,
                    local=False,
                )
            self._accounts[account.id] = account
            return account

    async def account_by_id(self, account_id: AccountId) -> Account | None:
        async with self._accounts_lock:
            return self._accounts.get(account_id)

    async def account_by_uri(self, uri: str) -> Account | None:
        async with self._accounts_lock:
            return self._find_account(uri)

    async def local_account(self) -> Account:
        async with self._accounts_lock:
            for account in self._accounts.values():
                if account.local:
                    return account
        raise NotFound("No local account configured")

    async def delete_account_by_id(self, account_id: AccountId) -> None:
        async with self._accounts_lock:
            if self._accounts.pop(account_id, None) is None:
                raise NotFound(f"Account {account_id} not found")
        await self._drop_follows_of(account_id)

    async def delete_account_by_uri(self, uri: str) -> None:
        async with self._accounts_lock:
            account = self._find_account(uri)
            if account is None:
                raise NotFound(f"Account {uri} not found")
            del self._accounts[account.id]
        await self._drop_follows_of(account.id)

    async def _drop_follows_of(self, account_id: AccountId) -> None:
        async with self._follows_lock:
            self._follows = {
                follow_id: f
                for follow_id, f in self._follows.items()
                if account_id not in (f.account_id, f.target_account_id)
            }

    def _find_account(self, uri: str) -> Account | None:
        return next((a for a in self._accounts.values() if a.uri == uri), None)

    # -----------------------------------------------------------------------
    # Follows
    # -----------------------------------------------------------------------

    async def create_follow(
        self,
        account_id: AccountId,
        target_account_id: AccountId,
        uri: str,
        pending: bool,
    ) -> Follow:
        async with self._follows_lock:
            for follow in self._follows.values():
                if follow.uri == uri:
                    raise AlreadyExists(f"Follow {uri} already exists")
                if (follow.account_id, follow.target_account_id) == (
                    account_id,
                    target_account_id,
                ):
                    raise AlreadyExists(
                        f"Follow {account_id} -> {target_account_id} already exists"
                    )
            follow = Follow(
                id=FollowId(next(self._follow_ids)),
                created_at=_now(),
                account_id=account_id,
                target_account_id=target_account_id,
                uri=uri,
                pending=pending,
            )
            self._follows[follow.id] = follow
            return follow

    async def follow_by_uri(self, uri: str) -> Follow | None:
        async with self._follows_lock:
            return self._find_follow(uri)

    async def follow_by_pair(
        self, account_id: AccountId, target_account_id: AccountId
    ) -> Follow | None:
        async with self._follows_lock:
            return next(
                (
                    f
                    for f in self._follows.values()
                    if f.account_id == account_id
                    and f.target_account_id == target_account_id
                ),
                None,
            )

    async def follows_by_account_id(self, account_id: AccountId) -> list[Follow]:
        async with self._follows_lock:
            return [f for f in self._follows.values() if f.account_id == account_id]

    async def mark_follow_confirmed(self, uri: str) -> None:
        async with self._follows_lock:
            follow = self._find_follow(uri)
            if follow is None:
                raise NotFound(f"Follow {uri} not found")
            self._follows[follow.id] = replace(follow, pending=False)

    async def delete_follow_by_uri(self, uri: str) -> None:
        async with self._follows_lock:
            follow = self._find_follow(uri)
            if follow is None:
                raise NotFound(f"Follow {uri} not found")
            del self._follows[follow.id]

    async def delete_follow_by_id(self, follow_id: FollowId) -> None:
        async with self._follows_lock:
            if self._follows.pop(follow_id, None) is None:
                raise NotFound(f"Follow {follow_id} not found")

    def _find_follow(self, uri: str) -> Follow | None:
        return next((f for f in self._follows.values() if f.uri == uri), None)

    # -----------------------------------------------------------------------
    # Blogs
    # -----------------------------------------------------------------------

    async def create_blog(self, url: str) -> Blog:
        async with self._blogs_lock:
            if any(b.url == url for b in self._blogs.values()):
                raise AlreadyExists(f"Blog {url} already exists")
            blog = Blog(id=BlogId(next(self._blog_ids)), created_at=_now(), url=url)
            self._blogs[blog.id] = blog
            return blog

    async def blog_by_id(self, blog_id: BlogId) -> Blog | None:
        async with self._blogs_lock:
            return self._blogs.get(blog_id)

    async def blog_by_url(self, url: str) -> Blog | None:
        async with self._blogs_lock:
            return next((b for b in self._blogs.values() if b.url == url), None)

    async def delete_blog_by_id(self, blog_id: BlogId) -> None:
        async with self._blogs_lock:
            if self._blogs.pop(blog_id, None) is None:
                raise NotFound(f"Blog {blog_id} not found")

    # -----------------------------------------------------------------------
    # Notes
    # -----------------------------------------------------------------------

    async def create_note(
        self,
        account_id: AccountId,
        uri: str,
        reply_to_id: NoteId | None,
        root_id: NoteId | None,
        blog_id: BlogId,
    ) -> Note:
        async with self._notes_lock:
            if self._find_note(uri) is not None:
                raise AlreadyExists(f"Note {uri} already exists")
            now = _now()
            note = Note(
                id=NoteId(next(self._note_ids)),
                created_at=now,
                updated_at=now,
                account_id=account_id,
                uri=uri,
                reply_to_id=reply_to_id,
                root_id=root_id,
                blog_id=blog_id,
            )
            self._notes[note.id] = note
            return note

    async def note_by_id(self, note_id: NoteId) -> Note | None:
        async with self._notes_lock:
            return self._notes.get(note_id)

    async def note_by_uri(self, uri: str) -> Note | None:
        async with self._notes_lock:
            return self._find_note(uri)

    async def delete_note_by_id(self, note_id: NoteId) -> None:
        async with self._notes_lock:
            if self._notes.pop(note_id, None) is None:
                raise NotFound(f"Note {note_id} not found")

    async def count_notes(self) -> int:
        async with self._notes_lock:
            return len(self._notes)

    async def like_note(self, uri: str) -> None:
        await self._add_likes(uri, 1)

    async def unlike_note(self, uri: str) -> None:
        await self._add_likes(uri, -1)

    async def _add_likes(self, uri: str, delta: int) -> None:
        async with self._notes_lock:
            note = self._find_note(uri)
            if note is None:
                raise NotFound(f"Note {uri} not found")
            self._notes[note.id] = replace(
                note, likes=max(note.likes + delta, 0), updated_at=_now()
            )

    def _find_note(self, uri: str) -> Note | None:
        return next((n for n in self._notes.values() if n.uri == uri), None)

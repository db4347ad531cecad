"""
app/storage/sql.py

Backend relacional do contrato de armazenamento, sobre SQLAlchemy assíncrono.

Cada operação abre a sua própria sessão e transação. A unicidade é
garantida pelas restrições do banco (ver app/models); um IntegrityError
no insert vira AlreadyExists, nunca um check-then-insert na aplicação.
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, TypeVar

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.errors import AlreadyExists, NotFound, StorageInconsistency
from app.models.account import AccountRecord
from app.models.blog import BlogRecord
from app.models.follow import FollowRecord
from app.models.note import NoteRecord
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

log = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Conversão registro ORM → entidade
# ---------------------------------------------------------------------------


def _utc(value: datetime) -> datetime:
    # o SQLite não guarda o fuso; os valores são gravados em UTC
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _to_account(record: AccountRecord) -> Account:
    return Account(
        id=AccountId(record.id),
        uri=record.uri,
        created_at=_utc(record.created_at),
        updated_at=_utc(record.updated_at),
        username=record.username,
        host=record.host,
        inbox=record.inbox,
        outbox=record.outbox,
        shared_inbox=record.shared_inbox,
        public_key=record.public_key,
        private_key=record.private_key,
        local=record.local,
    )


def _to_follow(record: FollowRecord) -> Follow:
    return Follow(
        id=FollowId(record.id),
        created_at=_utc(record.created_at),
        account_id=AccountId(record.account_id),
        target_account_id=AccountId(record.target_account_id),
        uri=record.uri,
        pending=record.pending,
    )


def _to_blog(record: BlogRecord) -> Blog:
    return Blog(id=BlogId(record.id), created_at=_utc(record.created_at), url=record.url)


def _to_note(record: NoteRecord) -> Note:
    return Note(
        id=NoteId(record.id),
        created_at=_utc(record.created_at),
        updated_at=_utc(record.updated_at),
        account_id=AccountId(record.account_id),
        uri=record.uri,
        reply_to_id=NoteId(record.reply_to_id) if record.reply_to_id is not None else None,
        root_id=NoteId(record.root_id) if record.root_id is not None else None,
        blog_id=BlogId(record.blog_id),
        likes=record.likes,
        reposts=record.reposts,
    )


class SqlStorage:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _insert(self, record, description: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(record)
        except IntegrityError as e:
            raise AlreadyExists(f"{description} already exists") from e

    @staticmethod
    async def _reread(lookup: Awaitable[T | None], description: str) -> T:
        entity = await lookup
        if entity is None:
            log.error(f"Falha ao reler {description} recém-criado")
            raise StorageInconsistency(f"Failed to retrieve just-created {description}")
        return entity

    async def _first(self, statement):
        async with self._session_factory() as session:
            return await session.scalar(statement)

    async def _execute_one(self, statement, description: str) -> None:
        """Executa um UPDATE/DELETE que deve afetar exatamente uma linha."""
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(statement)
        if result.rowcount == 0:
            raise NotFound(f"{description} not found")

    # -----------------------------------------------------------------------
    # Accounts
    # -----------------------------------------------------------------------

    async def create_account(
        self, actor: ActorDescriptor, private_key: str | None = None
    ) -> Account:
        await self._insert(
            AccountRecord(
                uri=actor.uri,
                username=actor.username,
                host=actor.host,
                inbox=actor.inbox,
                outbox=actor.outbox,
                shared_inbox=actor.shared_inbox,
                public_key=actor.public_key,
                private_key=private_key,
                local=private_key is not None,
            ),
            f"Account {actor.uri}",
        )
        return await self._reread(self.account_by_uri(actor.uri), f"account {actor.uri}")

    async def upsert_account(self, actor: ActorDescriptor) -> Account:
        # Duas tentativas: se outra task inserir a mesma URI entre o SELECT
        # e o INSERT, a segunda tentativa encontra a linha e atualiza.
        for attempt in range(2):
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        record = await session.scalar(
                            select(AccountRecord).where(AccountRecord.uri == actor.uri)
                        )
                        if record is None:
                            session.add(
                                AccountRecord(
                                    uri=actor.uri,
                                    username=actor.username,
                                    host=actor.host,
                                    inbox=actor.inbox,
                                    outbox=actor.outbox,
                                    shared_inbox=actor.shared_inbox,
                                    public_key=actor.public_key,
                                    local=False,
                                )
                            )
                        else:
                            record.username = actor.username
                            record.host = actor.host
                            record.inbox = actor.inbox
                            record.outbox = actor.outbox
                            record.shared_inbox = actor.shared_inbox
                            record.public_key = actor.public_key
                break
            except IntegrityError as e:
                if attempt == 1:
                    raise AlreadyExists(f"Account {actor.uri} already exists") from e
        return await self._reread(self.account_by_uri(actor.uri), f"account {actor.uri}")

    async def account_by_id(self, account_id: AccountId) -> Account | None:
        record = await self._first(
            select(AccountRecord).where(AccountRecord.id == account_id)
        )
        return _to_account(record) if record is not None else None

    async def account_by_uri(self, uri: str) -> Account | None:
        record = await self._first(select(AccountRecord).where(AccountRecord.uri == uri))
        return _to_account(record) if record is not None else None

    async def local_account(self) -> Account:
        record = await self._first(
            select(AccountRecord).where(AccountRecord.local.is_(True))
        )
        if record is None:
            raise NotFound("No local account configured")
        return _to_account(record)

    async def delete_account_by_id(self, account_id: AccountId) -> None:
        await self._delete_account(AccountRecord.id == account_id, f"Account {account_id}")

    async def delete_account_by_uri(self, uri: str) -> None:
        await self._delete_account(AccountRecord.uri == uri, f"Account {uri}")

    async def _delete_account(self, condition, description: str) -> None:
        # O SQLite não aplica ON DELETE CASCADE sem PRAGMA foreign_keys,
        # então as arestas de follow são removidas explicitamente.
        async with self._session_factory() as session:
            async with session.begin():
                account_id = await session.scalar(select(AccountRecord.id).where(condition))
                if account_id is None:
                    raise NotFound(f"{description} not found")
                await session.execute(
                    delete(FollowRecord).where(
                        or_(
                            FollowRecord.account_id == account_id,
                            FollowRecord.target_account_id == account_id,
                        )
                    )
                )
                await session.execute(delete(AccountRecord).where(AccountRecord.id == account_id))

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
        await self._insert(
            FollowRecord(
                account_id=account_id,
                target_account_id=target_account_id,
                uri=uri,
                pending=pending,
            ),
            f"Follow {uri}",
        )
        return await self._reread(self.follow_by_uri(uri), f"follow {uri}")

    async def follow_by_uri(self, uri: str) -> Follow | None:
        record = await self._first(select(FollowRecord).where(FollowRecord.uri == uri))
        return _to_follow(record) if record is not None else None

    async def follow_by_pair(
        self, account_id: AccountId, target_account_id: AccountId
    ) -> Follow | None:
        record = await self._first(
            select(FollowRecord).where(
                FollowRecord.account_id == account_id,
                FollowRecord.target_account_id == target_account_id,
            )
        )
        return _to_follow(record) if record is not None else None

    async def follows_by_account_id(self, account_id: AccountId) -> list[Follow]:
        async with self._session_factory() as session:
            records = await session.scalars(
                select(FollowRecord)
                .where(FollowRecord.account_id == account_id)
                .order_by(FollowRecord.id)
            )
            return [_to_follow(record) for record in records]

    async def mark_follow_confirmed(self, uri: str) -> None:
        await self._execute_one(
            update(FollowRecord).where(FollowRecord.uri == uri).values(pending=False),
            f"Follow {uri}",
        )

    async def delete_follow_by_uri(self, uri: str) -> None:
        await self._execute_one(
            delete(FollowRecord).where(FollowRecord.uri == uri),
            f"Follow {uri}",
        )

    async def delete_follow_by_id(self, follow_id: FollowId) -> None:
        await self._execute_one(
            delete(FollowRecord).where(FollowRecord.id == follow_id),
            f"Follow {follow_id}",
        )

    # -----------------------------------------------------------------------
    # Blogs
    # -----------------------------------------------------------------------

    async def create_blog(self, url: str) -> Blog:
        await self._insert(BlogRecord(url=url), f"Blog {url}")
        return await self._reread(self.blog_by_url(url), f"blog {url}")

    async def blog_by_id(self, blog_id: BlogId) -> Blog | None:
        record = await self._first(select(BlogRecord).where(BlogRecord.id == blog_id))
        return _to_blog(record) if record is not None else None

    async def blog_by_url(self, url: str) -> Blog | None:
        record = await self._first(select(BlogRecord).where(BlogRecord.url == url))
        return _to_blog(record) if record is not None else None

    async def delete_blog_by_id(self, blog_id: BlogId) -> None:
        await self._execute_one(
            delete(BlogRecord).where(BlogRecord.id == blog_id),
            f"Blog {blog_id}",
        )

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
        await self._insert(
            NoteRecord(
                account_id=account_id,
                uri=uri,
                reply_to_id=reply_to_id,
                root_id=root_id,
                blog_id=blog_id,
            ),
            f"Note {uri}",
        )
        return await self._reread(self.note_by_uri(uri), f"note {uri}")

    async def note_by_id(self, note_id: NoteId) -> Note | None:
        record = await self._first(select(NoteRecord).where(NoteRecord.id == note_id))
        return _to_note(record) if record is not None else None

    async def note_by_uri(self, uri: str) -> Note | None:
        record = await self._first(select(NoteRecord).where(NoteRecord.uri == uri))
        return _to_note(record) if record is not None else None

    async def delete_note_by_id(self, note_id: NoteId) -> None:
        await self._execute_one(
            delete(NoteRecord).where(NoteRecord.id == note_id),
            f"Note {note_id}",
        )

    async def count_notes(self) -> int:
        async with self._session_factory() as session:
            return await session.scalar(select(func.count()).select_from(NoteRecord))

    async def like_note(self, uri: str) -> None:
        await self._execute_one(
            update(NoteRecord)
            .where(NoteRecord.uri == uri)
            .values(likes=NoteRecord.likes + 1),
            f"Note {uri}",
        )

    async def unlike_note(self, uri: str) -> None:
        await self._execute_one(
            update(NoteRecord)
            .where(NoteRecord.uri == uri)
            .values(
                likes=case((NoteRecord.likes > 0, NoteRecord.likes - 1), else_=0)
            ),
            f"Note {uri}",
        )

"""
app/storage/types.py

Entidades devolvidas pelo contrato de armazenamento.

Os ids de cada entidade são tipos distintos (NewType) para que um
AccountId não seja passado onde se espera um NoteId.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import NewType
from urllib.parse import urlsplit

AccountId = NewType("AccountId", int)
FollowId = NewType("FollowId", int)
BlogId = NewType("BlogId", int)
NoteId = NewType("NoteId", int)


@dataclass(frozen=True)
class ActorDescriptor:
    """Representação de um actor obtida ao derreferenciá-lo."""

    uri: str
    username: str
    inbox: str
    public_key: str
    outbox: str | None = None
    shared_inbox: str | None = None

    @property
    def host(self) -> str:
        # O host é derivado do inbox, como faz o Mastodon
        return urlsplit(self.inbox).netloc


@dataclass(frozen=True)
class Account:
    id: AccountId
    uri: str
    created_at: datetime
    updated_at: datetime
    username: str
    host: str
    inbox: str
    public_key: str
    local: bool
    outbox: str | None = None
    shared_inbox: str | None = None
    private_key: str | None = None

    @property
    def shared_inbox_or_inbox(self) -> str:
        return self.shared_inbox or self.inbox


@dataclass(frozen=True)
class Follow:
    id: FollowId
    created_at: datetime
    account_id: AccountId
    target_account_id: AccountId
    uri: str
    pending: bool


@dataclass(frozen=True)
class Blog:
    id: BlogId
    created_at: datetime
    url: str


@dataclass(frozen=True)
class Note:
    id: NoteId
    created_at: datetime
    updated_at: datetime
    account_id: AccountId
    uri: str
    blog_id: BlogId
    reply_to_id: NoteId | None = None
    root_id: NoteId | None = None
    likes: int = 0
    reposts: int = 0

    @property
    def is_top_level(self) -> bool:
        return self.reply_to_id is None

"""
app/storage/base.py

Contrato de armazenamento, dividido por capacidade.

Toda consulta devolve None quando a entidade não existe. Toda mutação
levanta AlreadyExists ou NotFound em violação de restrição. Um "create"
é sempre um insert único com restrição, seguido de releitura pela chave
única; se a releitura falhar, o backend levanta StorageInconsistency.
"""

from typing import Protocol

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


class AccountStore(Protocol):
    async def create_account(
        self, actor: ActorDescriptor, private_key: str | None = None
    ) -> Account:
        """Cria a conta; é local se e somente se `private_key` for informada."""
        ...

    async def upsert_account(self, actor: ActorDescriptor) -> Account:
        """Insere ou atualiza pela URI, sem nunca alterar `local`."""
        ...

    async def account_by_id(self, account_id: AccountId) -> Account | None: ...

    async def account_by_uri(self, uri: str) -> Account | None: ...

    async def local_account(self) -> Account:
        """Levanta NotFound se a conta local não foi criada no bootstrap."""
        ...

    async def delete_account_by_id(self, account_id: AccountId) -> None: ...

    async def delete_account_by_uri(self, uri: str) -> None: ...


class FollowStore(Protocol):
    async def create_follow(
        self,
        account_id: AccountId,
        target_account_id: AccountId,
        uri: str,
        pending: bool,
    ) -> Follow: ...

    async def follow_by_uri(self, uri: str) -> Follow | None: ...

    async def follow_by_pair(
        self, account_id: AccountId, target_account_id: AccountId
    ) -> Follow | None: ...

    async def follows_by_account_id(self, account_id: AccountId) -> list[Follow]: ...

    async def mark_follow_confirmed(self, uri: str) -> None: ...

    async def delete_follow_by_uri(self, uri: str) -> None: ...

    async def delete_follow_by_id(self, follow_id: FollowId) -> None: ...


class BlogStore(Protocol):
    async def create_blog(self, url: str) -> Blog: ...

    async def blog_by_id(self, blog_id: BlogId) -> Blog | None: ...

    async def blog_by_url(self, url: str) -> Blog | None: ...

    async def delete_blog_by_id(self, blog_id: BlogId) -> None: ...


class NoteStore(Protocol):
    async def create_note(
        self,
        account_id: AccountId,
        uri: str,
        reply_to_id: NoteId | None,
        root_id: NoteId | None,
        blog_id: BlogId,
    ) -> Note: ...

    async def note_by_id(self, note_id: NoteId) -> Note | None: ...

    async def note_by_uri(self, uri: str) -> Note | None: ...

    async def delete_note_by_id(self, note_id: NoteId) -> None: ...

    async def count_notes(self) -> int: ...

    async def like_note(self, uri: str) -> None: ...

    async def unlike_note(self, uri: str) -> None: ...


class Storage(AccountStore, FollowStore, BlogStore, NoteStore, Protocol):
    """Backend completo injetado nos serviços no startup."""

"""
app/services/follows.py

Máquina de estados das relações de follow entre a conta local e actors remotos.

Para cada par ordenado (A → B) os estados são:
    ausente → pendente → confirmado → ausente

O relay aceita todo Follow recebido e segue de volta quem o segue. O estado
local é sempre gravado antes de a atividade de saída ser enfileirada; a
entrega fica por conta do worker e nunca desfaz o que foi gravado.
"""

import logging

from app.activitypub import activities
from app.activitypub.activities import (
    FollowAccepted,
    FollowRejected,
    FollowRequest,
    FollowUndone,
    Outcome,
)
from app.activitypub.transport import Transport
from app.errors import AlreadyExists, InvalidAccount, NotFound
from app.storage.base import Storage
from app.storage.types import Account, Follow

log = logging.getLogger(__name__)


class FollowService:
    def __init__(self, storage: Storage, transport: Transport, domain: str) -> None:
        self.storage = storage
        self.transport = transport
        self.domain = domain

    # -----------------------------------------------------------------------
    # Atividades recebidas
    # -----------------------------------------------------------------------

    async def handle_follow(self, activity: FollowRequest) -> Outcome:
        """
        Follow(A → B): B precisa ser a conta local.

        Grava A → B já confirmado, responde com Accept e, se ainda não
        seguimos A, cria B → A pendente e envia o Follow.
        """
        local = await self.storage.local_account()
        if activity.object != local.uri:
            raise InvalidAccount(f"Follow {activity.id} targets {activity.object}, not the local account")
        if activity.actor == local.uri:
            raise InvalidAccount(f"Follow {activity.id} comes from the local account")

        remote = await self._remote_account(activity.actor)
        await self._record_follower(remote, local, activity.id)

        accept = activities.accept_activity(
            activities.new_activity_id(self.domain),
            local.uri,
            activities.follow_object(activity.id, remote.uri, local.uri),
        )
        await self.transport.send(accept, [remote.shared_inbox_or_inbox])
        log.info(f"Follow de {remote.uri} aceito")

        if await self.storage.follow_by_pair(local.id, remote.id) is None:
            await self._send_follow(local, remote)
        return Outcome.HANDLED

    async def handle_accept(self, activity: FollowAccepted) -> Outcome:
        follow = await self.storage.follow_by_uri(activity.follow_uri)
        if follow is None:
            log.info(f"Accept de {activity.follow_uri}, que não conhecemos")
            return Outcome.HANDLED
        await self._check_actor(follow.target_account_id, activity.actor, activity.id)

        try:
            await self.storage.mark_follow_confirmed(follow.uri)
        except NotFound:
            log.info(f"Follow {follow.uri} removido antes do Accept")
            return Outcome.HANDLED
        log.info(f"Follow {follow.uri} confirmado por {activity.actor}")
        return Outcome.HANDLED

    async def handle_reject(self, activity: FollowRejected) -> Outcome:
        follow = await self.storage.follow_by_uri(activity.follow_uri)
        if follow is None:
            log.info(f"Reject de {activity.follow_uri}, que não conhecemos")
            return Outcome.HANDLED
        await self._check_actor(follow.target_account_id, activity.actor, activity.id)

        try:
            await self.storage.delete_follow_by_uri(follow.uri)
        except NotFound:
            return Outcome.HANDLED
        log.info(f"Follow {follow.uri} rejeitado por {activity.actor}")
        return Outcome.HANDLED

    async def handle_undo(self, activity: FollowUndone) -> Outcome:
        """Undo(A → B): remove a aresta e desfaz também o nosso B → A."""
        follow = await self.storage.follow_by_uri(activity.follow_uri)
        if follow is None:
            log.info(f"Undo de {activity.follow_uri}, que não conhecemos")
            return Outcome.HANDLED
        follower = await self._check_actor(follow.account_id, activity.actor, activity.id)

        try:
            await self.storage.delete_follow_by_id(follow.id)
        except NotFound:
            # Outro Undo concorrente já cuidou das duas direções
            return Outcome.HANDLED
        log.info(f"{follower.uri} deixou de seguir")

        local = await self.storage.account_by_id(follow.target_account_id)
        if local is not None:
            await self._unfollow(local, follower)
        return Outcome.HANDLED

    # -----------------------------------------------------------------------
    # Eventos locais
    # -----------------------------------------------------------------------

    async def follow(self, uri: str) -> Follow | None:
        """Segue um actor remoto, se ainda não o seguimos."""
        local = await self.storage.local_account()
        if uri == local.uri:
            raise InvalidAccount("The local account cannot follow itself")
        remote = await self._remote_account(uri)

        existing = await self.storage.follow_by_pair(local.id, remote.id)
        if existing is not None:
            return existing
        return await self._send_follow(local, remote)

    async def remove_follower(self, uri: str) -> None:
        """Remove um seguidor, avisando-o com um Reject, e deixa de segui-lo."""
        local = await self.storage.local_account()
        remote = await self.storage.account_by_uri(uri)
        if remote is None:
            return
        follow = await self.storage.follow_by_pair(remote.id, local.id)
        if follow is None:
            return

        try:
            await self.storage.delete_follow_by_id(follow.id)
        except NotFound:
            return

        reject = activities.reject_activity(
            activities.new_activity_id(self.domain),
            local.uri,
            activities.follow_object(follow.uri, remote.uri, local.uri),
        )
        await self.transport.send(reject, [remote.shared_inbox_or_inbox])
        log.info(f"Seguidor {remote.uri} removido")

        await self._unfollow(local, remote)

    # -----------------------------------------------------------------------
    # Auxiliares
    # -----------------------------------------------------------------------

    async def _remote_account(self, uri: str) -> Account:
        actor = await self.transport.dereference_actor(uri)
        if actor is None:
            raise InvalidAccount(f"Actor {uri} not found")
        return await self.storage.upsert_account(actor)

    async def _check_actor(self, account_id, actor_uri: str, activity_id: str) -> Account:
        account = await self.storage.account_by_id(account_id)
        if account is None or account.uri != actor_uri:
            raise InvalidAccount(f"{actor_uri} is not allowed to send {activity_id}")
        return account

    async def _record_follower(self, remote: Account, local: Account, uri: str) -> None:
        existing = await self.storage.follow_by_pair(remote.id, local.id)
        if existing is not None:
            if existing.uri == uri:
                log.info(f"Follow {uri} repetido")
                return
            # Novo Follow do mesmo par: a URI antiga deixa de valer
            try:
                await self.storage.delete_follow_by_id(existing.id)
            except NotFound:
                pass
        try:
            await self.storage.create_follow(remote.id, local.id, uri, pending=False)
        except AlreadyExists:
            log.info(f"Follow {uri} gravado por outra entrega concorrente")

    async def _send_follow(self, local: Account, remote: Account) -> Follow | None:
        uri = activities.new_activity_id(self.domain)
        try:
            follow = await self.storage.create_follow(local.id, remote.id, uri, pending=True)
        except AlreadyExists:
            log.info(f"Follow para {remote.uri} já iniciado por outra entrega")
            return await self.storage.follow_by_pair(local.id, remote.id)

        await self.transport.send(
            activities.follow_activity(uri, local.uri, remote.uri),
            [remote.shared_inbox_or_inbox],
        )
        log.info(f"Follow {uri} enviado para {remote.uri}")
        return follow

    async def _unfollow(self, local: Account, remote: Account) -> None:
        reciprocal = await self.storage.follow_by_pair(local.id, remote.id)
        if reciprocal is None:
            return
        try:
            await self.storage.delete_follow_by_id(reciprocal.id)
        except NotFound:
            return

        undo = activities.undo_activity(
            activities.new_activity_id(self.domain),
            local.uri,
            activities.follow_object(reciprocal.uri, local.uri, remote.uri),
        )
        await self.transport.send(undo, [remote.shared_inbox_or_inbox])
        log.info(f"Undo do Follow {reciprocal.uri} enviado para {remote.uri}")

"""
app/activitypub/transport.py

Interface estreita entre o núcleo do relay e a camada de federação.

O núcleo só precisa de duas coisas do transporte:
- derreferenciar um actor remoto pela URI
- enfileirar uma atividade para entrega em um ou mais inboxes

`ApkitTransport` implementa ambas com o cliente do apkit e a fila
consumida por workers/delivery_worker.py.
"""

import logging
from typing import Any, Iterable, Protocol

from apkit.client.asyncio.client import ActivityPubClient

from app.errors import InvalidAccount, TransportError
from app.services import queue as queue_module
from app.storage.types import ActorDescriptor

log = logging.getLogger(__name__)

# actor removido ou inexistente no servidor de origem
GONE_STATUSES = (404, 410)


class Transport(Protocol):
    async def dereference_actor(self, uri: str) -> ActorDescriptor | None:
        """Busca o actor remoto; None se ele não existir."""
        ...

    async def send(self, activity: dict, inboxes: Iterable[str]) -> None:
        """Enfileira a atividade; a entrega acontece de forma assíncrona."""
        ...


def actor_descriptor(actor: Any) -> ActorDescriptor:
    """Converte um Actor do apkit no descritor usado pelo armazenamento."""
    uri = getattr(actor, "id", None)
    inbox = getattr(actor, "inbox", None)
    if not isinstance(uri, str) or not isinstance(inbox, str):
        raise InvalidAccount(f"Actor {uri!r} has no id or inbox")

    endpoints = getattr(actor, "endpoints", None)
    shared_inbox = getattr(endpoints, "shared_inbox", None) if endpoints else None
    public_key = getattr(actor, "public_key", None)
    outbox = getattr(actor, "outbox", None)

    return ActorDescriptor(
        uri=uri,
        username=getattr(actor, "preferred_username", None) or uri.rstrip("/").split("/")[-1],
        inbox=inbox,
        outbox=outbox if isinstance(outbox, str) else None,
        shared_inbox=shared_inbox if isinstance(shared_inbox, str) else None,
        public_key=getattr(public_key, "public_key_pem", None) or "",
    )


class ApkitTransport:
    async def dereference_actor(self, uri: str) -> ActorDescriptor | None:
        try:
            async with ActivityPubClient() as client:
                async with client.get(uri, headers={"Accept": "application/activity+json"}) as response:
                    if response.status in GONE_STATUSES:
                        log.info(f"Actor {uri} não encontrado ({response.status})")
                        return None
                    if not response.ok:
                        raise TransportError(f"Failed to fetch actor {uri}: {response.status}")
                    actor = await response.parse()
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"Failed to fetch actor {uri}: {e}") from e

        return actor_descriptor(actor)

    async def send(self, activity: dict, inboxes: Iterable[str]) -> None:
        # dict.fromkeys remove inboxes repetidos mantendo a ordem
        targets = list(dict.fromkeys(inboxes))
        await queue_module.delivery_queue.put(queue_module.Delivery(activity, targets))
        log.info(f"{activity.get('type')} {activity.get('id')} enfileirado para {targets}")

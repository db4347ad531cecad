"""
app/activitypub/dispatch.py

Encaminha cada atividade recebida ao serviço responsável.

Atividades inválidas (actor errado, conteúdo ilegível) são descartadas
com sucesso; falhas de armazenamento e de transporte sobem para o handler
HTTP, que responde 500 para o servidor remoto tentar de novo.
"""

import logging

from app.activitypub.activities import (
    FollowAccepted,
    FollowRejected,
    FollowRequest,
    FollowUndone,
    InboundActivity,
    NoteCreated,
    NoteDeleted,
    NoteLiked,
    NoteUnliked,
    Outcome,
    Unsupported,
)
from app.activitypub.transport import Transport
from app.errors import InvalidAccount, InvalidContent
from app.services.follows import FollowService
from app.services.threads import ThreadService
from app.storage.base import Storage

log = logging.getLogger(__name__)


class Dispatcher:
    def __init__(self, storage: Storage, transport: Transport, domain: str, tag: str) -> None:
        self.follows = FollowService(storage, transport, domain)
        self.threads = ThreadService(storage, transport, tag)

    async def dispatch(self, activity: InboundActivity) -> Outcome:
        try:
            return await self._route(activity)
        except (InvalidAccount, InvalidContent) as e:
            log.warning(f"Atividade {getattr(activity, 'id', None)} descartada: {e}")
            return Outcome.DISCARDED

    async def _route(self, activity: InboundActivity) -> Outcome:
        match activity:
            case FollowRequest():
                log.info(f"Follow recebido de {activity.actor}")
                return await self.follows.handle_follow(activity)
            case FollowAccepted():
                log.info(f"Accept recebido de {activity.actor}")
                return await self.follows.handle_accept(activity)
            case FollowRejected():
                log.info(f"Reject recebido de {activity.actor}")
                return await self.follows.handle_reject(activity)
            case FollowUndone():
                log.info(f"Undo Follow recebido de {activity.actor}")
                return await self.follows.handle_undo(activity)
            case NoteCreated(note=post):
                log.info(f"Create recebido de {activity.actor}")
                return await self.threads.handle_create(post)
            case NoteDeleted(object_uri=uri):
                log.info(f"Delete recebido de {activity.actor}")
                return await self.threads.handle_delete(uri, activity.actor)
            case NoteLiked(note_uri=uri):
                return await self.threads.handle_like(uri)
            case NoteUnliked(note_uri=uri):
                return await self.threads.handle_unlike(uri)
            case Unsupported(kind=kind, reason=reason):
                log.info(f"Atividade {kind} não suportada: {reason}")
                return Outcome.UNSUPPORTED
            case _:
                raise TypeError(f"Unknown activity variant: {activity!r}")

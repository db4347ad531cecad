"""
app/activitypub/handlers.py

Registra os handlers de atividades ActivityPub no servidor apkit.

O apkit já verificou a assinatura HTTP quando o handler é chamado. Cada
handler serializa o modelo do apkit com `dump()`, converte o JSON na variante
correspondente e espera o dispatcher:
- HANDLED / DISCARDED → 202
- UNSUPPORTED         → 400
- falha de armazenamento ou transporte → 500 (o servidor remoto tenta de novo)
"""

import logging

from apkit.models import Accept, Create, Delete, Follow, Like, Reject, Undo
from apkit.server.types import Context
from fastapi import Response
from fastapi.responses import JSONResponse

from app.activitypub.activities import Outcome, parse_activity
from app.activitypub.dispatch import Dispatcher
from app.errors import FediscusError

log = logging.getLogger(__name__)

INBOUND_TYPES = (Follow, Accept, Reject, Undo, Create, Delete, Like)


def register_handlers(app, dispatcher: Dispatcher) -> None:
    """
    Registra os handlers de atividades no servidor apkit.
    Chamado em main.py após criar a instância ActivityPubServer.
    """

    async def on_activity(ctx: Context):
        activity = parse_activity(ctx.activity.dump())
        try:
            outcome = await dispatcher.dispatch(activity)
        except FediscusError as e:
            log.error(f"Falha ao processar {getattr(activity, 'id', None)}: {e}", exc_info=True)
            return JSONResponse({"error": "Failed to process activity"}, status_code=500)

        if outcome is Outcome.UNSUPPORTED:
            return JSONResponse({"error": "Unsupported activity"}, status_code=400)
        return Response(status_code=202)

    for activity_type in INBOUND_TYPES:
        app.on(activity_type)(on_activity)

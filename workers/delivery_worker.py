"""
workers/delivery_worker.py

Worker assíncrono que entrega as atividades enfileiradas pelo transporte.

Fluxo:
1. Consome entregas da fila (delivery_queue)
2. Assina cada POST com a chave da conta local (draft-cavage)
3. Envia para cada inbox de destino

Falhas de entrega são logadas e não desfazem o estado local, que já foi
gravado antes de a atividade entrar na fila. Não há retentativa.
"""

import asyncio
import logging

from apkit.client.asyncio.client import ActivityPubClient
from apkit.types import ActorKey

from app.activitypub.keys import get_local_keys
from app.services import queue as queue_module

log = logging.getLogger(__name__)


async def _signatures() -> list[ActorKey]:
    return [
        ActorKey(key_id=key.key_id, private_key=key.private_key)
        for key in await get_local_keys()
    ]


async def deliver(delivery: queue_module.Delivery) -> None:
    signatures = await _signatures()
    if not signatures:
        log.error("Chave da conta local não encontrada, entregas não podem ser assinadas")
        return

    activity_id = delivery.activity.get("id")
    for inbox in delivery.inboxes:
        try:
            async with ActivityPubClient() as client:
                async with client.post(
                        inbox,
                        json=delivery.activity,
                        signatures=signatures,
                        sign_with=["draft-cavage"],
                ) as response:
                    if response.status >= 400:
                        body = await response.text()
                        log.error(f"Entrega de {activity_id} para {inbox} falhou: {response.status} {body[:500]}")
                    else:
                        log.info(f"{activity_id} entregue em {inbox} ({response.status})")
        except Exception as e:
            log.error(f"Erro ao entregar {activity_id} para {inbox}: {e}", exc_info=True)


async def run_worker() -> None:
    log.info("Worker de entrega iniciado")
    while True:
        try:
            delivery = await asyncio.wait_for(queue_module.delivery_queue.get(), timeout=5.0)
        except asyncio.TimeoutError:
            continue
        try:
            await deliver(delivery)
        except Exception as e:
            log.error(f"Erro no worker: {e}", exc_info=True)
        finally:
            queue_module.delivery_queue.task_done()

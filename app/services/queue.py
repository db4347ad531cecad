"""
app/services/queue.py

Fila de entregas pendentes, compartilhada entre o transporte
(que enfileira) e o worker de entrega (que consome).
"""

import asyncio
from dataclasses import dataclass, field


@dataclass
class Delivery:
    activity: dict
    inboxes: list[str] = field(default_factory=list)


delivery_queue: asyncio.Queue[Delivery] = asyncio.Queue()

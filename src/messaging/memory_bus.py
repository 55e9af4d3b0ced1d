"""
LOT 5: Messaging - In-Memory Event Bus

Bus mémoire partitionné par (topic, clé): les messages d'une même clé sont
délivrés aux abonnés dans l'ordre de publication.
"""

import asyncio
from collections import defaultdict, deque
from typing import Any, DefaultDict, Deque, Dict, List, Optional, Tuple

from src.logging.structured_logger import StructuredLogger

from .interfaces import BusMessage, IEventBus, MessageHandler


class _Partition:
    """File ordonnée d'une partition (topic, clé) et sa tâche de livraison."""

    def __init__(self) -> None:
        self.queue: Deque[Tuple[BusMessage, List[MessageHandler]]] = deque()
        self.task: Optional[asyncio.Task] = None

    @property
    def idle(self) -> bool:
        return self.task is None or self.task.done()


class InMemoryEventBus(IEventBus):
    """
    Bus d'événements en mémoire.

    publish enregistre le message et le met en file sans attendre les
    abonnés. Chaque partition (topic, clé) est vidée par une seule tâche,
    message après message: l'ordre par clé est conservé et un handler peut
    publier sur sa propre partition.

    Example:
        bus = InMemoryEventBus()
        bus.subscribe("license-violations", handler)
        await bus.publish("license-violations", digest, {"id": "violation-..."})
        await bus.join()
    """

    def __init__(self, logger: Optional[StructuredLogger] = None) -> None:
        self._messages: List[BusMessage] = []
        self._subscribers: DefaultDict[str, List[MessageHandler]] = defaultdict(list)
        self._partitions: Dict[Tuple[str, Optional[str]], _Partition] = {}
        self._offset = 0
        self._logger = logger or StructuredLogger("messaging.bus")

    def subscribe(self, topic: str, handler: MessageHandler) -> None:
        self._subscribers[topic].append(handler)

    async def publish(self, topic: str, key: Optional[str], payload: Dict[str, Any]) -> BusMessage:
        message = BusMessage(topic=topic, key=key, payload=dict(payload), offset=self._offset)
        self._offset += 1
        self._messages.append(message)

        handlers = list(self._subscribers.get(topic, []))
        if handlers:
            partition = self._partitions.setdefault((topic, key), _Partition())
            partition.queue.append((message, handlers))
            if partition.idle:
                partition.task = asyncio.ensure_future(self._drain(partition))
        return message

    async def _drain(self, partition: _Partition) -> None:
        while partition.queue:
            message, handlers = partition.queue.popleft()
            for handler in handlers:
                try:
                    acknowledged = await handler(message.topic, message.key, dict(message.payload))
                except Exception as e:
                    self._logger.error(
                        "Message handler failed",
                        topic=message.topic,
                        offset=message.offset,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    continue
                if acknowledged is False:
                    self._logger.warn("Message not acknowledged", topic=message.topic, offset=message.offset)

    async def join(self) -> None:
        """Attend la livraison de tous les messages en file."""
        while True:
            pending = [p.task for p in self._partitions.values() if not p.idle]
            if not pending:
                return
            await asyncio.gather(*pending)

    def get_messages(self, topic: Optional[str] = None, key: Optional[str] = None) -> List[BusMessage]:
        """Messages publiés, filtrés par topic et/ou clé."""
        return [
            m
            for m in self._messages
            if (topic is None or m.topic == topic) and (key is None or m.key == key)
        ]

    def clear(self) -> None:
        self._messages.clear()

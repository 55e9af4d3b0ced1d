"""
LOT 5: Interfaces Messaging

Contrat du collaborateur de flux d'événements. Le transport est externe;
le framework requiert une livraison au moins une fois et l'ordre par clé
(clé = digest de licence).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

MessageHandler = Callable[[str, Optional[str], Dict[str, Any]], Awaitable[Any]]


class PublishError(Exception):
    """Publication refusée par le transport."""

    pass


@dataclass(frozen=True)
class BusMessage:
    """Message publié sur un topic."""

    topic: str
    key: Optional[str]
    payload: Dict[str, Any]
    offset: int
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class IEventBus(ABC):
    """Interface bus d'événements."""

    @abstractmethod
    async def publish(self, topic: str, key: Optional[str], payload: Dict[str, Any]) -> BusMessage:
        """
        Publie un message sur un topic.

        Raises:
            PublishError: Transport indisponible
        """
        pass

    @abstractmethod
    def subscribe(self, topic: str, handler: MessageHandler) -> None:
        """Abonne un handler (topic, key, payload) à un topic."""
        pass

"""
LOT 5: Messaging

Collaborateur de flux d'événements (interface) et bus mémoire.
"""
from .interfaces import (
    # Dataclasses
    BusMessage,
    # Interfaces
    IEventBus,
    MessageHandler,
    # Exceptions
    PublishError,
)
from .memory_bus import InMemoryEventBus

__all__ = [
    # Dataclasses
    "BusMessage",
    # Interfaces
    "IEventBus",
    "MessageHandler",
    # Implementations
    "InMemoryEventBus",
    # Exceptions
    "PublishError",
]

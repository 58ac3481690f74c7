"""Domain layer base classes: DomainEvent and the event bus."""
from licensehub.domain.events import DomainEvent, EventBus, InProcessEventDispatcher

__all__ = [
    "DomainEvent",
    "EventBus",
    "InProcessEventDispatcher",
]

"""Domain events: base type, bus protocol and the in-process dispatcher."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class EventBus(Protocol):
    """Event bus protocol: publish and subscribe."""

    async def publish(self, event: DomainEvent) -> None:
        ...

    def subscribe(self, event_type: type[DomainEvent], handler: Callable[..., Any]) -> None:
        ...


@dataclass(frozen=True)
class DomainEvent:
    """Base domain event type. Subclasses are dataclasses with fields."""


class InProcessEventDispatcher:
    """Dispatcher: subscribe by event type, publish invokes handlers in subscription order.

    Events are published after the transaction that produced them has
    committed, so a failing subscriber is logged and does not fail the request.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[..., Any]]] = {}

    def subscribe(self, event_type: type[DomainEvent], handler: Callable[..., Any]) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    async def publish(self, event: DomainEvent) -> None:
        for handler in self._handlers.get(type(event), []):
            try:
                result = handler(event)
                if hasattr(result, "__await__"):
                    await result
            except Exception:
                logger.exception("Event handler %r failed for %s", handler, type(event).__name__)

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Protocol, TypeVar

from delivery_forecast.integration.events import DomainEvent, ForecastEvent


logger = logging.getLogger(__name__)

E = TypeVar("E", bound=DomainEvent)
Handler = Callable[[E], None]


class EventBus(Protocol):
    """Where the predictive analysis service announces forecasts and skips."""

    def publish(self, event: ForecastEvent) -> int:
        """Deliver `event` and return how many handlers accepted it."""
        ...

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> Callable[[], None]:
        """Register `handler`; the returned callable unregisters it."""
        ...


@dataclass(frozen=True)
class HandlerFailure:
    event: DomainEvent
    handler: Callable[..., None]
    error: Exception


@dataclass
class InMemoryEventBus:
    """Synchronous bus; handlers run in subscription order on the publisher's thread.

    A handler that raises is logged and recorded in `failures`; the other
    handlers still run and the forecast is still returned to the caller.
    """

    subscriptions: list[tuple[type[DomainEvent], Callable[..., None]]] = field(default_factory=list)
    failures: list[HandlerFailure] = field(default_factory=list, init=False)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> Callable[[], None]:
        entry = (event_type, handler)
        self.subscriptions.append(entry)

        def unsubscribe() -> None:
            if entry in self.subscriptions:
                self.subscriptions.remove(entry)

        return unsubscribe

    def publish(self, event: DomainEvent) -> int:
        delivered = 0
        for event_type, handler in list(self.subscriptions):
            if not isinstance(event, event_type):
                continue
            try:
                handler(event)
            except Exception as exc:
                logger.exception(
                    "%s handler %r failed for room %s",
                    type(event).__name__,
                    handler,
                    getattr(event, "room_id", None) or "<inputs>",
                )
                self.failures.append(HandlerFailure(event=event, handler=handler, error=exc))
                continue
            delivered += 1
        return delivered

# SPDX-License-Identifier: Apache-2.0

"""
In-process domain event bus.

Engines publish an event after their state change has been committed. Each
subscriber is called synchronously in subscription order; a failing
subscriber is logged and skipped so it can neither undo the committed change
nor starve the subscribers after it.
"""

import logging
import threading
from typing import Callable, List, Type

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from domain.events import DomainEvent

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

Subscriber = Callable[[DomainEvent], None]


class EventBus:
    """Synchronous publish/subscribe for domain events."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[tuple] = []

    def subscribe(self, handler: Subscriber, event_type: Type[DomainEvent] = DomainEvent) -> None:
        """Register a handler for ``event_type`` and its subclasses."""
        with self._lock:
            self._subscribers.append((event_type, handler))
        logger.debug(f"Subscribed {getattr(handler, '__qualname__', handler)} to {event_type.__name__}")

    def publish(self, event: DomainEvent) -> int:
        """
        Deliver an event to every matching subscriber.

        Returns:
            Number of subscribers that handled the event without error
        """
        with self._lock:
            subscribers = [handler for event_type, handler in self._subscribers if isinstance(event, event_type)]

        delivered = 0
        with tracer.start_as_current_span("event_bus.publish") as span:
            span.set_attributes({
                "event.name": event.name,
                "event.message_id": event.message_id,
                "event.subscribers": len(subscribers)
            })

            for handler in subscribers:
                try:
                    handler(event)
                    delivered += 1
                except Exception as e:
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    logger.warning(
                        "Domain event subscriber failed",
                        extra={
                            "extra_fields": {
                                "event": event.name,
                                "message_id": event.message_id,
                                "subscriber": getattr(handler, '__qualname__', repr(handler)),
                                "error": str(e),
                                "error_type": type(e).__name__
                            }
                        },
                        exc_info=True
                    )

        return delivered

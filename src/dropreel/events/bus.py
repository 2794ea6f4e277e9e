"""Synchronous publish/subscribe bus shared by the pipeline components."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Type


@dataclass(kw_only=True)
class Event:
    """Base event class."""
    timestamp: datetime = field(default_factory=datetime.now)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(eq=False)
class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`.

    ``cancel()`` only mutes the handler; :meth:`EventBus.unsubscribe` also
    drops it from the bus.
    """
    event_type: Type[Event]
    handler: Callable[[Event], None]
    active: bool = True

    def cancel(self) -> None:
        self.active = False


class EventBus:
    """Dispatch events to handlers registered for their exact type.

    Publishing happens on the asyncio loop thread.  A failing handler is
    logged and skipped so the remaining subscribers still see the event.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(__name__)
        self._handlers: Dict[Type[Event], List[Subscription]] = defaultdict(list)

    def subscribe(self, event_type: Type[Event], handler: Callable[[Event], None]) -> Subscription:
        sub = Subscription(event_type, handler)
        self._handlers[event_type].append(sub)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.cancel()
        subs = self._handlers.get(subscription.event_type)
        if subs and subscription in subs:
            subs.remove(subscription)

    def publish(self, event: Event) -> int:
        """Deliver *event* and return the number of handlers that ran."""
        event_type = type(event)
        delivered = 0
        for sub in tuple(self._handlers.get(event_type, ())):
            if not sub.active:
                continue
            try:
                sub.handler(event)
            except Exception as exc:
                self._logger.error("Handler failed for %s: %s", event_type.__name__, exc)
            else:
                delivered += 1
        return delivered

    def subscriber_count(self, event_type: Type[Event]) -> int:
        return sum(1 for sub in self._handlers.get(event_type, ()) if sub.active)

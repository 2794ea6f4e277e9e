"""BaseViewModel with subscription lifecycle and liveness tracking."""

from __future__ import annotations

from typing import Callable, Type

from dropreel.events.bus import Event, EventBus, Subscription


class BaseViewModel:
    """Track bus subscriptions and whether the consumer is still attached.

    Background work holds references to view models long after a consumer may
    have gone away; ``is_alive`` lets it stop applying results without any
    cancellation machinery.
    """

    def __init__(self) -> None:
        self._subscriptions: list[tuple[EventBus, Subscription]] = []
        self._alive = True

    @property
    def is_alive(self) -> bool:
        return self._alive

    def subscribe_event(
        self,
        event_bus: EventBus,
        event_type: Type[Event],
        handler: Callable[[Event], None],
    ) -> Subscription:
        """Subscribe to an event type for as long as this view model lives."""
        sub = event_bus.subscribe(event_type, handler)
        self._subscriptions.append((event_bus, sub))
        return sub

    def dispose(self) -> None:
        """Drop tracked subscriptions from their buses and mark the model dead."""
        self._alive = False
        for event_bus, sub in self._subscriptions:
            event_bus.unsubscribe(sub)
        self._subscriptions.clear()

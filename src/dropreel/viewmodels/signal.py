"""Callback plumbing between the catalog, the panels and whatever renders them.

Everything runs on the asyncio loop thread, so there is no locking here.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

_logger = logging.getLogger(__name__)


class Signal:
    """Ordered set of callbacks fired by :meth:`emit`.

    Connecting the same callback twice is a no-op and disconnecting one that
    was never connected (or was already removed) is ignored, so view models
    can tear down unconditionally.  A callback that raises is logged and the
    rest still run.
    """

    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name
        # dict keeps insertion order and gives O(1) membership
        self._handlers: Dict[Callable[..., Any], None] = {}

    def connect(self, handler: Callable[..., Any]) -> None:
        self._handlers.setdefault(handler, None)

    def disconnect(self, handler: Callable[..., Any]) -> bool:
        """Remove *handler*; returns False when it was not connected."""
        if handler not in self._handlers:
            return False
        del self._handlers[handler]
        return True

    def emit(self, *args: Any) -> int:
        """Call every handler with *args* and return how many succeeded."""
        delivered = 0
        for handler in tuple(self._handlers):
            try:
                handler(*args)
            except Exception as exc:
                _logger.error("%s handler %r failed: %s", self.name or "Signal", handler, exc)
            else:
                delivered += 1
        return delivered

    @property
    def handler_count(self) -> int:
        return len(self._handlers)


class ObservableProperty:
    """Holds one immutable value and emits ``changed(new, old)`` when it differs."""

    def __init__(self, initial_value: Any = None, name: Optional[str] = None) -> None:
        self._value = initial_value
        self.changed = Signal(name)

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, new_value: Any) -> None:
        if new_value == self._value:
            return
        old_value, self._value = self._value, new_value
        self.changed.emit(new_value, old_value)

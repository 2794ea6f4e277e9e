"""Page-level message strip shown above both panels."""

from __future__ import annotations

import logging
from typing import Optional

from dropreel.errors.handler import ErrorHandler, ErrorSeverity
from dropreel.events.bus import EventBus
from dropreel.events.catalog_events import ReconciliationCompletedEvent
from dropreel.viewmodels.base import BaseViewModel
from dropreel.viewmodels.signal import ObservableProperty, Signal


class BannerViewModel(BaseViewModel):
    """Collects user-facing errors, empty-folder notices and pass summaries.

    ``shown`` emits ``(message, severity)``; ``message`` holds the latest one
    until :meth:`clear`.  Nothing is shown once the view model is disposed.
    """

    def __init__(self, error_handler: ErrorHandler, event_bus: EventBus) -> None:
        super().__init__()
        self._logger = logging.getLogger(__name__)
        self.message = ObservableProperty(None, "banner.message")
        self.shown = Signal("banner.shown")

        error_handler.register_ui_callback(self.show)
        self.subscribe_event(event_bus, ReconciliationCompletedEvent, self._on_reconciliation_completed)

    @property
    def current(self) -> Optional[str]:
        return self.message.value

    def show(self, message: str, severity: ErrorSeverity) -> None:
        if not self.is_alive:
            self._logger.debug("Banner disposed; dropping %s message", severity.value)
            return
        self.message.value = message
        self.shown.emit(message, severity)

    def clear(self) -> None:
        self.message.value = None

    def _on_reconciliation_completed(self, event: ReconciliationCompletedEvent) -> None:
        if event.summary:
            self.show(event.summary, ErrorSeverity.WARNING)

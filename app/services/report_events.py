"""
In-process "reports updated" notifications.

Submission publishes after a report is stored; browsing views subscribe and
bump their revision so clients refetch. Subscribers are plain callables; a
failing subscriber is logged and never breaks the publisher.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

REPORTS_UPDATED = "reports_updated"


class ReportEventBus:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Callable[[dict], None]]] = {}

    def subscribe(self, event: str, callback: Callable[[dict], None]) -> Callable[[], None]:
        """Register callback for event; returns an unsubscribe function."""
        with self._lock:
            self._subscribers.setdefault(event, []).append(callback)

        def unsubscribe():
            with self._lock:
                callbacks = self._subscribers.get(event, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def publish(self, event: str, payload: Optional[dict] = None) -> int:
        """Deliver payload to every subscriber of event. Returns the delivery count."""
        with self._lock:
            callbacks = list(self._subscribers.get(event, []))

        delivered = 0
        for callback in callbacks:
            try:
                callback(payload or {})
                delivered += 1
            except Exception as e:
                logger.error(f"Subscriber for '{event}' failed: {e}", exc_info=True)
        logger.debug(f"Published '{event}' to {delivered}/{len(callbacks)} subscriber(s)")
        return delivered


_event_bus: Optional[ReportEventBus] = None


def get_event_bus() -> ReportEventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = ReportEventBus()
    return _event_bus

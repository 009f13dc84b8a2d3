# serial_term/core/event_bus.py

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

log = logging.getLogger(__name__)


class EventBus:
    """
    Simple synchronous event bus for UI-facing signals.
    Handlers run on the runtime's event-processing task; keep them fast.
    """

    def __init__(self) -> None:
        self._subs: Dict[str, List[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Callable[[Any], None]) -> None:
        """Register a handler for a topic."""
        self._subs[topic].append(handler)

    def unsubscribe(self, topic: str, handler: Callable[[Any], None]) -> None:
        handlers = self._subs.get(topic, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, topic: str, data: Any) -> None:
        """Call all handlers for a topic."""
        for h in list(self._subs.get(topic, [])):
            try:
                h(data)
            except Exception:  # one bad view handler must not stop the runtime
                log.exception("handler error on '%s'", topic)

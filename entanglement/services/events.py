"""
Publish/subscribe surface for engine lifecycle events.
"""

import threading
from collections import defaultdict
from concurrent.futures import Executor
from typing import Any, Callable, Dict, List, Optional

from ..models.core import DiscoveryEvent
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[DiscoveryEvent, Any], None]


class EventBus:
    """Observer list per event type; handler failures never reach the publisher."""

    def __init__(self, executor: Optional[Executor] = None):
        """
        Args:
            executor: Runs handlers off the publishing thread when given
        """
        self._handlers: Dict[DiscoveryEvent, List[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()
        self._executor = executor

    def subscribe(self, event: DiscoveryEvent, handler: EventHandler) -> None:
        with self._lock:
            self._handlers[event].append(handler)

    def unsubscribe(self, event: DiscoveryEvent, handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    def publish(self, event: DiscoveryEvent, payload: Any = None) -> None:
        """Deliver an event to every subscriber of its type."""
        with self._lock:
            handlers = list(self._handlers.get(event, ()))

        for handler in handlers:
            if self._executor is not None:
                try:
                    self._executor.submit(self._deliver, handler, event, payload)
                except RuntimeError as e:
                    # Executor already shut down
                    logger.warning(f'Dropped {event.value} event: {e}')
            else:
                self._deliver(handler, event, payload)

    @staticmethod
    def _deliver(handler: EventHandler, event: DiscoveryEvent, payload: Any) -> None:
        try:
            handler(event, payload)
        except Exception as e:
            logger.warning(f'Event handler {getattr(handler, "__name__", handler)} failed for {event.value}: {e}')

    def close(self) -> None:
        """Drop subscribers and stop the handler executor."""
        self.clear()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

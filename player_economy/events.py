"""Outbound announcements of completed economy operations."""

import itertools
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

Handler = Callable[["Announcement"], Any]

ALL_EVENTS = "*"


@dataclass(frozen=True)
class Announcement:
    """
    One outbound announcement.

    Attributes:
        name: Event name, e.g. "trade.completed"
        payload: Resulting entities and details (copies, safe to keep)
        timestamp: Monotonic milliseconds at publication
        seq: Publication order
    """
    name: str
    payload: Dict[str, Any]
    timestamp: int
    seq: int

    def __repr__(self) -> str:
        return f"Announcement({self.name}, seq={self.seq}, t={self.timestamp})"


class EventBus:
    """
    Synchronous publish/subscribe bus with a bounded history.

    Handlers subscribed to ``"*"`` receive every announcement. A handler
    that raises is logged and skipped; the publishing operation has
    already committed its state change.
    """

    def __init__(self, clock, history_size: int = 1000):
        self.clock = clock
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._history: Deque[Announcement] = deque(maxlen=history_size)
        self._seq = itertools.count(1)

    def subscribe(self, name: str, handler: Handler) -> None:
        if not callable(handler):
            raise TypeError("Handler must be callable")
        self._handlers[name].append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> bool:
        handlers = self._handlers.get(name)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    def publish(self, name: str, payload: Optional[Dict[str, Any]] = None) -> Announcement:
        announcement = Announcement(
            name=name,
            payload=dict(payload or {}),
            timestamp=self.clock.now_ms(),
            seq=next(self._seq),
        )
        self._history.append(announcement)

        for handler in list(self._handlers.get(name, ())) + list(self._handlers.get(ALL_EVENTS, ())):
            try:
                handler(announcement)
            except Exception:
                logger.exception("announcement_handler_failed", announcement=name, handler=repr(handler))
        return announcement

    def history(self, name: Optional[str] = None) -> List[Announcement]:
        if name is None:
            return list(self._history)
        return [a for a in self._history if a.name == name]

    def clear_history(self) -> None:
        self._history.clear()

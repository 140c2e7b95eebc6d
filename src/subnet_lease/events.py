"""Lease events and the bounded queue that carries them to consumers."""

from __future__ import annotations

import queue
from dataclasses import dataclass, field
from enum import Enum
from threading import Event as CancelSignal
from typing import Any, List, Optional

from .lease import Lease

DEFAULT_CAPACITY = 5000


class EventType(Enum):
    """Kinds of lease events.

    There is no separate update kind: a changed lease is reported as
    ``ADDED`` carrying the new values.
    """

    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class Event:
    type: EventType
    lease: Lease


@dataclass
class LeaseWatchResult:
    """Result of a watch call. An empty ``events`` list means cancelled."""

    events: List[Event] = field(default_factory=list)
    cursor: Any = None


class EventQueue:
    """Bounded FIFO between the directory worker and watch callers.

    ``put`` blocks when the queue is full, which in turn stalls directory
    callback delivery until a consumer catches up.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, poll_interval: float = 0.1) -> None:
        self._queue: "queue.Queue[Event]" = queue.Queue(maxsize=capacity)
        self._poll_interval = poll_interval

    @property
    def capacity(self) -> int:
        return self._queue.maxsize

    def put(self, event: Event) -> None:
        self._queue.put(event)

    def get(self, cancel: CancelSignal) -> Optional[Event]:
        """Return the next event, or ``None`` once ``cancel`` is set."""

        while True:
            try:
                return self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                if cancel.is_set():
                    return None

    def __len__(self) -> int:
        return self._queue.qsize()

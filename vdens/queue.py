"""Queue of outstanding DNS query ids awaiting a reply."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from vdens.header import QUEUE_TIMEOUT

MAX_NAME = 256


@dataclass
class QueueItem:
    """An outstanding query: its id, deadline, query name and the peer that sent it."""

    id: int
    timeout: float
    name: bytes = b""
    peer: Any = None


class QueryQueue:
    """First-in first-out queue of query ids, each with a deadline."""

    def __init__(self, timeout: float = QUEUE_TIMEOUT, clock: Callable[[], float] = time.time):
        self.timeout = timeout
        self._clock = clock
        self._items: list[QueueItem] = []

    def find(self, ident: int) -> QueueItem | None:
        """Return the queued item with id ``ident``, if any."""
        ident &= 0xFFFF
        return next((item for item in self._items if item.id == ident), None)

    def push(self, ident: int, name: str | bytes | None = None, peer: Any = None) -> None:
        """Queue an id unless it is already queued."""
        if self.find(ident):
            return
        if isinstance(name, str):
            name = name.encode("ascii")
        name = bytes(name or b"")
        if len(name) > MAX_NAME:
            raise ValueError("query name too long")
        self._items.append(
            QueueItem(ident & 0xFFFF, self._clock() + self.timeout, name, peer)
        )

    def push_id(self, ident: int) -> None:
        """Queue an id with no name or peer."""
        self.push(ident)

    def pop(self, ident: int = -1) -> QueueItem | None:
        """Remove and return the item with ``ident``, or the first one if ``ident`` is negative."""
        if not self._items:
            return None
        if ident < 0:
            return self._items.pop(0)
        for index, item in enumerate(self._items):
            if item.id == ident:
                return self._items.pop(index)
        return None

    def expire(self, callback: Callable[[QueueItem], Any] | None = None) -> list[QueueItem]:
        """Drop items at the head whose deadline has passed, calling ``callback`` for each."""
        now = self._clock()
        expired = []
        while self._items and self._items[0].timeout <= now:
            item = self._items.pop(0)
            if callback:
                callback(item)
            expired.append(item)
        return expired

    def __len__(self) -> int:
        return len(self._items)
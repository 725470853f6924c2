from __future__ import annotations

import threading
from collections import deque
from typing import Protocol

from domain.models import Action


class ReviewQueue(Protocol):
    def enqueue(self, action: Action) -> None: ...


class InMemoryReviewQueue:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: deque[Action] = deque()

    def enqueue(self, action: Action) -> None:
        with self._lock:
            self._items.append(action)

    def pop(self) -> Action | None:
        with self._lock:
            return self._items.popleft() if self._items else None

    def __len__(self) -> int:
        return len(self._items)

from __future__ import annotations

import copy
import threading
from typing import Any, Protocol

from domain.models import COUNTER_FIELDS

KINDS = (
    "companies",
    "invites",
    "users",
    "dashboards",
    "applicants",
    "documents",
    "admin_checks",
    "worker_docs",
    "actions",
    "messages",
)


class ConcurrencyConflict(Exception):
    """Conditional write failed: the stored version is not the one the writer read."""

    def __init__(self, kind: str, key: str, expected: int, actual: int | None):
        super().__init__(f"{kind}:{key} expected version {expected}, found {actual}")
        self.kind = kind
        self.key = key
        self.expected = expected
        self.actual = actual


class DocumentStore(Protocol):
    def get(self, kind: str, key: str) -> dict[str, Any] | None: ...

    def find(
        self, kind: str, filters: dict[str, Any] | None = None, prefix: str | None = None
    ) -> list[dict[str, Any]]: ...

    def put(
        self, kind: str, key: str, data: dict[str, Any], expected_version: int
    ) -> dict[str, Any]: ...

    def get_counters(self, key: str) -> dict[str, int]: ...

    def apply_counter_event(self, key: str, event_id: str, deltas: dict[str, int]) -> bool: ...

    def set_counters(self, key: str, counters: dict[str, int]) -> None: ...


def _lookup(doc: dict[str, Any], dotted: str) -> Any:
    cur: Any = doc
    for part in dotted.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
    return cur


def _zero_counters() -> dict[str, int]:
    return {name: 0 for name in COUNTER_FIELDS}


class InMemoryStore:
    """Process-local store with the same conditional-write contract as MongoStore."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, dict[str, dict[str, Any]]] = {kind: {} for kind in KINDS}
        self._counters: dict[str, dict[str, int]] = {}
        self._applied_events: set[tuple[str, str]] = set()

    def get(self, kind: str, key: str) -> dict[str, Any] | None:
        with self._lock:
            doc = self._data[kind].get(key)
            return copy.deepcopy(doc) if doc is not None else None

    def find(
        self, kind: str, filters: dict[str, Any] | None = None, prefix: str | None = None
    ) -> list[dict[str, Any]]:
        filters = filters or {}
        with self._lock:
            out = []
            for key, doc in self._data[kind].items():
                if prefix and not key.startswith(prefix):
                    continue
                if all(_lookup(doc, f) == v for f, v in filters.items()):
                    out.append(copy.deepcopy(doc))
            return out

    def put(
        self, kind: str, key: str, data: dict[str, Any], expected_version: int
    ) -> dict[str, Any]:
        with self._lock:
            current = self._data[kind].get(key)
            actual = current["version"] if current is not None else None
            if (current is None and expected_version != 0) or (
                current is not None and actual != expected_version
            ):
                raise ConcurrencyConflict(kind, key, expected_version, actual)
            stored = copy.deepcopy(data)
            stored["version"] = expected_version + 1
            self._data[kind][key] = stored
            return copy.deepcopy(stored)

    def get_counters(self, key: str) -> dict[str, int]:
        with self._lock:
            return dict(self._counters.get(key) or _zero_counters())

    def apply_counter_event(self, key: str, event_id: str, deltas: dict[str, int]) -> bool:
        with self._lock:
            if (key, event_id) in self._applied_events:
                return False
            self._applied_events.add((key, event_id))
            counters = self._counters.setdefault(key, _zero_counters())
            for name, delta in deltas.items():
                counters[name] = counters.get(name, 0) + delta
            return True

    def set_counters(self, key: str, counters: dict[str, int]) -> None:
        with self._lock:
            self._counters[key] = {**_zero_counters(), **counters}


def build_store(backend: str) -> DocumentStore:
    if backend == "mongo":
        from services.persistence.mongo import MongoStore

        return MongoStore.from_settings()
    if backend == "memory":
        return InMemoryStore()
    raise ValueError(f"unknown store backend: {backend}")

from __future__ import annotations

import re
from typing import Any

from pymongo import ASCENDING, MongoClient
from pymongo.errors import DuplicateKeyError

from core.config import settings
from domain.models import COUNTER_FIELDS
from services.persistence.store import KINDS, ConcurrencyConflict


def get_mongo(url: str | None = None, db_name: str | None = None):
    client = MongoClient(url or settings.MONGO_URL, serverSelectionTimeoutMS=2000)
    db = client[db_name or settings.MONGO_DB]
    db["applicants"].create_index([("company_id", ASCENDING), ("dashboard.id", ASCENDING)])
    db["documents"].create_index([("applicant_id", ASCENDING)])
    db["actions"].create_index([("dashboard_id", ASCENDING), ("is_complete", ASCENDING)])
    db["admin_checks"].create_index([("applicant.id", ASCENDING), ("closed_at", ASCENDING)])
    db["messages"].create_index([("dashboard_id", ASCENDING), ("delivery_status", ASCENDING)])
    return db


def _strip(doc: dict[str, Any] | None) -> dict[str, Any] | None:
    if doc is None:
        return None
    doc.pop("_id", None)
    return doc


class MongoStore:
    """
    DocumentStore on MongoDB. Conditional writes are single-document
    operations filtered on `version`; counter events are deduplicated by a
    unique `_id` in `counter_events` before the `$inc` is applied.
    """

    def __init__(self, db) -> None:
        self.db = db

    @classmethod
    def from_settings(cls) -> "MongoStore":
        return cls(get_mongo())

    def _col(self, kind: str):
        if kind not in KINDS:
            raise ValueError(f"unknown kind: {kind}")
        return self.db[kind]

    def get(self, kind: str, key: str) -> dict[str, Any] | None:
        return _strip(self._col(kind).find_one({"_id": key}))

    def find(
        self, kind: str, filters: dict[str, Any] | None = None, prefix: str | None = None
    ) -> list[dict[str, Any]]:
        query: dict[str, Any] = dict(filters or {})
        if prefix:
            query["_id"] = {"$regex": "^" + re.escape(prefix)}
        return [_strip(d) for d in self._col(kind).find(query)]

    def put(
        self, kind: str, key: str, data: dict[str, Any], expected_version: int
    ) -> dict[str, Any]:
        col = self._col(kind)
        doc = {**data, "_id": key, "version": expected_version + 1}
        if expected_version == 0:
            try:
                col.insert_one(doc)
            except DuplicateKeyError as e:
                current = col.find_one({"_id": key}, {"version": 1}) or {}
                raise ConcurrencyConflict(kind, key, 0, current.get("version")) from e
        else:
            res = col.replace_one({"_id": key, "version": expected_version}, doc)
            if res.matched_count == 0:
                current = col.find_one({"_id": key}, {"version": 1})
                raise ConcurrencyConflict(
                    kind, key, expected_version, current.get("version") if current else None
                )
        return _strip(doc)

    def get_counters(self, key: str) -> dict[str, int]:
        doc = self.db["counters"].find_one({"_id": key}) or {}
        return {name: int(doc.get(name, 0)) for name in COUNTER_FIELDS}

    def apply_counter_event(self, key: str, event_id: str, deltas: dict[str, int]) -> bool:
        try:
            self.db["counter_events"].insert_one({"_id": f"{key}#{event_id}", "deltas": deltas})
        except DuplicateKeyError:
            return False
        if deltas:
            self.db["counters"].update_one({"_id": key}, {"$inc": deltas}, upsert=True)
        return True

    def set_counters(self, key: str, counters: dict[str, int]) -> None:
        values = {name: int(counters.get(name, 0)) for name in COUNTER_FIELDS}
        self.db["counters"].update_one({"_id": key}, {"$set": values}, upsert=True)

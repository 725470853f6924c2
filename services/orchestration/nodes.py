from __future__ import annotations

import logging

from domain.aggregation import applicant_status, recompute_document
from domain.errors import StaleSubmission
from domain.models import ActionType, Applicant, utcnow
from services.counters import engine as counter_events
from services.persistence import paths
from services.persistence.store import ConcurrencyConflict

logger = logging.getLogger(__name__)


def _push(state: dict, msg: str) -> None:
    state.setdefault("steps", []).append(msg)


def write_document(state: dict) -> dict:
    """Page transition + document roll-up as one conditional write."""
    ctx = state["ctx"]
    c, d, a, slot = state["company_id"], state["dashboard_id"], state["applicant_id"], state["slot"]
    key = paths.document_key(c, d, a, slot)
    for attempt in range(ctx.repo.retries):
        doc = ctx.repo.get_document(c, d, a, slot)
        before = doc.status
        state["mutate"](doc)  # raises on stale/invalid input; nothing downstream runs
        changed = recompute_document(doc)
        try:
            ctx.repo.save("documents", key, doc)
        except ConcurrencyConflict:
            # a sibling page moved under us; re-read and re-apply
            logger.warning("document %s changed concurrently (attempt %d)", key, attempt + 1)
            continue
        state["document"] = doc
        if changed:
            logger.info("document %s: %s -> %s", key, before.value, doc.status.value)
        _push(state, f"document {slot}: {doc.status.value} task={getattr(doc.system_task, 'value', None)}")
        return state
    raise StaleSubmission(f"document {key} kept changing; re-read and retry")


def _open_reviews(applicant: Applicant) -> int:
    return sum(1 for ref in applicant.actions if ref.type == ActionType.VERIFY_DOCUMENTS)


def recompute_applicant(state: dict) -> dict:
    ctx = state["ctx"]
    c, d, a = state["company_id"], state["dashboard_id"], state["applicant_id"]
    key = paths.applicant_key(c, d, a)
    for attempt in range(ctx.repo.retries):
        # applicant first, then its documents: a stale read fails the write below
        applicant = ctx.repo.get_applicant(c, d, a)
        docs = ctx.repo.documents_for_applicant(c, d, a)
        old = applicant.dashboard.status
        new = applicant_status(docs.values(), _open_reviews(applicant))
        state["old_status"], state["new_status"] = old, new
        if old == new:
            state["status"] = "unchanged"
            _push(state, f"applicant {a}: {old.value} (unchanged)")
            return state
        applicant.dashboard.status = new
        if applicant.dashboard.submitted_at is None:
            applicant.dashboard.submitted_at = utcnow()
        try:
            ctx.repo.save("applicants", key, applicant)
        except ConcurrencyConflict:
            logger.warning("applicant %s changed concurrently (attempt %d)", key, attempt + 1)
            continue
        logger.info("applicant %s: %s -> %s", a, old.value, new.value)
        state.setdefault("events", []).append(
            counter_events.applicant_status_changed(a, applicant.version, old, new)
        )
        state["status"] = "ok"
        _push(state, f"applicant {a}: {old.value} -> {new.value}")
        return state
    raise StaleSubmission(f"applicant {key} kept changing; re-read and retry")


def apply_counters(state: dict) -> dict:
    ctx = state["ctx"]
    for event in state.get("events", []):
        if not event.is_empty:
            ctx.counters.emit(state["company_id"], state["dashboard_id"], event)
    _push(state, f"counters: {len(state.get('events', []))} event(s)")
    return state
from __future__ import annotations

import logging

from domain.aggregation import applicant_status_deltas
from domain.errors import DuplicateEvent
from domain.models import ApplicantStatus, MessageStatus
from domain.value_objects import CounterEvent
from services.observability.metrics import timing_metric
from services.persistence import paths
from services.persistence.repository import Repository

logger = logging.getLogger(__name__)


# --- event builders: one transition -> one deterministic event id ---


def applicant_added(applicant_id: str) -> CounterEvent:
    return CounterEvent(f"applicant-added:{applicant_id}", {"applicants_count": 1})


def applicant_status_changed(
    applicant_id: str, version: int, old: ApplicantStatus, new: ApplicantStatus
) -> CounterEvent:
    return CounterEvent(
        f"applicant-status:{applicant_id}:v{version}", applicant_status_deltas(old, new)
    )


def action_opened(action_id: str) -> CounterEvent:
    return CounterEvent(f"action-opened:{action_id}", {"actions_count": 1})


def action_closed(action_id: str) -> CounterEvent:
    return CounterEvent(f"action-closed:{action_id}", {"actions_count": -1})


def message_resolved(message_id: str) -> CounterEvent:
    return CounterEvent(f"message-resolved:{message_id}", {"messages_sent_count": 1})


class CounterEngine:
    """
    Per-dashboard aggregate counters maintained from transition events.

    Deltas are applied at most once per event id. Counters are a derived cache:
    when applying an event fails the dashboard is queued for `reconcile`.
    """

    def __init__(self, repo: Repository) -> None:
        self.repo = repo
        self.needs_repair: set[tuple[str, str]] = set()

    def counters(self, company_id: str, dashboard_id: str) -> dict[str, int]:
        return self.repo.store.get_counters(paths.dashboard_key(company_id, dashboard_id))

    def apply(self, company_id: str, dashboard_id: str, event: CounterEvent) -> None:
        key = paths.dashboard_key(company_id, dashboard_id)
        if not self.repo.store.apply_counter_event(key, event.event_id, event.deltas):
            raise DuplicateEvent(event.event_id)
        logger.info("counters %s += %s (%s)", dashboard_id, event.deltas, event.event_id)

    def emit(self, company_id: str, dashboard_id: str, event: CounterEvent) -> bool:
        """Apply without surfacing failures; returns True if the deltas landed now."""
        try:
            self.apply(company_id, dashboard_id, event)
            return True
        except DuplicateEvent:
            logger.info("counter event %s already applied", event.event_id)
            return False
        except Exception:
            logger.exception("counter event %s failed; dashboard queued for repair", event.event_id)
            self.needs_repair.add((company_id, dashboard_id))
            return False

    def reconcile(self, company_id: str, dashboard_id: str) -> dict[str, int]:
        """Full recomputation from applicants, open actions and messages."""
        with timing_metric(f"counters.reconcile.{dashboard_id}"):
            applicants = self.repo.applicants_for_dashboard(company_id, dashboard_id)
            statuses = [a.dashboard.status for a in applicants]
            counters = {
                "applicants_count": len(applicants),
                "complete_applicants_count": statuses.count(ApplicantStatus.COMPLETE),
                "incomplete_applicants_count": statuses.count(ApplicantStatus.INCOMPLETE),
                "actions_count": len(self.repo.open_actions(company_id, dashboard_id)),
                "messages_sent_count": sum(
                    1
                    for m in self.repo.messages_for_dashboard(company_id, dashboard_id)
                    if m.delivery_status != MessageStatus.PENDING
                ),
            }
            self.repo.store.set_counters(paths.dashboard_key(company_id, dashboard_id), counters)
        self.needs_repair.discard((company_id, dashboard_id))
        logger.info("reconciled counters for %s: %s", dashboard_id, counters)
        return counters

    def repair_pending(self) -> int:
        pending = sorted(self.needs_repair)
        for company_id, dashboard_id in pending:
            self.reconcile(company_id, dashboard_id)
        return len(pending)

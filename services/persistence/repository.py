from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from pydantic import BaseModel

from domain.errors import InvalidTransition, NotFound
from domain.models import (
    COUNTER_FIELDS,
    Action,
    AdminCheck,
    Applicant,
    Company,
    Dashboard,
    DashboardAdapter,
    FormDoc,
    Invite,
    Message,
    PublishedDashboard,
    User,
    WorkerDoc,
)
from services.persistence import paths
from services.persistence.store import ConcurrencyConflict, DocumentStore

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class Repository:
    """Typed access to the document store; every save is a conditional write."""

    def __init__(self, store: DocumentStore, retries: int = 5) -> None:
        self.store = store
        self.retries = retries

    # --- generic ---

    def load(self, kind: str, key: str, model: type[M]) -> M:
        data = self.store.get(kind, key)
        if data is None:
            raise NotFound(f"{kind} not found: {key}")
        return model.model_validate(data)

    def save(self, kind: str, key: str, obj: M, exclude: Optional[set[str]] = None) -> M:
        data = obj.model_dump(mode="json", exclude=exclude)
        stored = self.store.put(kind, key, data, expected_version=obj.version)
        obj.version = stored["version"]
        return obj

    def update(self, kind: str, key: str, model: type[M], fn: Callable[[M], object]) -> M:
        """Read-modify-write with bounded retries; `fn` must be safe to re-run."""
        for attempt in range(self.retries):
            obj = self.load(kind, key, model)
            fn(obj)
            try:
                return self.save(kind, key, obj)
            except ConcurrencyConflict:
                logger.warning("version conflict on %s (attempt %d)", key, attempt + 1)
        raise ConcurrencyConflict(kind, key, -1, None)

    # --- companies & users ---

    def get_company(self, company_id: str) -> Company:
        return self.load("companies", paths.company_key(company_id), Company)

    def get_user(self, company_id: str, user_id: str) -> User:
        return self.load("users", paths.user_key(company_id, user_id), User)

    def get_invite(self, invite_id: str) -> Invite:
        return self.load("invites", paths.invite_key(invite_id), Invite)

    def pending_invites(self, company_id: str, email: str) -> list[Invite]:
        rows = self.store.find(
            "invites", {"company.id": company_id, "email": email, "accepted_by": None}
        )
        return [Invite.model_validate(r) for r in rows]

    # --- dashboards ---

    def get_dashboard(self, company_id: str, dashboard_id: str) -> Dashboard:
        key = paths.dashboard_key(company_id, dashboard_id)
        data = self.store.get("dashboards", key)
        if data is None:
            raise NotFound(f"dashboard not found: {key}")
        if data.get("is_published"):
            # counters live beside the dashboard so edits never clobber them
            data.update(self.store.get_counters(key))
        return DashboardAdapter.validate_python(data)

    def get_published_dashboard(self, company_id: str, dashboard_id: str) -> PublishedDashboard:
        dashboard = self.get_dashboard(company_id, dashboard_id)
        if not isinstance(dashboard, PublishedDashboard):
            raise InvalidTransition(f"dashboard {dashboard_id} is not published")
        return dashboard

    def save_dashboard(self, dashboard: Dashboard) -> Dashboard:
        key = paths.dashboard_key(dashboard.company_id, dashboard.id)
        return self.save("dashboards", key, dashboard, exclude=set(COUNTER_FIELDS))

    def update_dashboard(
        self, company_id: str, dashboard_id: str, fn: Callable[[PublishedDashboard], object]
    ) -> PublishedDashboard:
        for attempt in range(self.retries):
            dashboard = self.get_published_dashboard(company_id, dashboard_id)
            fn(dashboard)
            try:
                self.save_dashboard(dashboard)
                return dashboard
            except ConcurrencyConflict:
                logger.warning("version conflict on dashboard %s (attempt %d)", dashboard_id, attempt + 1)
        raise ConcurrencyConflict("dashboards", paths.dashboard_key(company_id, dashboard_id), -1, None)

    # --- applicants & documents ---

    def get_applicant(self, company_id: str, dashboard_id: str, applicant_id: str) -> Applicant:
        return self.load(
            "applicants", paths.applicant_key(company_id, dashboard_id, applicant_id), Applicant
        )

    def applicants_for_dashboard(self, company_id: str, dashboard_id: str) -> list[Applicant]:
        prefix = paths.dashboard_key(company_id, dashboard_id) + "/applicants/"
        return [Applicant.model_validate(r) for r in self.store.find("applicants", prefix=prefix)]

    def get_document(self, company_id: str, dashboard_id: str, applicant_id: str, slot: str) -> FormDoc:
        return self.load(
            "documents", paths.document_key(company_id, dashboard_id, applicant_id, slot), FormDoc
        )

    def documents_for_applicant(
        self, company_id: str, dashboard_id: str, applicant_id: str
    ) -> dict[str, FormDoc]:
        prefix = paths.applicant_key(company_id, dashboard_id, applicant_id) + "/docs/"
        docs = [FormDoc.model_validate(r) for r in self.store.find("documents", prefix=prefix)]
        return {d.name: d for d in sorted(docs, key=lambda d: d.doc_number)}

    # --- review ---

    def get_admin_check(self, admin_check_id: str) -> AdminCheck:
        return self.load("admin_checks", paths.admin_check_key(admin_check_id), AdminCheck)

    def admin_checks_for(self, dashboard_id: str, applicant_id: str) -> list[AdminCheck]:
        rows = self.store.find(
            "admin_checks", {"dashboard.id": dashboard_id, "applicant.id": applicant_id}
        )
        return [AdminCheck.model_validate(r) for r in rows]

    def get_worker_doc(self, worker_doc_id: str) -> WorkerDoc:
        return self.load("worker_docs", paths.worker_doc_key(worker_doc_id), WorkerDoc)

    def get_action(self, company_id: str, action_id: str) -> Action:
        return self.load("actions", paths.action_key(company_id, action_id), Action)

    def open_actions(self, company_id: str, dashboard_id: Optional[str] = None) -> list[Action]:
        filters: dict[str, object] = {"company_id": company_id, "is_complete": False}
        if dashboard_id:
            filters["dashboard_id"] = dashboard_id
        rows = self.store.find("actions", filters)
        return sorted((Action.model_validate(r) for r in rows), key=lambda a: a.created_at)

    # --- messages ---

    def find_message(self, message_id: str) -> Message:
        rows = self.store.find("messages", {"id": message_id})
        if not rows:
            raise NotFound(f"message not found: {message_id}")
        return Message.model_validate(rows[0])

    def messages_for_dashboard(self, company_id: str, dashboard_id: str) -> list[Message]:
        prefix = paths.dashboard_key(company_id, dashboard_id) + "/"
        return [Message.model_validate(r) for r in self.store.find("messages", prefix=prefix)]

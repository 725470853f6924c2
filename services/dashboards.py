from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from domain.errors import IncompleteSpec, InvalidTransition, StaleSubmission
from domain.models import (
    Applicant,
    ApplicantDashboard,
    Company,
    CompanyRef,
    DashboardMessages,
    DashboardRef,
    DocumentSpec,
    DraftDashboard,
    FormContent,
    FormDoc,
    Invite,
    PersonName,
    PublishedDashboard,
    User,
    utcnow,
)
from services.counters import engine as counter_events
from services.counters.engine import CounterEngine
from services.messaging.tracker import MessageTracker, render
from services.persistence import paths
from services.persistence.repository import Repository
from services.persistence.store import ConcurrencyConflict

logger = logging.getLogger(__name__)


class CompanyService:
    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def create_company(self, name: str, logo: Optional[str] = None) -> Company:
        company = Company(id=uuid.uuid4().hex, name=name, logo=logo)
        return self.repo.save("companies", paths.company_key(company.id), company)

    def invite_user(self, company_id: str, email: str) -> Invite:
        company = self.repo.get_company(company_id)
        email = email.strip().lower()
        pending = self.repo.pending_invites(company_id, email)
        if pending:

            def mark_resend(inv: Invite) -> None:
                inv.resend = True

            return self.repo.update("invites", paths.invite_key(pending[0].id), Invite, mark_resend)
        invite = Invite(id=uuid.uuid4().hex, company=CompanyRef(id=company.id, name=company.name), email=email)
        return self.repo.save("invites", paths.invite_key(invite.id), invite)

    def accept_invite(self, invite_id: str, name: PersonName) -> User:
        invite = self.repo.get_invite(invite_id)
        if invite.accepted_by:
            raise InvalidTransition(f"invite {invite_id} already accepted")
        user = User(id=uuid.uuid4().hex, company=invite.company, email=invite.email, name=name)
        invite.accepted_by = user.id
        try:
            self.repo.save("invites", paths.invite_key(invite.id), invite)
        except ConcurrencyConflict as e:
            raise StaleSubmission(f"invite {invite_id} changed; re-read it") from e
        self.repo.save("users", paths.user_key(invite.company.id, user.id), user)

        def add_member(company: Company) -> None:
            if user.id not in company.users:
                company.users.append(user.id)

        self.repo.update("companies", paths.company_key(invite.company.id), Company, add_member)
        logger.info("user %s joined company %s", user.id, invite.company.id)
        return user


class DashboardService:
    def __init__(self, repo: Repository, counters: CounterEngine, messages: MessageTracker) -> None:
        self.repo = repo
        self.counters = counters
        self.messages = messages

    def create_draft(
        self,
        company_id: str,
        created_by: str,
        title: str,
        job: str,
        country: str,
        deadline: datetime,
        docs: Optional[dict[str, DocumentSpec]] = None,
        form_content: Optional[FormContent] = None,
        messages: Optional[DashboardMessages] = None,
    ) -> DraftDashboard:
        self.repo.get_company(company_id)
        draft = DraftDashboard(
            id=uuid.uuid4().hex,
            company_id=company_id,
            created_by=created_by,
            title=title,
            job=job,
            country=country,
            deadline=deadline,
            docs=docs or {},
            form_content=form_content,
            messages=messages,
        )
        self.repo.save_dashboard(draft)
        user_key = paths.user_key(company_id, created_by)
        if self.repo.store.get("users", user_key) is not None:

            def add_ref(user: User) -> None:
                user.dashboards.append(DashboardRef(id=draft.id, title=draft.title))

            self.repo.update("users", user_key, User, add_ref)
        return draft

    def update_draft(
        self,
        company_id: str,
        dashboard_id: str,
        expected_version: int,
        docs: Optional[dict[str, DocumentSpec]] = None,
        form_content: Optional[FormContent] = None,
        messages: Optional[DashboardMessages] = None,
    ) -> DraftDashboard:
        draft = self.repo.get_dashboard(company_id, dashboard_id)
        if not isinstance(draft, DraftDashboard):
            raise InvalidTransition(f"dashboard {dashboard_id} is published and frozen")
        if draft.version != expected_version:
            raise StaleSubmission(f"dashboard {dashboard_id} is at version {draft.version}")
        if docs is not None:
            draft.docs = docs
        if form_content is not None:
            draft.form_content = form_content
        if messages is not None:
            draft.messages = messages
        try:
            return self.repo.save_dashboard(draft)
        except ConcurrencyConflict as e:
            raise StaleSubmission(f"dashboard {dashboard_id} changed; re-read it") from e

    def publish(self, company_id: str, dashboard_id: str) -> PublishedDashboard:
        draft = self.repo.get_dashboard(company_id, dashboard_id)
        if isinstance(draft, PublishedDashboard):
            raise InvalidTransition(f"dashboard {dashboard_id} is already published")
        missing = []
        if draft.form_content is None:
            missing.append("form_content")
        else:
            missing.extend(
                f"form_content.{field}"
                for field in ("header", "caption")
                if not getattr(draft.form_content, field).strip()
            )
        if draft.messages is None or not draft.messages.opening.strip():
            missing.append("messages.opening")
        if missing:
            raise IncompleteSpec(f"dashboard {dashboard_id} is missing " + ", ".join(missing))

        published = PublishedDashboard(
            **draft.model_dump(exclude={"is_published", "form_content", "messages"}),
            form_content=draft.form_content,
            messages=draft.messages,
            applicants=[],
            published_at=utcnow(),
        )
        try:
            self.repo.save_dashboard(published)
        except ConcurrencyConflict as e:
            raise StaleSubmission(f"dashboard {dashboard_id} changed while publishing") from e
        self.repo.store.set_counters(paths.dashboard_key(company_id, dashboard_id), {})
        logger.info("dashboard %s published", dashboard_id)
        return published

    def add_applicant(
        self,
        company_id: str,
        dashboard_id: str,
        email: str,
        name: Optional[PersonName] = None,
        send_opening: bool = True,
    ) -> Applicant:
        dashboard = self.repo.get_published_dashboard(company_id, dashboard_id)
        company = self.repo.get_company(company_id)
        applicant_id = uuid.uuid4().hex

        slots: dict[str, str] = {}
        for slot, spec in sorted(dashboard.docs.items(), key=lambda kv: kv[1].doc_number):
            key = paths.document_key(company_id, dashboard_id, applicant_id, slot)
            doc = FormDoc(
                id=key,
                company_id=company_id,
                dashboard_id=dashboard_id,
                applicant_id=applicant_id,
                name=slot,
                **spec.model_dump(),
            )
            self.repo.save("documents", key, doc)
            slots[slot] = key

        applicant = Applicant(
            id=applicant_id,
            company_id=company_id,
            email=email.strip().lower(),
            name=name,
            docs=slots,
            dashboard=ApplicantDashboard(id=dashboard_id),
        )
        self.repo.save("applicants", paths.applicant_key(company_id, dashboard_id, applicant_id), applicant)

        def append(d: PublishedDashboard) -> None:
            if applicant_id not in d.applicants:
                d.applicants.append(applicant_id)

        self.repo.update_dashboard(company_id, dashboard_id, append)
        self.counters.emit(company_id, dashboard_id, counter_events.applicant_added(applicant_id))
        logger.info("applicant %s added to dashboard %s", applicant_id, dashboard_id)

        if send_opening:
            body = render(
                dashboard.messages.opening,
                name=name.first if name else "",
                job=dashboard.job,
                company=company.name,
            )
            try:
                self.messages.send(company_id, dashboard_id, applicant_id, subject=dashboard.title, body=body)
            except Exception:
                logger.exception("opening message for applicant %s not sent", applicant_id)
        return self.repo.get_applicant(company_id, dashboard_id, applicant_id)

"""
Human review of submitted pages.

open_check snapshots every page awaiting a verdict into one AdminCheck per
dashboard/applicant pair, with one WorkerDoc + Action per document. Verdicts
are written back onto the live pages; the check closes (and its Actions
complete) once every page carries a verdict.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from domain import pages as page_machine
from domain.aggregation import admin_check_status
from domain.errors import InvalidTransition, NotFound, StaleReview
from domain.models import (
    Action,
    ActionRef,
    AdminCheck,
    AdminCheckDoc,
    AdminCheckStatus,
    Applicant,
    CompletedBy,
    FormDoc,
    PageStatus,
    WorkerDoc,
    utcnow,
)
from domain.projections import (
    admin_check_doc,
    build_form,
    review_applicant,
    review_dashboard,
    worker_doc,
)
from services.counters import engine as counter_events
from services.orchestration.graphs import run_chain
from services.orchestration.types import ChainContext
from services.persistence import paths
from services.persistence.store import ConcurrencyConflict
from services.review.queue import ReviewQueue

logger = logging.getLogger(__name__)

VERDICTS = {AdminCheckStatus.ACCEPTED, AdminCheckStatus.REJECTED}


def _all_verdicts(check: AdminCheck) -> list[AdminCheckStatus]:
    return [p.admin_check_status for d in check.docs.values() for p in d.pages.values()]


class AdminCheckWorkflow:
    def __init__(self, ctx: ChainContext, queue: ReviewQueue) -> None:
        self.ctx = ctx
        self.repo = ctx.repo
        self.queue = queue

    # --- snapshot ---

    def open_check(self, company_id: str, dashboard_id: str, applicant_id: str) -> Optional[AdminCheck]:
        """Create or refresh the open check for this applicant; None if nothing awaits review."""
        for attempt in range(self.repo.retries):
            try:
                return self._open_check(company_id, dashboard_id, applicant_id)
            except ConcurrencyConflict:
                logger.warning("admin check for %s raced (attempt %d)", applicant_id, attempt + 1)
        raise StaleReview(f"admin check for applicant {applicant_id} kept changing")

    def _open_check(self, company_id: str, dashboard_id: str, applicant_id: str) -> Optional[AdminCheck]:
        company = self.repo.get_company(company_id)
        dashboard = self.repo.get_published_dashboard(company_id, dashboard_id)
        applicant = self.repo.get_applicant(company_id, dashboard_id, applicant_id)
        docs = self.repo.documents_for_applicant(company_id, dashboard_id, applicant_id)
        form = build_form(
            paths.form_id(company_id, dashboard_id, applicant_id), company, dashboard, applicant, docs
        )

        checks = self.repo.admin_checks_for(dashboard_id, applicant_id)
        check = next((c for c in checks if c.is_open), None)
        if check is None:
            check = AdminCheck(
                # sequential ids make concurrent creators collide on the create
                id=f"{applicant_id}-{len(checks) + 1}",
                company_id=company_id,
                applicant=review_applicant(applicant),
                dashboard=review_dashboard(dashboard),
                form_id=form.id,
            )

        added: list[str] = []
        refreshed: list[str] = []
        for slot, live in form.docs.items():
            projected = admin_check_doc(live)
            if projected is None:
                continue
            existing = check.docs.get(slot)
            if existing is None:
                projected.worker_doc_id = uuid.uuid4().hex
                projected.action_id = uuid.uuid4().hex
                check.docs[slot] = projected
                added.append(slot)
                continue
            # re-pull: replace pages the applicant has resubmitted since the snapshot
            stale = False
            for key, page in projected.pages.items():
                old = existing.pages.get(key)
                if old is None or old.submission_count != page.submission_count:
                    existing.pages[key] = page
                    stale = True
            if stale:
                existing.status = projected.status
                existing.admin_check_status = admin_check_status(
                    p.admin_check_status for p in existing.pages.values()
                )
                refreshed.append(slot)

        if not check.docs:
            return None
        check.admin_check_status = admin_check_status(_all_verdicts(check))
        # documents whose Action never got written (an earlier open failed mid-dispatch)
        undispatched = [
            slot for slot, doc in check.docs.items() if slot not in added and not self._dispatched(check, doc)
        ]
        if check.version and not added and not refreshed and not undispatched:
            return check  # reuse as-is

        if added or refreshed:
            self.repo.save("admin_checks", paths.admin_check_key(check.id), check)
            logger.info("admin check %s: added=%s refreshed=%s", check.id, added, refreshed)

        for slot in refreshed:
            if slot not in undispatched:
                self._sync_worker_doc(check, slot)
        for slot in added + undispatched:
            self._dispatch(check, slot)
        if added or undispatched:
            run_chain(self.ctx, company_id, dashboard_id, applicant_id)
        return check

    def _dispatched(self, check: AdminCheck, doc: AdminCheckDoc) -> bool:
        return self.repo.store.get("actions", paths.action_key(check.company_id, doc.action_id)) is not None

    def _dispatch(self, check: AdminCheck, slot: str) -> Action:
        """
        Write the WorkerDoc and Action for one document, then reference, queue and
        count the Action. Safe to re-run: a racing dispatcher surfaces as a
        ConcurrencyConflict, which `open_check` retries.
        """
        doc = check.docs[slot]
        wdoc = worker_doc(check, slot, doc.worker_doc_id)
        wkey = paths.worker_doc_key(wdoc.id)
        if self.repo.store.get("worker_docs", wkey) is None:
            self.repo.save("worker_docs", wkey, wdoc)
        action = Action(
            id=doc.action_id,
            company_id=check.company_id,
            dashboard_id=check.dashboard.id,
            applicant=check.applicant,
            worker_doc_id=wdoc.id,
            doc=wdoc,
        )
        self.repo.save("actions", paths.action_key(check.company_id, action.id), action)

        def add_ref(a: Applicant) -> None:
            if all(ref.id != action.id for ref in a.actions):
                a.actions.append(ActionRef(id=action.id))

        self.repo.update(
            "applicants",
            paths.applicant_key(check.company_id, check.dashboard.id, check.applicant.id),
            Applicant,
            add_ref,
        )
        self.queue.enqueue(action)
        self.ctx.counters.emit(check.company_id, check.dashboard.id, counter_events.action_opened(action.id))
        logger.info("action %s queued for %s/%s", action.id, check.id, slot)
        return action

    def _sync_worker_doc(self, check: AdminCheck, slot: str) -> None:
        doc = check.docs[slot]
        fresh = worker_doc(check, slot, doc.worker_doc_id)

        def copy_pages(w: WorkerDoc) -> None:
            w.pages = fresh.pages
            w.status = fresh.status
            w.admin_check_status = fresh.admin_check_status

        wdoc = self.repo.update("worker_docs", paths.worker_doc_key(fresh.id), WorkerDoc, copy_pages)

        def copy_doc(a: Action) -> None:
            a.doc = wdoc

        self.repo.update("actions", paths.action_key(check.company_id, doc.action_id), Action, copy_doc)

    # --- verdicts ---

    def resolve_page(
        self,
        admin_check_id: str,
        slot: str,
        page_number: int,
        verdict: AdminCheckStatus,
        admin: CompletedBy,
    ) -> AdminCheck:
        if verdict not in VERDICTS:
            raise InvalidTransition(f"verdict must be Accepted or Rejected, got {verdict.value}")
        check = self.repo.get_admin_check(admin_check_id)
        if not check.is_open:
            raise InvalidTransition(f"admin check {admin_check_id} is closed ({check.admin_check_status.value})")
        doc = check.docs.get(slot)
        if doc is None:
            raise NotFound(f"admin check {admin_check_id} has no document {slot}")
        snap = doc.pages.get(str(page_number))
        if snap is None:
            raise NotFound(f"admin check {admin_check_id} has no page {slot}/{page_number}")

        snap.admin_check_status = verdict
        doc.admin_check_status = admin_check_status(p.admin_check_status for p in doc.pages.values())
        check.admin_check_status = admin_check_status(_all_verdicts(check))
        closing = AdminCheckStatus.NOT_CHECKED not in _all_verdicts(check)
        write_backs = self._plan_write_backs(check, slot, page_number, verdict, closing)

        touched: dict[str, set[int]] = {slot: {page_number}}
        for wslot, numbers, _ in write_backs:
            touched.setdefault(wslot, set()).update(numbers)
        # nothing is recorded while any page we would write has moved on
        self._ensure_current(check, touched)

        if closing:
            check.closed_at = utcnow()
        try:
            self.repo.save("admin_checks", paths.admin_check_key(check.id), check)
        except ConcurrencyConflict as e:
            raise StaleReview(f"admin check {admin_check_id} changed; re-pull it") from e
        logger.info("admin check %s: %s/%s %s by %s", check.id, slot, page_number, verdict.value, admin.id)

        try:
            self._sync_worker_doc(check, slot)
            for wslot, numbers, reject in write_backs:
                try:
                    self._write_back(check, wslot, numbers, reject)
                except StaleReview:
                    logger.warning("skipping write-back for %s/%s: resubmitted", check.id, wslot)
        finally:
            # a closed check must never leave its Actions open
            if closing:
                self._close(check, admin)
        return check

    def _plan_write_backs(
        self,
        check: AdminCheck,
        slot: str,
        page_number: int,
        verdict: AdminCheckStatus,
        closing: bool,
    ) -> list[tuple[str, list[int], bool]]:
        """(slot, page numbers, reject) triples to apply to the live documents."""
        plan: list[tuple[str, list[int], bool]] = []
        doc = check.docs[slot]
        if verdict == AdminCheckStatus.REJECTED:
            plan.append((slot, [page_number], True))
        elif doc.admin_check_status == AdminCheckStatus.ACCEPTED:
            plan.append((slot, sorted(int(k) for k in doc.pages), False))
        if closing:
            # accepted pages in partially rejected documents go live as accepted too
            for other, d in check.docs.items():
                if d.admin_check_status != AdminCheckStatus.REJECTED:
                    continue
                accepted = sorted(
                    p.page_number for p in d.pages.values() if p.admin_check_status == AdminCheckStatus.ACCEPTED
                )
                if accepted:
                    plan.append((other, accepted, False))
        return plan

    def _ensure_current(self, check: AdminCheck, pages: dict[str, set[int]]) -> None:
        c, d, a = check.company_id, check.dashboard.id, check.applicant.id
        for slot, numbers in pages.items():
            live_doc = self.repo.get_document(c, d, a, slot)
            snapshot = check.docs[slot].pages
            for n in sorted(numbers):
                live = live_doc.page(n)
                if live is None or live.submission_count != snapshot[str(n)].submission_count:
                    raise StaleReview(f"{slot}/{n} was resubmitted since admin check {check.id}; re-pull it")

    def _write_back(self, check: AdminCheck, slot: str, page_numbers: list[int], reject: bool) -> None:
        snapshot = check.docs[slot].pages

        def mutate(doc: FormDoc) -> None:
            for n in page_numbers:
                live = doc.page(n)
                if live is None or live.submission_count != snapshot[str(n)].submission_count:
                    raise StaleReview(f"{slot}/{n} was resubmitted during review; re-pull the admin check")
                if reject:
                    if live.status == PageStatus.REJECTED:
                        live.admin_check_status = AdminCheckStatus.REJECTED
                    else:
                        page_machine.reject(live, by_admin=True, reopen=True)
                elif live.status == PageStatus.SUBMITTED:
                    page_machine.accept(live, by_admin=True)
                else:
                    live.admin_check_status = AdminCheckStatus.ACCEPTED

        run_chain(self.ctx, check.company_id, check.dashboard.id, check.applicant.id, slot, mutate)

    def _close(self, check: AdminCheck, admin: CompletedBy) -> None:
        c, d, a = check.company_id, check.dashboard.id, check.applicant.id

        def complete(action: Action) -> None:
            if not action.is_complete:
                action.is_complete = True
                action.completed_by = admin
                action.completed_at = utcnow()
                action.doc.admin_check_status = check.docs[action.doc.name].admin_check_status

        closed_ids = set()
        for doc in check.docs.values():
            self.repo.update("actions", paths.action_key(c, doc.action_id), Action, complete)
            closed_ids.add(doc.action_id)
            self.ctx.counters.emit(c, d, counter_events.action_closed(doc.action_id))

        def drop_refs(ap: Applicant) -> None:
            ap.actions = [ref for ref in ap.actions if ref.id not in closed_ids]

        self.repo.update("applicants", paths.applicant_key(c, d, a), Applicant, drop_refs)
        logger.info("admin check %s closed %s", check.id, check.admin_check_status.value)
        run_chain(self.ctx, c, d, a)

    # --- explicit reopen ---

    def reopen_page(
        self,
        company_id: str,
        dashboard_id: str,
        applicant_id: str,
        slot: str,
        page_number: int,
        expected_submission_count: int,
    ) -> FormDoc:
        """Admin rejects an already accepted page so the applicant can resubmit it."""

        def mutate(doc: FormDoc) -> None:
            live = doc.page(page_number)
            if live is None:
                raise NotFound(f"{slot} has no page {page_number}")
            if live.submission_count != expected_submission_count:
                raise StaleReview(f"{slot}/{page_number} was resubmitted; re-read it")
            page_machine.reject(live, by_admin=True, reopen=True)

        state = run_chain(self.ctx, company_id, dashboard_id, applicant_id, slot, mutate)
        return state["document"]

    def open_actions(self, company_id: str, dashboard_id: Optional[str] = None) -> list[Action]:
        return self.repo.open_actions(company_id, dashboard_id)

from __future__ import annotations

import logging
from typing import Optional

from domain import pages as page_machine
from domain.errors import IntakeError, NotFound, StaleSubmission
from domain.models import Device, FormDoc, SystemCheckStatus
from services.intake.policy import decide, needs_review
from services.orchestration.graphs import run_chain
from services.orchestration.types import ChainContext
from services.persistence import paths
from services.review.admin_checks import AdminCheckWorkflow
from services.storage.blob import BlobStore

logger = logging.getLogger(__name__)


class UnsupportedFormat(IntakeError): ...


class PageIntake:
    """Applicant and automated writes to live pages."""

    def __init__(
        self,
        ctx: ChainContext,
        blobs: BlobStore,
        review: AdminCheckWorkflow,
        allowed_formats: set[str],
        auto_reject: bool = False,
    ) -> None:
        self.ctx = ctx
        self.repo = ctx.repo
        self.blobs = blobs
        self.review = review
        self.allowed_formats = allowed_formats
        self.auto_reject = auto_reject

    def _page_of(self, doc: FormDoc, page_number: int):
        page = doc.page(page_number)
        if page is None:
            raise NotFound(f"{doc.name} has no submitted page {page_number}")
        return page

    def submit_page(
        self,
        company_id: str,
        dashboard_id: str,
        applicant_id: str,
        slot: str,
        page_number: int,
        expected_submission_count: int,
        content: bytes,
        fmt: str,
        device: Optional[Device] = None,
    ) -> FormDoc:
        doc = self.repo.get_document(company_id, dashboard_id, applicant_id, slot)
        fmt = fmt.lower()
        if fmt not in self.allowed_formats or fmt != doc.format.value:
            raise UnsupportedFormat(f"{slot} expects {doc.format.value}, got {fmt}")
        if not 1 <= page_number <= doc.page_count:
            raise NotFound(f"{slot} has pages 1..{doc.page_count}, not {page_number}")
        current = doc.page(page_number)
        if (current.submission_count if current else 0) != expected_submission_count:
            raise StaleSubmission(f"{slot}/{page_number} moved past submission {expected_submission_count}")

        blob = self.blobs.put_page(
            key=paths.document_key(company_id, dashboard_id, applicant_id, slot),
            page_number=page_number,
            submission=expected_submission_count + 1,
            fmt=fmt,
            blob=content,
        )

        def mutate(live: FormDoc) -> None:
            page = live.page(page_number)
            if page is None:
                page = page_machine.new_page(page_number, live.name)
                live.pages[str(page_number)] = page
            page_machine.submit(
                page, expected_submission_count=expected_submission_count, blob=blob, fmt=fmt
            )
            if device is not None:
                live.device_submitted = device

        state = run_chain(self.ctx, company_id, dashboard_id, applicant_id, slot, mutate)
        logger.info("page %s/%s submitted (#%d)", slot, page_number, expected_submission_count + 1)
        return state["document"]

    def apply_system_check(
        self,
        company_id: str,
        dashboard_id: str,
        applicant_id: str,
        slot: str,
        page_number: int,
        verdict: SystemCheckStatus,
    ) -> FormDoc:
        def mutate(live: FormDoc) -> None:
            page_machine.apply_system_check(self._page_of(live, page_number), verdict)

        doc = run_chain(self.ctx, company_id, dashboard_id, applicant_id, slot, mutate)["document"]
        page = self._page_of(doc, page_number)
        decision = decide(doc, page, auto_reject=self.auto_reject)
        logger.info("system check %s/%s: %s -> %s", slot, page_number, verdict.value, decision)
        if decision == "accept":
            doc = self.accept_page(company_id, dashboard_id, applicant_id, slot, page_number, page.submission_count)
        elif decision == "reject":
            doc = self.reject_page(company_id, dashboard_id, applicant_id, slot, page_number, page.submission_count)
        elif decision == "review":
            self.review.open_check(company_id, dashboard_id, applicant_id)
        return doc

    def _transition(self, company_id, dashboard_id, applicant_id, slot, page_number, expected, fn) -> FormDoc:
        def mutate(live: FormDoc) -> None:
            page = self._page_of(live, page_number)
            if page.submission_count != expected:
                raise StaleSubmission(f"{slot}/{page_number} moved past submission {expected}")
            fn(page)

        return run_chain(self.ctx, company_id, dashboard_id, applicant_id, slot, mutate)["document"]

    def accept_page(
        self, company_id: str, dashboard_id: str, applicant_id: str, slot: str, page_number: int, expected: int
    ) -> FormDoc:
        return self._transition(
            company_id, dashboard_id, applicant_id, slot, page_number, expected, page_machine.accept
        )

    def reject_page(
        self, company_id: str, dashboard_id: str, applicant_id: str, slot: str, page_number: int, expected: int
    ) -> FormDoc:
        return self._transition(
            company_id, dashboard_id, applicant_id, slot, page_number, expected, page_machine.reject
        )

    def request_review(self, company_id: str, dashboard_id: str, applicant_id: str):
        """Full-submission confirmation: send every unresolved document to human review."""
        docs = self.repo.documents_for_applicant(company_id, dashboard_id, applicant_id)
        if not any(needs_review(d) for d in docs.values()):
            return None
        return self.review.open_check(company_id, dashboard_id, applicant_id)

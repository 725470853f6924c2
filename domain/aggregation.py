"""Pure roll-up rules: pages -> document, documents -> applicant, pages -> admin check."""
from __future__ import annotations

from typing import Iterable, Optional

from domain.models import (
    AdminCheckStatus,
    ApplicantStatus,
    DocumentStatus,
    FormDoc,
    PageStatus,
    SystemTask,
)


def document_status(doc: FormDoc) -> DocumentStatus:
    statuses = [p.status for p in doc.pages.values()]
    if all(s == PageStatus.NOT_SUBMITTED for s in statuses):
        return DocumentStatus.NOT_SUBMITTED
    if any(s == PageStatus.REJECTED for s in statuses):
        return DocumentStatus.REJECTED
    expected = [doc.page(n) for n in range(1, doc.page_count + 1)]
    if all(p is not None and p.status == PageStatus.ACCEPTED for p in expected):
        return DocumentStatus.ACCEPTED
    return DocumentStatus.SUBMITTED


def system_task(doc: FormDoc, status: DocumentStatus) -> Optional[SystemTask]:
    if status == DocumentStatus.NOT_SUBMITTED:
        return SystemTask.CREATE_DOC
    if status == DocumentStatus.REJECTED:
        rejected = [p for p in doc.pages.values() if p.status == PageStatus.REJECTED]
        return SystemTask.RESUBMIT_DOC if len(rejected) >= doc.page_count else SystemTask.RESUBMIT_PAGES
    # accepted, or submitted and waiting on review / remaining pages
    return None


def recompute_document(doc: FormDoc) -> bool:
    """Apply the roll-up to `doc`; returns True when the status changed."""
    status = document_status(doc)
    changed = status != doc.status
    doc.status = status
    doc.system_task = system_task(doc, status)
    return changed


def rejected_pages(doc: FormDoc) -> list[int]:
    return sorted(p.page_number for p in doc.pages.values() if p.status == PageStatus.REJECTED)


def applicant_status(docs: Iterable[FormDoc], open_actions: int) -> ApplicantStatus:
    docs = list(docs)
    if all(d.status == DocumentStatus.NOT_SUBMITTED for d in docs):
        return ApplicantStatus.NOT_SUBMITTED
    required_ok = all(d.status == DocumentStatus.ACCEPTED for d in docs if d.required)
    if required_ok and open_actions == 0:
        return ApplicantStatus.COMPLETE
    return ApplicantStatus.INCOMPLETE


def admin_check_status(statuses: Iterable[AdminCheckStatus]) -> AdminCheckStatus:
    statuses = list(statuses)
    if any(s == AdminCheckStatus.REJECTED for s in statuses):
        return AdminCheckStatus.REJECTED
    if statuses and all(s == AdminCheckStatus.ACCEPTED for s in statuses):
        return AdminCheckStatus.ACCEPTED
    return AdminCheckStatus.NOT_CHECKED


_STATUS_COUNTER = {
    ApplicantStatus.COMPLETE: "complete_applicants_count",
    ApplicantStatus.INCOMPLETE: "incomplete_applicants_count",
}


def applicant_status_deltas(old: ApplicantStatus, new: ApplicantStatus) -> dict[str, int]:
    """At most two counters move by one; Not Submitted counts toward neither."""
    deltas: dict[str, int] = {}
    if old == new:
        return deltas
    if old in _STATUS_COUNTER:
        deltas[_STATUS_COUNTER[old]] = -1
    if new in _STATUS_COUNTER:
        deltas[_STATUS_COUNTER[new]] = 1
    return deltas

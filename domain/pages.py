"""
Page lifecycle: Not Submitted -> Submitted -> {Accepted, Rejected}.

Rejected -> Submitted (resubmission) is the only ordinary back-edge. Accepted is
terminal for its submissionCount; an admin may explicitly reopen it, which
moves it to Rejected so the applicant can resubmit.
"""
from __future__ import annotations

from domain.errors import InvalidTransition, StaleSubmission
from domain.models import AdminCheckStatus, Page, PageStatus, SystemCheckStatus
from domain.value_objects import BlobRef

SUBMITTABLE = {PageStatus.NOT_SUBMITTED, PageStatus.REJECTED}


def new_page(page_number: int, doc_name: str) -> Page:
    return Page(name=f"{doc_name} - page {page_number}", page_number=page_number)


def submit(page: Page, *, expected_submission_count: int, blob: BlobRef, fmt: str) -> Page:
    if page.submission_count != expected_submission_count:
        raise StaleSubmission(
            f"page {page.page_number}: expected submission {expected_submission_count}, "
            f"current is {page.submission_count}"
        )
    if page.status not in SUBMITTABLE:
        raise InvalidTransition(f"cannot submit page {page.page_number} from {page.status.value}")
    page.status = PageStatus.SUBMITTED
    page.submission_count += 1
    page.submitted_size = blob.size
    page.submitted_format = fmt
    page.blob_uri = blob.uri
    page.system_check_status = None
    page.admin_check_status = None
    return page


def apply_system_check(page: Page, verdict: SystemCheckStatus) -> Page:
    # advisory only; intake policy decides whether to accept/reject
    if page.status != PageStatus.SUBMITTED:
        raise InvalidTransition(
            f"system check needs a submitted page, page {page.page_number} is {page.status.value}"
        )
    page.system_check_status = verdict
    return page


def accept(page: Page, *, by_admin: bool = False) -> Page:
    if page.status != PageStatus.SUBMITTED:
        raise InvalidTransition(f"cannot accept page {page.page_number} from {page.status.value}")
    page.status = PageStatus.ACCEPTED
    if by_admin:
        page.admin_check_status = AdminCheckStatus.ACCEPTED
    return page


def reject(page: Page, *, by_admin: bool = False, reopen: bool = False) -> Page:
    allowed = {PageStatus.SUBMITTED}
    if reopen:
        allowed.add(PageStatus.ACCEPTED)
    if page.status not in allowed:
        raise InvalidTransition(f"cannot reject page {page.page_number} from {page.status.value}")
    page.status = PageStatus.REJECTED
    if by_admin:
        page.admin_check_status = AdminCheckStatus.REJECTED
    return page

from __future__ import annotations

from typing import Literal

from domain.models import FormDoc, Page, PageStatus, SystemCheckStatus

Decision = Literal["accept", "reject", "review", "none"]


def decide(doc: FormDoc, page: Page, auto_reject: bool = False) -> Decision:
    """What intake does with a page once its automated check has reported."""
    if page.status != PageStatus.SUBMITTED:
        return "none"
    verdict = page.system_check_status
    if verdict == SystemCheckStatus.REJECTED:
        return "reject" if auto_reject else "review"
    if verdict == SystemCheckStatus.ACCEPTED and not doc.manual_review:
        return "accept"
    return "review"


def needs_review(doc: FormDoc) -> bool:
    """A document goes to human review if any submitted page is unresolved by the system check."""
    for page in doc.pages.values():
        if page.status != PageStatus.SUBMITTED:
            continue
        if doc.manual_review or page.system_check_status != SystemCheckStatus.ACCEPTED:
            return True
    return False

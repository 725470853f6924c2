from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

from core.config import Settings
from domain.errors import NotFound, StaleSubmission
from domain.models import (
    ApplicantStatus,
    DashboardMessages,
    Device,
    DocFormat,
    DocumentSpec,
    DocumentStatus,
    FormContent,
    PageStatus,
    SystemCheckStatus,
    SystemTask,
)
from services.intake.submissions import UnsupportedFormat
from services.persistence.store import InMemoryStore
from services.storage.blob import LocalBlobStore
from services.workflow import IntakeWorkflow


def test_single_page_document_to_complete(wf, publish, applicant_on):
    company_id, dashboard = publish()
    applicant = applicant_on(company_id, dashboard.id)
    before = wf.counters.counters(company_id, dashboard.id)

    doc = wf.intake.submit_page(
        company_id, dashboard.id, applicant.id, "passport", 1, 0, b"%PDF-1.4", "pdf", Device.MOBILE
    )
    assert doc.status == DocumentStatus.SUBMITTED
    assert doc.system_task is None
    assert doc.device_submitted == Device.MOBILE
    assert doc.page(1).submission_count == 1
    stored = wf.repo.get_applicant(company_id, dashboard.id, applicant.id)
    assert stored.dashboard.status == ApplicantStatus.INCOMPLETE
    submitted_at = stored.dashboard.submitted_at
    assert submitted_at is not None

    doc = wf.intake.accept_page(company_id, dashboard.id, applicant.id, "passport", 1, 1)
    assert doc.status == DocumentStatus.ACCEPTED
    stored = wf.repo.get_applicant(company_id, dashboard.id, applicant.id)
    assert stored.dashboard.status == ApplicantStatus.COMPLETE
    assert stored.dashboard.submitted_at == submitted_at

    after = wf.counters.counters(company_id, dashboard.id)
    assert after["complete_applicants_count"] - before["complete_applicants_count"] == 1
    assert after["incomplete_applicants_count"] - before["incomplete_applicants_count"] == 0


def test_blob_is_stored(wf, publish, applicant_on):
    company_id, dashboard = publish()
    applicant = applicant_on(company_id, dashboard.id)
    doc = wf.intake.submit_page(company_id, dashboard.id, applicant.id, "passport", 1, 0, b"%PDF-data", "pdf")
    page = doc.page(1)
    assert page.submitted_size == len(b"%PDF-data")
    assert wf.intake.blobs.get_bytes(uri=page.blob_uri) == b"%PDF-data"


def test_concurrent_submissions_one_wins(wf, publish, applicant_on):
    company_id, dashboard = publish()
    applicant = applicant_on(company_id, dashboard.id)
    barrier = threading.Barrier(2)
    outcomes = []

    def submit():
        barrier.wait()
        try:
            wf.intake.submit_page(company_id, dashboard.id, applicant.id, "passport", 1, 0, b"%PDF", "pdf")
            outcomes.append("ok")
        except StaleSubmission:
            outcomes.append("stale")

    threads = [threading.Thread(target=submit) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["ok", "stale"]
    doc = wf.repo.get_document(company_id, dashboard.id, applicant.id, "passport")
    assert doc.page(1).submission_count == 1


def test_rejected_write_does_not_touch_aggregates(wf, publish, applicant_on):
    company_id, dashboard = publish()
    applicant = applicant_on(company_id, dashboard.id)
    with pytest.raises(NotFound):
        wf.intake.accept_page(company_id, dashboard.id, applicant.id, "passport", 1, 0)
    wf.intake.submit_page(company_id, dashboard.id, applicant.id, "passport", 1, 0, b"%PDF", "pdf")
    counters = wf.counters.counters(company_id, dashboard.id)
    with pytest.raises(StaleSubmission):
        wf.intake.accept_page(company_id, dashboard.id, applicant.id, "passport", 1, 0)
    assert wf.counters.counters(company_id, dashboard.id) == counters


def test_submit_validates_format_and_page_range(wf, publish, applicant_on):
    company_id, dashboard = publish()
    applicant = applicant_on(company_id, dashboard.id)
    with pytest.raises(UnsupportedFormat):
        wf.intake.submit_page(company_id, dashboard.id, applicant.id, "passport", 1, 0, b"x", "jpeg")
    with pytest.raises(NotFound):
        wf.intake.submit_page(company_id, dashboard.id, applicant.id, "passport", 2, 0, b"x", "pdf")


def test_resubmission_after_rejection(wf, publish, applicant_on):
    company_id, dashboard = publish({"passport": DocumentSpec(format=DocFormat.PDF, doc_number=1, page_count=2)})
    applicant = applicant_on(company_id, dashboard.id)
    args = (company_id, dashboard.id, applicant.id, "passport")
    wf.intake.submit_page(*args, 1, 0, b"%PDF", "pdf")
    wf.intake.submit_page(*args, 2, 0, b"%PDF", "pdf")
    doc = wf.intake.reject_page(*args, 2, 1)
    assert doc.status == DocumentStatus.REJECTED
    assert doc.system_task == SystemTask.RESUBMIT_PAGES

    doc = wf.intake.reject_page(*args, 1, 1)
    assert doc.system_task == SystemTask.RESUBMIT_DOC

    doc = wf.intake.submit_page(*args, 1, 1, b"%PDF", "pdf")
    assert doc.page(1).submission_count == 2
    assert doc.page(1).status == PageStatus.SUBMITTED
    with pytest.raises(StaleSubmission):
        wf.intake.submit_page(*args, 1, 1, b"%PDF", "pdf")


def test_system_check_accepted_auto_accepts(wf, publish, applicant_on):
    company_id, dashboard = publish()
    applicant = applicant_on(company_id, dashboard.id)
    args = (company_id, dashboard.id, applicant.id, "passport", 1)
    wf.intake.submit_page(*args, 0, b"%PDF", "pdf")
    doc = wf.intake.apply_system_check(*args, SystemCheckStatus.ACCEPTED)
    assert doc.status == DocumentStatus.ACCEPTED
    assert doc.page(1).system_check_status == SystemCheckStatus.ACCEPTED
    assert wf.review.open_actions(company_id) == []


def test_system_check_rejected_goes_to_review(wf, publish, applicant_on):
    company_id, dashboard = publish()
    applicant = applicant_on(company_id, dashboard.id)
    args = (company_id, dashboard.id, applicant.id, "passport", 1)
    wf.intake.submit_page(*args, 0, b"%PDF", "pdf")
    doc = wf.intake.apply_system_check(*args, SystemCheckStatus.REJECTED)
    assert doc.status == DocumentStatus.SUBMITTED
    actions = wf.review.open_actions(company_id, dashboard.id)
    assert len(actions) == 1
    assert actions[0].doc.name == "passport"
    assert wf.counters.counters(company_id, dashboard.id)["actions_count"] == 1


def test_manual_review_slot_goes_to_review(wf, publish, applicant_on):
    company_id, dashboard = publish(
        {"passport": DocumentSpec(format=DocFormat.PDF, doc_number=1, manual_review=True)}
    )
    applicant = applicant_on(company_id, dashboard.id)
    args = (company_id, dashboard.id, applicant.id, "passport", 1)
    wf.intake.submit_page(*args, 0, b"%PDF", "pdf")
    wf.intake.apply_system_check(*args, SystemCheckStatus.ACCEPTED)
    assert len(wf.review.open_actions(company_id)) == 1


def test_auto_reject_policy(tmp_path, provider):
    auto = IntakeWorkflow(
        store=InMemoryStore(),
        blobs=LocalBlobStore(str(tmp_path)),
        provider=provider,
        config=Settings(AUTO_REJECT_SYSTEM_FAILURES=True),
    )
    c = auto.companies.create_company("Beta")
    d = auto.dashboards.create_draft(
        c.id, created_by="u", title="t", job="j", country="NZ",
        deadline=datetime(2026, 1, 1, tzinfo=timezone.utc),
        docs={"passport": DocumentSpec(format=DocFormat.PDF, doc_number=1)},
        form_content=FormContent(header="h", caption="c"),
        messages=DashboardMessages(opening="hi"),
    )
    auto.dashboards.publish(c.id, d.id)
    a = auto.dashboards.add_applicant(c.id, d.id, "z@example.com")
    auto.intake.submit_page(c.id, d.id, a.id, "passport", 1, 0, b"%PDF", "pdf")
    doc = auto.intake.apply_system_check(c.id, d.id, a.id, "passport", 1, SystemCheckStatus.REJECTED)
    assert doc.status == DocumentStatus.REJECTED
    assert doc.system_task == SystemTask.RESUBMIT_DOC
    assert auto.review.open_actions(c.id) == []


def test_request_review_only_when_pages_pending(wf, publish, applicant_on):
    company_id, dashboard = publish()
    applicant = applicant_on(company_id, dashboard.id)
    assert wf.intake.request_review(company_id, dashboard.id, applicant.id) is None
    wf.intake.submit_page(company_id, dashboard.id, applicant.id, "passport", 1, 0, b"%PDF", "pdf")
    check = wf.intake.request_review(company_id, dashboard.id, applicant.id)
    assert check is not None
    assert list(check.docs) == ["passport"]


def run_together(*fns):
    barrier = threading.Barrier(len(fns))
    errors = []

    def wrap(fn):
        barrier.wait()
        try:
            fn()
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=wrap, args=(fn,)) for fn in fns]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return errors


def test_concurrent_sibling_pages_both_land(wf, publish, applicant_on):
    company_id, dashboard = publish({"passport": DocumentSpec(format=DocFormat.PDF, doc_number=1, page_count=2)})
    applicant = applicant_on(company_id, dashboard.id)
    args = (company_id, dashboard.id, applicant.id, "passport")

    errors = run_together(
        lambda: wf.intake.submit_page(*args, 1, 0, b"%PDF-1", "pdf"),
        lambda: wf.intake.submit_page(*args, 2, 0, b"%PDF-2", "pdf"),
    )
    assert errors == []
    doc = wf.repo.get_document(*args)
    assert [doc.page(n).submission_count for n in (1, 2)] == [1, 1]
    assert doc.status == DocumentStatus.SUBMITTED

    errors = run_together(
        lambda: wf.intake.accept_page(*args, 1, 1),
        lambda: wf.intake.accept_page(*args, 2, 1),
    )
    assert errors == []
    doc = wf.repo.get_document(*args)
    assert [doc.page(n).status for n in (1, 2)] == [PageStatus.ACCEPTED, PageStatus.ACCEPTED]
    assert doc.status == DocumentStatus.ACCEPTED
    assert wf.repo.get_applicant(company_id, dashboard.id, applicant.id).dashboard.status == ApplicantStatus.COMPLETE
    counters = wf.counters.counters(company_id, dashboard.id)
    assert counters["complete_applicants_count"] == 1
    assert counters["incomplete_applicants_count"] == 0

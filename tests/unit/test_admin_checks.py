from __future__ import annotations

import threading

import pytest

from domain.errors import InvalidTransition, StaleReview
from domain.models import (
    AdminCheckStatus,
    ApplicantStatus,
    CompletedBy,
    DocFormat,
    DocumentSpec,
    DocumentStatus,
    PageStatus,
    PersonName,
    SystemTask,
)

ADMIN = CompletedBy(id="admin-1", name=PersonName(first="Sam", last="Lee"))


@pytest.fixture
def two_pages(wf, publish, applicant_on):
    """An applicant with both pages of a two-page passport submitted."""
    company_id, dashboard = publish({"passport": DocumentSpec(format=DocFormat.PDF, doc_number=1, page_count=2)})
    applicant = applicant_on(company_id, dashboard.id)
    for n in (1, 2):
        wf.intake.submit_page(company_id, dashboard.id, applicant.id, "passport", n, 0, b"%PDF", "pdf")
    return company_id, dashboard.id, applicant.id


def live_doc(wf, ids):
    return wf.repo.get_document(*ids, "passport")


def test_open_check_snapshots_submitted_pages(wf, two_pages):
    c, d, a = two_pages
    check = wf.review.open_check(c, d, a)
    assert check.is_open
    assert check.admin_check_status == AdminCheckStatus.NOT_CHECKED
    assert sorted(check.docs["passport"].pages) == ["1", "2"]
    assert check.form_id == wf.get_form(c, d, a).id

    actions = wf.review.open_actions(c, d)
    assert [x.id for x in actions] == [check.docs["passport"].action_id]
    assert len(wf.queue) == 1
    assert wf.queue.pop().id == actions[0].id
    assert wf.queue.pop() is None
    assert wf.counters.counters(c, d)["actions_count"] == 1
    applicant = wf.repo.get_applicant(c, d, a)
    assert [ref.id for ref in applicant.actions] == [actions[0].id]
    assert applicant.dashboard.status == ApplicantStatus.INCOMPLETE

    again = wf.review.open_check(c, d, a)
    assert again.id == check.id
    assert again.version == check.version
    assert wf.counters.counters(c, d)["actions_count"] == 1


def test_open_check_refreshes_resubmitted_pages(wf, two_pages):
    c, d, a = two_pages
    check = wf.review.open_check(c, d, a)
    wf.intake.reject_page(c, d, a, "passport", 1, 1)
    wf.intake.submit_page(c, d, a, "passport", 1, 1, b"%PDF-2", "pdf")

    refreshed = wf.review.open_check(c, d, a)
    assert refreshed.id == check.id
    assert refreshed.docs["passport"].pages["1"].submission_count == 2
    wdoc = wf.repo.get_worker_doc(refreshed.docs["passport"].worker_doc_id)
    assert wdoc.pages["1"].submission_count == 2
    assert len(wf.review.open_actions(c)) == 1


def test_accepting_every_page_closes_check(wf, two_pages):
    c, d, a = two_pages
    check = wf.review.open_check(c, d, a)

    check = wf.review.resolve_page(check.id, "passport", 1, AdminCheckStatus.ACCEPTED, ADMIN)
    assert check.is_open
    assert live_doc(wf, two_pages).page(1).status == PageStatus.SUBMITTED

    check = wf.review.resolve_page(check.id, "passport", 2, AdminCheckStatus.ACCEPTED, ADMIN)
    assert not check.is_open
    assert check.admin_check_status == AdminCheckStatus.ACCEPTED
    doc = live_doc(wf, two_pages)
    assert doc.status == DocumentStatus.ACCEPTED
    assert all(p.admin_check_status == AdminCheckStatus.ACCEPTED for p in doc.pages.values())

    action = wf.repo.get_action(c, check.docs["passport"].action_id)
    assert action.is_complete
    assert action.completed_by.id == ADMIN.id
    assert action.doc.admin_check_status == AdminCheckStatus.ACCEPTED

    applicant = wf.repo.get_applicant(c, d, a)
    assert applicant.actions == []
    assert applicant.dashboard.status == ApplicantStatus.COMPLETE
    counters = wf.counters.counters(c, d)
    assert counters["actions_count"] == 0
    assert counters["complete_applicants_count"] == 1
    assert counters["incomplete_applicants_count"] == 0


def test_rejected_page_goes_back_to_applicant(wf, two_pages):
    c, d, a = two_pages
    check = wf.review.open_check(c, d, a)

    wf.review.resolve_page(check.id, "passport", 1, AdminCheckStatus.REJECTED, ADMIN)
    doc = live_doc(wf, two_pages)
    assert doc.page(1).status == PageStatus.REJECTED
    assert doc.status == DocumentStatus.REJECTED
    assert doc.system_task == SystemTask.RESUBMIT_PAGES

    check = wf.review.resolve_page(check.id, "passport", 2, AdminCheckStatus.ACCEPTED, ADMIN)
    assert check.admin_check_status == AdminCheckStatus.REJECTED
    assert not check.is_open
    doc = live_doc(wf, two_pages)
    assert doc.page(2).status == PageStatus.ACCEPTED
    assert doc.status == DocumentStatus.REJECTED
    assert wf.repo.get_applicant(c, d, a).dashboard.status == ApplicantStatus.INCOMPLETE

    with pytest.raises(InvalidTransition):
        wf.review.resolve_page(check.id, "passport", 1, AdminCheckStatus.ACCEPTED, ADMIN)


def test_verdict_on_resubmitted_page_is_stale(wf, two_pages):
    c, d, a = two_pages
    check = wf.review.open_check(c, d, a)
    wf.intake.reject_page(c, d, a, "passport", 1, 1)
    wf.intake.submit_page(c, d, a, "passport", 1, 1, b"%PDF-2", "pdf")

    with pytest.raises(StaleReview):
        wf.review.resolve_page(check.id, "passport", 1, AdminCheckStatus.ACCEPTED, ADMIN)
    assert wf.repo.get_admin_check(check.id).docs["passport"].pages["1"].admin_check_status == (
        AdminCheckStatus.NOT_CHECKED
    )


def test_not_checked_is_not_a_verdict(wf, two_pages):
    check = wf.review.open_check(*two_pages)
    with pytest.raises(InvalidTransition):
        wf.review.resolve_page(check.id, "passport", 1, AdminCheckStatus.NOT_CHECKED, ADMIN)


def test_reopening_accepted_page_moves_applicant_back(wf, publish, applicant_on):
    """
    A reopened page lands in Rejected, waiting on the applicant, rather than
    Submitted; it only returns to Submitted once the applicant resubmits it.
    """
    company_id, dashboard = publish()
    applicant = applicant_on(company_id, dashboard.id)
    ids = (company_id, dashboard.id, applicant.id)
    wf.intake.submit_page(*ids, "passport", 1, 0, b"%PDF", "pdf")
    wf.intake.accept_page(*ids, "passport", 1, 1)
    assert wf.repo.get_applicant(*ids).dashboard.status == ApplicantStatus.COMPLETE
    before = wf.counters.counters(company_id, dashboard.id)

    doc = wf.review.reopen_page(*ids, "passport", 1, 1)
    assert doc.page(1).status == PageStatus.REJECTED
    assert doc.page(1).admin_check_status == AdminCheckStatus.REJECTED
    assert doc.status == DocumentStatus.REJECTED
    assert doc.system_task == SystemTask.RESUBMIT_DOC
    assert wf.repo.get_applicant(*ids).dashboard.status == ApplicantStatus.INCOMPLETE

    after = wf.counters.counters(company_id, dashboard.id)
    assert after["complete_applicants_count"] == before["complete_applicants_count"] - 1
    assert after["incomplete_applicants_count"] == before["incomplete_applicants_count"] + 1
    assert after["applicants_count"] == before["applicants_count"]

    with pytest.raises(StaleReview):
        wf.review.reopen_page(*ids, "passport", 1, 0)

    doc = wf.intake.submit_page(*ids, "passport", 1, 1, b"%PDF-2", "pdf")
    assert doc.page(1).status == PageStatus.SUBMITTED
    assert doc.status == DocumentStatus.SUBMITTED
    assert doc.system_task is None
    assert wf.repo.get_applicant(*ids).dashboard.status == ApplicantStatus.INCOMPLETE


def test_closing_verdict_on_moved_page_records_nothing(wf, two_pages):
    c, d, a = two_pages
    check = wf.review.open_check(c, d, a)
    wf.review.resolve_page(check.id, "passport", 1, AdminCheckStatus.ACCEPTED, ADMIN)
    wf.intake.reject_page(c, d, a, "passport", 1, 1)
    wf.intake.submit_page(c, d, a, "passport", 1, 1, b"%PDF-2", "pdf")

    with pytest.raises(StaleReview):
        wf.review.resolve_page(check.id, "passport", 2, AdminCheckStatus.ACCEPTED, ADMIN)
    stored = wf.repo.get_admin_check(check.id)
    assert stored.is_open
    assert stored.docs["passport"].pages["2"].admin_check_status == AdminCheckStatus.NOT_CHECKED
    assert len(wf.review.open_actions(c, d)) == 1

    check = wf.review.open_check(c, d, a)
    assert check.id == stored.id
    assert check.docs["passport"].pages["1"].submission_count == 2
    wf.review.resolve_page(check.id, "passport", 1, AdminCheckStatus.ACCEPTED, ADMIN)
    check = wf.review.resolve_page(check.id, "passport", 2, AdminCheckStatus.ACCEPTED, ADMIN)

    assert not check.is_open
    assert live_doc(wf, two_pages).status == DocumentStatus.ACCEPTED
    applicant = wf.repo.get_applicant(c, d, a)
    assert applicant.actions == []
    assert applicant.dashboard.status == ApplicantStatus.COMPLETE
    assert wf.counters.counters(c, d)["actions_count"] == 0


def test_close_completes_actions_even_if_write_back_fails(wf, two_pages, monkeypatch):
    c, d, a = two_pages
    check = wf.review.open_check(c, d, a)
    wf.review.resolve_page(check.id, "passport", 1, AdminCheckStatus.ACCEPTED, ADMIN)

    def boom(*args, **kwargs):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(wf.review, "_write_back", boom)
    with pytest.raises(RuntimeError):
        wf.review.resolve_page(check.id, "passport", 2, AdminCheckStatus.ACCEPTED, ADMIN)

    assert not wf.repo.get_admin_check(check.id).is_open
    assert wf.repo.get_action(c, check.docs["passport"].action_id).is_complete
    assert wf.repo.get_applicant(c, d, a).actions == []
    assert wf.counters.counters(c, d)["actions_count"] == 0


def test_open_check_redispatches_after_failed_dispatch(wf, two_pages, monkeypatch):
    c, d, a = two_pages
    real_dispatch = wf.review._dispatch
    calls = []

    def flaky(check, slot):
        calls.append(slot)
        if len(calls) == 1:
            raise RuntimeError("queue unavailable")
        return real_dispatch(check, slot)

    monkeypatch.setattr(wf.review, "_dispatch", flaky)
    with pytest.raises(RuntimeError):
        wf.review.open_check(c, d, a)
    assert wf.review.open_actions(c, d) == []

    check = wf.review.open_check(c, d, a)
    actions = wf.review.open_actions(c, d)
    assert [x.id for x in actions] == [check.docs["passport"].action_id]
    assert wf.repo.get_worker_doc(check.docs["passport"].worker_doc_id).admin_check_id == check.id
    assert len(wf.queue) == 1
    assert wf.counters.counters(c, d)["actions_count"] == 1


def test_concurrent_open_check_creates_one_check(wf, two_pages):
    c, d, a = two_pages
    barrier = threading.Barrier(2)
    results, errors = [], []

    def open_it():
        barrier.wait()
        try:
            results.append(wf.review.open_check(c, d, a))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=open_it) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len({check.id for check in results}) == 1
    assert len(wf.repo.admin_checks_for(d, a)) == 1
    assert len(wf.review.open_actions(c, d)) == 1
    assert len(wf.queue) == 1
    assert wf.counters.counters(c, d)["actions_count"] == 1

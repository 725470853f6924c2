"""
Explicit projections from live documents to review-side records.

FormDoc -> AdminCheckDoc
    document_id <- id; name, format, doc_number, status, system_task,
    device_submitted copied; pages <- only pages awaiting a verdict
    (status Submitted), each via `admin_check_page`; admin_check_status
    starts Not Checked.
Page -> AdminCheckPage
    name, page_number, status, submission_count, system_check_status copied;
    submitted_size/submitted_format are required on this side;
    admin_check_status starts Not Checked.
AdminCheckDoc -> WorkerDoc
    everything except the action/worker links, plus the owning
    company/dashboard/applicant/admin-check/form ids.
Company + PublishedDashboard + Applicant + FormDocs -> Form
"""
from __future__ import annotations

from typing import Optional

from domain.models import (
    AdminCheck,
    AdminCheckDoc,
    AdminCheckPage,
    AdminCheckStatus,
    Applicant,
    Company,
    Form,
    FormApplicant,
    FormCompany,
    FormDashboard,
    FormDoc,
    Page,
    PageStatus,
    PublishedDashboard,
    ReviewApplicant,
    ReviewDashboard,
    WorkerDoc,
)


def admin_check_page(page: Page) -> AdminCheckPage:
    return AdminCheckPage(
        name=page.name,
        page_number=page.page_number,
        status=page.status,
        submission_count=page.submission_count,
        submitted_size=page.submitted_size or 0,
        submitted_format=page.submitted_format or "",
        system_check_status=page.system_check_status,
        admin_check_status=AdminCheckStatus.NOT_CHECKED,
    )


def admin_check_doc(doc: FormDoc) -> Optional[AdminCheckDoc]:
    """None when the document has nothing awaiting review."""
    pages = {
        key: admin_check_page(page)
        for key, page in doc.pages.items()
        if page.status == PageStatus.SUBMITTED
    }
    if not pages:
        return None
    return AdminCheckDoc(
        document_id=doc.id,
        name=doc.name,
        format=doc.format,
        doc_number=doc.doc_number,
        status=doc.status,
        system_task=doc.system_task,
        device_submitted=doc.device_submitted,
        pages=pages,
    )


def worker_doc(check: AdminCheck, slot: str, worker_doc_id: str) -> WorkerDoc:
    doc = check.docs[slot]
    return WorkerDoc(
        id=worker_doc_id,
        company_id=check.company_id,
        dashboard_id=check.dashboard.id,
        applicant_id=check.applicant.id,
        admin_check_id=check.id,
        form_id=check.form_id,
        document_id=doc.document_id,
        name=doc.name,
        format=doc.format,
        doc_number=doc.doc_number,
        status=doc.status,
        device_submitted=doc.device_submitted,
        pages={k: p.model_copy() for k, p in doc.pages.items()},
        admin_check_status=doc.admin_check_status,
    )


def review_applicant(applicant: Applicant) -> ReviewApplicant:
    return ReviewApplicant(id=applicant.id, email=applicant.email, name=applicant.name)


def review_dashboard(dashboard: PublishedDashboard) -> ReviewDashboard:
    return ReviewDashboard(
        id=dashboard.id,
        job=dashboard.job,
        country=dashboard.country,
        deadline=dashboard.deadline,
    )


def build_form(
    form_id: str,
    company: Company,
    dashboard: PublishedDashboard,
    applicant: Applicant,
    docs: dict[str, FormDoc],
) -> Form:
    return Form(
        id=form_id,
        company=FormCompany(id=company.id, name=company.name, logo=company.logo),
        dashboard=FormDashboard(
            id=dashboard.id,
            form_content=dashboard.form_content,
            deadline=dashboard.deadline,
            job=dashboard.job,
            country=dashboard.country,
            messages=dashboard.messages,
        ),
        applicant=FormApplicant(
            id=applicant.id,
            status=applicant.dashboard.status,
            email=applicant.email,
            name=applicant.name,
        ),
        docs=docs,
    )

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from apps.api.deps import get_workflow
from apps.api.schemas import PageTransitionIn, SystemCheckIn
from domain.models import Device, FormDoc, PersonName
from domain.models import Form as FormModel

router = APIRouter(prefix="/forms/{company_id}/{dashboard_id}/{applicant_id}", tags=["forms"])


@router.get("", response_model=FormModel)
def get_form(company_id: str, dashboard_id: str, applicant_id: str, wf=Depends(get_workflow)):
    return wf.get_form(company_id, dashboard_id, applicant_id)


@router.put("/name")
def set_name(company_id: str, dashboard_id: str, applicant_id: str, payload: PersonName, wf=Depends(get_workflow)):
    applicant = wf.set_applicant_name(company_id, dashboard_id, applicant_id, payload)
    return {"applicant_id": applicant.id, "name": applicant.name}


@router.post("/docs/{slot}/pages/{page_number}", response_model=FormDoc)
async def submit_page(
    company_id: str,
    dashboard_id: str,
    applicant_id: str,
    slot: str,
    page_number: int,
    expected_submission_count: int = Form(...),
    device: Optional[Device] = Form(None),
    file: UploadFile = File(...),
    wf=Depends(get_workflow),
):
    content = await file.read()
    ctype = (file.content_type or "").lower()
    fmt = "pdf" if ctype == "application/pdf" else "jpeg" if ctype in {"image/jpeg", "image/jpg"} else ctype
    return wf.intake.submit_page(
        company_id,
        dashboard_id,
        applicant_id,
        slot,
        page_number,
        expected_submission_count,
        content,
        fmt,
        device,
    )


@router.post("/docs/{slot}/pages/{page_number}/system-check", response_model=FormDoc)
def system_check(
    company_id: str,
    dashboard_id: str,
    applicant_id: str,
    slot: str,
    page_number: int,
    payload: SystemCheckIn,
    wf=Depends(get_workflow),
):
    return wf.intake.apply_system_check(company_id, dashboard_id, applicant_id, slot, page_number, payload.verdict)


@router.post("/docs/{slot}/pages/{page_number}/reopen", response_model=FormDoc)
def reopen(
    company_id: str,
    dashboard_id: str,
    applicant_id: str,
    slot: str,
    page_number: int,
    payload: PageTransitionIn,
    wf=Depends(get_workflow),
):
    return wf.review.reopen_page(
        company_id, dashboard_id, applicant_id, slot, page_number, payload.expected_submission_count
    )


@router.post("/review")
def request_review(company_id: str, dashboard_id: str, applicant_id: str, wf=Depends(get_workflow)):
    check = wf.intake.request_review(company_id, dashboard_id, applicant_id)
    return {"admin_check_id": check.id if check else None}

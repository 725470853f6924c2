from typing import Optional

from fastapi import APIRouter, Depends

from apps.api.deps import get_workflow
from apps.api.schemas import VerdictIn
from domain.models import Action, AdminCheck, CompletedBy

router = APIRouter(tags=["admin-checks"])


@router.post("/companies/{company_id}/dashboards/{dashboard_id}/applicants/{applicant_id}/admin-check")
def open_admin_check(company_id: str, dashboard_id: str, applicant_id: str, wf=Depends(get_workflow)):
    check = wf.review.open_check(company_id, dashboard_id, applicant_id)
    return check.model_dump(mode="json") if check else {"admin_check_id": None}


@router.get("/admin-checks/{admin_check_id}", response_model=AdminCheck)
def get_admin_check(admin_check_id: str, wf=Depends(get_workflow)):
    return wf.repo.get_admin_check(admin_check_id)


@router.post("/admin-checks/{admin_check_id}/docs/{slot}/pages/{page_number}", response_model=AdminCheck)
def resolve_page(admin_check_id: str, slot: str, page_number: int, payload: VerdictIn, wf=Depends(get_workflow)):
    admin = CompletedBy(id=payload.admin_id, name=payload.admin_name)
    return wf.review.resolve_page(admin_check_id, slot, page_number, payload.verdict, admin)


@router.get("/companies/{company_id}/actions", response_model=list[Action])
def open_actions(company_id: str, dashboard_id: Optional[str] = None, wf=Depends(get_workflow)):
    return wf.review.open_actions(company_id, dashboard_id)

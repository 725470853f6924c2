from fastapi import APIRouter, Depends, status

from apps.api.deps import get_workflow
from apps.api.schemas import ApplicantCreate, DraftCreate, DraftUpdate
from domain.models import Applicant

router = APIRouter(prefix="/companies/{company_id}/dashboards", tags=["dashboards"])


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_draft(company_id: str, payload: DraftCreate, wf=Depends(get_workflow)):
    draft = wf.dashboards.create_draft(company_id, **payload.model_dump(exclude_none=True))
    return draft.model_dump(mode="json")


@router.get("/{dashboard_id}")
def get_dashboard(company_id: str, dashboard_id: str, wf=Depends(get_workflow)):
    return wf.repo.get_dashboard(company_id, dashboard_id).model_dump(mode="json")


@router.patch("/{dashboard_id}")
def update_draft(company_id: str, dashboard_id: str, payload: DraftUpdate, wf=Depends(get_workflow)):
    draft = wf.dashboards.update_draft(
        company_id,
        dashboard_id,
        payload.expected_version,
        docs=payload.docs,
        form_content=payload.form_content,
        messages=payload.messages,
    )
    return draft.model_dump(mode="json")


@router.post("/{dashboard_id}/publish")
def publish(company_id: str, dashboard_id: str, wf=Depends(get_workflow)):
    return wf.dashboards.publish(company_id, dashboard_id).model_dump(mode="json")


@router.post(
    "/{dashboard_id}/applicants", response_model=Applicant, status_code=status.HTTP_201_CREATED
)
def add_applicant(company_id: str, dashboard_id: str, payload: ApplicantCreate, wf=Depends(get_workflow)):
    return wf.dashboards.add_applicant(
        company_id, dashboard_id, payload.email, payload.name, send_opening=payload.send_opening
    )


@router.get("/{dashboard_id}/counters")
def counters(company_id: str, dashboard_id: str, wf=Depends(get_workflow)):
    return wf.counters.counters(company_id, dashboard_id)


@router.post("/{dashboard_id}/reconcile")
def reconcile(company_id: str, dashboard_id: str, wf=Depends(get_workflow)):
    """Repair pass: recompute counters from applicants, actions and messages."""
    return wf.counters.reconcile(company_id, dashboard_id)

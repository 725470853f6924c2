from fastapi import APIRouter, Depends, status

from apps.api.deps import get_workflow
from apps.api.schemas import CompanyCreate, InviteAccept, InviteCreate
from domain.models import Company, Invite, User

router = APIRouter(prefix="/companies", tags=["companies"])


@router.post("/", response_model=Company, status_code=status.HTTP_201_CREATED)
def create_company(payload: CompanyCreate, wf=Depends(get_workflow)):
    return wf.companies.create_company(payload.name, payload.logo)


@router.post("/{company_id}/invites", response_model=Invite, status_code=status.HTTP_201_CREATED)
def invite_user(company_id: str, payload: InviteCreate, wf=Depends(get_workflow)):
    return wf.companies.invite_user(company_id, payload.email)


@router.post("/invites/{invite_id}/accept", response_model=User)
def accept_invite(invite_id: str, payload: InviteAccept, wf=Depends(get_workflow)):
    return wf.companies.accept_invite(invite_id, payload.name)

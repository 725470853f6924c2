from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from domain.models import (
    AdminCheckStatus,
    DashboardMessages,
    DocumentSpec,
    FormContent,
    MessageAnalytics,
    PersonName,
    SystemCheckStatus,
)


class CompanyCreate(BaseModel):
    name: str = Field(min_length=1)
    logo: Optional[str] = None


class InviteCreate(BaseModel):
    email: str = Field(min_length=3)


class InviteAccept(BaseModel):
    name: PersonName


class DraftCreate(BaseModel):
    created_by: str
    title: str = Field(min_length=1)
    job: str
    country: str
    deadline: datetime
    docs: dict[str, DocumentSpec] = {}
    form_content: Optional[FormContent] = None
    messages: Optional[DashboardMessages] = None


class DraftUpdate(BaseModel):
    expected_version: int
    docs: Optional[dict[str, DocumentSpec]] = None
    form_content: Optional[FormContent] = None
    messages: Optional[DashboardMessages] = None


class ApplicantCreate(BaseModel):
    email: str = Field(min_length=3)
    name: Optional[PersonName] = None
    send_opening: bool = True


class SystemCheckIn(BaseModel):
    verdict: SystemCheckStatus


class PageTransitionIn(BaseModel):
    expected_submission_count: int


class VerdictIn(BaseModel):
    verdict: AdminCheckStatus
    admin_id: str
    admin_name: PersonName


class DeliveryCallback(BaseModel):
    message_id: str
    status: str
    reject_reason: Optional[str] = None
    analytics: Optional[MessageAnalytics] = None
    provider_id: Optional[str] = None

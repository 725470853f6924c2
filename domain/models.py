from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocFormat(str, Enum):
    JPEG = "jpeg"
    PDF = "pdf"


class Device(str, Enum):
    MOBILE = "mobile"
    DESKTOP = "desktop"


class PageStatus(str, Enum):
    NOT_SUBMITTED = "Not Submitted"
    SUBMITTED = "Submitted"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class DocumentStatus(str, Enum):
    NOT_SUBMITTED = "Not Submitted"
    SUBMITTED = "Submitted"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class ApplicantStatus(str, Enum):
    NOT_SUBMITTED = "Not Submitted"
    INCOMPLETE = "Incomplete"
    COMPLETE = "Complete"


class SystemCheckStatus(str, Enum):
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class AdminCheckStatus(str, Enum):
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    NOT_CHECKED = "Not Checked"


class SystemTask(str, Enum):
    CREATE_DOC = "createDoc"
    RESUBMIT_DOC = "resubmitDoc"
    RESUBMIT_PAGES = "resubmitPages"


class ActionType(str, Enum):
    VERIFY_DOCUMENTS = "verifyDocuments"


class MessageStatus(str, Enum):
    PENDING = "Pending"
    DELIVERED = "Delivered"
    NOT_DELIVERED = "Not Delivered"


class RecipientType(str, Enum):
    TO = "to"
    CC = "cc"
    BCC = "bcc"


COUNTER_FIELDS = (
    "applicants_count",
    "complete_applicants_count",
    "incomplete_applicants_count",
    "actions_count",
    "messages_sent_count",
)


# --- shared refs ---


class PersonName(BaseModel):
    first: str
    last: str

    @property
    def full(self) -> str:
        return f"{self.first} {self.last}".strip()


class CompanyRef(BaseModel):
    id: str
    name: str


class DashboardRef(BaseModel):
    id: str
    title: str
    type: str = "documentCollector"


# --- company & users ---


class Company(BaseModel):
    id: str
    name: str
    users: list[str] = []
    logo: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    version: int = 0


class Invite(BaseModel):
    id: str
    company: CompanyRef
    email: str
    resend: bool = False
    accepted_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    version: int = 0


class User(BaseModel):
    id: str
    company: CompanyRef
    email: str
    name: PersonName
    dashboards: list[DashboardRef] = []
    created_at: datetime = Field(default_factory=utcnow)
    version: int = 0


# --- dashboards ---


class SampleFile(BaseModel):
    file: str
    content_type: str


class DocumentSpec(BaseModel):
    format: DocFormat
    sample: Optional[SampleFile] = None
    instructions: Optional[str] = None
    doc_number: int
    page_count: int = Field(default=1, ge=1)
    required: bool = True
    manual_review: bool = False


class FormContent(BaseModel):
    header: str
    caption: str


class DashboardMessages(BaseModel):
    opening: str


class _DashboardBase(BaseModel):
    id: str
    company_id: str
    created_at: datetime = Field(default_factory=utcnow)
    created_by: str
    country: str
    job: str
    title: str
    deadline: datetime
    docs: dict[str, DocumentSpec] = {}
    version: int = 0


class DraftDashboard(_DashboardBase):
    """Editable campaign; carries no applicants, counters or published messages."""

    form_content: Optional[FormContent] = None
    messages: Optional[DashboardMessages] = None
    is_published: Literal[False] = False


class PublishedDashboard(_DashboardBase):
    form_content: FormContent
    messages: DashboardMessages
    applicants: list[str] = []
    is_published: Literal[True] = True
    published_at: datetime = Field(default_factory=utcnow)

    applicants_count: int = 0
    complete_applicants_count: int = 0
    incomplete_applicants_count: int = 0
    actions_count: int = 0
    messages_sent_count: int = 0

    def counters(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in COUNTER_FIELDS}


Dashboard = Union[PublishedDashboard, DraftDashboard]
DashboardAdapter: TypeAdapter[Dashboard] = TypeAdapter(Dashboard)


# --- applicants ---


class ApplicantDashboard(BaseModel):
    id: str
    status: ApplicantStatus = ApplicantStatus.NOT_SUBMITTED
    submitted_at: Optional[datetime] = None


class ActionRef(BaseModel):
    id: str
    type: ActionType = ActionType.VERIFY_DOCUMENTS


class LatestMessage(BaseModel):
    id: str
    status: MessageStatus = MessageStatus.PENDING
    sent_at: datetime = Field(default_factory=utcnow)


class Applicant(BaseModel):
    id: str
    company_id: str
    email: str
    name: Optional[PersonName] = None
    docs: dict[str, str] = {}  # slot name -> document key
    dashboard: ApplicantDashboard
    actions: list[ActionRef] = []
    latest_message: Optional[LatestMessage] = None
    created_at: datetime = Field(default_factory=utcnow)
    version: int = 0


# --- documents & pages ---


class Page(BaseModel):
    name: str
    page_number: int
    status: PageStatus = PageStatus.NOT_SUBMITTED
    submission_count: int = 0
    submitted_size: Optional[int] = None
    submitted_format: Optional[str] = None
    blob_uri: Optional[str] = None
    system_check_status: Optional[SystemCheckStatus] = None
    admin_check_status: Optional[AdminCheckStatus] = None


class FormDoc(BaseModel):
    """Live document an applicant writes to, one per dashboard slot."""

    kind: Literal["form"] = "form"
    id: str
    company_id: str
    dashboard_id: str
    applicant_id: str
    name: str
    format: DocFormat
    sample: Optional[SampleFile] = None
    instructions: Optional[str] = None
    doc_number: int
    page_count: int = 1
    required: bool = True
    manual_review: bool = False
    status: DocumentStatus = DocumentStatus.NOT_SUBMITTED
    system_task: Optional[SystemTask] = SystemTask.CREATE_DOC
    pages: dict[str, Page] = {}  # keyed by str(page_number)
    device_submitted: Optional[Device] = None
    version: int = 0

    def page(self, page_number: int) -> Optional[Page]:
        return self.pages.get(str(page_number))


# --- admin review ---


class AdminCheckPage(BaseModel):
    name: str
    page_number: int
    status: PageStatus
    submission_count: int
    submitted_size: int
    submitted_format: str
    system_check_status: Optional[SystemCheckStatus] = None
    admin_check_status: AdminCheckStatus = AdminCheckStatus.NOT_CHECKED


class AdminCheckDoc(BaseModel):
    kind: Literal["adminCheck"] = "adminCheck"
    document_id: str
    name: str
    format: DocFormat
    doc_number: int
    status: DocumentStatus
    system_task: Optional[SystemTask] = None
    device_submitted: Optional[Device] = None
    pages: dict[str, AdminCheckPage] = {}
    admin_check_status: AdminCheckStatus = AdminCheckStatus.NOT_CHECKED
    worker_doc_id: Optional[str] = None
    action_id: Optional[str] = None


class ReviewApplicant(BaseModel):
    id: str
    email: str
    name: Optional[PersonName] = None


class ReviewDashboard(BaseModel):
    id: str
    job: str
    country: str
    deadline: datetime


class AdminCheck(BaseModel):
    id: str
    created_at: datetime = Field(default_factory=utcnow)
    company_id: str
    applicant: ReviewApplicant
    dashboard: ReviewDashboard
    form_id: str
    docs: dict[str, AdminCheckDoc] = {}
    admin_check_status: AdminCheckStatus = AdminCheckStatus.NOT_CHECKED
    closed_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_open(self) -> bool:
        return self.closed_at is None


class WorkerDoc(BaseModel):
    kind: Literal["worker"] = "worker"
    id: str
    created_at: datetime = Field(default_factory=utcnow)
    company_id: str
    dashboard_id: str
    applicant_id: str
    admin_check_id: str
    form_id: str
    document_id: str
    name: str
    format: DocFormat
    doc_number: int
    status: DocumentStatus
    device_submitted: Optional[Device] = None
    pages: dict[str, AdminCheckPage] = {}
    admin_check_status: AdminCheckStatus = AdminCheckStatus.NOT_CHECKED
    version: int = 0


class CompletedBy(BaseModel):
    id: str
    name: PersonName


class Action(BaseModel):
    id: str
    created_at: datetime = Field(default_factory=utcnow)
    company_id: str
    dashboard_id: str
    type: ActionType = ActionType.VERIFY_DOCUMENTS
    applicant: ReviewApplicant
    worker_doc_id: str
    doc: WorkerDoc
    is_complete: bool = False
    completed_by: Optional[CompletedBy] = None
    completed_at: Optional[datetime] = None
    version: int = 0


# --- applicant-facing form ---


class FormCompany(BaseModel):
    id: str
    name: str
    logo: Optional[str] = None


class FormDashboard(BaseModel):
    id: str
    form_content: FormContent
    deadline: datetime
    job: str
    country: str
    messages: DashboardMessages


class FormApplicant(BaseModel):
    id: str
    status: ApplicantStatus
    email: str
    name: Optional[PersonName] = None


class Form(BaseModel):
    id: str
    company: FormCompany
    dashboard: FormDashboard
    applicant: FormApplicant
    docs: dict[str, FormDoc] = {}


# --- messages ---


class Recipient(BaseModel):
    email: str
    type: RecipientType = RecipientType.TO


class MessageAnalytics(BaseModel):
    opens: Optional[int] = None
    clicks: Optional[int] = None
    is_spam: Optional[bool] = None


class MessageResponseData(BaseModel):
    id: str
    status: str
    reject_reason: Optional[str] = None
    analytics: Optional[MessageAnalytics] = None


class Message(BaseModel):
    id: str
    company_id: str
    dashboard_id: str
    applicant_id: str
    created_at: datetime = Field(default_factory=utcnow)
    subject: str
    recipients: list[Recipient]
    body: str
    from_name: Optional[str] = None
    metadata: dict[str, Any] = {}
    delivery_status: MessageStatus = MessageStatus.PENDING
    updated_at: Optional[datetime] = None
    message_response_data: Optional[MessageResponseData] = None
    version: int = 0

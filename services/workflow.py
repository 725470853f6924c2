from __future__ import annotations

from typing import Optional

from core.config import Settings, settings as default_settings
from domain.models import Applicant, Form, PersonName
from domain.projections import build_form
from services.counters.engine import CounterEngine
from services.dashboards import CompanyService, DashboardService
from services.intake.submissions import PageIntake
from services.messaging.provider import MessageProvider, build_provider
from services.messaging.tracker import MessageTracker
from services.orchestration.types import ChainContext
from services.persistence import paths
from services.persistence.repository import Repository
from services.persistence.store import DocumentStore, build_store
from services.review.admin_checks import AdminCheckWorkflow
from services.review.queue import InMemoryReviewQueue, ReviewQueue
from services.storage.blob import BlobStore, LocalBlobStore


class IntakeWorkflow:
    """Wires the collaborators together; each attribute owns one part of the workflow."""

    def __init__(
        self,
        store: DocumentStore,
        blobs: BlobStore,
        provider: MessageProvider,
        queue: Optional[ReviewQueue] = None,
        config: Optional[Settings] = None,
    ) -> None:
        cfg = config or default_settings
        self.repo = Repository(store, retries=cfg.WRITE_RETRIES)
        self.counters = CounterEngine(self.repo)
        self.ctx = ChainContext(repo=self.repo, counters=self.counters)
        self.queue = queue if queue is not None else InMemoryReviewQueue()

        self.messages = MessageTracker(self.repo, self.counters, provider, from_name=cfg.MESSAGE_FROM_NAME)
        self.companies = CompanyService(self.repo)
        self.dashboards = DashboardService(self.repo, self.counters, self.messages)
        self.review = AdminCheckWorkflow(self.ctx, self.queue)
        self.intake = PageIntake(
            self.ctx,
            blobs,
            self.review,
            allowed_formats=cfg.ALLOWED_FORMATS,
            auto_reject=cfg.AUTO_REJECT_SYSTEM_FAILURES,
        )

    def get_form(self, company_id: str, dashboard_id: str, applicant_id: str) -> Form:
        return build_form(
            paths.form_id(company_id, dashboard_id, applicant_id),
            self.repo.get_company(company_id),
            self.repo.get_published_dashboard(company_id, dashboard_id),
            self.repo.get_applicant(company_id, dashboard_id, applicant_id),
            self.repo.documents_for_applicant(company_id, dashboard_id, applicant_id),
        )

    def set_applicant_name(
        self, company_id: str, dashboard_id: str, applicant_id: str, name: PersonName
    ) -> Applicant:
        def rename(a: Applicant) -> None:
            a.name = name

        return self.repo.update(
            "applicants", paths.applicant_key(company_id, dashboard_id, applicant_id), Applicant, rename
        )


def build_workflow(config: Optional[Settings] = None) -> IntakeWorkflow:
    cfg = config or default_settings
    return IntakeWorkflow(
        store=build_store(cfg.STORE_BACKEND),
        blobs=LocalBlobStore(cfg.BLOB_ROOT, cfg.MAX_UPLOAD_MB),
        provider=build_provider(),
        config=cfg,
    )

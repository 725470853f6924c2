from __future__ import annotations

from datetime import datetime, timezone

import pytest

from core.config import Settings
from domain.models import DashboardMessages, DocFormat, DocumentSpec, FormContent, PersonName
from services.persistence.store import InMemoryStore
from services.storage.blob import LocalBlobStore
from services.workflow import IntakeWorkflow


class FakeProvider:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, message):
        if self.fail:
            raise RuntimeError("provider down")
        self.sent.append(message)
        return message.id


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def wf(tmp_path, provider):
    config = Settings(AUTO_REJECT_SYSTEM_FAILURES=False, WRITE_RETRIES=5)
    return IntakeWorkflow(
        store=InMemoryStore(),
        blobs=LocalBlobStore(str(tmp_path / "blobs"), max_upload_mb=1),
        provider=provider,
        config=config,
    )


@pytest.fixture
def company(wf):
    return wf.companies.create_company("Acme Staffing")


@pytest.fixture
def publish(wf, company):
    """Create and publish a dashboard; returns (company_id, dashboard)."""

    def _publish(docs=None):
        docs = docs or {"passport": DocumentSpec(format=DocFormat.PDF, doc_number=1)}
        draft = wf.dashboards.create_draft(
            company.id,
            created_by="u1",
            title="Nurses 2026",
            job="Nurse",
            country="NZ",
            deadline=datetime(2026, 12, 31, tzinfo=timezone.utc),
            docs=docs,
            form_content=FormContent(header="Upload your documents", caption="PDF only"),
            messages=DashboardMessages(opening="Hi {name}, please apply for {job} at {company}."),
        )
        return company.id, wf.dashboards.publish(company.id, draft.id)

    return _publish


@pytest.fixture
def applicant_on(wf):
    def _add(company_id, dashboard_id, email="ana@example.com"):
        return wf.dashboards.add_applicant(
            company_id, dashboard_id, email, PersonName(first="Ana", last="Silva")
        )

    return _add

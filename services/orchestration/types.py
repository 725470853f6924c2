from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional, TypedDict

from domain.models import ApplicantStatus, FormDoc
from domain.value_objects import CounterEvent

Status = Literal["ok", "unchanged"]


@dataclass
class ChainContext:
    repo: Any  # services.persistence.repository.Repository
    counters: Any  # services.counters.engine.CounterEngine


class State(TypedDict, total=False):
    ctx: ChainContext
    company_id: str
    dashboard_id: str
    applicant_id: str
    slot: Optional[str]
    mutate: Optional[Callable[[FormDoc], None]]  # page transition applied inside the document write
    document: Optional[FormDoc]
    old_status: Optional[ApplicantStatus]
    new_status: Optional[ApplicantStatus]
    events: list[CounterEvent]
    steps: list[str]  # diary of what each node did
    status: Status

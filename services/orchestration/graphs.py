from __future__ import annotations

from collections.abc import Callable

from langgraph.graph import END, START, StateGraph

from domain.models import FormDoc
from services.observability.metrics import timing_metric
from services.orchestration.nodes import apply_counters, recompute_applicant, write_document
from services.orchestration.types import ChainContext, State


def _entry(state: State) -> str:
    return "write_document" if state.get("mutate") else "recompute_applicant"


def _after_applicant(state: State) -> str:
    return "apply_counters" if state.get("events") else "done"


def build_graph() -> Callable[[State], State]:
    """
    START -> [write_document] -> recompute_applicant -> [apply_counters] -> END

    write_document runs only when a page mutation is supplied; counters only
    when the applicant status actually moved.
    """
    builder = StateGraph(State)
    builder.add_node("write_document", write_document)
    builder.add_node("recompute_applicant", recompute_applicant)
    builder.add_node("apply_counters", apply_counters)

    builder.add_conditional_edges(
        START,
        _entry,
        {"write_document": "write_document", "recompute_applicant": "recompute_applicant"},
    )
    builder.add_edge("write_document", "recompute_applicant")
    builder.add_conditional_edges(
        "recompute_applicant",
        _after_applicant,
        {"apply_counters": "apply_counters", "done": END},
    )
    builder.add_edge("apply_counters", END)

    graph = builder.compile()

    def run(initial: State) -> State:
        result: State = graph.invoke(initial)  # sync API
        return result

    return run


runner = build_graph()


def run_chain(
    ctx: ChainContext,
    company_id: str,
    dashboard_id: str,
    applicant_id: str,
    slot: str | None = None,
    mutate: Callable[[FormDoc], None] | None = None,
) -> State:
    with timing_metric(f"chain.{slot or 'applicant'}", warn_after_s=1.0):
        return runner(
            {
                "ctx": ctx,
                "company_id": company_id,
                "dashboard_id": dashboard_id,
                "applicant_id": applicant_id,
                "slot": slot,
                "mutate": mutate,
                "document": None,
                "events": [],
                "steps": [],
                "status": "ok",
            }
        )

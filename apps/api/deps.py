from __future__ import annotations

from functools import lru_cache

from services.workflow import IntakeWorkflow, build_workflow


@lru_cache(maxsize=1)
def _workflow() -> IntakeWorkflow:
    return build_workflow()


def get_workflow() -> IntakeWorkflow:
    """FastAPI dependency; tests override it with an in-memory workflow."""
    return _workflow()

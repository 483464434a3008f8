"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from ..services.journey.factory import build_orchestrator
from ..services.journey.service import JourneyOrchestrator


@lru_cache()
def get_orchestrator() -> JourneyOrchestrator:
    return build_orchestrator()

"""Journey orchestration."""

from .factory import build_orchestrator
from .service import JourneyOrchestrator, JourneyStart

__all__ = ["JourneyOrchestrator", "JourneyStart", "build_orchestrator"]

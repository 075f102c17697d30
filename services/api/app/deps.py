"""Shared FastAPI dependencies."""

from __future__ import annotations

import threading
from typing import Optional

from core.planning.orchestrator import PlanOrchestrator

_orchestrator: Optional[PlanOrchestrator] = None
_lock = threading.Lock()


def get_orchestrator() -> PlanOrchestrator:
    """Process-wide orchestrator built from environment settings."""
    global _orchestrator
    with _lock:
        if _orchestrator is None:
            _orchestrator = PlanOrchestrator.from_settings()
        return _orchestrator

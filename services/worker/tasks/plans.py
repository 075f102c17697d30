"""Celery task for plan generation."""

from __future__ import annotations

import logging

from services.worker.celery_app import app

logger = logging.getLogger(__name__)


@app.task(bind=True, name="tasks.plans.generate_plan")
def generate_plan(self, job_id: str):
    """Run one pending plan job to completion."""
    from core.planning.orchestrator import PlanOrchestrator

    orch = PlanOrchestrator.from_settings()
    try:
        record = orch.process(job_id)
        return {"status": record["status"], "job_id": job_id}
    except Exception as e:
        logger.exception("Plan generation failed for job %s: %s", job_id, e)
        orch.mark_failed(job_id, str(e))
        raise

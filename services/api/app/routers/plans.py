"""Plan generation endpoints.

``POST /plans`` is asynchronous: the job is stored as pending and handed to
Celery (or a background thread when no broker is configured).
``POST /plans/generate`` runs the whole pipeline inline.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from core.planning.orchestrator import PlanInputError, PlanOrchestrator
from shared.schemas.jobs import JobCreated, JobStatusResponse, PlanSubmission

from ..deps import get_orchestrator

logger = logging.getLogger(__name__)
router = APIRouter()

GENERATE_TASK = "tasks.plans.generate_plan"


def _celery_enabled(orch: PlanOrchestrator) -> bool:
    return bool(orch.settings.redis_url)


def _dispatch_celery(orch: PlanOrchestrator, job_id: str):
    """Dispatch the Celery task if enabled, otherwise run in a background thread."""
    if _celery_enabled(orch):
        try:
            from services.worker.celery_app import app as celery_app
            celery_app.send_task(GENERATE_TASK, args=[job_id])
            logger.info("Dispatched %s for job %s via Celery", GENERATE_TASK, job_id)
            return
        except Exception:
            logger.exception("Celery dispatch failed for job %s, falling back to thread", job_id)

    def _run():
        try:
            orch.process(job_id)
        except Exception as e:
            logger.exception("Background processing failed for job %s", job_id)
            orch.mark_failed(job_id, str(e))

    thread = threading.Thread(target=_run, daemon=True)
    thread.start()
    logger.info("Started background thread for job %s", job_id)


def _input_error(e: PlanInputError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"code": "NO_OPPORTUNITIES", "message": str(e)},
    )


def _job_view(record: Dict[str, Any]) -> Dict[str, Any]:
    resp: Dict[str, Any] = {
        "job_id": record["id"],
        "status": record["status"],
        "created_at": record.get("created_at"),
        "updated_at": record.get("updated_at"),
        "completed_at": record.get("completed_at"),
    }
    if record["status"] == "complete":
        resp["plan"] = record.get("plan")
        resp["repairs"] = record.get("repairs", [])
    elif record["status"] == "error":
        resp["error"] = record.get("error")
        resp["error_kind"] = record.get("error_kind")
        resp["recovery_kind"] = record.get("recovery_kind")
        resp["fallback_plan"] = record.get("fallback_plan")
    # Only the keys set for this state are serialized.
    return JobStatusResponse(**resp).model_dump(exclude_unset=True)


@router.post("/plans", status_code=202, response_model=JobCreated)
async def submit_plan(body: PlanSubmission, orch: PlanOrchestrator = Depends(get_orchestrator)):
    try:
        job_id = orch.submit(body.structured_payload)
    except PlanInputError as e:
        raise _input_error(e)
    _dispatch_celery(orch, job_id)
    return JobCreated(job_id=job_id, status="pending", poll_url=f"/v1/plans/{job_id}")


@router.post("/plans/generate")
def generate_plan(body: PlanSubmission, orch: PlanOrchestrator = Depends(get_orchestrator)):
    """Synchronous mode: blocks until the job is complete or failed."""
    try:
        record = orch.generate_now(body.structured_payload)
    except PlanInputError as e:
        raise _input_error(e)
    return _job_view(record)


@router.get("/plans/{job_id}")
async def get_plan_status(job_id: str, orch: PlanOrchestrator = Depends(get_orchestrator)):
    """Poll job status; complete jobs carry the plan with validation findings."""
    record = orch.get_job(job_id)
    if not record:
        raise HTTPException(
            status_code=404,
            detail={"code": "JOB_NOT_FOUND", "status": "not_found", "job_id": job_id},
        )
    return _job_view(record)

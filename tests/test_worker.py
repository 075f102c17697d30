"""Tests for the Celery plan task (run inline, no broker)."""

import json
from unittest.mock import patch

import pytest

from services.worker.celery_app import app as celery_app
from services.worker.tasks.plans import generate_plan

FROM_SETTINGS = "core.planning.orchestrator.PlanOrchestrator.from_settings"


def test_task_registered():
    assert "tasks.plans.generate_plan" in celery_app.tasks


def test_time_limit_outlasts_deadline():
    assert celery_app.conf.task_time_limit > 90


def test_generate_plan_completes_job(orchestrator, provider, sample_payload,
                                     well_formed_plan, text_response):
    provider.complete.return_value = text_response(json.dumps(well_formed_plan))
    job_id = orchestrator.submit(sample_payload)

    with patch(FROM_SETTINGS, return_value=orchestrator):
        result = generate_plan.run(job_id)

    assert result == {"status": "complete", "job_id": job_id}
    assert orchestrator.get_job(job_id)["status"] == "complete"


def test_unexpected_failure_marks_job(orchestrator, sample_payload):
    job_id = orchestrator.submit(sample_payload)

    with patch(FROM_SETTINGS, return_value=orchestrator), \
            patch.object(orchestrator, "process", side_effect=RuntimeError("boom")):
        with pytest.raises(RuntimeError):
            generate_plan.run(job_id)

    record = orchestrator.get_job(job_id)
    assert record["status"] == "error"
    assert record["error_kind"] == "internal"
    assert record["error"] == "boom"

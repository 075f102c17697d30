"""Plan job endpoint tests."""

from unittest.mock import patch

from core.providers.base import LLMError

DISPATCH = "services.api.app.routers.plans._dispatch_celery"


def test_submit_returns_pending_job(client, structured_payload):
    with patch(DISPATCH) as dispatch:
        resp = client.post("/v1/plans", json={"structuredPayload": structured_payload})
    assert resp.status_code == 202
    data = resp.json()
    assert data["status"] == "pending"
    assert data["poll_url"] == f"/v1/plans/{data['job_id']}"
    assert dispatch.call_args.args[1] == data["job_id"]


def test_poll_pending_then_complete(client, orchestrator, structured_payload, plan_response):
    with patch(DISPATCH):
        job_id = client.post(
            "/v1/plans", json={"structuredPayload": structured_payload},
        ).json()["job_id"]

    resp = client.get(f"/v1/plans/{job_id}")
    assert resp.status_code == 200
    assert resp.json()["status"] == "pending"
    assert "plan" not in resp.json()

    orchestrator.process(job_id)

    data = client.get(f"/v1/plans/{job_id}").json()
    assert data["status"] == "complete"
    assert data["plan"]["validation"] == ["No validation issues found"]
    assert data["repairs"] == []


def test_submit_empty_payload(client, structured_payload):
    structured_payload["topDrivers"] = []
    structured_payload["summaryMetrics"]["itemCount"] = 0
    with patch(DISPATCH) as dispatch:
        resp = client.post("/v1/plans", json={"structuredPayload": structured_payload})
    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "NO_OPPORTUNITIES"
    dispatch.assert_not_called()


def test_submit_missing_body(client):
    resp = client.post("/v1/plans", json={})
    assert resp.status_code == 422


def test_unknown_job(client):
    resp = client.get("/v1/plans/does-not-exist")
    assert resp.status_code == 404
    detail = resp.json()["detail"]
    assert detail["code"] == "JOB_NOT_FOUND"
    assert detail["job_id"] == "does-not-exist"


def test_generate_sync(client, structured_payload, plan_response):
    resp = client.post("/v1/plans/generate", json={"structuredPayload": structured_payload})
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "complete"
    assert data["plan"]["initiatives"][0]["id"] == "init-a"


def test_generate_sync_fatal_error(client, provider, structured_payload):
    provider.complete.side_effect = LLMError.from_status(401, "fake")
    data = client.post(
        "/v1/plans/generate", json={"structuredPayload": structured_payload},
    ).json()
    assert data["status"] == "error"
    assert data["error_kind"] == "fatal"
    assert data["fallback_plan"] is None


def test_generate_sync_transient_error_carries_fallback(client, provider, structured_payload):
    provider.complete.side_effect = LLMError.from_status(503, "fake")
    data = client.post(
        "/v1/plans/generate", json={"structuredPayload": structured_payload},
    ).json()
    assert data["status"] == "error"
    assert data["error_kind"] == "transient"
    assert len(data["fallback_plan"]["initiatives"]) == 3


def test_generate_sync_recovery_error(client, provider, structured_payload):
    from core.providers.base import LLMResponse

    provider.complete.return_value = LLMResponse(raw_text="{'executive_summary': 'x'", provider="fake")
    data = client.post(
        "/v1/plans/generate", json={"structuredPayload": structured_payload},
    ).json()
    assert data["status"] == "error"
    assert data["error_kind"] == "recovery"
    assert data["recovery_kind"] == "missing-sections"


def test_dispatch_uses_celery_when_configured(provider):
    from core.config import PlannerSettings
    from core.planning.orchestrator import PlanOrchestrator
    from core.storage import MemoryJobStore
    from services.api.app.routers import plans
    from services.worker.celery_app import app as celery_app

    orch = PlanOrchestrator(
        MemoryJobStore(), provider,
        settings=PlannerSettings(redis_url="redis://localhost:6379/0"),
    )
    with patch.object(celery_app, "send_task") as send_task:
        plans._dispatch_celery(orch, "job-1")
    send_task.assert_called_once_with(plans.GENERATE_TASK, args=["job-1"])

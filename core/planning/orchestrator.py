"""Plan job orchestrator.

Owns the job lifecycle in the key-value store::

    submit()  -> plans/{id} = pending
    process() -> upstream call (retry + backoff, wall-clock deadline)
              -> recover() -> reconcile() -> complete | error

Failure handling:
  - deadline expiry     -> complete with the static fallback plan
  - retryable failure   -> retried; after the cap: error (transient) with
                           the fallback plan attached
  - other upstream error-> error (fatal), no retry
  - unparseable output  -> error (recovery) with its classification
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from core.config import PlannerSettings, load_settings
from core.providers.audit import AuditLogger
from core.providers.base import LLMConfig, LLMError, LLMProvider, LLMResponse, LLMTimeoutError
from core.providers.registry import supports_structured_output
from core.storage import JobStore, get_store, job_key
from shared.schemas.jobs import JobRecord
from shared.schemas.opportunities import OpportunityPayload

from .fallback import fallback_plan
from .prompts import PLAN_RESPONSE_SCHEMA, SYSTEM_PROMPT, build_user_prompt
from .reconcile import merge_findings, reconcile
from .recovery import RecoveryFailure, recover

logger = logging.getLogger(__name__)


class PlanInputError(ValueError):
    """The submitted payload cannot be planned (e.g. no opportunities)."""


class JobNotFoundError(LookupError):
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _uuid() -> str:
    return str(uuid.uuid4())


class PlanOrchestrator:
    """Drives payload -> upstream -> recovery -> reconciliation for one job at a time.

    Usage::

        orch = PlanOrchestrator.from_settings()
        job_id = orch.submit(payload)      # async mode: dispatch process(job_id)
        record = orch.process(job_id)

        record = orch.generate_now(payload)  # sync mode
    """

    def __init__(
        self,
        store: JobStore,
        provider: LLMProvider,
        *,
        settings: Optional[PlannerSettings] = None,
        audit: Optional[AuditLogger] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.provider = provider
        self.settings = settings or PlannerSettings()
        self.audit = audit or AuditLogger()
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Optional[PlannerSettings] = None,
        store: Optional[JobStore] = None,
    ) -> "PlanOrchestrator":
        from core.providers.registry import get_provider

        settings = settings or load_settings()
        provider = get_provider(settings.llm_provider, settings.llm_model or None)
        return cls(store or get_store(settings), provider, settings=settings)

    # ------------------------------------------------------------------
    # Job records
    # ------------------------------------------------------------------

    def validate_payload(
        self, payload: Union[OpportunityPayload, Dict[str, Any]],
    ) -> OpportunityPayload:
        if not isinstance(payload, OpportunityPayload):
            try:
                payload = OpportunityPayload.model_validate(payload)
            except ValidationError as e:
                raise PlanInputError(f"Invalid opportunity payload: {e}") from e
        if not payload.top_drivers or payload.summary_metrics.item_count == 0:
            raise PlanInputError("Opportunity payload has no service opportunities")
        return payload

    def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(job_key(job_id))

    def _load(self, job_id: str) -> Dict[str, Any]:
        record = self.get_job(job_id)
        if record is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return record

    def _save(self, record: Dict[str, Any]) -> Dict[str, Any]:
        record["updated_at"] = _now_iso()
        self.store.set(job_key(record["id"]), record)
        return record

    def submit(self, payload: Union[OpportunityPayload, Dict[str, Any]]) -> str:
        """Validate and persist a pending job; returns its id."""
        payload = self.validate_payload(payload)
        now = _now_iso()
        record = JobRecord(
            id=_uuid(), payload=payload.to_wire(), created_at=now, updated_at=now,
        ).model_dump()
        self.store.set(job_key(record["id"]), record)
        logger.info(
            "Job %s submitted: %d driver(s), checksum=%s",
            record["id"], len(payload.top_drivers), payload.metadata.checksum,
        )
        return record["id"]

    def _complete(
        self,
        record: Dict[str, Any],
        plan: Dict[str, Any],
        payload: OpportunityPayload,
        repairs: List[str],
    ) -> Dict[str, Any]:
        findings = reconcile(plan, payload, self.settings.tolerances)
        record.update(
            status="complete",
            plan=merge_findings(plan, findings),
            repairs=list(repairs),
            completed_at=_now_iso(),
        )
        logger.info("Job %s complete (%d finding(s))", record["id"], len(findings))
        return self._save(record)

    def _fail(
        self,
        record: Dict[str, Any],
        message: str,
        kind: str,
        *,
        recovery_kind: Optional[str] = None,
        fallback: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        record.update(
            status="error",
            error=message,
            error_kind=kind,
            recovery_kind=recovery_kind,
            fallback_plan=fallback,
            completed_at=_now_iso(),
        )
        logger.error("Job %s failed (%s): %s", record["id"], kind, message)
        return self._save(record)

    def mark_failed(self, job_id: str, message: str) -> Optional[Dict[str, Any]]:
        """Record an unexpected worker failure; no-op for unknown jobs."""
        record = self.get_job(job_id)
        if record is None:
            logger.error("Cannot mark unknown job %s as failed", job_id)
            return None
        return self._fail(record, message[:500], "internal")

    # ------------------------------------------------------------------
    # Upstream
    # ------------------------------------------------------------------

    def _llm_config(self) -> LLMConfig:
        return LLMConfig(
            model=self.settings.llm_model,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            timeout_seconds=self.settings.upstream_timeout,
        )

    def _call_with_retry(self, system_prompt: str, user_prompt: str, job_id: str) -> LLMResponse:
        cfg = self._llm_config()
        model = cfg.model or self.provider.default_model
        schema = (
            PLAN_RESPONSE_SCHEMA
            if supports_structured_output(self.provider.provider_name, model)
            else None
        )
        max_retries = self.settings.max_retries
        last_error: Optional[LLMError] = None

        for attempt in range(max_retries + 1):
            if attempt > 0:
                delay = self.settings.retry_base_delay * (2 ** (attempt - 1))
                logger.warning(
                    "Retry %d/%d after %.1fs delay (job %s): %s",
                    attempt, max_retries, delay, job_id, last_error,
                )
                self._sleep(delay)

            try:
                response = self.provider.complete(
                    system_prompt, user_prompt,
                    config=cfg, response_schema=schema,
                )
            except LLMError as e:
                self.audit.log_error(e, job_id=job_id, attempt=attempt + 1, model=model)
                if not e.retryable:
                    raise
                last_error = e
                continue

            self.audit.log(response, job_id=job_id, attempt=attempt + 1)
            return response

        raise LLMError(
            f"{last_error} (after {max_retries + 1} attempts)",
            provider=last_error.provider if last_error else "",
            retryable=True,
            status_code=last_error.status_code if last_error else None,
        )

    def _call_with_deadline(self, fn: Callable[[], LLMResponse]) -> LLMResponse:
        timeout = self.settings.upstream_timeout
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="upstream",
        )
        future = executor.submit(fn)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            raise LLMTimeoutError(
                f"Upstream call exceeded the {timeout:g}s deadline",
                provider=self.provider.provider_name,
            ) from None
        finally:
            # An abandoned call finishes in the background; its result is dropped.
            executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def process(self, job_id: str) -> Dict[str, Any]:
        """Run a pending job to a terminal state and return its record."""
        record = self._load(job_id)
        if record["status"] != "pending":
            logger.info("Job %s is already %s; skipping", job_id, record["status"])
            return record

        try:
            return self._run(record)
        except Exception as e:
            logger.exception("Job %s crashed during processing", job_id)
            self._fail(record, str(e)[:500], "internal")
            raise

    def _run(self, record: Dict[str, Any]) -> Dict[str, Any]:
        job_id = record["id"]
        payload = OpportunityPayload.model_validate(record["payload"])
        user_prompt = build_user_prompt(payload)

        try:
            response = self._call_with_deadline(
                lambda: self._call_with_retry(SYSTEM_PROMPT, user_prompt, job_id)
            )
        except LLMTimeoutError as e:
            logger.warning("Job %s: %s; completing with fallback plan", job_id, e)
            return self._complete(
                record,
                fallback_plan(f"upstream timed out after {self.settings.upstream_timeout:g}s"),
                payload,
                repairs=["substituted fallback plan after timeout"],
            )
        except LLMError as e:
            if e.retryable:
                fallback = fallback_plan(str(e))
                fallback = merge_findings(fallback, reconcile(fallback, payload, self.settings.tolerances))
                return self._fail(record, str(e), "transient", fallback=fallback)
            return self._fail(record, str(e), "fatal")

        result = recover(response.raw_text)
        if isinstance(result, RecoveryFailure):
            return self._fail(
                record, result.message, "recovery", recovery_kind=result.kind.value,
            )
        return self._complete(record, result.plan, payload, repairs=result.repairs)

    def generate_now(self, payload: Union[OpportunityPayload, Dict[str, Any]]) -> Dict[str, Any]:
        """Synchronous mode: submit and process inline."""
        return self.process(self.submit(payload))

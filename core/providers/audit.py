"""Audit trail of upstream attempts.

One ``AuditRecord`` per attempt, successful or not, so retries and their
cost can be traced per job. An optional ``persist_fn`` receives every
record (e.g. to push it to a log sink); its failures never affect the job.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional

from .base import LLMError, LLMResponse

logger = logging.getLogger(__name__)


@dataclass
class AuditRecord:
    job_id: str = ""
    attempt: int = 1
    provider: str = ""
    model: str = ""
    outcome: str = "ok"  # ok | retryable | fatal
    prompt_hash: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    stop_reason: str = ""
    status_code: Optional[int] = None
    error: Optional[str] = None
    recorded_at: float = field(default_factory=time.time)

    @property
    def failed(self) -> bool:
        return self.outcome != "ok"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AuditLogger:
    """In-memory audit trail with an optional persistence hook.

    Usage::

        audit = AuditLogger()
        audit.log(response, job_id=job_id, attempt=1)
        audit.log_error(err, job_id=job_id, attempt=2, model=model)
        audit.for_job(job_id)

    Only the most recent ``max_records`` attempts are kept in memory.
    """

    def __init__(
        self,
        persist_fn: Optional[Callable[[AuditRecord], None]] = None,
        max_records: int = 1000,
    ):
        self._records: Deque[AuditRecord] = deque(maxlen=max_records)
        self._persist_fn = persist_fn

    def _append(self, record: AuditRecord) -> AuditRecord:
        self._records.append(record)
        if self._persist_fn is not None:
            try:
                self._persist_fn(record)
            except Exception as e:
                logger.error("Audit persistence failed for job %s: %s", record.job_id, e)
        return record

    def log(self, response: LLMResponse, *, job_id: str = "", attempt: int = 1) -> AuditRecord:
        logger.info(
            "Upstream attempt %d ok: job=%s provider=%s model=%s tokens=%d+%d latency=%dms",
            attempt, job_id, response.provider, response.model,
            response.input_tokens, response.output_tokens, response.latency_ms,
        )
        return self._append(AuditRecord(
            job_id=job_id,
            attempt=attempt,
            provider=response.provider,
            model=response.model,
            prompt_hash=response.prompt_hash,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            latency_ms=response.latency_ms,
            stop_reason=response.stop_reason,
        ))

    def log_error(
        self,
        error: LLMError,
        *,
        job_id: str = "",
        attempt: int = 1,
        model: str = "",
    ) -> AuditRecord:
        outcome = "retryable" if error.retryable else "fatal"
        logger.info(
            "Upstream attempt %d %s: job=%s status=%s", attempt, outcome, job_id, error.status_code,
        )
        return self._append(AuditRecord(
            job_id=job_id,
            attempt=attempt,
            provider=error.provider,
            model=model,
            outcome=outcome,
            status_code=error.status_code,
            error=str(error),
        ))

    @property
    def records(self) -> List[AuditRecord]:
        return list(self._records)

    def for_job(self, job_id: str) -> List[AuditRecord]:
        return [r for r in self._records if r.job_id == job_id]

    def summary(self) -> Dict[str, Any]:
        """Totals across all attempts."""
        records = list(self._records)
        return {
            "total_calls": len(records),
            "total_input_tokens": sum(r.input_tokens for r in records),
            "total_output_tokens": sum(r.output_tokens for r in records),
            "total_latency_ms": sum(r.latency_ms for r in records),
            "errors": sum(1 for r in records if r.failed),
            "jobs": len({r.job_id for r in records}),
        }

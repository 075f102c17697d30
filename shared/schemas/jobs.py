"""Job tracking schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .opportunities import OpportunityPayload

JobState = Literal["pending", "complete", "error"]
ErrorKind = Literal["transient", "fatal", "recovery", "internal"]


class JobRecord(BaseModel):
    """Stored value under ``plans/{job_id}``."""

    id: str
    status: JobState = "pending"
    payload: Dict[str, Any] = Field(default_factory=dict)
    plan: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    recovery_kind: Optional[str] = None
    fallback_plan: Optional[Dict[str, Any]] = None
    repairs: List[str] = Field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    completed_at: Optional[str] = None


class PlanSubmission(BaseModel):
    """Request body for plan generation."""

    model_config = ConfigDict(populate_by_name=True)

    structured_payload: OpportunityPayload = Field(alias="structuredPayload")


class JobCreated(BaseModel):
    """Response when a job is accepted."""

    job_id: str
    status: JobState = "pending"
    poll_url: str = ""


class JobStatusResponse(BaseModel):
    """Status surface view of a job; fields depend on the state."""

    job_id: str
    status: JobState
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None
    plan: Optional[Dict[str, Any]] = None
    repairs: Optional[List[str]] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    recovery_kind: Optional[str] = None
    fallback_plan: Optional[Dict[str, Any]] = None

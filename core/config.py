"""Runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from core.planning.reconcile import ReconcileTolerances


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "")
    if not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class PlannerSettings:
    """Immutable settings for the plan generation pipeline."""

    llm_provider: str = "openrouter"
    llm_model: str = ""
    max_tokens: int = 4000
    temperature: float = 0.1
    upstream_timeout: float = 90.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    tolerances: ReconcileTolerances = field(default_factory=ReconcileTolerances)
    redis_url: str = ""
    store_path: str = ""
    cors_origins: str = "http://localhost:3000"


def load_settings(env: Optional[Mapping[str, str]] = None) -> PlannerSettings:
    """Build settings from ``env`` (defaults to ``os.environ``)."""
    env = os.environ if env is None else env
    defaults = ReconcileTolerances()
    tolerances = ReconcileTolerances(
        investment_pct=_env_float(env, "PLANNER_TOL_INVESTMENT_PCT", defaults.investment_pct),
        monthly_lift=_env_float(env, "PLANNER_TOL_MONTHLY_LIFT", defaults.monthly_lift),
        roi_pp=_env_float(env, "PLANNER_TOL_ROI_PP", defaults.roi_pp),
        roi_ceiling=_env_float(env, "PLANNER_ROI_CEILING", defaults.roi_ceiling),
    )
    return PlannerSettings(
        llm_provider=env.get("PLANNER_LLM_PROVIDER", "openrouter").strip().lower() or "openrouter",
        llm_model=env.get("PLANNER_LLM_MODEL", "").strip(),
        max_tokens=_env_int(env, "PLANNER_MAX_TOKENS", 4000),
        temperature=_env_float(env, "PLANNER_TEMPERATURE", 0.1),
        upstream_timeout=_env_float(env, "PLANNER_UPSTREAM_TIMEOUT", 90.0),
        max_retries=_env_int(env, "PLANNER_MAX_RETRIES", 3),
        retry_base_delay=_env_float(env, "PLANNER_RETRY_BASE_DELAY", 1.0),
        tolerances=tolerances,
        redis_url=env.get("REDIS_URL", ""),
        store_path=env.get("PLANNER_STORE_PATH", ""),
        cors_origins=env.get("CORS_ORIGINS", "http://localhost:3000"),
    )

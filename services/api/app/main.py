"""FastAPI application: Opportunity Planner API.

Builds opportunity payloads, accepts plan generation jobs and serves
their status. The calculator frontend polls ``/v1/plans/{job_id}``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core import __version__
from core.config import load_settings

from .routers import payloads, plans

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Opportunity Planner API",
    version=__version__,
    description="Opportunity payloads and LLM implementation plans with arithmetic reconciliation",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
ALLOWED_ORIGINS = load_settings().cors_origins.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in ALLOWED_ORIGINS],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(payloads.router, prefix="/v1", tags=["payloads"])
app.include_router(plans.router, prefix="/v1", tags=["plans"])


# ---------------------------------------------------------------------------
# Health Check
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


@app.get("/")
async def root():
    return {"message": "Opportunity Planner API", "docs": "/docs"}

"""Payload endpoint: raw calculator rows in, opportunity payload out."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from core.planning.payload import generate_payload
from shared.schemas.opportunities import PayloadRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/payloads")
async def build_payload(body: PayloadRequest):
    """Rank and summarize the rows; 422 when there are none."""
    payload = generate_payload(
        body.records, body.preferences, financial_mode=body.financial_mode,
    )
    if payload is None:
        raise HTTPException(
            status_code=422,
            detail={"code": "NO_OPPORTUNITIES", "message": "At least one service record is required"},
        )
    return payload.to_wire()

"""Position reset endpoints.

Provides:
- GET  /resets               -- all reset requests
- POST /resets               -- submit a request (PENDING)
- POST /resets/{id}/approve  -- level 1 or level 2 approval
- POST /resets/{id}/reject   -- reject with mandatory comments
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.api.deps import domain_error, get_context
from src.api.schemas.treasury_schemas import (
    ResetApprovalRequest,
    ResetRejectRequest,
    ResetResponse,
    ResetSubmitRequest,
)
from src.positions.seed_data import TreasuryContext

router = APIRouter(prefix="/resets", tags=["Position Resets"])


@router.get("", response_model=list[ResetResponse])
async def list_resets(
    status: Optional[str] = Query(None, description="Filter by reset status"),
    ctx: TreasuryContext = Depends(get_context),
):
    requests = ctx.resets.requests
    if status:
        requests = [r for r in requests if r.status.value == status.upper()]
    return [ResetResponse(**r.to_dict()) for r in requests]


@router.post("", response_model=ResetResponse, status_code=201)
async def submit_reset(body: ResetSubmitRequest, ctx: TreasuryContext = Depends(get_context)):
    try:
        request = ctx.resets.submit_request(
            position_id=body.position_id,
            current_position=body.current_position,
            target_position=body.target_position,
            reason=body.reason,
            justification=body.justification,
            requested_by=body.requested_by,
        )
        return ResetResponse(**request.to_dict())
    except ValueError as exc:
        raise domain_error(exc)


@router.post("/{request_id}/approve", response_model=ResetResponse)
async def approve_reset(
    request_id: str,
    body: ResetApprovalRequest,
    ctx: TreasuryContext = Depends(get_context),
):
    try:
        request = ctx.resets.approve(request_id, body.level, body.approver, body.comments)
        return ResetResponse(**request.to_dict())
    except (KeyError, ValueError) as exc:
        raise domain_error(exc)


@router.post("/{request_id}/reject", response_model=ResetResponse)
async def reject_reset(
    request_id: str,
    body: ResetRejectRequest,
    ctx: TreasuryContext = Depends(get_context),
):
    try:
        request = ctx.resets.reject(request_id, body.approver, body.comments)
        return ResetResponse(**request.to_dict())
    except (KeyError, ValueError) as exc:
        raise domain_error(exc)

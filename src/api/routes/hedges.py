"""Manual hedge endpoints.

Provides:
- GET  /hedges               -- hedge register, newest first
- POST /hedges               -- enter a hedge (dual auth at or above the threshold)
- POST /hedges/{id}/approve  -- second-user approval of a PENDING hedge
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.api.deps import domain_error, get_context
from src.api.schemas.treasury_schemas import (
    HedgeApprovalRequest,
    HedgeEntryRequest,
    HedgeResponse,
)
from src.core.config import settings
from src.positions.seed_data import TreasuryContext

router = APIRouter(prefix="/hedges", tags=["Manual Hedges"])


@router.get("", response_model=list[HedgeResponse])
async def list_hedges(
    status: Optional[str] = Query(None, description="Filter by hedge status"),
    ctx: TreasuryContext = Depends(get_context),
):
    hedges = sorted(ctx.hedges.hedges, key=lambda h: h.timestamp, reverse=True)
    if status:
        hedges = [h for h in hedges if h.status.value == status.upper()]
    return [HedgeResponse(**h.to_dict()) for h in hedges]


@router.post("", response_model=HedgeResponse, status_code=201)
async def enter_hedge(body: HedgeEntryRequest, ctx: TreasuryContext = Depends(get_context)):
    """Record a manual hedge; off-market rates come back as warnings."""
    try:
        result = ctx.hedges.enter_hedge(
            currency_pair=body.currency_pair,
            hedge_type=body.hedge_type,
            amount=body.amount,
            rate=body.rate,
            liquidity_provider=body.liquidity_provider,
            user=body.user or settings.default_user,
            external_reference=body.external_reference,
        )
        return HedgeResponse(**result.hedge.to_dict(), warnings=list(result.warnings))
    except ValueError as exc:
        raise domain_error(exc)


@router.post("/{hedge_id}/approve", response_model=HedgeResponse)
async def approve_hedge(
    hedge_id: str,
    body: HedgeApprovalRequest,
    ctx: TreasuryContext = Depends(get_context),
):
    try:
        hedge = ctx.hedges.approve_hedge(hedge_id, body.approver)
        return HedgeResponse(**hedge.to_dict())
    except (KeyError, ValueError) as exc:
        raise domain_error(exc)

"""Position endpoints.

Provides:
- GET /positions           -- positions per (currency, liquidity provider)
- GET /positions/overview  -- dashboard totals and per-currency roll-up
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.api.deps import get_context
from src.api.schemas.treasury_schemas import PositionResponse, PositionsOverviewResponse
from src.positions.aggregator import currency_overview, portfolio_totals
from src.positions.seed_data import TreasuryContext

router = APIRouter(prefix="/positions", tags=["Positions"])


@router.get("", response_model=list[PositionResponse])
async def list_positions(
    currency: Optional[str] = Query(None, description="Filter by currency code"),
    liquidity_provider: Optional[str] = Query(None, description="Filter by provider"),
    ctx: TreasuryContext = Depends(get_context),
):
    """Return positions sorted by currency then provider."""
    positions = sorted(ctx.positions().values(), key=lambda p: (p.currency, p.liquidity_provider))
    if currency:
        positions = [p for p in positions if p.currency == currency.upper()]
    if liquidity_provider:
        positions = [p for p in positions if p.liquidity_provider == liquidity_provider]
    return [PositionResponse(**p.to_dict()) for p in positions]


@router.get("/overview", response_model=PositionsOverviewResponse)
async def positions_overview(ctx: TreasuryContext = Depends(get_context)):
    """Return total MTM/P&L and the per-currency overview."""
    positions = list(ctx.positions().values())
    return PositionsOverviewResponse(
        **portfolio_totals(positions),
        currencies=currency_overview(positions),
    )

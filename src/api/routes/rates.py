"""Market rate endpoints.

Provides:
- GET  /rates                -- current quotes
- POST /rates/{base}/{quote} -- update one mid (audited as RATE_UPDATE)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.api.deps import domain_error, get_context
from src.api.schemas.treasury_schemas import MarketRateResponse, RateUpdateRequest
from src.core.config import settings
from src.positions.seed_data import TreasuryContext
from src.routing.pairs import format_pair

router = APIRouter(prefix="/rates", tags=["Market Rates"])


@router.get("", response_model=list[MarketRateResponse])
async def list_rates(ctx: TreasuryContext = Depends(get_context)):
    return [MarketRateResponse(**r.to_dict()) for r in ctx.rates.rates]


@router.post("/{base}/{quote}", response_model=MarketRateResponse)
async def update_rate(
    base: str,
    quote: str,
    body: RateUpdateRequest,
    ctx: TreasuryContext = Depends(get_context),
):
    """Set a new mid for base/quote, keeping the existing spread."""
    try:
        rate = ctx.rates.update_rate(
            format_pair(base, quote),
            body.mid,
            user=body.user or settings.system_user,
            source=body.source,
        )
        return MarketRateResponse(**rate.to_dict())
    except ValueError as exc:
        raise domain_error(exc)

"""Trade blotter endpoints.

Provides:
- GET  /trades  -- booked customer trades (``include_mirrors`` adds USD mirrors)
- POST /trades  -- decompose and book a trade against the committed configuration
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query

from src.api.deps import domain_error, get_context
from src.api.schemas.treasury_schemas import BookTradeRequest, TradeResponse
from src.positions.seed_data import TreasuryContext
from src.routing.decomposition import TradeInput

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/trades", tags=["Trade Blotter"])


@router.get("", response_model=list[TradeResponse])
async def list_trades(
    include_mirrors: bool = Query(False, description="Include synthetic USD mirror trades"),
    ctx: TreasuryContext = Depends(get_context),
):
    """Return booked trades, newest first."""
    trades = ctx.blotter.all_trades() if include_mirrors else ctx.blotter.trades
    trades = sorted(trades, key=lambda t: (t.trade_date, t.trade_id), reverse=True)
    return [TradeResponse(**t.to_dict()) for t in trades]


@router.post("", response_model=TradeResponse, status_code=201)
async def book_trade(body: BookTradeRequest, ctx: TreasuryContext = Depends(get_context)):
    """Decompose and book a customer trade."""
    try:
        trade_input = TradeInput.from_pair(
            body.trade_id or ctx.blotter.next_trade_id(),
            body.currency_pair,
            body.amount,
            body.rate,
            liquidity_provider=body.liquidity_provider,
            customer_order=body.customer_order,
            trade_date=body.trade_date,
            base_usd_rate=body.base_usd_rate,
            quote_usd_rate=body.quote_usd_rate,
        )
        trade = ctx.blotter.book_trade(trade_input)
        return TradeResponse(**trade.to_dict())
    except ValueError as exc:
        logger.warning("trade_rejected", error=str(exc))
        raise domain_error(exc)

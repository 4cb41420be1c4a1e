"""Treasury positions package.

Provides the ledger side of the engine:
  - TradeBlotter: books trades through the decomposition engine
  - PositionAggregator: per-(currency, liquidity provider) positions and P&L
  - RateBook: market quotes, USD conversion, rate update auditing
  - HedgeBook: manual hedge entry with dual authorisation
  - ResetWorkflowService: two-level position reset approvals

Usage:
    from src.positions import build_treasury_context
    ctx = build_treasury_context()
    positions = ctx.positions()
"""

from src.positions.aggregator import (
    Position,
    PositionAggregator,
    currency_overview,
    portfolio_totals,
    positions_frame,
)
from src.positions.blotter import TradeBlotter
from src.positions.hedges import Hedge, HedgeBook
from src.positions.position_reset import ResetRequest, ResetWorkflowService
from src.positions.rates import MarketRate, RateBook
from src.positions.seed_data import TreasuryContext, build_treasury_context

__all__ = [
    "Position",
    "PositionAggregator",
    "currency_overview",
    "portfolio_totals",
    "positions_frame",
    "TradeBlotter",
    "Hedge",
    "HedgeBook",
    "ResetRequest",
    "ResetWorkflowService",
    "MarketRate",
    "RateBook",
    "TreasuryContext",
    "build_treasury_context",
]

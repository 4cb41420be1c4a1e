"""Pydantic v2 request/response schemas for the FX Treasury API.

Covers request bodies for configuration replace, trade booking, rate updates,
hedge entry and position resets, plus typed response models for the routing
matrix, trades, positions and audit events.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# =====================================================================
# REQUEST MODELS
# =====================================================================


class ReplaceConfigRequest(BaseModel):
    """Request body for PUT /routing/config."""

    active_currencies: list[str]
    pair_modes: dict[str, str] = Field(default_factory=dict)
    hidden_currencies: list[str] = Field(default_factory=list)
    actor: Optional[str] = None
    expected_version: Optional[int] = None


class BookTradeRequest(BaseModel):
    """Request body for POST /trades."""

    currency_pair: str = Field(..., description="BASE/QUOTE, e.g. EUR/SGD")
    amount: float = Field(..., description="Signed base amount; positive buys base")
    rate: float = Field(..., gt=0)
    liquidity_provider: str = ""
    customer_order: str = ""
    trade_id: Optional[str] = None
    trade_date: Optional[datetime] = None
    base_usd_rate: Optional[float] = Field(None, gt=0)
    quote_usd_rate: Optional[float] = Field(None, gt=0)


class RateUpdateRequest(BaseModel):
    """Request body for POST /rates/{base}/{quote}."""

    mid: float = Field(..., gt=0)
    user: Optional[str] = None
    source: str = "Reuters"


class HedgeEntryRequest(BaseModel):
    """Request body for POST /hedges."""

    currency_pair: str
    hedge_type: str = Field(..., description="SPOT, FORWARD, SWAP, NDF or OPTION")
    amount: float = Field(..., gt=0)
    rate: float = Field(..., gt=0)
    liquidity_provider: str = Field(..., min_length=1)
    external_reference: str = ""
    user: Optional[str] = None


class HedgeApprovalRequest(BaseModel):
    """Request body for POST /hedges/{id}/approve."""

    approver: str = Field(..., min_length=1)


class ResetSubmitRequest(BaseModel):
    """Request body for POST /resets."""

    position_id: str
    current_position: float
    target_position: float
    reason: str
    justification: str
    requested_by: str = Field(..., min_length=1)


class ResetApprovalRequest(BaseModel):
    """Request body for POST /resets/{id}/approve."""

    level: int = Field(..., ge=1, le=2)
    approver: str = Field(..., min_length=1)
    comments: str = ""


class ResetRejectRequest(BaseModel):
    """Request body for POST /resets/{id}/reject."""

    approver: str = Field(..., min_length=1)
    comments: str = Field(..., min_length=1)


# =====================================================================
# RESPONSE MODELS
# =====================================================================


class RoutingConfigResponse(BaseModel):
    """Committed routing configuration snapshot."""

    model_config = ConfigDict(from_attributes=True)

    config_id: str
    version: int
    active_currencies: list[str]
    hidden_currencies: list[str]
    pair_modes: dict[str, str]
    modified_by: str
    modified_at: datetime
    previous_currencies: Optional[list[str]] = None
    warnings: list[str] = Field(default_factory=list)


class AvailableCurrenciesResponse(BaseModel):
    """Currencies known from positions and booked pairs."""

    available: list[str]
    addable: list[str] = Field(..., description="Available but neither active nor hidden")


class PairStatusResponse(BaseModel):
    """Routing status of a single ordered pair."""

    base: str
    quote: str
    pair_key: str
    is_direct: bool
    reason: str


class RoutingMatrixResponse(BaseModel):
    """Full grid over the active currencies, USD first."""

    currencies: list[str]
    rows: list[list[PairStatusResponse]]
    version: int


class LegResponse(BaseModel):
    pair: str
    local_currency: str
    local_position: float
    usd_position: float
    buy_amount: float
    sell_amount: float
    rate: float
    leg_type: str


class TradeResponse(BaseModel):
    """Decomposed trade."""

    trade_id: str
    trade_date: datetime
    original_pair: str
    original_amount: float
    rate: float
    legs: list[LegResponse]
    mode: str
    is_exotic: bool
    decomposition_reason: str
    liquidity_provider: str = ""
    customer_order: str = ""
    net_usd_exposure: float = 0.0
    usd_equivalent: Optional[float] = None
    parent_trade_id: Optional[str] = None


class PositionResponse(BaseModel):
    """Position per (currency, liquidity provider)."""

    position_id: str
    currency: str
    liquidity_provider: str
    net_position: float
    current_rate: Optional[float] = None
    mtm_value: float
    cost_basis_usd: float
    unrealized_pnl: float
    realized_pnl: float
    status: str
    trade_ids: list[str] = Field(default_factory=list)


class CurrencyOverviewResponse(BaseModel):
    currency: str
    net_position: float
    mtm_value: float
    unrealized_pnl: float
    realized_pnl: float
    liquidity_providers: list[str]


class PositionsOverviewResponse(BaseModel):
    """Dashboard totals plus the per-currency roll-up."""

    total_mtm: float
    total_realized_pnl: float
    total_unrealized_pnl: float
    total_pnl: float
    open_positions: int
    currencies: list[CurrencyOverviewResponse]


class MarketRateResponse(BaseModel):
    pair: str
    bid: float
    ask: float
    mid: float
    change: float
    change_pct: float
    last_update: datetime


class HedgeResponse(BaseModel):
    """Manual hedge record."""

    hedge_id: str
    currency_pair: str
    hedge_type: str
    amount: float
    rate: float
    liquidity_provider: str
    external_reference: str = ""
    status: str
    requires_dual_auth: bool
    entered_by: str
    approved_by: Optional[str] = None
    matched_amount: float = 0.0
    timestamp: datetime
    warnings: list[str] = Field(default_factory=list)


class ApprovalResponse(BaseModel):
    level: int
    approver: str
    comments: str
    timestamp: datetime


class ResetResponse(BaseModel):
    """Position reset request."""

    request_id: str
    position_id: str
    current_position: float
    target_position: float
    adjustment: float
    reason: str
    justification: str
    requested_by: str
    status: str
    requested_at: datetime
    approvals: list[ApprovalResponse] = Field(default_factory=list)


class AuditEventResponse(BaseModel):
    """Immutable audit event."""

    event_id: str
    timestamp: datetime
    event_type: str
    description: str
    user: str
    details: dict[str, Any] = Field(default_factory=dict)
    status: str
    checksum: str

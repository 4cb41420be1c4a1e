"""Direct-trading routing endpoints.

Provides:
- GET /routing/config                -- committed configuration snapshot
- GET /routing/matrix                -- pair grid over the active currencies
- GET /routing/pairs/{base}/{quote}  -- routing status of one pair
- PUT /routing/config                -- atomic replace (optionally version-guarded)
- GET /routing/currencies            -- currencies available to add
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException

from src.api.deps import domain_error, get_context
from src.api.schemas.treasury_schemas import (
    AvailableCurrenciesResponse,
    PairStatusResponse,
    ReplaceConfigRequest,
    RoutingConfigResponse,
    RoutingMatrixResponse,
)
from src.core.config import settings
from src.positions.seed_data import TreasuryContext
from src.routing.config_store import configuration_warnings
from src.routing.pairs import PairStatus, normalize, usd_first_order

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/routing", tags=["Routing"])


def _pair_response(status: PairStatus) -> PairStatusResponse:
    return PairStatusResponse(
        base=status.base,
        quote=status.quote,
        pair_key=normalize(status.base, status.quote),
        is_direct=status.is_direct,
        reason=status.reason,
    )


# ---------------------------------------------------------------------------
# 1. GET /routing/config
# ---------------------------------------------------------------------------
@router.get("/config", response_model=RoutingConfigResponse)
async def get_config(ctx: TreasuryContext = Depends(get_context)):
    """Return the committed routing configuration."""
    return RoutingConfigResponse(**ctx.store.current.to_dict())


# ---------------------------------------------------------------------------
# 2. GET /routing/matrix
# ---------------------------------------------------------------------------
@router.get("/matrix", response_model=RoutingMatrixResponse)
async def get_matrix(ctx: TreasuryContext = Depends(get_context)):
    """Return the routing grid, USD first then alphabetical."""
    config = ctx.store.current
    rows = [[_pair_response(cell) for cell in row] for row in config.matrix()]
    return RoutingMatrixResponse(
        currencies=usd_first_order(list(config.active_currencies)),
        rows=rows,
        version=config.version,
    )


# ---------------------------------------------------------------------------
# 3. GET /routing/pairs/{base}/{quote}
# ---------------------------------------------------------------------------
@router.get("/pairs/{base}/{quote}", response_model=PairStatusResponse)
async def get_pair(base: str, quote: str, ctx: TreasuryContext = Depends(get_context)):
    """Return whether base/quote trades directly under the committed configuration."""
    try:
        return _pair_response(ctx.store.pair_status(base, quote))
    except ValueError as exc:
        raise domain_error(exc)


# ---------------------------------------------------------------------------
# 4. PUT /routing/config
# ---------------------------------------------------------------------------
@router.put("/config", response_model=RoutingConfigResponse)
async def replace_config(body: ReplaceConfigRequest, ctx: TreasuryContext = Depends(get_context)):
    """Replace the committed configuration and log the diff to the audit trail."""
    try:
        updated = ctx.store.replace(
            body.active_currencies,
            body.pair_modes,
            body.hidden_currencies,
            body.actor or settings.default_user,
            expected_version=body.expected_version,
        )
        warnings = configuration_warnings(updated.active_currencies)
        return RoutingConfigResponse(**updated.to_dict(), warnings=warnings)
    except HTTPException:
        raise
    except ValueError as exc:
        logger.warning("routing_config_rejected", error=str(exc))
        raise domain_error(exc)


# ---------------------------------------------------------------------------
# 5. GET /routing/currencies
# ---------------------------------------------------------------------------
@router.get("/currencies", response_model=AvailableCurrenciesResponse)
async def get_available_currencies(ctx: TreasuryContext = Depends(get_context)):
    """Currencies seen in positions or booked pairs, and those not yet configured."""
    available = ctx.blotter.available_currencies()
    return AvailableCurrenciesResponse(
        available=available,
        addable=ctx.store.staged.available_to_add(available),
    )

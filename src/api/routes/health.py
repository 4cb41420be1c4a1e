"""Health-check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from src.api.deps import get_context
from src.positions.seed_data import TreasuryContext

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(ctx: TreasuryContext = Depends(get_context)) -> dict:
    """Basic liveness check with the committed configuration version."""
    config = ctx.store.current
    return {
        "status": "ok",
        "config_version": config.version,
        "active_currencies": len(config.active_currencies),
        "trades": len(ctx.blotter.trades),
        "audit_events": len(ctx.audit_log),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

"""FastAPI dependencies: the shared treasury context and error mapping."""

from __future__ import annotations

import structlog
from fastapi import HTTPException

from src.positions.seed_data import TreasuryContext, build_treasury_context
from src.routing.errors import ConfigurationConflictError

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Lazy singleton for the TreasuryContext
# ---------------------------------------------------------------------------
_context: TreasuryContext | None = None


def get_context() -> TreasuryContext:
    """Return (or create) the process-wide TreasuryContext seeded with demo data."""
    global _context
    if _context is None:
        _context = build_treasury_context(seed=True)
        logger.info("treasury_context_ready")
    return _context


def set_context(context: TreasuryContext | None) -> None:
    """Install *context* as the singleton (``None`` forces a rebuild on next use)."""
    global _context
    _context = context


def domain_error(exc: Exception) -> HTTPException:
    """Map a domain exception to its HTTP status.

    KeyError -> 404, ConfigurationConflictError -> 409, any other
    ValueError (validation, invalid trade, workflow state) -> 422.
    """
    if isinstance(exc, KeyError):
        detail = exc.args[0] if exc.args else "Not found"
        return HTTPException(status_code=404, detail=str(detail))
    if isinstance(exc, ConfigurationConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=422, detail=str(exc))
    logger.error("unhandled_api_error", error=str(exc))
    return HTTPException(status_code=500, detail="Internal server error")

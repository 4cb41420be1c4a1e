"""Audit trail endpoints.

Provides:
- GET /audit             -- events newest first, filtered by type/status/user
- GET /audit/export.csv  -- the filtered view as CSV
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from src.api.deps import get_context
from src.api.schemas.treasury_schemas import AuditEventResponse
from src.positions.seed_data import TreasuryContext

router = APIRouter(prefix="/audit", tags=["Audit Trail"])


def _filtered(ctx: TreasuryContext, event_type, status, user):
    return ctx.audit_log.filter(event_type=event_type, status=status, user=user)


@router.get("", response_model=list[AuditEventResponse])
async def list_events(
    event_type: Optional[str] = Query(None, description="e.g. CONFIGURATION_CHANGE, or 'all'"),
    status: Optional[str] = Query(None, description="e.g. COMPLETED, or 'all'"),
    user: Optional[str] = Query(None, description="Case-insensitive substring"),
    ctx: TreasuryContext = Depends(get_context),
):
    events = _filtered(ctx, event_type, status, user)
    return [AuditEventResponse(**e.to_dict()) for e in events]


@router.get("/export.csv", response_class=PlainTextResponse)
async def export_events(
    event_type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    user: Optional[str] = Query(None),
    ctx: TreasuryContext = Depends(get_context),
):
    events = _filtered(ctx, event_type, status, user)
    return PlainTextResponse(ctx.audit_log.to_csv(events), media_type="text/csv")

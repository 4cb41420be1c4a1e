"""Position reset approval workflow.

A reset request asks to move a position from its current to a target size
(e.g. to reverse a cancelled deal). It needs two approvals:

    PENDING --level 1--> FIRST_APPROVED --level 2--> EXECUTED
       |                      |
       +------reject----------+--------> REJECTED

Level 2 must be granted by someone other than the level 1 approver. Every
transition is recorded in the audit log.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

import structlog

from src.compliance.audit import AuditLog
from src.core.config import settings
from src.core.enums import AuditEventType, AuditStatus, ResetStatus

logger = structlog.get_logger(__name__)

RESET_REASONS = (
    "Cancelled Deal Correction",
    "System Error Correction",
    "Booking Error Correction",
    "Reconciliation Adjustment",
    "Other",
)


@dataclass(frozen=True)
class Approval:
    level: int
    approver: str
    comments: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "approver": self.approver,
            "comments": self.comments,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ResetRequest:
    request_id: str
    position_id: str
    current_position: float
    target_position: float
    reason: str
    justification: str
    requested_by: str
    status: ResetStatus = ResetStatus.PENDING
    requested_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    approvals: tuple[Approval, ...] = ()

    @property
    def adjustment(self) -> float:
        return self.target_position - self.current_position

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "position_id": self.position_id,
            "current_position": self.current_position,
            "target_position": self.target_position,
            "adjustment": self.adjustment,
            "reason": self.reason,
            "justification": self.justification,
            "requested_by": self.requested_by,
            "status": self.status.value,
            "requested_at": self.requested_at.isoformat(),
            "approvals": [a.to_dict() for a in self.approvals],
        }


class ResetWorkflowService:
    """Orchestrates position reset requests and their two approval levels."""

    def __init__(
        self,
        audit_log: AuditLog,
        min_justification_chars: int | None = None,
    ) -> None:
        self.audit_log = audit_log
        self.min_justification_chars = (
            settings.reset_min_justification_chars
            if min_justification_chars is None
            else min_justification_chars
        )
        self._requests: list[ResetRequest] = []

    @property
    def requests(self) -> list[ResetRequest]:
        return list(self._requests)

    def get(self, request_id: str) -> ResetRequest:
        for request in self._requests:
            if request.request_id == request_id:
                return request
        raise KeyError(f"Reset request {request_id} not found")

    def load(self, requests: list[ResetRequest]) -> None:
        """Seed pre-existing requests without auditing them."""
        self._requests.extend(requests)

    def pending(self) -> list[ResetRequest]:
        """Requests still awaiting an approval, oldest first."""
        open_states = (ResetStatus.PENDING, ResetStatus.FIRST_APPROVED)
        return sorted(
            (r for r in self._requests if r.status in open_states),
            key=lambda r: r.requested_at,
        )

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def submit_request(
        self,
        position_id: str,
        current_position: float,
        target_position: float,
        reason: str,
        justification: str,
        requested_by: str,
    ) -> ResetRequest:
        """Create a PENDING reset request.

        Raises:
            ValueError: Missing fields, a short justification, or a target
                equal to the current position.
        """
        if not position_id or not reason or not requested_by:
            raise ValueError("position_id, reason and requested_by are required")
        if len(justification.strip()) < self.min_justification_chars:
            raise ValueError(
                f"Justification must be at least {self.min_justification_chars} characters"
            )
        if target_position == current_position:
            raise ValueError("Target position equals current position; nothing to reset")

        request = ResetRequest(
            request_id=f"RST-{len(self._requests) + 1:04d}",
            position_id=position_id,
            current_position=current_position,
            target_position=target_position,
            reason=reason,
            justification=justification.strip(),
            requested_by=requested_by,
        )
        self._requests.append(request)

        self.audit_log.record(
            event_type=AuditEventType.POSITION_RESET,
            description="Position reset requested",
            user=requested_by,
            details={
                "reset_id": request.request_id,
                "position_id": position_id,
                "current_position": current_position,
                "target_position": target_position,
                "reason": reason,
            },
            status=AuditStatus.PENDING,
        )
        logger.info(
            "reset_requested",
            request_id=request.request_id,
            position_id=position_id,
            adjustment=request.adjustment,
        )
        return request

    # ------------------------------------------------------------------
    # Approve / reject
    # ------------------------------------------------------------------

    def approve(
        self,
        request_id: str,
        level: int,
        approver: str,
        comments: str = "",
    ) -> ResetRequest:
        """Grant approval *level* (1 or 2).

        Raises:
            KeyError: Unknown request.
            ValueError: Invalid level, wrong state for the level, or the same
                approver at both levels.
        """
        request = self.get(request_id)
        if level not in (1, 2):
            raise ValueError(f"Approval level must be 1 or 2, got {level}")

        expected = ResetStatus.PENDING if level == 1 else ResetStatus.FIRST_APPROVED
        if request.status is not expected:
            raise ValueError(
                f"Reset {request_id} cannot take level {level} approval "
                f"(current status: {request.status.value})"
            )
        if approver == request.requested_by:
            raise ValueError("Requester cannot approve their own reset")
        if level == 2 and any(a.approver == approver for a in request.approvals):
            raise ValueError("Level 2 approval requires a different approver")

        approval = Approval(level=level, approver=approver, comments=comments or f"Approved at level {level}")
        new_status = ResetStatus.EXECUTED if level == 2 else ResetStatus.FIRST_APPROVED
        updated = replace(request, status=new_status, approvals=request.approvals + (approval,))
        self._swap(updated)

        self.audit_log.record(
            event_type=AuditEventType.APPROVAL,
            description=(
                "Second level approval - position reset executed"
                if level == 2
                else "First level approval for position reset"
            ),
            user=approver,
            details={"reset_id": request_id, "level": level, "adjustment": request.adjustment},
            status=AuditStatus.COMPLETED if level == 2 else AuditStatus.APPROVED,
        )
        logger.info("reset_approved", request_id=request_id, level=level, status=new_status.value)
        return updated

    def reject(self, request_id: str, approver: str, comments: str) -> ResetRequest:
        """Reject an open request with mandatory comments.

        Raises:
            KeyError: Unknown request.
            ValueError: Empty comments or the request is already closed.
        """
        if not comments or not comments.strip():
            raise ValueError("comments are mandatory for rejection")
        request = self.get(request_id)
        if request.status not in (ResetStatus.PENDING, ResetStatus.FIRST_APPROVED):
            raise ValueError(
                f"Reset {request_id} is closed (current status: {request.status.value})"
            )

        updated = replace(request, status=ResetStatus.REJECTED)
        self._swap(updated)

        self.audit_log.record(
            event_type=AuditEventType.APPROVAL,
            description="Position reset rejected",
            user=approver,
            details={"reset_id": request_id, "comments": comments},
            status=AuditStatus.REJECTED,
        )
        logger.info("reset_rejected", request_id=request_id, approver=approver)
        return updated

    def _swap(self, updated: ResetRequest) -> None:
        self._requests = [updated if r.request_id == updated.request_id else r for r in self._requests]

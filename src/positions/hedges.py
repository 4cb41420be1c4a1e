"""Manual hedge entry.

Hedges at or above the dual-authorisation threshold wait in PENDING until a
second user approves them; smaller hedges are recorded UNMATCHED straight
away and matched as confirmations arrive. Every entry and approval is
written to the audit log.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

import structlog

from src.compliance.audit import AuditLog
from src.core.config import settings
from src.core.enums import AuditEventType, AuditStatus, HedgeStatus, HedgeType
from src.routing.pairs import split_pair

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Hedge:
    hedge_id: str
    currency_pair: str
    hedge_type: HedgeType
    amount: float
    rate: float
    liquidity_provider: str
    external_reference: str = ""
    status: HedgeStatus = HedgeStatus.UNMATCHED
    requires_dual_auth: bool = False
    entered_by: str = ""
    approved_by: str | None = None
    matched_amount: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "hedge_id": self.hedge_id,
            "currency_pair": self.currency_pair,
            "hedge_type": self.hedge_type.value,
            "amount": self.amount,
            "rate": self.rate,
            "liquidity_provider": self.liquidity_provider,
            "external_reference": self.external_reference,
            "status": self.status.value,
            "requires_dual_auth": self.requires_dual_auth,
            "entered_by": self.entered_by,
            "approved_by": self.approved_by,
            "matched_amount": self.matched_amount,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class HedgeEntryResult:
    hedge: Hedge
    warnings: tuple[str, ...] = ()


class HedgeBook:
    """In-memory hedge register.

    Args:
        audit_log: Receives HEDGE_ENTRY and APPROVAL events.
        rates: Optional rate book used for the off-market rate warning.
        dual_auth_threshold: Notional at or above which a second approver is
            required. Defaults to ``settings.dual_auth_threshold``.
        rate_deviation_warning_pct: Distance from mid that triggers a warning.
    """

    def __init__(
        self,
        audit_log: AuditLog,
        rates: Any = None,
        dual_auth_threshold: float | None = None,
        rate_deviation_warning_pct: float | None = None,
    ) -> None:
        self.audit_log = audit_log
        self.rates = rates
        self.dual_auth_threshold = (
            settings.dual_auth_threshold if dual_auth_threshold is None else dual_auth_threshold
        )
        self.rate_deviation_warning_pct = (
            settings.rate_deviation_warning_pct
            if rate_deviation_warning_pct is None
            else rate_deviation_warning_pct
        )
        self._hedges: list[Hedge] = []

    @property
    def hedges(self) -> list[Hedge]:
        return list(self._hedges)

    def get(self, hedge_id: str) -> Hedge:
        for hedge in self._hedges:
            if hedge.hedge_id == hedge_id:
                return hedge
        raise KeyError(f"Hedge {hedge_id} not found")

    def load(self, hedges: list[Hedge]) -> None:
        """Seed pre-existing hedges without auditing them."""
        self._hedges.extend(hedges)

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    def enter_hedge(
        self,
        currency_pair: str,
        hedge_type: HedgeType | str,
        amount: float,
        rate: float,
        liquidity_provider: str,
        user: str,
        external_reference: str = "",
    ) -> HedgeEntryResult:
        """Record a manual hedge.

        Raises:
            ValueError: Missing liquidity provider or non-positive amount/rate.
            InvalidCurrencyCode: Malformed currency pair.
        """
        split_pair(currency_pair)
        if not liquidity_provider or not liquidity_provider.strip():
            raise ValueError("liquidity_provider is required")
        if amount <= 0:
            raise ValueError(f"Hedge amount must be positive, got {amount}")
        if rate <= 0:
            raise ValueError(f"Hedge rate must be positive, got {rate}")
        htype = hedge_type if isinstance(hedge_type, HedgeType) else HedgeType(str(hedge_type).upper())

        warnings: list[str] = []
        if self.rates is not None:
            deviation = self.rates.deviation_pct(currency_pair, rate)
            if deviation is not None and deviation > self.rate_deviation_warning_pct:
                warnings.append(
                    f"Rate differs significantly from market rate "
                    f"({deviation:.2f}% from mid {self.rates.mid(currency_pair):.4f})"
                )

        dual_auth = amount >= self.dual_auth_threshold
        hedge = Hedge(
            hedge_id=f"HDG-{len(self._hedges) + 1:04d}",
            currency_pair=currency_pair,
            hedge_type=htype,
            amount=amount,
            rate=rate,
            liquidity_provider=liquidity_provider,
            external_reference=external_reference,
            status=HedgeStatus.PENDING if dual_auth else HedgeStatus.UNMATCHED,
            requires_dual_auth=dual_auth,
            entered_by=user,
        )
        self._hedges.append(hedge)

        self.audit_log.record(
            event_type=AuditEventType.HEDGE_ENTRY,
            description=(
                "Manual hedge entry submitted for approval"
                if dual_auth
                else "Manual hedge entry recorded"
            ),
            user=user,
            details={
                "hedge_id": hedge.hedge_id,
                "amount": amount,
                "pair": currency_pair,
                "type": htype.value,
                "requires_dual_auth": dual_auth,
                "warnings": warnings,
            },
            status=AuditStatus.PENDING if dual_auth else AuditStatus.COMPLETED,
        )

        logger.info(
            "hedge_entered",
            hedge_id=hedge.hedge_id,
            pair=currency_pair,
            amount=amount,
            dual_auth=dual_auth,
            warnings=len(warnings),
        )
        return HedgeEntryResult(hedge=hedge, warnings=tuple(warnings))

    # ------------------------------------------------------------------
    # Approval / matching
    # ------------------------------------------------------------------

    def approve_hedge(self, hedge_id: str, approver: str) -> Hedge:
        """Second-user approval of a dual-authorisation hedge.

        Raises:
            KeyError: Unknown hedge.
            ValueError: Hedge is not PENDING or approver entered it.
        """
        hedge = self.get(hedge_id)
        if hedge.status is not HedgeStatus.PENDING:
            raise ValueError(
                f"Hedge {hedge_id} is not PENDING (current status: {hedge.status.value})"
            )
        if approver == hedge.entered_by:
            raise ValueError("Dual authorisation requires a different approver")

        approved = replace(hedge, status=HedgeStatus.APPROVED, approved_by=approver)
        self._swap(approved)

        self.audit_log.record(
            event_type=AuditEventType.APPROVAL,
            description="Dual authorisation granted for manual hedge",
            user=approver,
            details={"hedge_id": hedge_id, "amount": hedge.amount, "pair": hedge.currency_pair},
            status=AuditStatus.APPROVED,
        )
        logger.info("hedge_approved", hedge_id=hedge_id, approver=approver)
        return approved

    def match_hedge(self, hedge_id: str, matched_amount: float) -> Hedge:
        """Apply a confirmation of *matched_amount* to the hedge.

        Raises:
            KeyError: Unknown hedge.
            ValueError: Hedge still awaits approval or the amount is invalid.
        """
        hedge = self.get(hedge_id)
        if hedge.status is HedgeStatus.PENDING:
            raise ValueError(f"Hedge {hedge_id} awaits dual authorisation")
        if matched_amount <= 0:
            raise ValueError(f"Matched amount must be positive, got {matched_amount}")

        total = min(hedge.amount, hedge.matched_amount + matched_amount)
        status = (
            HedgeStatus.FULLY_MATCHED if total >= hedge.amount else HedgeStatus.PARTIALLY_MATCHED
        )
        matched = replace(hedge, matched_amount=total, status=status)
        self._swap(matched)
        logger.info("hedge_matched", hedge_id=hedge_id, matched=total, status=status.value)
        return matched

    def _swap(self, updated: Hedge) -> None:
        self._hedges = [updated if h.hedge_id == updated.hedge_id else h for h in self._hedges]

"""Illustrative seed data and the assembled treasury context.

Mock market quotes, customer trades, hedges, reset requests and audit
history used to stand up a demo instance of the engine. Trade and event
timestamps are relative to the moment the context is built.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog

from src.compliance.audit import AuditLog
from src.core.config import settings
from src.core.enums import (
    AuditEventType,
    AuditStatus,
    HedgeStatus,
    HedgeType,
    ResetStatus,
)
from src.routing.audit_diff import AuditDiffLogger
from src.routing.config_store import RoutingConfigStore, default_configuration
from src.routing.decomposition import DecompositionEngine, TradeInput

from .blotter import TradeBlotter
from .hedges import Hedge, HedgeBook
from .position_reset import Approval, ResetRequest, ResetWorkflowService
from .rates import MarketRate, RateBook

logger = structlog.get_logger(__name__)

# (pair, bid, ask, mid, change, change_pct)
MARKET_QUOTES: list[tuple[str, float, float, float, float, float]] = [
    ("USD/SGD", 1.3420, 1.3425, 1.3422, 0.0012, 0.09),
    ("EUR/USD", 1.0850, 1.0855, 1.0852, -0.0023, -0.21),
    ("GBP/USD", 1.2720, 1.2725, 1.2722, 0.0045, 0.35),
    ("AUD/USD", 0.6580, 0.6585, 0.6582, -0.0008, -0.12),
    ("USD/JPY", 149.25, 149.30, 149.27, 0.35, 0.23),
    ("USD/CAD", 1.3580, 1.3585, 1.3582, 0.0018, 0.13),
    ("USD/CHF", 0.8720, 0.8725, 0.8722, -0.0012, -0.14),
    ("NZD/USD", 0.5980, 0.5985, 0.5982, 0.0015, 0.25),
    ("USD/SEK", 10.4450, 10.4550, 10.4500, 0.0120, 0.11),
    ("USD/NOK", 10.5950, 10.6050, 10.6000, -0.0150, -0.14),
    ("USD/MYR", 4.4625, 4.4675, 4.4650, 0.0025, 0.06),
    ("USD/HKD", 7.8185, 7.8215, 7.8200, -0.0015, -0.02),
    ("USD/CNH", 7.2425, 7.2475, 7.2450, 0.0050, 0.07),
    ("EUR/SGD", 1.4560, 1.4565, 1.4562, 0.0015, 0.10),
    ("EUR/GBP", 0.8525, 0.8530, 0.8527, -0.0008, -0.09),
    ("EUR/JPY", 162.05, 162.15, 162.10, 0.48, 0.30),
    ("GBP/JPY", 190.10, 190.20, 190.15, 0.65, 0.34),
    ("JPY/SGD", 0.00898, 0.00902, 0.00900, 0.00003, 0.33),
    ("AUD/SGD", 0.8828, 0.8836, 0.8832, -0.0012, -0.14),
    ("GBP/SGD", 1.7080, 1.7085, 1.7082, 0.0062, 0.36),
    ("CAD/SGD", 0.9882, 0.9890, 0.9886, 0.0005, 0.05),
    ("CHF/SGD", 1.5385, 1.5392, 1.5388, 0.0022, 0.14),
    ("NZD/SGD", 0.8025, 0.8032, 0.8028, -0.0008, -0.10),
]

# (trade_id, pair, amount, rate, provider, customer_order, days_ago, base_usd_rate, quote_usd_rate)
SAMPLE_TRADES: list[tuple] = [
    ("TRD-0001", "USD/SGD", 1_500_000, 1.3400, "Citibank", "CUST-001", 1, None, None),
    ("TRD-0002", "EUR/SGD", 1_000_000, 1.4580, "Citibank", "CUST-005", 2, None, None),
    ("TRD-0003", "EUR/USD", -1_800_000, 1.0920, "HSBC", "CUST-012", 3, None, None),
    ("TRD-0004", "GBP/USD", 1_200_000, 1.2650, "Standard Chartered", "CUST-018", 4, None, None),
    ("TRD-0007", "MYR/HKD", 4_500_000, 1.7573, "Bank of China HK", "CUST-041", 6, 4.4500, 7.8200),
    ("TRD-0008", "JPY/SGD", 15_000_000, 0.00900, "Citibank", "CUST-048", 3, None, None),
    ("TRD-0011", "CNH/SGD", -3_000_000, 0.1850, "Citibank", "CUST-073", 6, 7.2450, 1.3400),
    ("TRD-0012", "EUR/GBP", 800_000, 0.8520, "HSBC", "CUST-082", 8, None, None),
    ("TRD-0013", "EUR/JPY", -500_000, 161.80, "HSBC", "CUST-095", 9, None, None),
    ("TRD-0017", "MYR/HKD", 2_200_000, 1.7560, "Bank of China HK", "CUST-131", 12, 4.4550, 7.8230),
    ("TRD-0020", "CAD/SGD", -800_000, 0.9880, "Citibank", "CUST-168", 16, None, None),
    ("TRD-0022", "USD/CHF", -600_000, 0.8750, "UBS", "CUST-189", 18, None, None),
    ("TRD-0024", "NZD/USD", 1_200_000, 0.5950, "ANZ", "CUST-215", 20, None, None),
]

JUSTIFICATION_CANCELLED_DEAL = (
    "Customer cancelled spot deal worth USD 200,000 due to documentation issues. "
    "Need to reverse the position impact to maintain accurate treasury records."
)
JUSTIFICATION_SYSTEM_ERROR = (
    "Identified system error in position calculation from last week. Three forward "
    "contracts totaling GBP 300,000 were not properly recorded in the system. IT has "
    "confirmed the root cause and implemented a fix."
)


def _ago(now: datetime, **delta: float) -> datetime:
    return now - timedelta(**delta)


def market_rates(now: datetime | None = None) -> list[MarketRate]:
    stamp = now or datetime.now(timezone.utc)
    return [
        MarketRate(pair, bid, ask, mid, change, change_pct, stamp)
        for pair, bid, ask, mid, change, change_pct in MARKET_QUOTES
    ]


def sample_trades(now: datetime | None = None) -> list[TradeInput]:
    now = now or datetime.now(timezone.utc)
    trades = []
    for trade_id, pair, amount, rate, provider, order, days, base_usd, quote_usd in SAMPLE_TRADES:
        trades.append(
            TradeInput.from_pair(
                trade_id,
                pair,
                amount,
                rate,
                liquidity_provider=provider,
                customer_order=order,
                trade_date=_ago(now, days=days),
                base_usd_rate=base_usd,
                quote_usd_rate=quote_usd,
            )
        )
    return trades


def sample_hedges(now: datetime | None = None) -> list[Hedge]:
    now = now or datetime.now(timezone.utc)
    return [
        Hedge(
            hedge_id="HDG-0001",
            currency_pair="USD/SGD",
            hedge_type=HedgeType.FORWARD,
            amount=500_000,
            rate=1.3400,
            liquidity_provider="Citibank",
            external_reference="FWD-2024-001",
            status=HedgeStatus.FULLY_MATCHED,
            entered_by="john.trader@company.com",
            matched_amount=500_000,
            timestamp=_ago(now, days=1),
        ),
        Hedge(
            hedge_id="HDG-0002",
            currency_pair="EUR/USD",
            hedge_type=HedgeType.SPOT,
            amount=2_000_000,
            rate=1.0880,
            liquidity_provider="HSBC",
            external_reference="SPOT-2024-042",
            status=HedgeStatus.PENDING,
            requires_dual_auth=True,
            entered_by="john.trader@company.com",
            timestamp=_ago(now, hours=1),
        ),
        Hedge(
            hedge_id="HDG-0003",
            currency_pair="GBP/USD",
            hedge_type=HedgeType.NDF,
            amount=750_000,
            rate=1.2700,
            liquidity_provider="Standard Chartered",
            external_reference="NDF-2024-018",
            status=HedgeStatus.PARTIALLY_MATCHED,
            entered_by="john.trader@company.com",
            matched_amount=400_000,
            timestamp=_ago(now, hours=2),
        ),
    ]


def sample_resets(now: datetime | None = None) -> list[ResetRequest]:
    now = now or datetime.now(timezone.utc)
    return [
        ResetRequest(
            request_id="RST-0001",
            position_id="POS-SGD-CITIBANK",
            current_position=2_500_000,
            target_position=2_300_000,
            reason="Cancelled Deal Correction",
            justification=JUSTIFICATION_CANCELLED_DEAL,
            requested_by="john.trader@company.com",
            status=ResetStatus.FIRST_APPROVED,
            requested_at=_ago(now, days=1),
            approvals=(
                Approval(
                    level=1,
                    approver="sarah.manager@company.com",
                    comments="Verified cancellation documentation. Approved for CFO review.",
                    timestamp=_ago(now, hours=12),
                ),
            ),
        ),
        ResetRequest(
            request_id="RST-0002",
            position_id="POS-GBP-STANDARD-CHARTERED",
            current_position=1_200_000,
            target_position=1_500_000,
            reason="System Error Correction",
            justification=JUSTIFICATION_SYSTEM_ERROR,
            requested_by="mike.ops@company.com",
            status=ResetStatus.PENDING,
            requested_at=_ago(now, hours=1),
        ),
    ]


def seed_audit_history(audit_log: AuditLog, now: datetime | None = None) -> None:
    """Record the historical events oldest first so the log reads newest first."""
    now = now or datetime.now(timezone.utc)
    audit_log.record(
        AuditEventType.CONFIGURATION_CHANGE,
        "Updated Direct Trading Configuration: Added SGD to G10 currencies and "
        "configured MYR, HKD, CNH pairs",
        "system@treasury.com",
        details={
            "currencies_added": ["SGD", "MYR", "HKD", "CNH"],
            "pairs_configured": {
                "EUR/SGD": "DIRECT",
                "JPY/SGD": "DIRECT",
                "AUD/SGD": "DIRECT",
                "GBP/SGD": "DIRECT",
                "HKD/MYR": "EXOTIC",
                "CNH/SGD": "EXOTIC",
            },
            "rationale": "SGD elevated to G10 status for direct trading. Regional currencies "
            "MYR, HKD, CNH added for Asia-Pacific market coverage.",
        },
        timestamp=_ago(now, days=30),
    )
    audit_log.record(
        AuditEventType.HEDGE_ENTRY,
        "Forward hedge executed and matched",
        "john.trader@company.com",
        details={"hedge_id": "HDG-0001", "amount": 500_000, "pair": "USD/SGD"},
        timestamp=_ago(now, days=1),
    )
    audit_log.record(
        AuditEventType.APPROVAL,
        "First level approval for position reset",
        "sarah.manager@company.com",
        details={"reset_id": "RST-0001", "level": 1},
        status=AuditStatus.APPROVED,
        timestamp=_ago(now, hours=12),
    )
    audit_log.record(
        AuditEventType.HEDGE_ENTRY,
        "Manual hedge entry submitted for approval",
        "john.trader@company.com",
        details={"hedge_id": "HDG-0002", "amount": 2_000_000, "pair": "EUR/USD"},
        status=AuditStatus.PENDING,
        timestamp=_ago(now, minutes=15),
    )
    audit_log.record(
        AuditEventType.RATE_UPDATE,
        "Market rates updated from Reuters feed",
        "system",
        details={"pairs": 7, "source": "Reuters"},
        timestamp=_ago(now, minutes=2),
    )


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


@dataclass
class TreasuryContext:
    """Every service of one engine instance, wired together."""

    audit_log: AuditLog
    rates: RateBook
    store: RoutingConfigStore
    engine: DecompositionEngine
    blotter: TradeBlotter
    hedges: HedgeBook
    resets: ResetWorkflowService

    def positions(self):
        return self.blotter.positions(self.hedges.hedges)


def build_treasury_context(seed: bool = True, audit_dir: str | None = None) -> TreasuryContext:
    """Wire up a fresh engine instance, optionally loaded with the demo data."""
    now = datetime.now(timezone.utc)
    audit_log = AuditLog(audit_dir=audit_dir if audit_dir is not None else settings.audit_dir or None)
    if seed:
        seed_audit_history(audit_log, now)

    rates = RateBook(market_rates(now) if seed else (), audit_log=audit_log)
    store = RoutingConfigStore(
        initial=default_configuration(settings.system_user),
        diff_logger=AuditDiffLogger(audit_log),
    )
    engine = DecompositionEngine(rates=rates)
    blotter = TradeBlotter(store, engine, rates)
    store.currency_has_positions = blotter.has_positions
    hedges = HedgeBook(audit_log, rates=rates)
    resets = ResetWorkflowService(audit_log)

    if seed:
        blotter.book_many(sample_trades(now))
        hedges.load(sample_hedges(now))
        resets.load(sample_resets(now))

    logger.info(
        "treasury_context_built",
        seeded=seed,
        trades=len(blotter.trades),
        hedges=len(hedges.hedges),
        audit_events=len(audit_log),
    )
    return TreasuryContext(
        audit_log=audit_log,
        rates=rates,
        store=store,
        engine=engine,
        blotter=blotter,
        hedges=hedges,
        resets=resets,
    )

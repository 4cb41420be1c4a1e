"""Position aggregation.

Folds decomposed trades into per-(currency, liquidity provider) positions:

* an original trade posts each leg's ``local_position`` to the leg's local
  currency;
* a mirror trade (one with a ``parent_trade_id``) posts its leg's
  ``usd_position`` to the USD bucket.

So every leg lands in exactly one bucket per pass. The fold is pure: the
same trades always give the same positions.

Cost basis uses the average-cost method; a posting that reduces a position
realizes P&L against that average.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import pandas as pd
import structlog

from src.core.enums import HedgeStatus, PositionStatus
from src.routing.decomposition import Leg, Trade
from src.routing.pairs import USD, split_pair

from .hedges import Hedge
from .rates import RateBook

logger = structlog.get_logger(__name__)

UNASSIGNED_PROVIDER = "Unassigned"
FLAT_TOLERANCE = 0.5  # below half a unit a position is flat

PositionKey = tuple[str, str]


@dataclass(frozen=True)
class Position:
    """Aggregated exposure in one currency with one liquidity provider.

    ``current_rate`` is units of the currency per USD; ``mtm_value``,
    ``cost_basis_usd`` and the P&L fields are in USD.
    """

    position_id: str
    currency: str
    liquidity_provider: str
    net_position: float
    current_rate: float | None
    mtm_value: float
    cost_basis_usd: float
    unrealized_pnl: float
    realized_pnl: float
    status: PositionStatus
    trade_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "position_id": self.position_id,
            "currency": self.currency,
            "liquidity_provider": self.liquidity_provider,
            "net_position": self.net_position,
            "current_rate": self.current_rate,
            "mtm_value": self.mtm_value,
            "cost_basis_usd": self.cost_basis_usd,
            "unrealized_pnl": self.unrealized_pnl,
            "realized_pnl": self.realized_pnl,
            "status": self.status.value,
            "trade_ids": list(self.trade_ids),
        }


@dataclass
class _Bucket:
    net: float = 0.0
    cost: float = 0.0
    realized: float = 0.0
    trade_ids: list[str] = field(default_factory=list)

    def post(self, qty: float, cost: float) -> None:
        if qty == 0:
            return
        if self.net == 0 or (qty > 0) == (self.net > 0):
            self.net += qty
            self.cost += cost
            return
        price = cost / qty
        avg = self.cost / self.net
        # signed units closed, same sign as the open position
        closing = min(abs(qty), abs(self.net)) * (1 if self.net > 0 else -1)
        self.realized += closing * (price - avg)
        self.net -= closing
        self.cost -= closing * avg
        remainder = qty + closing
        if remainder != 0:
            self.net += remainder
            self.cost += remainder * price


def position_id(currency: str, liquidity_provider: str) -> str:
    slug = re.sub(r"[^A-Z0-9]+", "-", liquidity_provider.upper()).strip("-")
    return f"POS-{currency}-{slug}"


class PositionAggregator:
    """Builds position summaries from trades.

    Args:
        rates: Rate book for MTM; without it positions are valued at cost.
        hedges: Hedges considered when flagging positions HEDGED.
    """

    def __init__(self, rates: RateBook | None = None, hedges: Iterable[Hedge] = ()) -> None:
        self.rates = rates
        self.hedges = list(hedges)

    def aggregate(self, trades: Iterable[Trade]) -> dict[PositionKey, Position]:
        """Fold *trades* (originals and mirrors) into positions.

        Trades are processed in (trade_date, trade_id) order so the result
        does not depend on input ordering.
        """
        buckets: dict[PositionKey, _Bucket] = {}

        for trade in sorted(trades, key=lambda t: (t.trade_date, t.trade_id)):
            provider = trade.liquidity_provider or UNASSIGNED_PROVIDER
            for leg in trade.legs:
                if trade.is_mirror:
                    currency, qty, cost = USD, leg.usd_position, leg.usd_position
                else:
                    currency, qty = leg.local_currency, leg.local_position
                    cost = self._cost_usd(leg, trade)
                bucket = buckets.setdefault((currency, provider), _Bucket())
                bucket.post(qty, cost)
                if trade.trade_id not in bucket.trade_ids:
                    bucket.trade_ids.append(trade.trade_id)

        positions = {key: self._to_position(key, bucket) for key, bucket in buckets.items()}
        logger.debug("positions_aggregated", positions=len(positions))
        return positions

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cost_usd(self, leg: Leg, trade: Trade) -> float:
        """USD paid (positive) or received (negative) for a leg's local amount."""
        if leg.usd_position != 0:
            return -leg.usd_position
        if leg.local_currency == USD:
            return leg.local_position
        if split_pair(leg.pair)[1] == USD:
            # XXX/USD direct leg: priced in USD at the trade rate
            return leg.local_position * leg.rate
        if trade.usd_equivalent is not None:
            return trade.usd_equivalent * (leg.local_position / trade.original_amount)
        return self._value_usd(leg.local_position, leg.local_currency) or 0.0

    def _value_usd(self, amount: float, currency: str) -> float | None:
        if currency == USD:
            return amount
        if self.rates is None:
            return None
        unit = self.rates.usd_value(currency)
        return amount * unit if unit is not None else None

    def _is_hedged(self, currency: str, provider: str) -> bool:
        for hedge in self.hedges:
            if hedge.status is not HedgeStatus.FULLY_MATCHED:
                continue
            if hedge.liquidity_provider == provider and currency in split_pair(hedge.currency_pair):
                return True
        return False

    def _to_position(self, key: PositionKey, bucket: _Bucket) -> Position:
        currency, provider = key
        net = bucket.net
        mtm = self._value_usd(net, currency)
        if mtm is None:
            mtm = bucket.cost
        current_rate = self.rates.usd_rate(currency) if self.rates is not None else None
        if currency == USD:
            current_rate = 1.0

        if abs(net) < FLAT_TOLERANCE:
            status = PositionStatus.CLOSED
        elif self._is_hedged(currency, provider):
            status = PositionStatus.HEDGED
        else:
            status = PositionStatus.OPEN

        return Position(
            position_id=position_id(currency, provider),
            currency=currency,
            liquidity_provider=provider,
            net_position=net,
            current_rate=current_rate,
            mtm_value=mtm,
            cost_basis_usd=bucket.cost,
            unrealized_pnl=mtm - bucket.cost,
            realized_pnl=bucket.realized,
            status=status,
            trade_ids=tuple(bucket.trade_ids),
        )


# ---------------------------------------------------------------------------
# Roll-ups
# ---------------------------------------------------------------------------


def positions_frame(positions: Iterable[Position]) -> pd.DataFrame:
    """Positions as a DataFrame, one row per (currency, provider)."""
    rows = [p.to_dict() for p in positions]
    columns = [
        "position_id", "currency", "liquidity_provider", "net_position", "current_rate",
        "mtm_value", "cost_basis_usd", "unrealized_pnl", "realized_pnl", "status", "trade_ids",
    ]
    return pd.DataFrame(rows, columns=columns)


def currency_overview(positions: Iterable[Position]) -> list[dict[str, Any]]:
    """Per-currency totals across liquidity providers, sorted by currency."""
    frame = positions_frame(positions)
    if frame.empty:
        return []
    by_currency = frame.groupby("currency", sort=True)
    sums = by_currency[["net_position", "mtm_value", "unrealized_pnl", "realized_pnl"]].sum()
    providers = by_currency["liquidity_provider"].unique()
    return [
        {
            "currency": currency,
            "net_position": float(row["net_position"]),
            "mtm_value": float(row["mtm_value"]),
            "unrealized_pnl": float(row["unrealized_pnl"]),
            "realized_pnl": float(row["realized_pnl"]),
            "liquidity_providers": sorted(providers[currency]),
        }
        for currency, row in sums.iterrows()
    ]


def portfolio_totals(positions: Iterable[Position]) -> dict[str, float]:
    """Dashboard totals: MTM and realized/unrealized/total P&L in USD."""
    items = list(positions)
    realized = sum(p.realized_pnl for p in items)
    unrealized = sum(p.unrealized_pnl for p in items)
    return {
        "total_mtm": sum(p.mtm_value for p in items),
        "total_realized_pnl": realized,
        "total_unrealized_pnl": unrealized,
        "total_pnl": realized + unrealized,
        "open_positions": sum(1 for p in items if p.status is not PositionStatus.CLOSED),
    }

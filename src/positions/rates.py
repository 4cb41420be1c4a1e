"""Market rate book for USD conversion and mark-to-market.

Quotes follow market convention: most pairs are quoted USD/XXX (units of XXX
per dollar) while EUR, GBP, AUD and NZD are quoted XXX/USD. ``usd_rate``
hides the difference and always answers "units of XXX per 1 USD".
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Iterable, Mapping

import structlog

from src.compliance.audit import AuditLog
from src.core.enums import AuditEventType, AuditStatus
from src.routing.errors import InvalidCurrencyCode
from src.routing.pairs import USD, split_pair, validate_currency

logger = structlog.get_logger(__name__)

DEFAULT_RATE_SOURCE = "Reuters"


@dataclass(frozen=True)
class MarketRate:
    pair: str
    bid: float
    ask: float
    mid: float
    change: float = 0.0
    change_pct: float = 0.0
    last_update: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def spread(self) -> float:
        return self.ask - self.bid

    def to_dict(self) -> dict:
        return {
            "pair": self.pair,
            "bid": self.bid,
            "ask": self.ask,
            "mid": self.mid,
            "change": self.change,
            "change_pct": self.change_pct,
            "last_update": self.last_update.isoformat(),
        }


class RateBook:
    """In-memory quote store keyed by quoted pair string.

    Args:
        rates: Initial quotes.
        audit_log: Optional log receiving a RATE_UPDATE event per update batch.
    """

    def __init__(
        self,
        rates: Iterable[MarketRate] = (),
        audit_log: AuditLog | None = None,
    ) -> None:
        self._rates: dict[str, MarketRate] = {}
        for rate in rates:
            split_pair(rate.pair)
            self._rates[rate.pair] = rate
        self.audit_log = audit_log

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def rates(self) -> list[MarketRate]:
        return list(self._rates.values())

    def get(self, pair: str) -> MarketRate | None:
        return self._rates.get(pair)

    def mid(self, pair: str) -> float | None:
        """Mid for *pair* in the requested orientation, inverting if needed."""
        rate = self._rates.get(pair)
        if rate is not None:
            return rate.mid
        base, quote = split_pair(pair)
        inverse = self._rates.get(f"{quote}/{base}")
        if inverse is not None and inverse.mid > 0:
            return 1.0 / inverse.mid
        return None

    def usd_rate(self, currency: str) -> float | None:
        """Units of *currency* per 1 USD, or None when no quote exists."""
        validate_currency(currency)
        if currency == USD:
            return 1.0
        return self.mid(f"{USD}/{currency}")

    def usd_value(self, currency: str) -> float | None:
        """USD value of one unit of *currency*."""
        rate = self.usd_rate(currency)
        return 1.0 / rate if rate else None

    def to_usd(self, amount: float, currency: str) -> float:
        """Convert *amount* of *currency* to USD at current mid.

        Raises:
            InvalidCurrencyCode: If no quote exists for the currency.
        """
        rate = self.usd_rate(currency)
        if not rate:
            raise InvalidCurrencyCode(currency)
        return amount / rate

    def deviation_pct(self, pair: str, rate: float) -> float | None:
        """Absolute percentage distance of *rate* from current mid."""
        mid = self.mid(pair)
        if not mid:
            return None
        return abs((rate - mid) / mid * 100.0)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update_rates(
        self,
        updates: Mapping[str, float],
        user: str = "system",
        source: str = DEFAULT_RATE_SOURCE,
    ) -> list[MarketRate]:
        """Apply new mids, keeping each pair's spread, and audit the batch.

        Unknown pairs are added with a zero spread. The batch is validated in
        full first; a bad pair or mid leaves every quote unchanged.
        """
        for pair, mid in updates.items():
            split_pair(pair)
            if mid <= 0:
                raise ValueError(f"Rate for {pair} must be positive, got {mid}")

        now = datetime.now(timezone.utc)
        applied: list[MarketRate] = []
        for pair, mid in updates.items():
            old = self._rates.get(pair)
            if old is None:
                new = MarketRate(pair=pair, bid=mid, ask=mid, mid=mid, last_update=now)
            else:
                half = old.spread / 2.0
                change = mid - old.mid
                new = replace(
                    old,
                    bid=mid - half,
                    ask=mid + half,
                    mid=mid,
                    change=change,
                    change_pct=(change / old.mid * 100.0) if old.mid else 0.0,
                    last_update=now,
                )
            self._rates[pair] = new
            applied.append(new)

        if self.audit_log is not None and applied:
            self.audit_log.record(
                event_type=AuditEventType.RATE_UPDATE,
                description=f"Market rates updated from {source} feed",
                user=user,
                details={"pairs": len(applied), "source": source},
                status=AuditStatus.COMPLETED,
            )

        logger.info("rates_updated", pairs=len(applied), source=source)
        return applied

    def update_rate(
        self,
        pair: str,
        mid: float,
        user: str = "system",
        source: str = DEFAULT_RATE_SOURCE,
    ) -> MarketRate:
        return self.update_rates({pair: mid}, user=user, source=source)[0]

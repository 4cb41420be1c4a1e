"""Pair decomposition engine.

Decides how a customer trade posts to the ledger:

* DIRECT pairs post as a single leg in the original pair, the whole amount
  in the base currency with no USD position.
* EXOTIC pairs are routed through USD as two legs, ``USD/<base>`` and
  ``USD/<quote>``. USD is a pure intermediary: leg 2's USD position is the
  negation of leg 1's, so the two always net to zero.

Every leg carrying a USD position also yields a synthetic mirror trade
(tagged with the parent trade id) that moves that USD into the USD bucket.

Pure computation -- no state beyond the injected rate source.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

import structlog

from src.core.config import settings
from src.core.enums import LegType, RoutingMode

from .errors import InvalidTradeError
from .pairs import USD, format_pair, split_pair, validate_currency

logger = structlog.get_logger(__name__)


class UsdRateSource(Protocol):
    def usd_rate(self, currency: str) -> float | None: ...


class ModeLookup(Protocol):
    def get_mode(self, base: str, quote: str) -> RoutingMode: ...


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TradeInput:
    """A customer trade before decomposition.

    ``amount`` is signed in the base currency (positive = buying base).
    ``rate`` is the customer rate quoted as units of quote per unit of base.
    ``base_usd_rate`` / ``quote_usd_rate`` optionally pin the USD legs' rates
    (units per USD); otherwise the engine's rate source is used.
    """

    trade_id: str
    base: str
    quote: str
    amount: float
    rate: float
    liquidity_provider: str = ""
    customer_order: str = ""
    trade_date: datetime | None = None
    base_usd_rate: float | None = None
    quote_usd_rate: float | None = None

    @classmethod
    def from_pair(cls, trade_id: str, pair: str, amount: float, rate: float, **kwargs: Any) -> TradeInput:
        base, quote = split_pair(pair)
        return cls(trade_id=trade_id, base=base, quote=quote, amount=amount, rate=rate, **kwargs)


@dataclass(frozen=True)
class Leg:
    """One execution posted to the ledger.

    Attributes:
        pair: Executed pair, e.g. ``USD/MYR`` or ``EUR/SGD``.
        local_currency: Currency that ``local_position`` is denominated in.
        local_position: Signed amount of ``local_currency``.
        usd_position: Signed USD amount (positive = long USD).
        rate: Execution rate of the leg.
        leg_type: BUY_LEG when USD (or, for direct legs, the base) is acquired.
    """

    pair: str
    local_currency: str
    local_position: float
    usd_position: float
    rate: float
    leg_type: LegType

    @property
    def buy_amount(self) -> float:
        return self.local_position if self.local_position > 0 else 0.0

    @property
    def sell_amount(self) -> float:
        return -self.local_position if self.local_position < 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "pair": self.pair,
            "local_currency": self.local_currency,
            "local_position": self.local_position,
            "usd_position": self.usd_position,
            "buy_amount": self.buy_amount,
            "sell_amount": self.sell_amount,
            "rate": self.rate,
            "leg_type": self.leg_type.value,
        }


@dataclass(frozen=True)
class Trade:
    """Immutable decomposed trade."""

    trade_id: str
    trade_date: datetime
    original_pair: str
    original_amount: float
    rate: float
    legs: tuple[Leg, ...]
    mode: RoutingMode
    decomposition_reason: str
    liquidity_provider: str = ""
    customer_order: str = ""
    net_usd_exposure: float = 0.0
    usd_equivalent: float | None = None
    parent_trade_id: str | None = None

    @property
    def is_exotic(self) -> bool:
        """True when the trade was routed through USD as two legs."""
        return len(self.legs) == 2

    @property
    def is_mirror(self) -> bool:
        return self.parent_trade_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "trade_date": self.trade_date.isoformat(),
            "original_pair": self.original_pair,
            "original_amount": self.original_amount,
            "rate": self.rate,
            "legs": [leg.to_dict() for leg in self.legs],
            "mode": self.mode.value,
            "is_exotic": self.is_exotic,
            "decomposition_reason": self.decomposition_reason,
            "liquidity_provider": self.liquidity_provider,
            "customer_order": self.customer_order,
            "net_usd_exposure": self.net_usd_exposure,
            "usd_equivalent": self.usd_equivalent,
            "parent_trade_id": self.parent_trade_id,
        }


def _leg_type(amount: float) -> LegType:
    return LegType.BUY_LEG if amount > 0 else LegType.SELL_LEG


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class DecompositionEngine:
    """Routes trades according to the committed routing configuration.

    Args:
        rates: Source of USD cross rates (units per USD) for exotic legs and
            USD-equivalent reporting. May be None if every exotic trade input
            carries explicit leg rates.
        usd_residual_tolerance: Absolute USD residual treated as rounding noise.
    """

    def __init__(
        self,
        rates: UsdRateSource | None = None,
        usd_residual_tolerance: float | None = None,
    ) -> None:
        self.rates = rates
        self.usd_residual_tolerance = (
            settings.usd_residual_tolerance
            if usd_residual_tolerance is None
            else usd_residual_tolerance
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def decompose(self, trade_input: TradeInput, config: ModeLookup) -> Trade:
        """Turn a customer trade into its ledger legs.

        Args:
            trade_input: The trade to route.
            config: Committed routing configuration (or the store wrapping it).

        Returns:
            The decomposed :class:`Trade`.

        Raises:
            InvalidTradeError: Self-paired trade, zero amount, non-positive
                rate, or a missing USD rate for an exotic leg.
            InvalidCurrencyCode: Malformed currency code.
        """
        base = validate_currency(trade_input.base)
        quote = validate_currency(trade_input.quote)
        if base == quote:
            raise InvalidTradeError(f"Trade {trade_input.trade_id} is self-paired: {base}/{quote}")
        if trade_input.amount == 0:
            raise InvalidTradeError(f"Trade {trade_input.trade_id} has zero amount")
        if trade_input.rate <= 0:
            raise InvalidTradeError(
                f"Trade {trade_input.trade_id} rate must be positive, got {trade_input.rate}"
            )

        mode = config.get_mode(base, quote)
        if mode is RoutingMode.DIRECT:
            legs = (self._direct_leg(trade_input, base, quote),)
            reason = f"Direct pair - {base}/{quote} trades without USD decomposition"
        elif USD in (base, quote):
            # nothing to route through: the pair already is a USD leg
            legs = (self._single_usd_leg(trade_input, base, quote),)
            reason = f"USD pair - {base}/{quote} settles as a single USD leg"
        else:
            legs = self._exotic_legs(trade_input, base, quote)
            buy, sell = (base, quote) if trade_input.amount > 0 else (quote, base)
            reason = f"Exotic pair - USD routing required. Buy {buy}, sell {sell} via USD"

        trade_date = trade_input.trade_date or datetime.now(timezone.utc)
        if trade_date.tzinfo is None:
            # naive timestamps are UTC
            trade_date = trade_date.replace(tzinfo=timezone.utc)

        net_usd = sum(leg.usd_position for leg in legs)
        if len(legs) == 2:
            if abs(net_usd) > self.usd_residual_tolerance:
                logger.warning(
                    "usd_residual_nonzero",
                    trade_id=trade_input.trade_id,
                    residual=net_usd,
                )
            net_usd = 0.0

        trade = Trade(
            trade_id=trade_input.trade_id,
            trade_date=trade_date,
            original_pair=format_pair(base, quote),
            original_amount=trade_input.amount,
            rate=trade_input.rate,
            legs=legs,
            mode=mode,
            decomposition_reason=reason,
            liquidity_provider=trade_input.liquidity_provider,
            customer_order=trade_input.customer_order,
            net_usd_exposure=net_usd,
            usd_equivalent=self._usd_equivalent(trade_input, base),
        )

        logger.info(
            "trade_decomposed",
            trade_id=trade.trade_id,
            pair=trade.original_pair,
            mode=mode.value,
            legs=len(legs),
        )
        return trade

    def mirror_trades(self, trade: Trade) -> list[Trade]:
        """One synthetic USD trade per leg with a USD position, pointing back at *trade*."""
        mirrors = []
        for leg in trade.legs:
            if leg.usd_position == 0:
                continue
            mirrors.append(
                Trade(
                    trade_id=f"{trade.trade_id}-{leg.pair.replace('/', '')}",
                    trade_date=trade.trade_date,
                    original_pair=leg.pair,
                    original_amount=leg.usd_position,
                    rate=leg.rate,
                    legs=(leg,),
                    mode=trade.mode,
                    decomposition_reason=(
                        f"USD leg from {trade.original_pair} trade ({trade.trade_id})"
                    ),
                    liquidity_provider=trade.liquidity_provider,
                    customer_order=trade.customer_order,
                    net_usd_exposure=leg.usd_position,
                    parent_trade_id=trade.trade_id,
                )
            )
        return mirrors

    def decompose_with_mirrors(
        self, trade_input: TradeInput, config: ModeLookup
    ) -> tuple[Trade, list[Trade]]:
        trade = self.decompose(trade_input, config)
        return trade, self.mirror_trades(trade)

    # ------------------------------------------------------------------
    # Leg builders
    # ------------------------------------------------------------------

    @staticmethod
    def _direct_leg(trade_input: TradeInput, base: str, quote: str) -> Leg:
        """Single leg in the original pair, the full amount in the base currency.

        No USD is intermediated; the USD equivalent is reported on the trade,
        not booked as position.
        """
        return Leg(
            pair=format_pair(base, quote),
            local_currency=base,
            local_position=trade_input.amount,
            usd_position=0.0,
            rate=trade_input.rate,
            leg_type=_leg_type(trade_input.amount),
        )

    @staticmethod
    def _single_usd_leg(trade_input: TradeInput, base: str, quote: str) -> Leg:
        """Exotic pair with USD on one side: the other side is local, USD is carried."""
        amount = trade_input.amount
        if base == USD:
            local_currency, local_position, usd_position = quote, -amount * trade_input.rate, amount
        else:
            local_currency, local_position, usd_position = base, amount, -amount * trade_input.rate
        return Leg(
            pair=format_pair(base, quote),
            local_currency=local_currency,
            local_position=local_position,
            usd_position=usd_position,
            rate=trade_input.rate,
            leg_type=_leg_type(usd_position),
        )

    def _exotic_legs(self, trade_input: TradeInput, base: str, quote: str) -> tuple[Leg, Leg]:
        base_rate = self._resolve_usd_rate(trade_input.trade_id, base, trade_input.base_usd_rate)
        quote_rate = self._resolve_usd_rate(trade_input.trade_id, quote, trade_input.quote_usd_rate)

        # Leg 1: buying base spends USD, selling base raises it
        usd_1 = -trade_input.amount / base_rate
        leg_1 = Leg(
            pair=format_pair(USD, base),
            local_currency=base,
            local_position=trade_input.amount,
            usd_position=usd_1,
            rate=base_rate,
            leg_type=_leg_type(usd_1),
        )

        # Leg 2: reverses leg 1's USD flow against the quote currency
        usd_2 = -usd_1
        leg_2 = Leg(
            pair=format_pair(USD, quote),
            local_currency=quote,
            local_position=-(usd_2 * quote_rate),
            usd_position=usd_2,
            rate=quote_rate,
            leg_type=_leg_type(usd_2),
        )
        return leg_1, leg_2

    def _resolve_usd_rate(self, trade_id: str, currency: str, explicit: float | None) -> float:
        rate = explicit
        if rate is None and self.rates is not None:
            rate = self.rates.usd_rate(currency)
        if rate is None or rate <= 0:
            raise InvalidTradeError(f"Trade {trade_id}: no USD rate available for {currency}")
        return rate

    def _usd_equivalent(self, trade_input: TradeInput, base: str) -> float | None:
        rate = trade_input.base_usd_rate
        if rate is None and self.rates is not None:
            rate = self.rates.usd_rate(base)
        if not rate:
            return None
        return trade_input.amount / rate

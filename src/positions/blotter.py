"""Trade blotter.

Books customer trades through the decomposition engine against whatever
routing configuration is committed at booking time. A later configuration
change applies to new trades only; trades already booked keep their legs.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from src.routing.config_store import RoutingConfigStore
from src.routing.decomposition import DecompositionEngine, Trade, TradeInput
from src.routing.errors import InvalidTradeError
from src.routing.pairs import USD, split_pair

from .aggregator import Position, PositionAggregator, PositionKey
from .hedges import Hedge
from .rates import RateBook

logger = structlog.get_logger(__name__)


class TradeBlotter:
    """Booked trades plus the USD mirror trades derived from them.

    Args:
        store: Routing configuration store consulted at booking time.
        engine: Decomposition engine.
        rates: Rate book used to mark positions.
    """

    def __init__(
        self,
        store: RoutingConfigStore,
        engine: DecompositionEngine,
        rates: RateBook | None = None,
    ) -> None:
        self.store = store
        self.engine = engine
        self.rates = rates
        self._trades: list[Trade] = []
        self._mirrors: list[Trade] = []

    @property
    def trades(self) -> list[Trade]:
        """Original (customer) trades in booking order."""
        return list(self._trades)

    @property
    def mirror_trades(self) -> list[Trade]:
        return list(self._mirrors)

    def all_trades(self) -> list[Trade]:
        """Originals and mirrors, as fed to the aggregator."""
        return self._trades + self._mirrors

    def get(self, trade_id: str) -> Trade:
        for trade in self._trades:
            if trade.trade_id == trade_id:
                return trade
        raise KeyError(f"Trade {trade_id} not found")

    def position_currencies(self) -> set[str]:
        """Currencies holding a position bucket: leg local currencies, plus USD
        once any mirror trade exists."""
        currencies = {leg.local_currency for t in self._trades for leg in t.legs}
        if self._mirrors:
            currencies.add(USD)
        return currencies

    def has_positions(self, currency: str) -> bool:
        return currency in self.position_currencies()

    def available_currencies(self) -> list[str]:
        """Every currency seen in positions or in booked pairs, sorted."""
        currencies = self.position_currencies()
        for trade in self._trades:
            currencies.update(split_pair(trade.original_pair))
        return sorted(currencies)

    def next_trade_id(self) -> str:
        numbers = [
            int(t.trade_id.rsplit("-", 1)[-1])
            for t in self._trades
            if t.trade_id.rsplit("-", 1)[-1].isdigit()
        ]
        return f"TRD-{max(numbers, default=0) + 1:04d}"

    def book_trade(self, trade_input: TradeInput) -> Trade:
        """Decompose and store a trade with its mirrors.

        Raises:
            InvalidTradeError: Duplicate trade id or an undecomposable trade.
        """
        if any(t.trade_id == trade_input.trade_id for t in self._trades):
            raise InvalidTradeError(f"Trade {trade_input.trade_id} is already booked")

        config = self.store.current
        trade, mirrors = self.engine.decompose_with_mirrors(trade_input, config)
        self._trades.append(trade)
        self._mirrors.extend(mirrors)

        logger.info(
            "trade_booked",
            trade_id=trade.trade_id,
            pair=trade.original_pair,
            mode=trade.mode.value,
            config_version=config.version,
            mirrors=len(mirrors),
        )
        return trade

    def book_many(self, trade_inputs: Iterable[TradeInput]) -> list[Trade]:
        return [self.book_trade(t) for t in trade_inputs]

    def positions(self, hedges: Iterable[Hedge] = ()) -> dict[PositionKey, Position]:
        """Aggregate every booked trade into positions."""
        aggregator = PositionAggregator(rates=self.rates, hedges=hedges)
        return aggregator.aggregate(self.all_trades())

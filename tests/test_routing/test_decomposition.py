"""Tests for DecompositionEngine.

Covers direct single-leg booking, two-leg USD routing of exotic pairs (USD
nets to zero, leg currencies, rates and signs), single-leg booking of
exotic pairs with a USD side, mirror trade generation, and trade rejection.
"""

from datetime import datetime, timezone

import pytest

from src.core.enums import LegType, RoutingMode
from src.routing.config_store import RoutingConfiguration
from src.routing.decomposition import DecompositionEngine, TradeInput
from src.routing.errors import InvalidCurrencyCode, InvalidTradeError

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def myr_hkd_trade(trade_date) -> TradeInput:
    """Buy 4.5M MYR against HKD at USD/MYR 4.45 and USD/HKD 7.82."""
    return TradeInput(
        trade_id="TRD-0007",
        base="MYR",
        quote="HKD",
        amount=4_500_000,
        rate=1.7573,
        liquidity_provider="Bank of China HK",
        trade_date=trade_date,
        base_usd_rate=4.45,
        quote_usd_rate=7.82,
    )


# =============================================================================
# Direct pairs
# =============================================================================


class TestDirect:
    def test_single_leg_in_original_pair(self, engine, store, trade_date):
        trade = engine.decompose(
            TradeInput("TRD-0002", "EUR", "SGD", 1_000_000, 1.458, trade_date=trade_date),
            store.current,
        )
        assert trade.mode is RoutingMode.DIRECT
        assert trade.is_exotic is False
        assert len(trade.legs) == 1
        leg = trade.legs[0]
        assert leg.pair == "EUR/SGD"
        assert leg.local_currency == "EUR"
        assert leg.local_position == 1_000_000
        assert leg.usd_position == 0.0
        assert leg.leg_type is LegType.BUY_LEG
        assert (leg.buy_amount, leg.sell_amount) == (1_000_000, 0.0)
        assert trade.net_usd_exposure == 0.0
        assert trade.decomposition_reason.startswith("Direct pair")

    def test_sell_direct(self, engine, store, trade_date):
        trade = engine.decompose(
            TradeInput("TRD-0020", "CAD", "SGD", -800_000, 0.988, trade_date=trade_date),
            store.current,
        )
        leg = trade.legs[0]
        assert leg.leg_type is LegType.SELL_LEG
        assert (leg.buy_amount, leg.sell_amount) == (0.0, 800_000)

    def test_usd_pair_direct_books_in_base(self, engine, store, trade_date):
        trade = engine.decompose(
            TradeInput("TRD-0003", "EUR", "USD", -1_800_000, 1.092, trade_date=trade_date),
            store.current,
        )
        leg = trade.legs[0]
        assert leg.pair == "EUR/USD"
        assert leg.local_currency == "EUR"
        assert leg.local_position == -1_800_000
        assert leg.usd_position == 0.0
        assert leg.leg_type is LegType.SELL_LEG

    def test_usd_base_direct_books_usd_amount(self, engine, store, trade_date):
        trade = engine.decompose(
            TradeInput("TRD-0001", "USD", "SGD", 1_500_000, 1.34, trade_date=trade_date),
            store.current,
        )
        (leg,) = trade.legs
        assert leg.pair == "USD/SGD"
        assert leg.local_currency == "USD"
        assert leg.local_position == trade.original_amount
        assert leg.usd_position == 0.0
        assert leg.leg_type is LegType.BUY_LEG
        assert trade.net_usd_exposure == 0.0
        assert trade.usd_equivalent == 1_500_000

    def test_usd_equivalent_reported(self, engine, store, trade_date):
        trade = engine.decompose(
            TradeInput("TRD-0002", "EUR", "SGD", 1_000_000, 1.458, trade_date=trade_date),
            store.current,
        )
        # EUR/USD 1.0852 quoted, so one EUR is worth 1.0852 USD
        assert trade.usd_equivalent == pytest.approx(1_085_200)

    def test_accepts_store_as_mode_lookup(self, engine, store, trade_date):
        trade = engine.decompose(
            TradeInput("T1", "EUR", "SGD", 1, 1.458, trade_date=trade_date), store
        )
        assert trade.mode is RoutingMode.DIRECT


# =============================================================================
# Exotic pairs
# =============================================================================


class TestExotic:
    def test_myr_hkd_two_usd_legs(self, engine, store, myr_hkd_trade):
        trade = engine.decompose(myr_hkd_trade, store.current)
        assert trade.mode is RoutingMode.EXOTIC
        assert trade.is_exotic is True
        leg_1, leg_2 = trade.legs

        assert leg_1.pair == "USD/MYR"
        assert leg_1.local_currency == "MYR"
        assert leg_1.local_position == 4_500_000
        assert leg_1.usd_position == pytest.approx(-1_011_235.96, abs=0.01)
        assert leg_1.rate == 4.45
        assert leg_1.leg_type is LegType.SELL_LEG

        assert leg_2.pair == "USD/HKD"
        assert leg_2.local_currency == "HKD"
        assert leg_2.usd_position == pytest.approx(1_011_235.96, abs=0.01)
        assert leg_2.local_position == pytest.approx(-7_907_865.17, abs=0.01)
        assert leg_2.rate == 7.82
        assert leg_2.leg_type is LegType.BUY_LEG

    def test_usd_nets_to_zero(self, engine, store, myr_hkd_trade):
        trade = engine.decompose(myr_hkd_trade, store.current)
        assert sum(leg.usd_position for leg in trade.legs) == 0.0
        assert trade.net_usd_exposure == 0.0

    @pytest.mark.parametrize("amount", [1.0, -3_000_000, 123_456.789, 9e9])
    def test_usd_nets_to_zero_for_any_amount(self, engine, store, trade_date, amount):
        trade = engine.decompose(
            TradeInput("T", "CNH", "SGD", amount, 0.185, trade_date=trade_date),
            store.current,
        )
        assert trade.legs[0].usd_position + trade.legs[1].usd_position == 0.0

    def test_cnh_sgd_sell(self, engine, store, trade_date):
        trade = engine.decompose(
            TradeInput(
                "TRD-0011", "CNH", "SGD", -3_000_000, 0.185, trade_date=trade_date,
                base_usd_rate=7.245, quote_usd_rate=1.34,
            ),
            store.current,
        )
        leg_1, leg_2 = trade.legs
        assert leg_1.usd_position == pytest.approx(414_078.67, abs=0.01)
        assert leg_2.local_position == pytest.approx(554_865.42, abs=0.01)
        assert trade.decomposition_reason == (
            "Exotic pair - USD routing required. Buy SGD, sell CNH via USD"
        )

    def test_rates_from_rate_book(self, engine, store, trade_date):
        trade = engine.decompose(
            TradeInput("T", "MYR", "HKD", 4_465_000, 1.75, trade_date=trade_date),
            store.current,
        )
        assert trade.legs[0].rate == 4.465
        assert trade.legs[0].usd_position == pytest.approx(-1_000_000)

    def test_missing_rate_raises(self, store, trade_date):
        engine = DecompositionEngine(rates=None)
        with pytest.raises(InvalidTradeError, match="no USD rate"):
            engine.decompose(
                TradeInput("T", "MYR", "HKD", 1_000, 1.75, trade_date=trade_date),
                store.current,
            )

    def test_toggled_pair_decomposes_after_commit(self, engine, store, trade_date):
        trade_input = TradeInput("T", "EUR", "SGD", 1_000_000, 1.458, trade_date=trade_date)
        assert engine.decompose(trade_input, store.current).is_exotic is False
        store.toggle("EUR", "SGD")
        assert engine.decompose(trade_input, store.current).is_exotic is False
        store.commit("alice")
        trade = engine.decompose(trade_input, store.current)
        assert [leg.pair for leg in trade.legs] == ["USD/EUR", "USD/SGD"]

    def test_exotic_usd_pair_books_single_leg(self, engine, store, trade_date):
        # USD/MYR has no configured entry, so it resolves to EXOTIC
        trade = engine.decompose(
            TradeInput("T", "USD", "MYR", 1_000_000, 4.465, trade_date=trade_date),
            store.current,
        )
        assert trade.mode is RoutingMode.EXOTIC
        assert len(trade.legs) == 1
        leg = trade.legs[0]
        assert leg.pair == "USD/MYR"
        assert leg.local_currency == "MYR"
        assert leg.usd_position == 1_000_000
        assert leg.local_position == pytest.approx(-4_465_000)


# =============================================================================
# Mirrors and rejection
# =============================================================================


class TestMirrors:
    def test_one_mirror_per_usd_leg(self, engine, store, myr_hkd_trade):
        trade, mirrors = engine.decompose_with_mirrors(myr_hkd_trade, store.current)
        assert [m.trade_id for m in mirrors] == ["TRD-0007-USDMYR", "TRD-0007-USDHKD"]
        for mirror, leg in zip(mirrors, trade.legs):
            assert mirror.parent_trade_id == "TRD-0007"
            assert mirror.is_mirror is True
            assert mirror.original_amount == leg.usd_position
            assert mirror.trade_date == trade.trade_date
            assert mirror.liquidity_provider == trade.liquidity_provider

    def test_direct_non_usd_has_no_mirror(self, engine, store, trade_date):
        _, mirrors = engine.decompose_with_mirrors(
            TradeInput("T", "EUR", "SGD", 1, 1.458, trade_date=trade_date), store.current
        )
        assert mirrors == []

    def test_direct_usd_pair_has_no_mirror(self, engine, store, trade_date):
        _, mirrors = engine.decompose_with_mirrors(
            TradeInput("TRD-0004", "GBP", "USD", 1_200_000, 1.265, trade_date=trade_date),
            store.current,
        )
        assert mirrors == []

    def test_exotic_usd_pair_mirror_carries_usd_side(self, engine, store, trade_date):
        _, mirrors = engine.decompose_with_mirrors(
            TradeInput("T", "USD", "MYR", 1_000_000, 4.465, trade_date=trade_date),
            store.current,
        )
        (mirror,) = mirrors
        assert mirror.trade_id == "T-USDMYR"
        assert mirror.original_amount == 1_000_000


class TestTradeDate:
    def test_naive_trade_date_read_as_utc(self, engine, store):
        trade = engine.decompose(
            TradeInput("T", "EUR", "SGD", 1_000, 1.458, trade_date=datetime(2024, 6, 3, 9, 30)),
            store.current,
        )
        assert trade.trade_date == datetime(2024, 6, 3, 9, 30, tzinfo=timezone.utc)

    def test_missing_trade_date_defaults_to_now_utc(self, engine, store):
        trade = engine.decompose(TradeInput("T", "EUR", "SGD", 1_000, 1.458), store.current)
        assert trade.trade_date.tzinfo is not None


class TestRejection:
    def test_self_paired(self, engine, store):
        with pytest.raises(InvalidTradeError, match="self-paired"):
            engine.decompose(TradeInput("T", "EUR", "EUR", 1, 1.0), store.current)

    def test_zero_amount(self, engine, store):
        with pytest.raises(InvalidTradeError, match="zero amount"):
            engine.decompose(TradeInput("T", "EUR", "SGD", 0, 1.458), store.current)

    @pytest.mark.parametrize("rate", [0.0, -1.2])
    def test_non_positive_rate(self, engine, store, rate):
        with pytest.raises(InvalidTradeError, match="rate must be positive"):
            engine.decompose(TradeInput("T", "EUR", "SGD", 1, rate), store.current)

    def test_malformed_currency(self, engine, store):
        with pytest.raises(InvalidCurrencyCode):
            engine.decompose(TradeInput("T", "EU", "SGD", 1, 1.0), store.current)

    def test_unconfigured_config_routes_exotic(self, engine, trade_date):
        config = RoutingConfiguration(active_currencies=("EUR", "SGD"))
        trade = engine.decompose(
            TradeInput("T", "EUR", "SGD", 1_000, 1.458, trade_date=trade_date), config
        )
        assert trade.is_exotic is True

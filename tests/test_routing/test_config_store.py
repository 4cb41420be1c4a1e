"""Tests for RoutingConfigStore and staged routing edits.

Covers default initialisation, mode lookup with the EXOTIC fallback, the
pair matrix, atomic replace (validation, version guard, failure leaves state
untouched), staged toggles, currency add/remove, and JSON round-trips.
"""

import threading

import pytest

from src.compliance.audit import AuditLog
from src.core.enums import AuditEventType, RoutingMode
from src.routing.config_store import (
    ADDITIONAL_CURRENCIES,
    G10_CURRENCIES,
    USD_RECOMMENDED_WARNING,
    RoutingConfigStore,
    RoutingConfiguration,
    configuration_warnings,
    default_configuration,
)
from src.routing.errors import (
    ConfigurationConflictError,
    InvalidCurrencyCode,
    ValidationError,
)
from src.routing.pairs import SAME_CURRENCY_REASON


# =============================================================================
# Defaults and lookups
# =============================================================================


class TestDefaultConfiguration:
    def test_active_currencies(self):
        config = default_configuration()
        assert config.active_currencies == G10_CURRENCIES + ADDITIONAL_CURRENCIES
        assert config.hidden_currencies == ()
        assert config.version == 1
        assert config.previous_currencies is None

    def test_g10_pairs_all_direct(self):
        config = default_configuration()
        for i, base in enumerate(G10_CURRENCIES):
            for quote in G10_CURRENCIES[i + 1:]:
                assert config.is_direct(base, quote), f"{base}/{quote}"

    def test_exotic_overrides(self):
        config = default_configuration()
        assert config.get_mode("MYR", "HKD") is RoutingMode.EXOTIC
        assert config.get_mode("SGD", "CNH") is RoutingMode.EXOTIC
        assert config.pair_modes["HKD/MYR"] is RoutingMode.EXOTIC

    def test_pair_count(self):
        # 55 G10 combinations plus the two explicit exotic overrides
        assert len(default_configuration().pair_modes) == 57


class TestLookups:
    def test_get_mode_order_independent(self, store: RoutingConfigStore):
        assert store.get_mode("EUR", "SGD") is store.get_mode("SGD", "EUR")

    def test_unconfigured_pair_falls_back_to_exotic(self, store: RoutingConfigStore):
        assert "MYR/USD" not in store.current.pair_modes
        assert store.get_mode("USD", "MYR") is RoutingMode.EXOTIC
        assert store.is_direct("USD", "MYR") is False

    def test_same_currency_never_direct(self, store: RoutingConfigStore):
        assert store.is_direct("EUR", "EUR") is False
        status = store.pair_status("EUR", "EUR")
        assert status.is_direct is False
        assert status.reason == SAME_CURRENCY_REASON

    def test_pair_status_reasons(self, store: RoutingConfigStore):
        assert store.pair_status("EUR", "SGD").reason.startswith("Direct pair")
        assert store.pair_status("MYR", "HKD").reason.startswith("Exotic pair")

    def test_invalid_code_raises(self, store: RoutingConfigStore):
        with pytest.raises(InvalidCurrencyCode):
            store.get_mode("EURO", "USD")

    def test_matrix_usd_first(self, store: RoutingConfigStore):
        matrix = store.matrix()
        assert len(matrix) == 14
        assert all(len(row) == 14 for row in matrix)
        assert matrix[0][0].base == "USD"
        assert [cell.quote for cell in matrix[0]][:3] == ["USD", "AUD", "CAD"]
        for i, row in enumerate(matrix):
            assert row[i].reason == SAME_CURRENCY_REASON

    def test_pair_modes_read_only(self, store: RoutingConfigStore):
        with pytest.raises(TypeError):
            store.current.pair_modes["EUR/SGD"] = RoutingMode.EXOTIC


# =============================================================================
# Replace
# =============================================================================


class TestReplace:
    def test_replace_bumps_version_and_stamps_actor(self, store: RoutingConfigStore):
        before = store.current
        updated = store.replace(
            ["USD", "EUR", "SGD"],
            {"EUR/SGD": RoutingMode.DIRECT, "SGD/USD": "DIRECT"},
            [],
            "alice@treasury.com",
        )
        assert store.current is updated
        assert updated.version == before.version + 1
        assert updated.modified_by == "alice@treasury.com"
        assert updated.previous_currencies == before.active_currencies
        assert updated.modified_at.tzinfo is not None
        assert updated.config_id == before.config_id

    def test_replace_normalizes_keys(self, store: RoutingConfigStore):
        updated = store.replace(["USD", "SGD"], {"USD/SGD": "direct"}, [], "alice")
        assert dict(updated.pair_modes) == {"SGD/USD": RoutingMode.DIRECT}

    def test_single_currency_rejected(self, store: RoutingConfigStore, audit_log: AuditLog):
        before = store.current
        with pytest.raises(ValidationError, match="At least 2 currencies"):
            store.replace(["USD"], {}, [], "alice")
        assert store.current is before
        assert len(audit_log) == 0

    def test_duplicate_currencies_rejected(self, store: RoutingConfigStore):
        with pytest.raises(ValidationError, match="Duplicate"):
            store.replace(["USD", "EUR", "USD"], {}, [], "alice")

    def test_active_hidden_overlap_rejected(self, store: RoutingConfigStore):
        with pytest.raises(ValidationError, match="both active and hidden"):
            store.replace(["USD", "EUR"], {}, ["EUR"], "alice")

    def test_same_currency_key_rejected(self, store: RoutingConfigStore):
        with pytest.raises(ValidationError, match="Same-currency"):
            store.replace(["USD", "EUR"], {"EUR/EUR": "DIRECT"}, [], "alice")

    def test_unknown_mode_rejected(self, store: RoutingConfigStore):
        with pytest.raises(ValidationError, match="Unknown routing mode"):
            store.replace(["USD", "EUR"], {"EUR/USD": "SOMETIMES"}, [], "alice")

    def test_stale_expected_version_conflicts(self, store: RoutingConfigStore):
        store.replace(["USD", "EUR"], {}, [], "alice", expected_version=1)
        before = store.current
        with pytest.raises(ConfigurationConflictError) as exc_info:
            store.replace(["USD", "SGD"], {}, [], "bob", expected_version=1)
        assert exc_info.value.current_version == 2
        assert store.current is before

    def test_replace_records_configuration_change(
        self, store: RoutingConfigStore, audit_log: AuditLog
    ):
        store.replace(["USD", "EUR"], {}, [], "alice")
        assert len(audit_log) == 1
        assert audit_log.events[0].event_type is AuditEventType.CONFIGURATION_CHANGE

    def test_concurrent_guarded_replaces_one_wins(self, store: RoutingConfigStore):
        results: list[str] = []
        barrier = threading.Barrier(8)

        def worker(i: int) -> None:
            barrier.wait()
            try:
                store.replace(["USD", "EUR"], {}, [], f"user{i}", expected_version=1)
                results.append("ok")
            except ConfigurationConflictError:
                results.append("conflict")

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1
        assert results.count("conflict") == 7
        assert store.current.version == 2


# =============================================================================
# Staged edits
# =============================================================================


class TestStagedEdits:
    def test_toggle_leaves_committed_untouched(self, store: RoutingConfigStore):
        committed = store.current
        assert store.toggle("EUR", "SGD") is RoutingMode.EXOTIC
        assert store.current is committed
        assert store.is_direct("EUR", "SGD") is True
        assert store.modified_pairs == {"EUR/SGD"}

    def test_double_toggle_clears_modification(self, store: RoutingConfigStore):
        store.toggle("EUR", "SGD")
        store.toggle("SGD", "EUR")
        assert store.modified_pairs == set()

    def test_toggle_same_currency_raises(self, store: RoutingConfigStore):
        with pytest.raises(ValidationError, match="same-currency"):
            store.toggle("USD", "USD")

    def test_set_mode_same_currency_raises(self, store: RoutingConfigStore):
        with pytest.raises(ValidationError, match="same-currency"):
            store.begin_edit().set_mode("SGD", "SGD", RoutingMode.DIRECT)

    def test_commit_applies_draft(self, store: RoutingConfigStore, audit_log: AuditLog):
        store.toggle("EUR", "SGD")
        updated = store.commit("alice")
        assert updated.get_mode("EUR", "SGD") is RoutingMode.EXOTIC
        event = audit_log.events[0]
        assert event.details["pairs_changed"] == [
            {"pair": "EUR/SGD", "from": "DIRECT", "to": "EXOTIC"}
        ]
        assert store.modified_pairs == set()

    def test_stale_draft_commit_conflicts(self, store: RoutingConfigStore):
        stale = store.begin_edit()
        fresh = store.begin_edit()
        fresh.toggle("EUR", "JPY")
        fresh.commit("alice")
        stale.toggle("EUR", "GBP")
        with pytest.raises(ConfigurationConflictError):
            stale.commit("bob")
        assert store.is_direct("EUR", "GBP") is True

    def test_add_currency_with_default_mode(self, store: RoutingConfigStore):
        draft = store.begin_edit()
        draft.add_currency("THB", RoutingMode.DIRECT)
        assert "THB" in draft.active_currencies
        assert draft.active_currencies == sorted(draft.active_currencies)
        assert draft.pair_modes["SGD/THB"] is RoutingMode.DIRECT
        assert draft.pair_modes["THB/USD"] is RoutingMode.DIRECT
        assert draft.has_currency_changes is True

        updated = draft.commit("alice")
        assert updated.is_direct("THB", "EUR")

    def test_add_existing_currency_raises(self, store: RoutingConfigStore):
        with pytest.raises(ValidationError, match="already"):
            store.begin_edit().add_currency("EUR")

    def test_remove_currency_hides_and_retains_pairs(self, store: RoutingConfigStore):
        draft = store.begin_edit()
        draft.remove_currency("MYR")
        updated = draft.commit("alice")
        assert "MYR" not in updated.active_currencies
        assert "MYR" in updated.hidden_currencies
        assert updated.pair_modes["HKD/MYR"] is RoutingMode.EXOTIC

    def test_readding_hidden_currency_unhides(self, store: RoutingConfigStore):
        draft = store.begin_edit()
        draft.remove_currency("MYR")
        draft.commit("alice")

        draft = store.begin_edit()
        draft.add_currency("MYR")
        updated = draft.commit("alice")
        assert "MYR" in updated.active_currencies
        assert "MYR" not in updated.hidden_currencies

    def test_readding_currency_applies_new_default_mode(self, store: RoutingConfigStore):
        draft = store.begin_edit()
        draft.remove_currency("MYR")
        draft.commit("alice")

        draft = store.begin_edit()
        draft.add_currency("MYR", RoutingMode.DIRECT)
        updated = draft.commit("alice")
        assert updated.get_mode("HKD", "MYR") is RoutingMode.DIRECT

    def test_reset_to_defaults(self, store: RoutingConfigStore):
        draft = store.begin_edit()
        draft.reset_to_defaults()
        assert draft.active_currencies == list(G10_CURRENCIES)
        assert all(m is RoutingMode.DIRECT for m in draft.pair_modes.values())
        assert draft.hidden_currencies == []

    def test_discard(self, store: RoutingConfigStore):
        draft = store.begin_edit()
        draft.toggle("EUR", "SGD")
        draft.remove_currency("HKD")
        draft.discard()
        assert draft.has_changes is False


# =============================================================================
# Draft advisories
# =============================================================================


class TestDraftWarnings:
    def test_adding_currency_without_positions_warns(self):
        store = RoutingConfigStore(currency_has_positions={"SGD", "USD"}.__contains__)
        draft = store.begin_edit()
        warnings = draft.add_currency("THB")
        assert warnings == ["THB has no active positions in the system"]
        assert draft.warnings == warnings
        assert "THB" in draft.active_currencies

    def test_adding_currency_with_positions_is_quiet(self):
        store = RoutingConfigStore(currency_has_positions=lambda code: True)
        draft = store.begin_edit()
        assert draft.add_currency("THB") == []
        assert draft.warnings == []

    def test_no_position_check_means_no_warning(self, store: RoutingConfigStore):
        assert store.begin_edit().add_currency("THB") == []

    def test_commit_without_usd_warns_but_applies(self, store: RoutingConfigStore):
        draft = store.begin_edit()
        draft.remove_currency("USD")
        updated = draft.commit("alice")
        assert "USD" not in updated.active_currencies
        assert draft.warnings == [USD_RECOMMENDED_WARNING]

    def test_commit_with_usd_has_no_warning(self, store: RoutingConfigStore):
        draft = store.begin_edit()
        draft.toggle("EUR", "SGD")
        draft.commit("alice")
        assert draft.warnings == []

    def test_discard_clears_warnings(self):
        store = RoutingConfigStore(currency_has_positions=lambda code: False)
        draft = store.begin_edit()
        draft.add_currency("THB")
        draft.discard()
        assert draft.warnings == []

    def test_available_to_add_skips_active_and_hidden(self, store: RoutingConfigStore):
        draft = store.begin_edit()
        draft.remove_currency("MYR")
        assert draft.available_to_add(["MYR", "THB", "EUR", "THB", "IDR"]) == ["IDR", "THB"]

    def test_configuration_warnings(self):
        assert configuration_warnings(["EUR", "SGD"]) == [USD_RECOMMENDED_WARNING]
        assert configuration_warnings(["USD", "SGD"]) == []


# =============================================================================
# Serialization
# =============================================================================


class TestSerialization:
    def test_round_trip(self, store: RoutingConfigStore):
        store.replace(["USD", "EUR", "SGD"], {"EUR/SGD": "EXOTIC"}, ["MYR"], "alice")
        config = store.current
        restored = RoutingConfiguration.from_dict(config.to_dict())
        assert restored.active_currencies == config.active_currencies
        assert restored.hidden_currencies == config.hidden_currencies
        assert dict(restored.pair_modes) == dict(config.pair_modes)
        assert restored.version == config.version
        assert restored.previous_currencies == config.previous_currencies
        assert restored.modified_at == config.modified_at

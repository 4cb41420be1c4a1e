"""Routing configuration store.

Holds the committed direct-trading configuration (which currencies are
active, which pairs trade directly) as an immutable snapshot, and lets a
user stage edits against it before committing them in one atomic replace.

The store is an injectable object, not a module global: the API layer owns
one instance, tests build their own.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace as dc_replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping

import structlog

from src.core.enums import RoutingMode

from .errors import ConfigurationConflictError, ValidationError
from .pairs import (
    DIRECT_REASON,
    EXOTIC_REASON,
    SAME_CURRENCY_REASON,
    USD,
    PairStatus,
    normalize,
    usd_first_order,
    validate_currency,
)

if TYPE_CHECKING:
    from .audit_diff import AuditDiffLogger

logger = structlog.get_logger(__name__)

# G10 reference currencies (SGD included) -- all pairwise DIRECT by default
G10_CURRENCIES: tuple[str, ...] = (
    "USD", "EUR", "JPY", "GBP", "AUD", "CAD", "CHF", "NZD", "SEK", "NOK", "SGD",
)
# Regional currencies active at startup; their pairs default to EXOTIC
ADDITIONAL_CURRENCIES: tuple[str, ...] = ("MYR", "HKD", "CNH")
DEFAULT_EXOTIC_OVERRIDES: tuple[tuple[str, str], ...] = (("MYR", "HKD"), ("CNH", "SGD"))

DEFAULT_CONFIG_ID = "default-config"
MIN_ACTIVE_CURRENCIES = 2
USD_RECOMMENDED_WARNING = "USD is recommended to be included in the configuration"


def coerce_mode(value: RoutingMode | str) -> RoutingMode:
    """Accept ``RoutingMode`` members or their case-insensitive string values."""
    if isinstance(value, RoutingMode):
        return value
    try:
        return RoutingMode(str(value).upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown routing mode: {value!r}") from exc


def all_direct_pairs(currencies: Iterable[str]) -> dict[str, RoutingMode]:
    """Every pairwise combination of *currencies* set to DIRECT."""
    codes = list(currencies)
    modes: dict[str, RoutingMode] = {}
    for i, base in enumerate(codes):
        for quote in codes[i + 1:]:
            modes[normalize(base, quote)] = RoutingMode.DIRECT
    return modes


def default_pair_modes() -> dict[str, RoutingMode]:
    modes = all_direct_pairs(G10_CURRENCIES)
    for base, quote in DEFAULT_EXOTIC_OVERRIDES:
        modes[normalize(base, quote)] = RoutingMode.EXOTIC
    return modes


# ---------------------------------------------------------------------------
# RoutingConfiguration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoutingConfiguration:
    """Immutable snapshot of the direct-trading configuration.

    Attributes:
        active_currencies: Currencies shown in the matrix, unique, ordered.
        hidden_currencies: Previously active currencies whose pair entries are
            retained for audit continuity. Disjoint from *active_currencies*.
        pair_modes: Read-only mapping of pair key to routing mode.
        modified_by: Actor who committed this snapshot.
        modified_at: UTC commit time.
        previous_currencies: Active list of the snapshot this one replaced.
        version: Monotonic version used for compare-and-swap commits.
        config_id: Stable identifier of the configuration lineage.
    """

    active_currencies: tuple[str, ...]
    hidden_currencies: tuple[str, ...] = ()
    pair_modes: Mapping[str, RoutingMode] = field(default_factory=dict)
    modified_by: str = "System"
    modified_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    previous_currencies: tuple[str, ...] | None = None
    version: int = 1
    config_id: str = DEFAULT_CONFIG_ID

    def __post_init__(self) -> None:
        frozen = MappingProxyType({k: coerce_mode(v) for k, v in dict(self.pair_modes).items()})
        object.__setattr__(self, "pair_modes", frozen)
        object.__setattr__(self, "active_currencies", tuple(self.active_currencies))
        object.__setattr__(self, "hidden_currencies", tuple(self.hidden_currencies))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def mode_for_key(self, pair_key: str) -> RoutingMode:
        """Resolved mode for a normalized key; unconfigured pairs are EXOTIC."""
        mode = self.pair_modes.get(pair_key)
        if mode is None:
            return RoutingMode.EXOTIC
        return mode

    def get_mode(self, base: str, quote: str) -> RoutingMode:
        return self.mode_for_key(normalize(base, quote))

    def is_direct(self, base: str, quote: str) -> bool:
        if base == quote:
            return False
        return self.get_mode(base, quote) is RoutingMode.DIRECT

    def pair_status(self, base: str, quote: str) -> PairStatus:
        if base == quote:
            validate_currency(base)
            return PairStatus(base, quote, False, SAME_CURRENCY_REASON)
        direct = self.is_direct(base, quote)
        return PairStatus(base, quote, direct, DIRECT_REASON if direct else EXOTIC_REASON)

    def matrix(self) -> list[list[PairStatus]]:
        """Full grid over the active currencies, USD first then alphabetical."""
        ordered = usd_first_order(list(self.active_currencies))
        return [[self.pair_status(base, quote) for quote in ordered] for base in ordered]

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "config_id": self.config_id,
            "version": self.version,
            "active_currencies": list(self.active_currencies),
            "hidden_currencies": list(self.hidden_currencies),
            "pair_modes": {k: v.value for k, v in sorted(self.pair_modes.items())},
            "modified_by": self.modified_by,
            "modified_at": self.modified_at.isoformat(),
            "previous_currencies": (
                list(self.previous_currencies) if self.previous_currencies is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RoutingConfiguration:
        previous = data.get("previous_currencies")
        return cls(
            active_currencies=tuple(data["active_currencies"]),
            hidden_currencies=tuple(data.get("hidden_currencies") or ()),
            pair_modes=dict(data.get("pair_modes") or {}),
            modified_by=data.get("modified_by", "System"),
            modified_at=datetime.fromisoformat(data["modified_at"]),
            previous_currencies=tuple(previous) if previous is not None else None,
            version=int(data.get("version", 1)),
            config_id=data.get("config_id", DEFAULT_CONFIG_ID),
        )


def default_configuration(actor: str = "System") -> RoutingConfiguration:
    """Startup configuration: G10 all DIRECT plus MYR/HKD/CNH with EXOTIC overrides."""
    return RoutingConfiguration(
        active_currencies=G10_CURRENCIES + ADDITIONAL_CURRENCIES,
        hidden_currencies=(),
        pair_modes=default_pair_modes(),
        modified_by=actor,
    )


def validate_configuration(
    active_currencies: Iterable[str],
    pair_modes: Mapping[str, RoutingMode | str],
    hidden_currencies: Iterable[str],
) -> tuple[tuple[str, ...], dict[str, RoutingMode], tuple[str, ...]]:
    """Validate and normalize the inputs of a configuration replace.

    Raises:
        ValidationError: Fewer than two active currencies, duplicates, or a
            currency that is both active and hidden.
        InvalidCurrencyCode: A malformed currency code.
    """
    active = tuple(validate_currency(c) for c in active_currencies)
    if len(active) < MIN_ACTIVE_CURRENCIES:
        raise ValidationError(
            f"At least {MIN_ACTIVE_CURRENCIES} currencies are required for "
            f"direct trading configuration (got {len(active)})"
        )
    duplicates = sorted({c for c in active if active.count(c) > 1})
    if duplicates:
        raise ValidationError(f"Duplicate active currencies: {', '.join(duplicates)}")

    hidden = tuple(dict.fromkeys(validate_currency(c) for c in hidden_currencies))
    overlap = sorted(set(active) & set(hidden))
    if overlap:
        raise ValidationError(
            f"Currencies cannot be both active and hidden: {', '.join(overlap)}"
        )

    modes: dict[str, RoutingMode] = {}
    for key, mode in pair_modes.items():
        base, _, quote = key.partition("/")
        if base == quote:
            raise ValidationError(f"Same-currency pair cannot be configured: {key}")
        modes[normalize(base, quote)] = coerce_mode(mode)
    return active, modes, hidden


def configuration_warnings(active_currencies: Iterable[str]) -> list[str]:
    """Non-blocking advisories for an active currency set about to be committed."""
    if USD not in active_currencies:
        return [USD_RECOMMENDED_WARNING]
    return []


# ---------------------------------------------------------------------------
# Staged edits
# ---------------------------------------------------------------------------


class StagedRoutingChanges:
    """Uncommitted draft of the routing configuration.

    Edits touch only the draft. ``commit`` pushes the whole draft through
    :meth:`RoutingConfigStore.replace` guarded by the version the draft was
    taken from, so a draft built on a stale configuration is refused.

    Advisories (a currency with no positions, USD left out) never block an
    edit; they accumulate in ``warnings`` until the draft is discarded.
    """

    def __init__(self, store: RoutingConfigStore, base: RoutingConfiguration) -> None:
        self._store = store
        self._base = base
        self.active_currencies: list[str] = list(base.active_currencies)
        self.hidden_currencies: list[str] = list(base.hidden_currencies)
        self.pair_modes: dict[str, RoutingMode] = dict(base.pair_modes)
        self.warnings: list[str] = []

    @property
    def base_version(self) -> int:
        return self._base.version

    # ------------------------------------------------------------------
    # Pair edits
    # ------------------------------------------------------------------

    def toggle(self, base: str, quote: str) -> RoutingMode:
        """Flip one pair DIRECT <-> EXOTIC in the draft and return the new mode."""
        if base == quote:
            raise ValidationError(f"Cannot route a same-currency pair: {base}/{quote}")
        key = normalize(base, quote)
        current = self.pair_modes.get(key, RoutingMode.EXOTIC)
        self.pair_modes[key] = current.flipped()
        logger.debug("routing_pair_toggled", pair=key, mode=self.pair_modes[key].value)
        return self.pair_modes[key]

    def set_mode(self, base: str, quote: str, mode: RoutingMode | str) -> None:
        if base == quote:
            raise ValidationError(f"Cannot route a same-currency pair: {base}/{quote}")
        self.pair_modes[normalize(base, quote)] = coerce_mode(mode)

    @property
    def modified_pairs(self) -> set[str]:
        """Pair keys whose staged entry differs from the committed one."""
        committed = self._base.pair_modes
        keys = set(committed) | set(self.pair_modes)
        return {k for k in keys if committed.get(k) != self.pair_modes.get(k)}

    # ------------------------------------------------------------------
    # Currency edits
    # ------------------------------------------------------------------

    def add_currency(
        self, code: str, default_mode: RoutingMode | str = RoutingMode.EXOTIC
    ) -> list[str]:
        """Activate *code* and route all its pairs with *default_mode*.

        Returns:
            Warnings raised by this edit, also appended to ``warnings``.

        Raises:
            ValidationError: If the currency is already active.
        """
        validate_currency(code)
        if code in self.active_currencies:
            raise ValidationError(f"{code} is already in the configuration")
        mode = coerce_mode(default_mode)
        for existing in self.active_currencies:
            self.pair_modes[normalize(code, existing)] = mode
        self.active_currencies = sorted(self.active_currencies + [code])
        self.hidden_currencies = [c for c in self.hidden_currencies if c != code]

        warnings = []
        has_positions = self._store.currency_has_positions
        if has_positions is not None and not has_positions(code):
            warnings.append(f"{code} has no active positions in the system")
        self.warnings.extend(warnings)
        return warnings

    def remove_currency(self, code: str) -> None:
        """Hide *code*; its pair entries stay in the draft."""
        if code not in self.active_currencies:
            raise ValidationError(f"{code} is not an active currency")
        self.active_currencies = [c for c in self.active_currencies if c != code]
        if code not in self.hidden_currencies:
            self.hidden_currencies.append(code)

    def available_to_add(self, candidates: Iterable[str]) -> list[str]:
        """*candidates* that are neither active nor hidden in the draft, sorted."""
        excluded = set(self.active_currencies) | set(self.hidden_currencies)
        return sorted({c for c in candidates if c not in excluded})

    def reset_to_defaults(self) -> None:
        """Replace the draft with the G10 set, all pairs DIRECT, nothing hidden."""
        self.active_currencies = list(G10_CURRENCIES)
        self.pair_modes = all_direct_pairs(G10_CURRENCIES)
        self.hidden_currencies = []

    @property
    def has_currency_changes(self) -> bool:
        return sorted(self.active_currencies) != sorted(self._base.active_currencies)

    @property
    def has_changes(self) -> bool:
        return self.has_currency_changes or bool(self.modified_pairs) or (
            sorted(self.hidden_currencies) != sorted(self._base.hidden_currencies)
        )

    # ------------------------------------------------------------------
    # Commit / discard
    # ------------------------------------------------------------------

    def commit(self, actor: str) -> RoutingConfiguration:
        updated = self._store.replace(
            self.active_currencies,
            self.pair_modes,
            self.hidden_currencies,
            actor,
            expected_version=self.base_version,
        )
        for warning in configuration_warnings(updated.active_currencies):
            logger.warning("routing_config_advisory", version=updated.version, warning=warning)
            self.warnings.append(warning)
        return updated

    def discard(self) -> None:
        """Drop every staged edit, reverting the draft to the committed snapshot."""
        self.active_currencies = list(self._base.active_currencies)
        self.hidden_currencies = list(self._base.hidden_currencies)
        self.pair_modes = dict(self._base.pair_modes)
        self.warnings = []


# ---------------------------------------------------------------------------
# RoutingConfigStore
# ---------------------------------------------------------------------------


class RoutingConfigStore:
    """Owner of the committed routing configuration.

    Args:
        initial: Starting snapshot (defaults to :func:`default_configuration`).
        diff_logger: Optional :class:`AuditDiffLogger`; when present every
            successful replace is diffed and logged inside the same critical
            section as the swap.
        currency_has_positions: Optional predicate used to warn when a draft
            adds a currency nothing is booked in.
    """

    def __init__(
        self,
        initial: RoutingConfiguration | None = None,
        diff_logger: AuditDiffLogger | None = None,
        currency_has_positions: Callable[[str], bool] | None = None,
    ) -> None:
        self._current = initial or default_configuration()
        self._diff_logger = diff_logger
        self.currency_has_positions = currency_has_positions
        self._lock = threading.RLock()
        self._staged: StagedRoutingChanges | None = None

    @property
    def current(self) -> RoutingConfiguration:
        return self._current

    # ------------------------------------------------------------------
    # Read API (delegates to the committed snapshot)
    # ------------------------------------------------------------------

    def get_mode(self, base: str, quote: str) -> RoutingMode:
        return self._current.get_mode(base, quote)

    def is_direct(self, base: str, quote: str) -> bool:
        return self._current.is_direct(base, quote)

    def pair_status(self, base: str, quote: str) -> PairStatus:
        return self._current.pair_status(base, quote)

    def matrix(self) -> list[list[PairStatus]]:
        return self._current.matrix()

    # ------------------------------------------------------------------
    # Staged edits
    # ------------------------------------------------------------------

    def begin_edit(self) -> StagedRoutingChanges:
        """Start a fresh draft from the committed configuration."""
        self._staged = StagedRoutingChanges(self, self._current)
        return self._staged

    @property
    def staged(self) -> StagedRoutingChanges:
        if self._staged is None or self._staged.base_version != self._current.version:
            return self.begin_edit()
        return self._staged

    def toggle(self, base: str, quote: str) -> RoutingMode:
        return self.staged.toggle(base, quote)

    @property
    def modified_pairs(self) -> set[str]:
        return self.staged.modified_pairs

    def commit(self, actor: str) -> RoutingConfiguration:
        return self.staged.commit(actor)

    # ------------------------------------------------------------------
    # Replace
    # ------------------------------------------------------------------

    def replace(
        self,
        active_currencies: Iterable[str],
        pair_modes: Mapping[str, RoutingMode | str],
        hidden_currencies: Iterable[str],
        actor: str,
        expected_version: int | None = None,
    ) -> RoutingConfiguration:
        """Atomically swap in a new configuration snapshot.

        Args:
            active_currencies: New ordered active set (at least two).
            pair_modes: New pair-key -> mode mapping; keys are normalized.
            hidden_currencies: Currencies hidden from the matrix.
            actor: User committing the change.
            expected_version: If given, the committed version must still equal
                this value.

        Returns:
            The new committed :class:`RoutingConfiguration`.

        Raises:
            ValidationError: Invalid inputs; the committed snapshot is unchanged.
            ConfigurationConflictError: *expected_version* is stale.
        """
        active, modes, hidden = validate_configuration(
            active_currencies, pair_modes, hidden_currencies
        )

        with self._lock:
            previous = self._current
            if expected_version is not None and expected_version != previous.version:
                raise ConfigurationConflictError(expected_version, previous.version)

            updated = dc_replace(
                previous,
                active_currencies=active,
                hidden_currencies=hidden,
                pair_modes=modes,
                modified_by=actor,
                modified_at=datetime.now(timezone.utc),
                previous_currencies=previous.active_currencies,
                version=previous.version + 1,
            )
            self._current = updated
            self._staged = None

            if self._diff_logger is not None:
                self._diff_logger.diff(previous, updated, actor)

        logger.info(
            "routing_config_replaced",
            version=updated.version,
            actor=actor,
            currencies=len(active),
            hidden=len(hidden),
            pairs=len(modes),
        )
        return updated

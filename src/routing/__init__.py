"""Direct-trading routing package.

Decides whether a currency pair trades directly or is decomposed into two
USD legs, and keeps the committed routing configuration with its audit trail:
  - normalize / split_pair: canonical PairKey handling
  - RoutingConfigStore: committed snapshot, staged edits, atomic replace
  - DecompositionEngine: trade -> ledger legs (+ USD mirror trades)
  - AuditDiffLogger: configuration diffs as CONFIGURATION_CHANGE events

Usage:
    from src.routing import RoutingConfigStore, DecompositionEngine, TradeInput
"""

from src.routing.audit_diff import AuditDiffLogger, ConfigDiff, PairChange, compute_diff
from src.routing.config_store import (
    RoutingConfigStore,
    RoutingConfiguration,
    StagedRoutingChanges,
    default_configuration,
)
from src.routing.decomposition import DecompositionEngine, Leg, Trade, TradeInput
from src.routing.errors import (
    ConfigurationConflictError,
    InvalidCurrencyCode,
    InvalidTradeError,
    TreasuryError,
    ValidationError,
)
from src.routing.pairs import PairStatus, normalize, split_pair

__all__ = [
    "AuditDiffLogger",
    "ConfigDiff",
    "PairChange",
    "compute_diff",
    "RoutingConfigStore",
    "RoutingConfiguration",
    "StagedRoutingChanges",
    "default_configuration",
    "DecompositionEngine",
    "Leg",
    "Trade",
    "TradeInput",
    "ConfigurationConflictError",
    "InvalidCurrencyCode",
    "InvalidTradeError",
    "TreasuryError",
    "ValidationError",
    "PairStatus",
    "normalize",
    "split_pair",
]

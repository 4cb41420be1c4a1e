"""Root pytest configuration and shared fixtures.

Provides common test fixtures used across all test modules:
- audit_log: empty in-memory AuditLog
- rate_book: RateBook loaded with the seed market quotes
- store: default RoutingConfigStore wired to audit_log through an AuditDiffLogger
- engine: DecompositionEngine reading USD rates from rate_book
- trade_date: fixed UTC timestamp for deterministic trade ordering
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.compliance.audit import AuditLog
from src.positions.rates import RateBook
from src.positions.seed_data import market_rates
from src.routing.audit_diff import AuditDiffLogger
from src.routing.config_store import RoutingConfigStore
from src.routing.decomposition import DecompositionEngine


@pytest.fixture
def trade_date() -> datetime:
    return datetime(2024, 6, 3, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def audit_log() -> AuditLog:
    """Fresh in-memory audit log (no JSONL mirror)."""
    return AuditLog()


@pytest.fixture
def rate_book(audit_log: AuditLog) -> RateBook:
    """RateBook with the seed quotes; rate updates audit into audit_log."""
    return RateBook(market_rates(), audit_log=audit_log)


@pytest.fixture
def store(audit_log: AuditLog) -> RoutingConfigStore:
    """Default configuration: G10 all DIRECT plus MYR/HKD/CNH."""
    return RoutingConfigStore(diff_logger=AuditDiffLogger(audit_log))


@pytest.fixture
def engine(rate_book: RateBook) -> DecompositionEngine:
    return DecompositionEngine(rates=rate_book)

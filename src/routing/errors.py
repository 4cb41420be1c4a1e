"""Error taxonomy for the routing engine.

All errors derive from ValueError so callers that already guard workflow
calls with ``except ValueError`` keep working. None of them are retryable:
every operation is pure computation over in-memory data, and a failed call
leaves all state untouched.
"""

from __future__ import annotations


class TreasuryError(ValueError):
    """Base class for treasury domain errors."""


class InvalidCurrencyCode(TreasuryError):
    """A currency code is empty or not three ASCII letters."""

    def __init__(self, code: object) -> None:
        self.code = code
        super().__init__(f"Invalid currency code: {code!r}")


class InvalidTradeError(TreasuryError):
    """A trade cannot be decomposed (self-paired, zero amount, missing rate)."""


class ValidationError(TreasuryError):
    """A routing configuration failed validation."""


class ConfigurationConflictError(TreasuryError):
    """The committed configuration moved on since the caller read it."""

    def __init__(self, expected_version: int, current_version: int) -> None:
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Configuration version {expected_version} is stale "
            f"(current version: {current_version})"
        )

"""Shared enumerations used across the treasury engine and API.

All enums use the (str, Enum) mixin pattern so their values are
serializable strings, compatible with JSON output and audit records.
"""

from enum import Enum


class RoutingMode(str, Enum):
    """How a currency pair is executed."""

    DIRECT = "DIRECT"
    EXOTIC = "EXOTIC"

    def flipped(self) -> "RoutingMode":
        return RoutingMode.EXOTIC if self is RoutingMode.DIRECT else RoutingMode.DIRECT


class LegType(str, Enum):
    """Direction of a leg. BUY_LEG means USD (or the base currency) is acquired."""

    BUY_LEG = "BUY_LEG"
    SELL_LEG = "SELL_LEG"


class PositionStatus(str, Enum):
    """Lifecycle status of an aggregated position."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    HEDGED = "HEDGED"


class AuditEventType(str, Enum):
    """Canonical event types captured by the audit log."""

    POSITION_RESET = "POSITION_RESET"
    HEDGE_ENTRY = "HEDGE_ENTRY"
    APPROVAL = "APPROVAL"
    RATE_UPDATE = "RATE_UPDATE"
    CONFIGURATION_CHANGE = "CONFIGURATION_CHANGE"


class AuditStatus(str, Enum):
    """Outcome recorded on an audit event."""

    COMPLETED = "COMPLETED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class HedgeType(str, Enum):
    """Instrument used for a manual hedge."""

    SPOT = "SPOT"
    FORWARD = "FORWARD"
    SWAP = "SWAP"
    NDF = "NDF"
    OPTION = "OPTION"


class HedgeStatus(str, Enum):
    """Matching / authorisation status of a manual hedge."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    UNMATCHED = "UNMATCHED"
    PARTIALLY_MATCHED = "PARTIALLY_MATCHED"
    FULLY_MATCHED = "FULLY_MATCHED"


class ResetStatus(str, Enum):
    """Two-level approval states of a position reset request."""

    PENDING = "PENDING"
    FIRST_APPROVED = "FIRST_APPROVED"
    EXECUTED = "EXECUTED"
    REJECTED = "REJECTED"

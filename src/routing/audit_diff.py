"""Configuration change auditing.

Compares two routing configuration snapshots and records the difference as
one CONFIGURATION_CHANGE event at the head of the audit log.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from src.compliance.audit import AuditEvent, AuditLog
from src.core.enums import AuditEventType, AuditStatus, RoutingMode

from .config_store import RoutingConfiguration

logger = structlog.get_logger(__name__)

IMPACT_SCOPE = "Applies to new trades only"


@dataclass(frozen=True)
class PairChange:
    pair: str
    from_mode: RoutingMode
    to_mode: RoutingMode

    def to_dict(self) -> dict[str, str]:
        return {"pair": self.pair, "from": self.from_mode.value, "to": self.to_mode.value}


@dataclass(frozen=True)
class ConfigDiff:
    """Structured difference between two configuration snapshots."""

    currencies_added: tuple[str, ...]
    currencies_removed: tuple[str, ...]
    pairs_changed: tuple[PairChange, ...]

    @property
    def is_empty(self) -> bool:
        return not (self.currencies_added or self.currencies_removed or self.pairs_changed)


def compute_diff(previous: RoutingConfiguration, new: RoutingConfiguration) -> ConfigDiff:
    """Set differences of the active lists plus every pair whose resolved mode moved.

    Order of the active lists is preserved in ``currencies_added`` /
    ``currencies_removed``; pair changes are sorted by pair key.
    """
    prev_active = set(previous.active_currencies)
    new_active = set(new.active_currencies)
    added = tuple(c for c in new.active_currencies if c not in prev_active)
    removed = tuple(c for c in previous.active_currencies if c not in new_active)

    changes = []
    for key in sorted(set(previous.pair_modes) | set(new.pair_modes)):
        before = previous.mode_for_key(key)
        after = new.mode_for_key(key)
        if before is not after:
            changes.append(PairChange(key, before, after))

    return ConfigDiff(added, removed, tuple(changes))


class AuditDiffLogger:
    """Turns configuration replacements into audit events.

    Args:
        audit_log: The append-only log that events are prepended to.
    """

    def __init__(self, audit_log: AuditLog) -> None:
        self.audit_log = audit_log

    def diff(
        self,
        previous: RoutingConfiguration,
        new: RoutingConfiguration,
        actor: str,
    ) -> AuditEvent:
        """Record the change from *previous* to *new* and return the event."""
        change = compute_diff(previous, new)
        details: dict[str, Any] = {
            "previous_currencies": list(previous.active_currencies),
            "new_currencies": list(new.active_currencies),
            "currencies_added": list(change.currencies_added),
            "currencies_removed": list(change.currencies_removed),
            "hidden_currencies": list(new.hidden_currencies),
            "pairs_changed": [p.to_dict() for p in change.pairs_changed],
            "total_pairs_modified": len(change.pairs_changed),
            "impact_scope": IMPACT_SCOPE,
            "previous_version": previous.version,
            "new_version": new.version,
        }

        event = self.audit_log.record(
            event_type=AuditEventType.CONFIGURATION_CHANGE,
            description="Direct Trading configuration updated",
            user=actor,
            details=details,
            status=AuditStatus.COMPLETED,
        )

        logger.info(
            "routing_config_diff_logged",
            event_id=event.event_id,
            added=len(change.currencies_added),
            removed=len(change.currencies_removed),
            pairs_changed=len(change.pairs_changed),
        )
        return event

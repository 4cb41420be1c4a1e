"""Append-only audit trail for treasury events.

Events are held in memory, newest first, and may be mirrored to a JSONL
file. Each record carries a SHA-256 checksum over its canonical fields so
downstream consumers can verify integrity.

The log never edits or reorders an event once recorded: new events are
prepended and that is the only mutation it supports.
"""

from __future__ import annotations

import copy
import hashlib
import itertools
import json
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import pandas as pd
import structlog

from src.core.enums import AuditEventType, AuditStatus

logger = structlog.get_logger(__name__)

DEFAULT_AUDIT_FILE = "audit.jsonl"

EXPORT_COLUMNS = ["event_id", "timestamp", "event_type", "description", "user", "status", "details"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _enum_value(value: Any) -> str:
    return str(value.value if hasattr(value, "value") else value)


def _compute_checksum(
    event_id: str,
    timestamp: datetime,
    event_type: str,
    description: str,
    user: str,
    details: dict[str, Any],
    status: str,
) -> str:
    """Compute SHA-256 over the canonical fields of an audit event."""
    canonical_fields = [
        event_id,
        timestamp.isoformat(),
        event_type,
        description,
        user,
        json.dumps(details, sort_keys=True, default=str),
        status,
    ]
    payload = "|".join(canonical_fields).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


# ---------------------------------------------------------------------------
# AuditEvent
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditEvent:
    """Immutable audit record.

    Attributes:
        event_id: Sequential identifier, e.g. ``AUD-0007``.
        timestamp: UTC time the event was recorded.
        event_type: One of :class:`AuditEventType`.
        description: Human-readable summary.
        user: Who triggered the event (user id or ``System``).
        details: Structured payload, deep-copied at construction.
        status: One of :class:`AuditStatus`.
        checksum: SHA-256 over all of the above.
    """

    event_id: str
    timestamp: datetime
    event_type: AuditEventType
    description: str
    user: str
    details: dict[str, Any] = field(default_factory=dict)
    status: AuditStatus = AuditStatus.COMPLETED
    checksum: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "description": self.description,
            "user": self.user,
            "details": copy.deepcopy(self.details),
            "status": self.status.value,
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEvent:
        return cls(
            event_id=data["event_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            event_type=AuditEventType(data["event_type"]),
            description=data["description"],
            user=data["user"],
            details=copy.deepcopy(data.get("details") or {}),
            status=AuditStatus(data["status"]),
            checksum=data.get("checksum", ""),
        )

    def verify(self) -> bool:
        """Return True if the checksum still matches the event content."""
        return self.checksum == _compute_checksum(
            self.event_id,
            self.timestamp,
            self.event_type.value,
            self.description,
            self.user,
            self.details,
            self.status.value,
        )


# ---------------------------------------------------------------------------
# AuditLog
# ---------------------------------------------------------------------------


class AuditLog:
    """In-memory, newest-first audit trail with optional JSONL mirror.

    Args:
        audit_dir: If given, every recorded event is also appended to
            ``<audit_dir>/<audit_file>``. File failures are logged but never
            propagated; the in-memory log is the primary store.
        audit_file: Filename within *audit_dir*.
    """

    def __init__(
        self,
        audit_dir: str | None = None,
        audit_file: str = DEFAULT_AUDIT_FILE,
    ) -> None:
        self._events: list[AuditEvent] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._audit_path: str | None = None
        if audit_dir:
            Path(audit_dir).mkdir(parents=True, exist_ok=True)
            self._audit_path = os.path.join(audit_dir, audit_file)

        logger.info("audit_log.init", audit_path=self._audit_path)

    # ------------------------------------------------------------------
    # Core logging
    # ------------------------------------------------------------------

    def record(
        self,
        event_type: AuditEventType | str,
        description: str,
        user: str,
        details: dict[str, Any] | None = None,
        status: AuditStatus | str = AuditStatus.COMPLETED,
        timestamp: datetime | None = None,
    ) -> AuditEvent:
        """Create an immutable event and prepend it to the log.

        Args:
            event_type: One of :class:`AuditEventType` or its string value.
            description: Human-readable summary of what happened.
            user: Who or what triggered the event.
            details: Structured context; deep-copied so later mutation of the
                caller's dict cannot alter the record.
            status: Outcome of the action.
            timestamp: Override for back-dated seed events (defaults to now).

        Returns:
            The recorded :class:`AuditEvent`.
        """
        et = AuditEventType(_enum_value(event_type))
        st = AuditStatus(_enum_value(status))
        ts = timestamp or datetime.now(timezone.utc)
        payload = copy.deepcopy(details or {})

        with self._lock:
            event_id = f"AUD-{next(self._ids):04d}"
            event = AuditEvent(
                event_id=event_id,
                timestamp=ts,
                event_type=et,
                description=description,
                user=user,
                details=payload,
                status=st,
                checksum=_compute_checksum(
                    event_id, ts, et.value, description, user, payload, st.value
                ),
            )
            self._events.insert(0, event)

        self._write_jsonl(event)

        logger.info(
            "audit_log.event",
            event_id=event.event_id,
            event_type=et.value,
            user=user,
            status=st.value,
            checksum=event.checksum[:12],
        )
        return event

    # ------------------------------------------------------------------
    # Query / retrieval
    # ------------------------------------------------------------------

    @property
    def events(self) -> list[AuditEvent]:
        """Snapshot of all events, most recent first."""
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def get(self, event_id: str) -> AuditEvent | None:
        return next((e for e in self._events if e.event_id == event_id), None)

    def filter(
        self,
        event_type: AuditEventType | str | None = None,
        status: AuditStatus | str | None = None,
        user: str | None = None,
    ) -> list[AuditEvent]:
        """Client-side filtering, newest first.

        Event type and status match exactly; *user* is a case-insensitive
        substring match. ``None``, empty strings and ``"all"`` disable a filter.
        """
        et = _enum_value(event_type) if event_type not in (None, "", "all") else None
        st = _enum_value(status) if status not in (None, "", "all") else None
        needle = user.lower() if user else None

        results = []
        for event in self._events:
            if et and event.event_type.value != et:
                continue
            if st and event.status.value != st:
                continue
            if needle and needle not in event.user.lower():
                continue
            results.append(event)
        return results

    # ------------------------------------------------------------------
    # Serialization / export
    # ------------------------------------------------------------------

    def to_json(self) -> str:
        """Serialize the whole log (newest first) as a JSON array."""
        return json.dumps([e.to_dict() for e in self._events], default=str)

    @classmethod
    def load_json(cls, payload: str, audit_dir: str | None = None) -> AuditLog:
        """Rebuild a log from :meth:`to_json` output, preserving order and ids."""
        log = cls(audit_dir=audit_dir)
        events = [AuditEvent.from_dict(item) for item in json.loads(payload)]
        log._events = events
        highest = max((int(e.event_id.split("-")[-1]) for e in events), default=0)
        log._ids = itertools.count(highest + 1)
        return log

    def to_dataframe(self, events: Iterable[AuditEvent] | None = None) -> pd.DataFrame:
        """Tabular view of *events* (default: the whole log)."""
        rows = []
        for event in self._events if events is None else events:
            row = event.to_dict()
            row["details"] = json.dumps(row["details"], sort_keys=True, default=str)
            rows.append({col: row[col] for col in EXPORT_COLUMNS})
        return pd.DataFrame(rows, columns=EXPORT_COLUMNS)

    def to_csv(self, events: Iterable[AuditEvent] | None = None) -> str:
        """CSV export of *events* (default: the whole log)."""
        return self.to_dataframe(events).to_csv(index=False)

    # ------------------------------------------------------------------
    # Internal write methods
    # ------------------------------------------------------------------

    def _write_jsonl(self, event: AuditEvent) -> None:
        """Append a single JSON line to the mirror file."""
        if self._audit_path is None:
            return
        try:
            with open(self._audit_path, "a", encoding="utf-8") as fh:
                fh.write(json.dumps(event.to_dict(), default=str) + "\n")
        except OSError as exc:
            logger.error(
                "audit_log.file_write_error",
                error=str(exc),
                event_id=event.event_id,
            )

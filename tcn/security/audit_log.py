"""Audit logging for banshare actions.

Every committed transition produces exactly one immutable entry. Entries are
appended as newline-delimited JSON to daily files under
``~/.tcn/audit_logs/``.
"""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional

from tcn.storage import store_dir


class AuditAction(str, Enum):
    BANSHARES_CREATE = "banshares/create"
    BANSHARES_SEVERITY = "banshares/severity"
    BANSHARES_REJECT = "banshares/reject"
    BANSHARES_PUBLISH = "banshares/publish"
    BANSHARES_RESCIND = "banshares/rescind"
    BANSHARES_EXECUTE = "banshares/execute"
    BANSHARES_SETTINGS = "banshares/settings"
    BANSHARES_LOGS_ADD = "banshares/logs/add"
    BANSHARES_LOGS_REMOVE = "banshares/logs/remove"
    BANSHARES_CROSSPOST = "banshares/crosspost"
    BANSHARES_REPORT = "banshares/report"
    BANSHARES_DELETE = "banshares/delete"


@dataclass(frozen=True)
class AuditEntry:
    """A single audit log entry."""

    id: str
    timestamp: str
    actor: str
    action: str
    subject: str
    changes: dict[str, list] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None


class AuditLogger:
    """Append-only audit trail, one ``YYYY-MM-DD.jsonl`` file per UTC day."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._dir = store_dir(base_dir, "audit_logs")
        self._lock = threading.Lock()

    def _day_file(self, when: datetime) -> Path:
        return self._dir / when.strftime("%Y-%m-%d.jsonl")

    def _entries(self) -> Iterator[AuditEntry]:
        for day in sorted(self._dir.glob("*.jsonl")):
            with day.open(encoding="utf-8") as fh:
                for line in fh:
                    if line.strip():
                        yield AuditEntry(**json.loads(line))

    def log_event(
        self,
        actor: str,
        action: AuditAction | str,
        subject: str,
        changes: Optional[dict[str, list]] = None,
        data: Optional[dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> AuditEntry:
        """Append one entry. ``action`` must be a known ``AuditAction``."""
        when = datetime.now(timezone.utc)
        entry = AuditEntry(
            id=uuid.uuid4().hex[:16],
            timestamp=when.isoformat(),
            actor=actor,
            action=AuditAction(action).value,
            subject=subject,
            changes=changes or {},
            data=data or {},
            reason=reason or None,
        )
        line = json.dumps(asdict(entry), default=str)
        with self._lock, self._day_file(when).open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
        return entry

    def get_events(
        self,
        *,
        actor: Optional[str] = None,
        action: Optional[AuditAction | str] = None,
        subject: Optional[str] = None,
        limit: int = 200,
    ) -> list[AuditEntry]:
        """Return matching entries, newest first."""
        wanted = AuditAction(action).value if action else None
        matches = [
            e
            for e in self._entries()
            if (actor is None or e.actor == actor)
            and (wanted is None or e.action == wanted)
            and (subject is None or e.subject == subject)
        ]
        matches.sort(key=lambda e: e.timestamp, reverse=True)
        return matches[:limit]

"""File-based JSON storage for banshares.

Callers never mutate records directly. Every write goes through
``update_where``, which applies a change only if the record still matches
the expected status (and an optional extra condition) at the moment of the
write. Two concurrent review actions on one banshare therefore cannot both
succeed: the loser sees ``None`` and reports an invalid state.

Storage path: ``~/.tcn/banshares/`` with:
- ``banshares.json`` -- list of banshare dicts
- ``deleted_banshares.json`` -- archive of purged banshares
"""

from __future__ import annotations

import copy
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from tcn.banshares.crossposts import merge_crossposts
from tcn.banshares.models import Banshare, BanshareStatus, Crosspost, Report
from tcn.errors import DuplicateError
from tcn.storage import JsonListFile, store_dir

Condition = Callable[[dict], bool]


class BanshareStore:
    """Banshare persistence with status-guarded atomic updates."""

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        base = store_dir(base_dir, "banshares")
        # One lock guards both files so archiving is atomic
        self._lock = threading.RLock()
        self._banshares = JsonListFile(base / "banshares.json", self._lock)
        self._deleted = JsonListFile(base / "deleted_banshares.json", self._lock)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _find(records: list[dict], message: str) -> Optional[dict]:
        for r in records:
            if r["message"] == message:
                return r
        return None

    @staticmethod
    def _to_dict(b: Banshare) -> dict:
        d = asdict(b)
        d["status"] = b.status.value
        d["severity"] = b.severity.value
        d["idList"] = d.pop("id_list")
        return d

    @staticmethod
    def _from_dict(d: dict) -> Banshare:
        return Banshare(
            message=d["message"],
            status=d["status"],
            urgent=d.get("urgent", False),
            severity=d["severity"],
            ids=d.get("ids", ""),
            id_list=list(d.get("idList", d.get("id_list", []))),
            reason=d.get("reason", ""),
            evidence=d.get("evidence", ""),
            server=d.get("server", ""),
            author=d.get("author", ""),
            created=d.get("created", 0),
            reminded=d.get("reminded", 0),
            publisher=d.get("publisher"),
            rejecter=d.get("rejecter"),
            rescinder=d.get("rescinder"),
            explanation=d.get("explanation"),
            crossposts=[Crosspost(**c) for c in d.get("crossposts", [])],
            executors=dict(d.get("executors", {})),
            reports=[Report(**r) for r in d.get("reports", [])],
            version=d.get("version", 0),
        )

    @staticmethod
    def _apply(record: dict, set_fields: dict[str, Any], unset_fields: Iterable[str]) -> None:
        """Apply ``$set``/``$unset``-style changes. ``a.b`` addresses a nested key."""
        for path, value in set_fields.items():
            head, _, tail = path.partition(".")
            if tail:
                record.setdefault(head, {})[tail] = value
            else:
                record[head] = value
        for path in unset_fields:
            head, _, tail = path.partition(".")
            if tail:
                record.get(head, {}).pop(tail, None)
            else:
                record[head] = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, message: str) -> Optional[Banshare]:
        """Look up a banshare by message ID. Returns None if not found."""
        d = self._find(self._banshares.read(), message)
        return self._from_dict(d) if d is not None else None

    def exists(self, message: str) -> bool:
        return self._find(self._banshares.read(), message) is not None

    def list_banshares(self, status: Optional[BanshareStatus] = None) -> list[Banshare]:
        """Return all banshares, optionally filtered by status."""
        records = self._banshares.read()
        if status is not None:
            records = [r for r in records if r.get("status") == BanshareStatus(status).value]
        return [self._from_dict(r) for r in records]

    def list_messages(self, status: Optional[BanshareStatus] = None) -> list[str]:
        return [b.message for b in self.list_banshares(status)]

    def list_deleted(self) -> list[Banshare]:
        return [self._from_dict(r) for r in self._deleted.read()]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, banshare: Banshare) -> Banshare:
        """Persist a new banshare. Raises ``DuplicateError`` if the key is taken."""
        with self._lock:
            records = self._banshares.read()
            if self._find(records, banshare.message) is not None:
                raise DuplicateError(f"A banshare with message ID {banshare.message} already exists.")
            records.append(self._to_dict(banshare))
            self._banshares.write(records)
        return banshare

    def update_where(
        self,
        message: str,
        expected_status: Optional[BanshareStatus],
        set_fields: Optional[dict[str, Any]] = None,
        unset_fields: Iterable[str] = (),
        condition: Optional[Condition] = None,
    ) -> Optional[Banshare]:
        """Atomically update a banshare if it still matches.

        The update is applied only if the record exists, its status equals
        *expected_status* (``None`` skips the status check) and *condition*,
        if given, holds for the stored dict. Returns the record as it was
        **before** the update, or None if nothing was written.
        """
        with self._lock:
            records = self._banshares.read()
            record = self._find(records, message)
            if record is None:
                return None
            if expected_status is not None and record.get("status") != BanshareStatus(expected_status).value:
                return None
            if condition is not None and not condition(record):
                return None
            before = self._from_dict(copy.deepcopy(record))
            self._apply(record, set_fields or {}, unset_fields)
            record["version"] = record.get("version", 0) + 1
            self._banshares.write(records)
            return before

    def transition(
        self,
        message: str,
        expected: BanshareStatus,
        target: BanshareStatus,
        set_fields: Optional[dict[str, Any]] = None,
        unset_fields: Iterable[str] = (),
        condition: Optional[Condition] = None,
    ) -> Optional[Banshare]:
        """Move a banshare from *expected* to *target* status.

        Only edges of the status DAG are allowed; compensating reverts go
        through ``update_where`` directly.
        """
        if not BanshareStatus(expected).can_transition(BanshareStatus(target)):
            raise ValueError(f"{expected.value} -> {target.value} is not a valid banshare transition")
        fields = {"status": BanshareStatus(target).value, **(set_fields or {})}
        return self.update_where(message, expected, fields, unset_fields, condition)

    def add_executor(self, message: str, guild: str, user: str) -> Optional[Banshare]:
        """Record *user* as the executor in *guild* if the banshare is published
        and nobody has executed it there yet."""
        return self.update_where(
            message,
            BanshareStatus.published,
            {f"executors.{guild}": user},
            condition=lambda r: guild not in (r.get("executors") or {}),
        )

    def remove_executor(self, message: str, guild: str, user: str) -> bool:
        """Undo ``add_executor``; only removes the entry if it is still *user*'s."""
        before = self.update_where(
            message,
            None,
            unset_fields=[f"executors.{guild}"],
            condition=lambda r: (r.get("executors") or {}).get(guild) == user,
        )
        return before is not None

    def append_crossposts(self, message: str, entries: list[Crosspost]) -> Optional[list[Crosspost]]:
        """Append crossposts for guilds not yet present.

        Returns the entries that were added (possibly empty), or None if the
        banshare does not exist.
        """
        with self._lock:
            records = self._banshares.read()
            record = self._find(records, message)
            if record is None:
                return None
            existing = [Crosspost(**c) for c in record.get("crossposts", [])]
            added = merge_crossposts(existing, entries)
            if added:
                record["crossposts"] = [asdict(c) for c in existing + added]
                record["version"] = record.get("version", 0) + 1
                self._banshares.write(records)
            return added

    def append_report(self, message: str, report: Report) -> bool:
        """Append an abuse report. Returns False if the banshare does not exist."""
        with self._lock:
            records = self._banshares.read()
            record = self._find(records, message)
            if record is None:
                return False
            record.setdefault("reports", []).append(asdict(report))
            record["version"] = record.get("version", 0) + 1
            self._banshares.write(records)
            return True

    def mark_reminded(self, now: int, urgent_before: int, normal_before: int) -> list[str]:
        """Stamp ``reminded=now`` on pending banshares that are overdue.

        Urgent banshares are overdue once reminded before *urgent_before*,
        others once reminded before *normal_before*. Returns the stamped
        message IDs.
        """
        touched: list[str] = []
        with self._lock:
            records = self._banshares.read()
            for r in records:
                if r.get("status") != BanshareStatus.pending.value:
                    continue
                threshold = urgent_before if r.get("urgent") else normal_before
                if r.get("reminded", 0) < threshold:
                    r["reminded"] = now
                    r["version"] = r.get("version", 0) + 1
                    touched.append(r["message"])
            if touched:
                self._banshares.write(records)
        return touched

    def archive(self, message: str) -> Optional[Banshare]:
        """Remove a banshare and move it to the deleted archive.

        Returns the removed banshare, or None if it did not exist.
        """
        with self._lock:
            records = self._banshares.read()
            record = self._find(records, message)
            if record is None:
                return None
            records.remove(record)
            deleted = self._deleted.read()
            deleted.append(record)
            self._deleted.write(deleted)
            self._banshares.write(records)
            return self._from_dict(record)

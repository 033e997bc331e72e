"""File-based JSON storage for per-guild banshare settings.

Records are sparse: only fields a guild has explicitly written are stored.
Use ``tcn.banshares.settings.resolve_settings`` to read a complete record.

Storage path: ``~/.tcn/banshares/settings.json`` -- list of settings dicts
keyed by ``guild``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from tcn.banshares.models import MAX_LOG_CHANNELS
from tcn.errors import DuplicateError, ErrorCode, NotFoundError
from tcn.storage import JsonListFile, store_dir


class BanshareSettingsStore:
    """File-based storage for guild banshare settings."""

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        self._file = JsonListFile(store_dir(base_dir, "banshares") / "settings.json")

    @staticmethod
    def _find(records: list[dict], guild: str) -> Optional[dict]:
        for r in records:
            if r["guild"] == guild:
                return r
        return None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_raw(self, guild: str) -> Optional[dict]:
        """Return the stored (partial) record for *guild*, or None."""
        record = self._find(self._file.read(), guild)
        return dict(record) if record is not None else None

    def list_all(self) -> list[dict]:
        return self._file.read()

    def upsert(self, guild: str, fields: dict[str, Any]) -> Optional[dict]:
        """Merge *fields* into the guild's record, creating it if needed.

        Returns the record as it was before the write (None if new).
        """
        with self._file.lock:
            records = self._file.read()
            record = self._find(records, guild)
            before = dict(record) if record is not None else None
            if record is None:
                record = {"guild": guild}
                records.append(record)
            record.update(fields)
            self._file.write(records)
            return before

    def add_log(self, guild: str, channel: str) -> None:
        """Add a log channel. Raises ``DuplicateError`` if present or full."""
        with self._file.lock:
            records = self._file.read()
            record = self._find(records, guild)
            logs = list((record or {}).get("logs") or [])
            if channel in logs:
                raise DuplicateError("That channel is already a log channel in this guild.")
            if len(logs) >= MAX_LOG_CHANNELS:
                raise DuplicateError(
                    f"Each guild may only have {MAX_LOG_CHANNELS} log channels.",
                    code=ErrorCode.LIMIT_REACHED,
                )
            if record is None:
                record = {"guild": guild}
                records.append(record)
            record["logs"] = logs + [channel]
            self._file.write(records)

    def remove_log(self, guild: str, channel: str) -> None:
        """Remove a log channel. Raises ``NotFoundError`` if absent."""
        with self._file.lock:
            records = self._file.read()
            record = self._find(records, guild)
            logs = list((record or {}).get("logs") or [])
            if record is None or channel not in logs:
                raise NotFoundError("That channel is not a log channel in this guild.")
            record["logs"] = [c for c in logs if c != channel]
            self._file.write(records)

    def delete(self, guild: str) -> bool:
        """Drop a guild's settings (used when the guild leaves the federation)."""
        with self._file.lock:
            records = self._file.read()
            remaining = [r for r in records if r["guild"] != guild]
            if len(remaining) == len(records):
                return False
            self._file.write(remaining)
            return True

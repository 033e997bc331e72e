"""File-backed directory of callers, federation guilds and API keys.

Storage path: ``~/.tcn/auth/`` with ``users.json``, ``guilds.json`` and
``api_keys.json``. Raw API keys are never stored, only their SHA-256.
"""

from __future__ import annotations

import hashlib
import secrets
import uuid
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from tcn.auth.models import APIKey, Guild, User
from tcn.storage import JsonListFile, store_dir

KEY_PREFIX = "tcn_"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserStore:
    """Users (with their guild memberships), the guild directory and API keys."""

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        base = store_dir(base_dir, "auth")
        self._users = JsonListFile(base / "users.json")
        self._guilds = JsonListFile(base / "guilds.json")
        self._keys = JsonListFile(base / "api_keys.json")

    @staticmethod
    def _digest(raw_key: str) -> str:
        return hashlib.sha256(raw_key.encode()).hexdigest()

    @staticmethod
    def _serialize(user: User) -> dict:
        # internal is a per-request marker and is never persisted
        record = asdict(user)
        record.pop("internal", None)
        return record

    @staticmethod
    def _deserialize(record: dict) -> User:
        return User(**{k: v for k, v in record.items() if k != "internal"})

    def _upsert(self, file: JsonListFile, record: dict) -> None:
        with file.lock:
            records = [r for r in file.read() if r["id"] != record["id"]]
            records.append(record)
            file.write(records)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def save_user(self, user: User) -> User:
        """Insert or replace a user."""
        self._upsert(self._users, self._serialize(user))
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        record = self._users.find(self._users.read(), lambda r: r["id"] == user_id)
        return self._deserialize(record) if record is not None else None

    def list_users(self) -> list[User]:
        return [self._deserialize(r) for r in self._users.read()]

    # ------------------------------------------------------------------
    # Guild directory
    # ------------------------------------------------------------------

    def save_guild(self, guild: Guild) -> Guild:
        self._upsert(self._guilds, asdict(guild))
        return guild

    def get_guild(self, guild_id: str) -> Optional[Guild]:
        record = self._guilds.find(self._guilds.read(), lambda r: r["id"] == guild_id)
        return Guild(**record) if record is not None else None

    def list_guilds(self) -> list[Guild]:
        return [Guild(**r) for r in self._guilds.read()]

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    def create_api_key(self, user_id: str, name: str, expires_in_days: int = 90) -> tuple[APIKey, str]:
        """Issue a key for *user_id*. The raw key is only returned here."""
        raw = KEY_PREFIX + secrets.token_urlsafe(32)
        issued = datetime.now(timezone.utc)
        key = APIKey(
            id=uuid.uuid4().hex,
            user_id=user_id,
            name=name,
            key_hash=self._digest(raw),
            prefix=raw[:8],
            created_at=issued.isoformat(),
            expires_at=(issued + timedelta(days=expires_in_days)).isoformat(),
        )
        with self._keys.lock:
            self._keys.write(self._keys.read() + [asdict(key)])
        return key, raw

    def delete_api_key(self, key_id: str) -> bool:
        with self._keys.lock:
            keys = self._keys.read()
            kept = [k for k in keys if k["id"] != key_id]
            if len(kept) == len(keys):
                return False
            self._keys.write(kept)
            return True

    def validate_api_key(self, raw_key: str) -> Optional[User]:
        """Resolve a raw key to its user; expired or unknown keys give None."""
        digest = self._digest(raw_key)
        now = _now()
        with self._keys.lock:
            keys = self._keys.read()
            record = self._keys.find(keys, lambda k: k["key_hash"] == digest)
            if record is None or (record.get("expires_at") and record["expires_at"] < now):
                return None
            record["last_used"] = now
            self._keys.write(keys)
        return self.get_user(record["user_id"])

"""Crosspost bookkeeping, recording where a published banshare landed in each guild.

The ledger is append-only and holds at most one entry per guild. The bot
re-registers crossposts freely (retries, re-publication of the alert), so a
second registration for a guild is silently ignored rather than rejected.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional

from tcn.banshares.models import Crosspost
from tcn.errors import ErrorCode, NotFoundError

if TYPE_CHECKING:
    from tcn.banshares.store import BanshareStore


def merge_crossposts(existing: Iterable[Crosspost], entries: Iterable[Crosspost]) -> list[Crosspost]:
    """Return the entries that would be appended, first one per guild wins."""
    seen = {c.guild for c in existing}
    added: list[Crosspost] = []
    for entry in entries:
        if entry.guild in seen:
            continue
        seen.add(entry.guild)
        added.append(entry)
    return added


class CrosspostRegistry:
    """Per-banshare crosspost ledger backed by a ``BanshareStore``."""

    def __init__(self, store: BanshareStore) -> None:
        self._store = store

    def register(self, message: str, entries: list[Crosspost]) -> list[Crosspost]:
        """Append *entries*, skipping guilds already recorded.

        Returns the entries actually added. Raises ``NotFoundError`` if the
        banshare does not exist.
        """
        added = self._store.append_crossposts(message, entries)
        if added is None:
            raise NotFoundError(
                f"No banshare exists with message ID {message}.", code=ErrorCode.MISSING_BANSHARE
            )
        return added

    def add(self, message: str, guild: str, channel: str, crosspost_message: str) -> bool:
        """Record a single crosspost. Returns False if *guild* already had one."""
        added = self.register(message, [Crosspost(guild=guild, channel=channel, message=crosspost_message)])
        return bool(added)

    def list_crossposts(self, message: str) -> list[Crosspost]:
        banshare = self._store.get(message)
        if banshare is None:
            raise NotFoundError(
                f"No banshare exists with message ID {message}.", code=ErrorCode.MISSING_BANSHARE
            )
        return list(banshare.crossposts)

    def find(self, message: str, guild: str) -> Optional[Crosspost]:
        for crosspost in self.list_crossposts(message):
            if crosspost.guild == guild:
                return crosspost
        return None

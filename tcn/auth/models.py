"""Auth domain models for users, guild memberships, guilds and API keys."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

# Guild role that lets staff submit and execute banshares
BANSHARES_ROLE = "banshares"


@dataclass
class GuildMembership:
    """A user's standing in one federation guild."""

    owner: bool = False
    advisor: bool = False
    staff: bool = False
    roles: list[str] = field(default_factory=list)

    @property
    def banshare_staff(self) -> bool:
        return self.staff and BANSHARES_ROLE in self.roles


@dataclass
class User:
    """Represents an authenticated caller.

    ``internal`` is never persisted; it marks requests relayed by the bot on
    behalf of a Discord user.
    """

    id: str
    name: str = ""
    observer: bool = False
    council: bool = False
    scopes: list[str] = field(default_factory=lambda: ["all"])
    guilds: dict[str, GuildMembership] = field(default_factory=dict)
    internal: bool = False
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = datetime.now(timezone.utc).isoformat()
        self.guilds = {
            gid: m if isinstance(m, GuildMembership) else GuildMembership(**m)
            for gid, m in self.guilds.items()
        }


@dataclass
class Guild:
    """A member guild of the federation."""

    id: str
    name: str
    owner: str
    advisor: str = ""


@dataclass
class APIKey:
    """Represents an API key for programmatic access."""

    id: str
    user_id: str
    name: str
    key_hash: str
    prefix: str  # First 8 chars for display
    created_at: str = ""
    expires_at: str = ""
    last_used: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = datetime.now(timezone.utc).isoformat()

"""Permission checks run before every banshare operation.

Four capabilities matter:
- reporter: staff with the banshares role, owner or advisor of the origin guild
- reviewer: observers
- executor: owner, advisor or banshares staff of the target guild, or the bot
- abuse reporter: council members or banshares staff of any guild
"""

from __future__ import annotations

from typing import Optional

from tcn.auth.models import User
from tcn.auth.store import UserStore
from tcn.banshares.models import Banshare, BanshareStatus
from tcn.errors import ErrorCode, ForbiddenError, NotFoundError


def has_scope(user: User, scope: str) -> bool:
    """Check a hierarchical scope: ``banshares/create`` is granted by
    ``banshares/create``, ``banshares`` or ``all``."""
    if "all" in user.scopes:
        return True
    current = scope
    while True:
        if current in user.scopes:
            return True
        if "/" not in current:
            return False
        current = current.rsplit("/", 1)[0]


class PermissionChecker:
    """Resolves who may submit, review, manage and execute banshares."""

    def __init__(self, users: UserStore, hub_guild: str = "") -> None:
        self._users = users
        self._hub = hub_guild

    # -- primitives ----------------------------------------------------------

    @staticmethod
    def require_scope(user: User, scope: str) -> None:
        if not has_scope(user, scope):
            raise ForbiddenError(f"API key is missing the {scope} scope.", code=ErrorCode.MISSING_SCOPE)

    @staticmethod
    def require_observer(user: User) -> None:
        if not user.observer:
            raise ForbiddenError(
                "This operation is restricted to observers."
                if user.internal
                else "You must be an observer to access this route."
            )

    @staticmethod
    def require_council(user: User) -> None:
        if not user.council:
            raise ForbiddenError(
                "This operation is restricted to council members."
                if user.internal
                else "You must be a council member to access this route."
            )

    def _require_guild(self, user: User, guild: str) -> None:
        if self._users.get_guild(guild) is None:
            raise NotFoundError(
                "This guild is not in the TCN." if user.internal else f"No guild exists with ID {guild}.",
                code=ErrorCode.MISSING_GUILD,
            )

    # -- role checks ---------------------------------------------------------

    def check_submit(self, user: User, server: str) -> None:
        membership = user.guilds.get(server)
        if membership is None or not (membership.owner or membership.advisor or membership.banshare_staff):
            raise ForbiddenError("You do not have permissions to submit banshares from that server.")

    def check_banshare_permissions(self, user: User, guild: str) -> None:
        """Executors and settings readers of *guild*."""
        if guild == self._hub:
            self.require_observer(user)
            return
        self._require_guild(user, guild)
        if user.internal or user.observer:
            return
        membership = user.guilds.get(guild)
        if membership is None or not (membership.owner or membership.advisor or membership.banshare_staff):
            raise ForbiddenError(
                "You must be the owner or advisor of this guild or be a staff member and have the "
                "banshares role to access this route."
            )

    def check_ownership(self, user: User, guild: str) -> None:
        """Settings writers of *guild*: its owner or an observer."""
        if guild == self._hub:
            self.require_observer(user)
            return
        self._require_guild(user, guild)
        if user.observer:
            return
        record = self._users.get_guild(guild)
        membership = user.guilds.get(guild)
        if record.owner != user.id and not (membership and membership.owner):
            raise ForbiddenError(
                "This operation is restricted to the owner of this guild."
                if user.internal
                else "You must be the owner of this guild to access this route."
            )

    def check_report(self, user: User) -> None:
        if user.internal or user.council:
            return
        if not any(m.banshare_staff for m in user.guilds.values()):
            raise ForbiddenError(
                "You must be a council member or a staff with the banshares role to access this route."
            )

    @staticmethod
    def can_view(user: User, banshare: Optional[Banshare]) -> bool:
        """Pending and rejected banshares are visible to the author, observers
        and the council; published ones also to banshares staff anywhere."""
        if banshare is None:
            return False
        if user.internal or user.observer or user.council or banshare.author == user.id:
            return True
        return banshare.status in (BanshareStatus.published, BanshareStatus.rescinded) and any(
            m.banshare_staff for m in user.guilds.values()
        )

    def guild_name(self, guild: str) -> str:
        record = self._users.get_guild(guild)
        if record is None:
            raise NotFoundError(f"No guild exists with ID {guild}.", code=ErrorCode.MISSING_GUILD)
        return record.name

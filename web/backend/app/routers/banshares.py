"""Banshares router -- submission, review, execution, crossposts and guild settings."""

from __future__ import annotations

from dataclasses import asdict
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, Path, Query, status

from tcn.auth.models import User
from tcn.banshares.autoban import AutobanPolicy
from tcn.banshares.models import BanshareSettings, Crosspost
from tcn.banshares.workflow import redact
from tcn.config import RateLimit
from tcn.errors import ErrorCode, NotFoundError, ValidationError
from web.backend.app.middleware.auth import get_current_user
from web.backend.app.models.api import (
    SNOWFLAKE_PATTERN,
    AutobanResponse,
    BanshareResponse,
    BanshareSettingsResponse,
    CreateBanshareRequest,
    CreateBanshareResponse,
    CrosspostLocationResponse,
    CrosspostModel,
    RegisterCrosspostsRequest,
    RegisterCrosspostsResponse,
    ReportRequest,
    RescindRequest,
    UpdateSettingsRequest,
)
from web.backend.app.services import Services, get_services

router = APIRouter(prefix="/v1/banshares", tags=["banshares"])

MessageId = Annotated[str, Path(pattern=SNOWFLAKE_PATTERN, description="The ID of the message of the banshare.")]
GuildId = Annotated[str, Path(pattern=SNOWFLAKE_PATTERN, description="The ID of the guild.")]
ChannelId = Annotated[str, Path(pattern=SNOWFLAKE_PATTERN, description="The ID of the channel.")]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _settings_response(s: BanshareSettings) -> BanshareSettingsResponse:
    return BanshareSettingsResponse(**asdict(s))


class _RateLimit:
    """Checks a rate-limit bucket up front; ``apply`` after the call succeeds."""

    def __init__(self, services: Services, bucket: str, user: User, rule: RateLimit) -> None:
        self._limiter = services.rate_limiter
        self._args = (bucket, user.id, rule)
        self._limiter.check(*self._args)

    def apply(self) -> None:
        self._limiter.apply(*self._args)


def _audit_reason(value: Optional[str]) -> Optional[str]:
    if value is not None and len(value) > 256:
        raise ValidationError("Audit log reason must be 0-256 characters.")
    return value or None


# ---------------------------------------------------------------------------
# Collection endpoints
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=CreateBanshareResponse,
    summary="Create a banshare",
    status_code=status.HTTP_201_CREATED,
)
async def create_banshare(
    body: CreateBanshareRequest,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Submit a banshare, which posts it to HQ for review.

    Restricted to staff with the ``banshares`` role, owners and advisors of
    the originating server.
    """
    services.permissions.require_scope(user, "banshares/create")
    limit = _RateLimit(services, "post-banshare", user, services.settings.create_limit)
    services.permissions.check_submit(user, body.server)

    message = await services.workflow.create(
        author=user.id,
        server=body.server,
        severity=body.severity,
        reason=body.reason,
        evidence=body.evidence,
        ids=body.ids,
        urgent=body.urgent,
        skip_validation=body.skip_validation,
        skip_checks=body.skip_checks,
        server_name=services.permissions.guild_name(body.server),
    )
    limit.apply()
    return CreateBanshareResponse(message=message)


@router.get(
    "/pending",
    response_model=list[str],
    summary="List pending banshares (message IDs)",
)
async def list_pending(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
    """Return the message IDs of all pending banshares. Council-only."""
    services.permissions.require_council(user)
    services.permissions.require_scope(user, "banshares/read")
    return services.workflow.list_pending()


@router.get(
    "/guilds",
    response_model=list[BanshareSettingsResponse],
    summary="Get all guilds' settings",
)
async def list_guild_settings(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
    """Return every stored guild's resolved settings. Observer-only."""
    services.permissions.require_observer(user)
    services.permissions.require_scope(user, "banshares/manage")
    return [_settings_response(s) for s in services.workflow.list_all_settings()]


@router.get(
    "/autoban/{value}",
    response_model=AutobanResponse,
    summary="Decode an autoban field",
)
async def decode_autoban(
    value: int = Path(..., ge=0, le=255),
    user: User = Depends(get_current_user),
):
    """Show which severities an autoban value enforces for members and non-members."""
    policy = AutobanPolicy(value)
    return AutobanResponse(value=value, matrix=policy.matrix())


# ---------------------------------------------------------------------------
# Settings endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/settings/{guild}",
    response_model=BanshareSettingsResponse,
    summary="Get the banshare settings in a guild",
)
async def get_settings(
    guild: GuildId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Restricted to observers, the owner, the advisor and banshares staff."""
    services.permissions.check_banshare_permissions(user, guild)
    services.permissions.require_scope(user, "banshares/settings")
    return _settings_response(services.workflow.get_settings(guild))


@router.patch(
    "/settings/{guild}",
    response_model=BanshareSettingsResponse,
    summary="Update settings for banshares in a guild",
)
async def update_settings(
    body: UpdateSettingsRequest,
    guild: GuildId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Observer/owner-only. A new channel is checked with the bot first."""
    services.permissions.check_ownership(user, guild)
    services.permissions.require_scope(user, "banshares/settings")
    settings = await services.workflow.update_settings(
        user.id, guild, body.model_dump(exclude_unset=True), internal=user.internal
    )
    return _settings_response(settings)


@router.get(
    "/settings/logs/{guild}",
    response_model=list[str],
    summary="Get all logging channels for banshares in a guild",
)
async def list_log_channels(
    guild: GuildId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Observer/owner-only. The channel IDs are not necessarily still valid."""
    services.permissions.check_ownership(user, guild)
    services.permissions.require_scope(user, "banshares/settings")
    return services.workflow.list_log_channels(guild)


@router.put(
    "/settings/logs/{guild}/{channel}",
    summary="Add a logging channel for banshares in a guild",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def add_log_channel(
    guild: GuildId,
    channel: ChannelId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Observer/owner-only. At most 10 log channels per guild."""
    services.permissions.check_ownership(user, guild)
    services.permissions.require_scope(user, "banshares/settings")
    await services.workflow.add_log_channel(user.id, guild, channel, internal=user.internal)


@router.delete(
    "/settings/logs/{guild}/{channel}",
    summary="Remove a logging channel for banshares from a guild",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_log_channel(
    guild: GuildId,
    channel: ChannelId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Observer/owner-only."""
    services.permissions.check_ownership(user, guild)
    services.permissions.require_scope(user, "banshares/settings")
    services.workflow.remove_log_channel(user.id, guild, channel)


# ---------------------------------------------------------------------------
# Abuse reports
# ---------------------------------------------------------------------------


@router.post(
    "/report/{message}",
    summary="Report a banshare",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def report_banshare(
    body: ReportRequest,
    message: MessageId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Restricted to council members and staff with the banshares role."""
    services.permissions.require_scope(user, "banshares/report")
    limit = _RateLimit(services, "report-banshare", user, services.settings.report_limit)
    services.permissions.check_report(user)
    await services.workflow.report(user.id, message, body.reason)
    limit.apply()


# ---------------------------------------------------------------------------
# Single-banshare endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/{message}",
    response_model=BanshareResponse,
    summary="Get a banshare",
)
async def get_banshare(
    message: MessageId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Return a banshare, or 404 if it does not exist or is not visible.

    Reviewer IDs are masked for non-observers.
    """
    services.permissions.require_scope(user, "banshares/read")
    try:
        banshare = services.workflow.get(message)
    except NotFoundError:
        banshare = None
    if not services.permissions.can_view(user, banshare):
        raise NotFoundError(f"No banshare exists with message ID {message}.", code=ErrorCode.MISSING_BANSHARE)
    return BanshareResponse(**redact(banshare, observer=user.observer))


@router.delete(
    "/{message}",
    summary="Delete a banshare from the API",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_banshare(
    message: MessageId,
    x_audit_log_reason: Optional[str] = Header(None, alias="X-Audit-Log-Reason"),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Observer-only. Only allowed after the banshare's message was deleted;
    banshares should be rejected instead wherever possible."""
    services.permissions.require_observer(user)
    services.permissions.require_scope(user, "banshares/manage")
    await services.workflow.delete(user.id, message, reason=_audit_reason(x_audit_log_reason))


@router.patch(
    "/{message}/severity/{severity}",
    response_model=BanshareResponse,
    summary="Change the severity of a banshare",
)
async def change_severity(
    severity: str,
    message: MessageId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Observer-only. The banshare must be pending."""
    services.permissions.require_observer(user)
    services.permissions.require_scope(user, "banshares/manage")
    limit = _RateLimit(services, "edit-banshare", user, services.settings.review_limit)
    banshare = await services.workflow.change_severity(user.id, message, severity)
    limit.apply()
    return BanshareResponse(**redact(banshare, observer=True))


@router.post(
    "/{message}/reject",
    response_model=BanshareResponse,
    summary="Reject a banshare",
)
async def reject_banshare(
    message: MessageId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Observer-only. The banshare must be pending."""
    services.permissions.require_observer(user)
    services.permissions.require_scope(user, "banshares/manage")
    limit = _RateLimit(services, "edit-banshare", user, services.settings.review_limit)
    banshare = await services.workflow.reject(user.id, message)
    limit.apply()
    return BanshareResponse(**redact(banshare, observer=True))


@router.post(
    "/{message}/publish",
    response_model=BanshareResponse,
    summary="Publish a banshare",
)
async def publish_banshare(
    message: MessageId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Observer-only. The banshare must be pending. Triggers autobans."""
    services.permissions.require_observer(user)
    services.permissions.require_scope(user, "banshares/manage")
    limit = _RateLimit(services, "edit-banshare", user, services.settings.review_limit)
    banshare = await services.workflow.publish(user.id, message)
    limit.apply()
    return BanshareResponse(**redact(banshare, observer=True))


@router.post(
    "/{message}/rescind",
    response_model=BanshareResponse,
    summary="Rescind a banshare",
)
async def rescind_banshare(
    body: RescindRequest,
    message: MessageId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Observer-only. The banshare must be published."""
    services.permissions.require_observer(user)
    services.permissions.require_scope(user, "banshares/manage")
    limit = _RateLimit(services, "edit-banshare", user, services.settings.review_limit)
    banshare = await services.workflow.rescind(user.id, message, body.explanation)
    limit.apply()
    return BanshareResponse(**redact(banshare, observer=True))


@router.post(
    "/{message}/execute/{guild}",
    summary="Execute a banshare in a guild",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def execute_banshare(
    message: MessageId,
    guild: GuildId,
    auto: bool = Query(False, description="Marks the execution as an autoban action. Observer-only."),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Available to observers, the guild's owner, advisor and banshares staff,
    and the bot. The guild must not have disabled the ban button."""
    services.permissions.check_banshare_permissions(user, guild)
    services.permissions.require_scope(user, "banshares/execute")
    if auto and not user.internal:
        services.permissions.require_observer(user)
    limit = _RateLimit(services, "edit-banshare", user, services.settings.review_limit)
    await services.workflow.execute(user.id, message, guild, auto=auto)
    limit.apply()


@router.get(
    "/{message}/crossposts",
    response_model=list[CrosspostModel],
    summary="Get crossposts",
)
async def get_crossposts(
    message: MessageId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Return all crossposts for a banshare. Observer-only."""
    services.permissions.require_observer(user)
    services.permissions.require_scope(user, "banshares/read")
    return [CrosspostModel(**asdict(c)) for c in services.workflow.get_crossposts(message)]


@router.put(
    "/{message}/crossposts",
    response_model=RegisterCrosspostsResponse,
    summary="Register crossposts",
)
async def register_crossposts(
    body: RegisterCrosspostsRequest,
    message: MessageId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Observer-only; normally called by the bot after publication.

    Guilds that already have a crosspost are skipped.
    """
    services.permissions.require_observer(user)
    services.permissions.require_scope(user, "banshares/manage")
    entries = [Crosspost(guild=c.guild, channel=c.channel, message=c.message) for c in body.crossposts]
    added = services.workflow.register_crossposts(user.id, message, entries)
    return RegisterCrosspostsResponse(added=[CrosspostModel(**asdict(c)) for c in added])


@router.get(
    "/{message}/crossposts/{guild}",
    response_model=CrosspostLocationResponse,
    summary="Get the crosspost location for a banshare in a guild",
)
async def get_crosspost(
    message: MessageId,
    guild: GuildId,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    services.permissions.require_scope(user, "banshares/read")
    crosspost = services.workflow.get_crosspost(message, guild)
    return CrosspostLocationResponse(channel=crosspost.channel, message=crosspost.message)

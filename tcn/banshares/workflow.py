"""Banshare review workflow.

Each operation follows the same shape: validate, apply one status-guarded
write to the store, tell the enforcement gateway, and if the gateway call
fails, apply a second guarded write that restores the prior state before
re-raising. The remote call cannot share a transaction with the local
write, so the compensation is itself conditional and may lose a race with
another reviewer; that case is logged at ERROR for manual reconciliation.

State machine::

    pending --reject--> rejected
    pending --publish--> published --rescind--> rescinded
    published --execute(guild)--> published  (records executors[guild])

Permission checks and rate limiting happen before any of these methods are
called.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict
from typing import Any, Callable, Optional

from tcn.banshares.autoban import AutobanPolicy
from tcn.banshares.crossposts import CrosspostRegistry
from tcn.banshares.gateway import EnforcementGateway, Notification
from tcn.banshares.models import MASKED_USER_ID, Banshare, BanshareSettings, BanshareStatus, Crosspost, Report
from tcn.banshares.settings import changed_fields, resolve_settings, validate_settings_update
from tcn.banshares.settings_store import BanshareSettingsStore
from tcn.banshares.store import BanshareStore
from tcn.banshares.validation import (
    is_snowflake,
    parse_severity,
    validate_explanation,
    validate_report_reason,
    validate_submission,
)
from tcn.errors import (
    ErrorCode,
    FeatureDisabledError,
    InvalidStateError,
    NotFoundError,
    NotModifiedError,
    ValidationError,
)
from tcn.security.audit_log import AuditAction, AuditLogger

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def redact(banshare: Banshare, observer: bool) -> dict[str, Any]:
    """Public view of a banshare.

    Bookkeeping (crossposts, executors, reports) is never exposed, and
    reviewer identities are masked for everyone but observers.
    """
    data = asdict(banshare)
    data["status"] = banshare.status.value
    data["severity"] = banshare.severity.value
    for key in ("crossposts", "executors", "reports", "version"):
        data.pop(key, None)
    if not observer:
        for key in ("publisher", "rejecter", "rescinder"):
            if data.get(key):
                data[key] = MASKED_USER_ID
    return data


class BanshareWorkflow:
    """Orchestrates banshare creation, review and per-guild execution."""

    def __init__(
        self,
        store: BanshareStore,
        settings_store: BanshareSettingsStore,
        gateway: EnforcementGateway,
        audit: AuditLogger,
        *,
        urgent_remind_after: float = 2 * 60 * 60,
        remind_after: float = 6 * 60 * 60,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._store = store
        self._settings = settings_store
        self._gateway = gateway
        self._audit = audit
        self._crossposts = CrosspostRegistry(store)
        self._urgent_remind_after = urgent_remind_after
        self._remind_after = remind_after
        self._clock = clock

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require(self, message: str) -> None:
        if not self._store.exists(message):
            raise NotFoundError(
                f"No banshare exists with message ID {message}.", code=ErrorCode.MISSING_BANSHARE
            )

    @staticmethod
    def _compensate(action: str, message: str, undo: Callable[[], Any]) -> None:
        if undo():
            logger.warning("Reverted %s on banshare %s after gateway failure", action, message)
        else:
            logger.error(
                "Could not revert %s on banshare %s after gateway failure; "
                "the record no longer matches and needs manual reconciliation",
                action,
                message,
            )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create(
        self,
        author: str,
        server: str,
        severity: str,
        reason: str,
        evidence: str,
        ids: str,
        urgent: bool = False,
        skip_validation: bool = False,
        skip_checks: bool = False,
        server_name: str = "",
    ) -> str:
        """Submit a banshare for review. Returns its message ID.

        The gateway posts the alert first and issues the message ID; the
        record is only persisted once that succeeded, so a gateway failure
        leaves nothing behind.
        """
        parsed, id_list = validate_submission(author, ids, reason, evidence, severity, skip_checks)

        message = await self._gateway.create(
            {
                "author": author,
                "ids": ids,
                "idList": id_list,
                "reason": reason,
                "evidence": evidence,
                "severity": parsed.value,
                "urgent": urgent,
                "skipValidation": skip_validation,
                "serverName": server_name,
            }
        )

        now = self._clock()
        banshare = Banshare(
            message=message,
            status=BanshareStatus.pending,
            urgent=urgent,
            severity=parsed,
            ids=ids,
            id_list=id_list,
            reason=reason,
            evidence=evidence,
            server=server,
            author=author,
            created=now,
            reminded=now,
        )
        self._store.insert(banshare)
        logger.info("Banshare %s created by %s from %s (%s)", message, author, server, parsed.value)

        self._audit.log_event(
            author, AuditAction.BANSHARES_CREATE, message, data=redact(banshare, observer=True), reason=reason
        )
        return message

    # ------------------------------------------------------------------
    # Review transitions
    # ------------------------------------------------------------------

    async def change_severity(self, actor: str, message: str, severity: str) -> Banshare:
        new = parse_severity(severity)
        self._require(message)

        before = self._store.update_where(message, BanshareStatus.pending, {"severity": new.value})
        if before is None:
            raise InvalidStateError("That banshare is no longer pending.")
        if before.severity == new:
            raise NotModifiedError("No changes were made.")

        try:
            await self._gateway.notify(Notification.severity, message, {"severity": new.value})
        except (Exception, asyncio.CancelledError):
            self._compensate(
                "severity change",
                message,
                lambda: self._store.update_where(
                    message,
                    BanshareStatus.pending,
                    {"severity": before.severity.value},
                    condition=lambda r: r.get("severity") == new.value,
                ),
            )
            raise

        logger.info("Banshare %s severity %s -> %s by %s", message, before.severity.value, new.value, actor)
        self._audit.log_event(
            actor,
            AuditAction.BANSHARES_SEVERITY,
            message,
            changes={"severity": [before.severity.value, new.value]},
        )
        return self.get(message)

    async def reject(self, actor: str, message: str) -> Banshare:
        self._require(message)

        before = self._store.transition(
            message, BanshareStatus.pending, BanshareStatus.rejected, {"rejecter": actor}
        )
        if before is None:
            raise InvalidStateError("That banshare is no longer pending.")

        try:
            await self._gateway.notify(Notification.reject, message)
        except (Exception, asyncio.CancelledError):
            self._compensate(
                "rejection",
                message,
                lambda: self._store.update_where(
                    message,
                    BanshareStatus.rejected,
                    {"status": BanshareStatus.pending.value},
                    unset_fields=["rejecter"],
                    condition=lambda r: r.get("rejecter") == actor,
                ),
            )
            raise

        logger.info("Banshare %s rejected by %s", message, actor)
        self._audit.log_event(
            actor, AuditAction.BANSHARES_REJECT, message, changes={"status": ["pending", "rejected"]}
        )
        return self.get(message)

    async def publish(self, actor: str, message: str) -> Banshare:
        """Publish a pending banshare. The gateway starts autobans from here."""
        self._require(message)

        before = self._store.transition(
            message, BanshareStatus.pending, BanshareStatus.published, {"publisher": actor}
        )
        if before is None:
            raise InvalidStateError("That banshare is no longer pending.")

        try:
            await self._gateway.notify(Notification.publish, message)
        except (Exception, asyncio.CancelledError):
            self._compensate(
                "publication",
                message,
                lambda: self._store.update_where(
                    message,
                    BanshareStatus.published,
                    {"status": BanshareStatus.pending.value},
                    unset_fields=["publisher"],
                    condition=lambda r: r.get("publisher") == actor,
                ),
            )
            raise

        logger.info("Banshare %s published by %s", message, actor)
        self._audit.log_event(
            actor, AuditAction.BANSHARES_PUBLISH, message, changes={"status": ["pending", "published"]}
        )
        return self.get(message)

    async def rescind(self, actor: str, message: str, explanation: str) -> Banshare:
        validate_explanation(explanation)
        self._require(message)

        before = self._store.transition(
            message,
            BanshareStatus.published,
            BanshareStatus.rescinded,
            {"rescinder": actor, "explanation": explanation},
        )
        if before is None:
            raise InvalidStateError("That banshare is not published or has already been rescinded.")

        try:
            await self._gateway.notify(Notification.rescind, message)
        except (Exception, asyncio.CancelledError):
            self._compensate(
                "rescission",
                message,
                lambda: self._store.update_where(
                    message,
                    BanshareStatus.rescinded,
                    {"status": BanshareStatus.published.value},
                    unset_fields=["rescinder", "explanation"],
                    condition=lambda r: r.get("rescinder") == actor,
                ),
            )
            raise

        logger.info("Banshare %s rescinded by %s", message, actor)
        self._audit.log_event(
            actor,
            AuditAction.BANSHARES_RESCIND,
            message,
            changes={"status": ["published", "rescinded"]},
            reason=explanation,
        )
        return self.get(message)

    async def execute(self, actor: str, message: str, guild: str, auto: bool = False) -> Banshare:
        """Record enforcement of a published banshare in one guild.

        Each guild can execute a banshare once. Automatic executions are
        reported by the gateway itself, so it is not notified back.
        """
        self._require(message)

        if not auto and self.get_settings(guild).nobutton:
            raise FeatureDisabledError("This guild has disabled the ban button setting.")

        before = self._store.add_executor(message, guild, actor)
        if before is None:
            raise InvalidStateError("That banshare is already executed or was rescinded.")

        if not auto:
            try:
                await self._gateway.notify(Notification.execute, message, {"guild": guild})
            except (Exception, asyncio.CancelledError):
                self._compensate(
                    f"execution in {guild}",
                    message,
                    lambda: self._store.remove_executor(message, guild, actor),
                )
                raise

        logger.info("Banshare %s executed in %s by %s (auto=%s)", message, guild, actor, auto)
        self._audit.log_event(
            actor, AuditAction.BANSHARES_EXECUTE, message, data={"auto": auto, "guild": guild}
        )
        return self.get(message)

    # ------------------------------------------------------------------
    # Append-only bookkeeping
    # ------------------------------------------------------------------

    def register_crossposts(self, actor: str, message: str, entries: list[Crosspost]) -> list[Crosspost]:
        added = self._crossposts.register(message, entries)
        if added:
            logger.info("Registered %d crosspost(s) for banshare %s", len(added), message)
        self._audit.log_event(
            actor,
            AuditAction.BANSHARES_CROSSPOST,
            message,
            data={"crossposts": [asdict(c) for c in added]},
        )
        return added

    async def report(self, actor: str, message: str, reason: str) -> None:
        """File an abuse report. The gateway notification is advisory only."""
        validate_report_reason(reason)
        if not self._store.append_report(message, Report(reporter=actor, reason=reason)):
            raise NotFoundError(
                f"No banshare exists with message ID {message}.", code=ErrorCode.MISSING_BANSHARE
            )

        try:
            await self._gateway.notify(Notification.report, message, {"user": actor, "reason": reason})
        except Exception as exc:
            logger.warning("Report on banshare %s stored but the gateway was not notified: %s", message, exc)

        self._audit.log_event(actor, AuditAction.BANSHARES_REPORT, message, reason=reason)

    async def delete(self, actor: str, message: str, reason: Optional[str] = None) -> Banshare:
        """Purge a banshare into the deleted archive.

        Only allowed once its alert message is gone; banshares should
        normally be rejected instead.
        """
        self._require(message)
        if await self._gateway.message_exists(message):
            raise InvalidStateError("The banshare message still exists; delete it before removing the banshare.")

        removed = self._store.archive(message)
        if removed is None:
            raise NotFoundError(
                f"No banshare exists with message ID {message}.", code=ErrorCode.MISSING_BANSHARE
            )

        logger.info("Banshare %s deleted by %s", message, actor)
        self._audit.log_event(
            actor, AuditAction.BANSHARES_DELETE, message, data=redact(removed, observer=True), reason=reason
        )
        return removed

    async def remind_pending(self) -> list[str]:
        """Re-ping reviewers about overdue pending banshares."""
        now = self._clock()
        touched = self._store.mark_reminded(
            now,
            urgent_before=now - int(self._urgent_remind_after * 1000),
            normal_before=now - int(self._remind_after * 1000),
        )
        if touched:
            logger.info("Reminding reviewers about %d pending banshare(s)", len(touched))
            await self._gateway.notify(Notification.remind, "")
        return touched

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, message: str) -> Banshare:
        banshare = self._store.get(message)
        if banshare is None:
            raise NotFoundError(
                f"No banshare exists with message ID {message}.", code=ErrorCode.MISSING_BANSHARE
            )
        return banshare

    def list_pending(self) -> list[str]:
        return self._store.list_messages(BanshareStatus.pending)

    def get_crossposts(self, message: str) -> list[Crosspost]:
        return self._crossposts.list_crossposts(message)

    def get_crosspost(self, message: str, guild: str) -> Crosspost:
        crosspost = self._crossposts.find(message, guild)
        if crosspost is None:
            raise NotFoundError(
                "This banshare has not been crossposted to the guild.", code=ErrorCode.MISSING_CROSSPOST
            )
        return crosspost

    # ------------------------------------------------------------------
    # Guild settings
    # ------------------------------------------------------------------

    def get_settings(self, guild: str) -> BanshareSettings:
        return resolve_settings(guild, self._settings.get_raw(guild))

    def list_all_settings(self) -> list[BanshareSettings]:
        return [resolve_settings(r["guild"], r) for r in self._settings.list_all()]

    def autoban_policy(self, guild: str) -> AutobanPolicy:
        return AutobanPolicy(self.get_settings(guild).autoban)

    async def _check_channel(self, guild: str, channel: Optional[str], internal: bool) -> None:
        if internal or not channel:
            return
        error = await self._gateway.validate_channel(guild, channel)
        if error:
            raise ValidationError(error)

    async def update_settings(
        self, actor: str, guild: str, fields: dict[str, Any], internal: bool = False
    ) -> BanshareSettings:
        """Merge a partial update into the guild's settings.

        Each caller only sends the fields it changes, so concurrent updates
        to different fields do not clobber each other.
        """
        clean = validate_settings_update(fields)
        await self._check_channel(guild, clean.get("channel"), internal)

        before = self._settings.upsert(guild, clean)
        self._audit.log_event(
            actor, AuditAction.BANSHARES_SETTINGS, guild, changes=changed_fields(before, clean)
        )
        return self.get_settings(guild)

    def list_log_channels(self, guild: str) -> list[str]:
        return self.get_settings(guild).logs

    async def add_log_channel(self, actor: str, guild: str, channel: str, internal: bool = False) -> None:
        if not is_snowflake(channel):
            raise ValidationError("Channel must be a channel ID.")
        await self._check_channel(guild, channel, internal)
        self._settings.add_log(guild, channel)
        self._audit.log_event(actor, AuditAction.BANSHARES_LOGS_ADD, guild, data={"channel": channel})

    def remove_log_channel(self, actor: str, guild: str, channel: str) -> None:
        self._settings.remove_log(guild, channel)
        self._audit.log_event(actor, AuditAction.BANSHARES_LOGS_REMOVE, guild, data={"channel": channel})

"""Resolution and validation of per-guild banshare settings.

Stored settings are sparse: a guild that never changed anything has no
record at all, and a guild that changed one flag has only that field.
``resolve_settings`` fills every omitted field with its default so callers
always see a complete record.
"""

from __future__ import annotations

from typing import Any

from tcn.banshares.autoban import validate_autoban
from tcn.banshares.models import MAX_LOG_CHANNELS, BanshareSettings
from tcn.banshares.validation import is_snowflake
from tcn.errors import ValidationError

SETTINGS_DEFAULTS: dict[str, Any] = {
    "channel": None,
    "logs": [],
    "blockdms": False,
    "nobutton": False,
    "daedalus": False,
    "autoban": 0,
}

_FLAGS = ("blockdms", "nobutton", "daedalus")


def resolve_settings(guild: str, stored: dict[str, Any] | None = None) -> BanshareSettings:
    stored = stored or {}
    return BanshareSettings(
        guild=guild,
        channel=stored.get("channel", SETTINGS_DEFAULTS["channel"]),
        logs=list(stored.get("logs") or []),
        blockdms=bool(stored.get("blockdms", False)),
        nobutton=bool(stored.get("nobutton", False)),
        daedalus=bool(stored.get("daedalus", False)),
        autoban=int(stored.get("autoban", 0)),
    )


def validate_settings_update(fields: dict[str, Any]) -> dict[str, Any]:
    """Check a partial settings update and return only the recognised fields."""
    unknown = set(fields) - set(SETTINGS_DEFAULTS)
    if unknown:
        raise ValidationError(f"Unknown settings field(s): {', '.join(sorted(unknown))}.")

    clean: dict[str, Any] = {}
    if "channel" in fields:
        channel = fields["channel"]
        if channel is not None and not (isinstance(channel, str) and is_snowflake(channel)):
            raise ValidationError("Channel must be a channel ID or null.")
        clean["channel"] = channel
    if "logs" in fields:
        logs = fields["logs"]
        if not isinstance(logs, list) or not all(isinstance(c, str) and is_snowflake(c) for c in logs):
            raise ValidationError("Logs must be a list of channel IDs.")
        if len(set(logs)) != len(logs):
            raise ValidationError("Log channels must be unique.")
        if len(logs) > MAX_LOG_CHANNELS:
            raise ValidationError(f"Each guild may only have {MAX_LOG_CHANNELS} log channels.")
        clean["logs"] = list(logs)
    for flag in _FLAGS:
        if flag in fields:
            if not isinstance(fields[flag], bool):
                raise ValidationError(f"{flag} must be a boolean.")
            clean[flag] = fields[flag]
    if "autoban" in fields:
        clean["autoban"] = validate_autoban(fields["autoban"])
    return clean


def changed_fields(previous: dict[str, Any] | None, update: dict[str, Any]) -> dict[str, list]:
    """Return ``{field: [before, after]}`` for each field the update changes."""
    previous = previous or {}
    diff: dict[str, list] = {}
    for key, value in update.items():
        before = previous.get(key, SETTINGS_DEFAULTS.get(key))
        if before != value:
            diff[key] = [before, value]
    return diff

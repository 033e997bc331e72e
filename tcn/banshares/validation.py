"""Input checks applied to banshare submissions before anything is persisted."""

from __future__ import annotations

import re

from tcn.banshares.models import (
    EVIDENCE_MAX_LENGTH,
    EXPLANATION_MAX_LENGTH,
    REASON_MAX_LENGTH,
    REPORT_REASON_MAX_LENGTH,
    Severity,
)
from tcn.errors import ValidationError

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

# Whitespace-separated snowflakes, 17-20 digits, no leading zero
_ID_LIST_PATTERN = re.compile(r"^\s*([1-9][0-9]{16,19}\s+)*[1-9][0-9]{16,19}\s*$")

_SNOWFLAKE_PATTERN = re.compile(r"^[1-9][0-9]{16,19}$")

# Attachment links on these hosts expire, so they are not acceptable evidence
_MEDIA_HOST_PATTERNS: list[re.Pattern[str]] = [
    re.compile(re.escape(host), re.IGNORECASE)
    for host in ("cdn.discordapp.com", "media.discordapp.net")
]


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def parse_severity(value: str) -> Severity:
    try:
        return Severity(value)
    except ValueError:
        raise ValidationError("Severity must be one of P0, P1, P2, or DM.") from None


def is_snowflake(value: str) -> bool:
    return bool(_SNOWFLAKE_PATTERN.match(value))


def parse_id_list(ids: str) -> list[str]:
    """Split a raw id field into its identifiers, in submission order."""
    if not _ID_LIST_PATTERN.match(ids):
        raise ValidationError(
            "ID field must be a whitespace-separated list of user IDs (or submit without checks if needed)."
        )
    return ids.split()


def contains_media_link(*texts: str) -> bool:
    joined = " ".join(texts)
    return any(pattern.search(joined) for pattern in _MEDIA_HOST_PATTERNS)


def check_length(label: str, value: str, maximum: int, minimum: int = 1) -> None:
    if not minimum <= len(value) <= maximum:
        raise ValidationError(f"{label} must be {minimum}-{maximum} characters.")


def validate_submission(
    author: str,
    ids: str,
    reason: str,
    evidence: str,
    severity: str,
    skip_checks: bool,
) -> tuple[Severity, list[str]]:
    """Validate a new banshare. Returns the parsed severity and id list.

    With ``skip_checks`` the id field is kept as free text and the parsed
    list is empty.
    """
    check_length("Banshare reason", reason, REASON_MAX_LENGTH)
    check_length("Banshare evidence", evidence, EVIDENCE_MAX_LENGTH)

    id_list = [] if skip_checks else parse_id_list(ids)
    parsed = parse_severity(severity)

    if author in id_list:
        raise ValidationError("You cannot banshare yourself.")
    if contains_media_link(evidence, reason):
        raise ValidationError("Discord media links are not allowed.")

    return parsed, id_list


def validate_explanation(explanation: str) -> None:
    check_length("Banshare rescind explanation", explanation, EXPLANATION_MAX_LENGTH)


def validate_report_reason(reason: str) -> None:
    check_length("Banshare report reason", reason, REPORT_REASON_MAX_LENGTH)

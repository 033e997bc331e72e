"""Autoban policy: which severities a guild enforces without a human click.

A guild stores its policy as one 8-bit integer. Reading from the most
significant bit down, bits 1-4 cover P0, P1, P2 and DM banshares against
users who are *not* in the guild and bits 5-8 cover the same severities
against current members. The enforcement bot decodes the same field, so the
layout in ``AUTOBAN_BITS`` must not change.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from tcn.banshares.models import Severity
from tcn.errors import ValidationError


class Membership(str, Enum):
    """Whether any banshare target is currently in the guild."""

    non_member = "non_member"
    member = "member"


AUTOBAN_BITS: dict[tuple[Membership, Severity], int] = {
    (Membership.non_member, Severity.P0): 0b1000_0000,
    (Membership.non_member, Severity.P1): 0b0100_0000,
    (Membership.non_member, Severity.P2): 0b0010_0000,
    (Membership.non_member, Severity.DM): 0b0001_0000,
    (Membership.member, Severity.P0): 0b0000_1000,
    (Membership.member, Severity.P1): 0b0000_0100,
    (Membership.member, Severity.P2): 0b0000_0010,
    (Membership.member, Severity.DM): 0b0000_0001,
}

AUTOBAN_MAX = 0xFF


def validate_autoban(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= AUTOBAN_MAX:
        raise ValidationError("Autoban must be an integer between 0 and 255.")
    return value


@dataclass(frozen=True)
class AutobanPolicy:
    """Decoded view over a guild's autoban field."""

    value: int = 0

    def __post_init__(self) -> None:
        validate_autoban(self.value)

    def decide(self, severity: Severity | str, is_member: bool) -> bool:
        """Return True if banshares of *severity* are enforced automatically."""
        membership = Membership.member if is_member else Membership.non_member
        return bool(self.value & AUTOBAN_BITS[(membership, Severity(severity))])

    def matrix(self) -> dict[str, dict[str, bool]]:
        """Return ``{membership: {severity: enabled}}`` for display."""
        return {
            membership.value: {
                severity.value: self.decide(severity, membership is Membership.member)
                for severity in Severity
            }
            for membership in Membership
        }

    @classmethod
    def from_matrix(cls, enabled: dict[str, dict[str, bool]]) -> AutobanPolicy:
        """Encode a ``matrix()``-shaped mapping back into a policy."""
        value = 0
        for membership, row in enabled.items():
            for severity, on in row.items():
                if on:
                    value |= AUTOBAN_BITS[(Membership(membership), Severity(severity))]
        return cls(value)

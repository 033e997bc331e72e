"""Banshare domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

MAX_LOG_CHANNELS = 10
REASON_MAX_LENGTH = 498
EVIDENCE_MAX_LENGTH = 1000
EXPLANATION_MAX_LENGTH = 1800
REPORT_REASON_MAX_LENGTH = 1800

# Shown in place of reviewer ids to callers who are not observers
MASKED_USER_ID = "1" + "0" * 19


class BanshareStatus(str, Enum):
    """Review status. Transitions form a DAG, see ``can_transition``."""

    pending = "pending"
    rejected = "rejected"
    published = "published"
    rescinded = "rescinded"

    def can_transition(self, target: BanshareStatus) -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[BanshareStatus, frozenset[BanshareStatus]] = {
    BanshareStatus.pending: frozenset({BanshareStatus.rejected, BanshareStatus.published}),
    BanshareStatus.published: frozenset({BanshareStatus.rescinded}),
    BanshareStatus.rejected: frozenset(),
    BanshareStatus.rescinded: frozenset(),
}


class Severity(str, Enum):
    """Banshare severity, most to least severe. ``DM`` covers DM-only abuse."""

    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    DM = "DM"


@dataclass
class Crosspost:
    """Where a published banshare was propagated in one guild."""

    guild: str
    channel: str
    message: str


@dataclass
class Report:
    """An abuse / false-positive report filed against a banshare."""

    reporter: str
    reason: str


@dataclass
class Banshare:
    """A cross-guild moderation report, keyed by its gateway message id."""

    message: str
    status: BanshareStatus
    urgent: bool
    severity: Severity
    ids: str
    id_list: list[str]
    reason: str
    evidence: str
    server: str
    author: str
    created: int  # epoch milliseconds
    reminded: int
    publisher: Optional[str] = None
    rejecter: Optional[str] = None
    rescinder: Optional[str] = None
    explanation: Optional[str] = None
    crossposts: list[Crosspost] = field(default_factory=list)
    executors: dict[str, str] = field(default_factory=dict)
    reports: list[Report] = field(default_factory=list)
    version: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.status, str):
            self.status = BanshareStatus(self.status)
        if isinstance(self.severity, str):
            self.severity = Severity(self.severity)


@dataclass
class BanshareSettings:
    """A guild's resolved banshare configuration."""

    guild: str
    channel: Optional[str] = None
    logs: list[str] = field(default_factory=list)
    blockdms: bool = False
    nobutton: bool = False
    daedalus: bool = False
    autoban: int = 0

"""Test doubles shared by the workflow and API tests."""

import asyncio
import itertools
from pathlib import Path

from tcn.banshares.gateway import Notification
from tcn.banshares.settings_store import BanshareSettingsStore
from tcn.banshares.store import BanshareStore
from tcn.banshares.workflow import BanshareWorkflow
from tcn.errors import ErrorCode, UpstreamError
from tcn.security.audit_log import AuditLogger

AUTHOR = "111111111111111111"
OTHER = "222222222222222222"
OBSERVER = "333333333333333333"
GUILD_A = "444444444444444444"
GUILD_B = "555555555555555555"
CHANNEL = "666666666666666666"
TARGETS = "777777777777777777 888888888888888888"

HOUR_MS = 60 * 60 * 1000


class FakeGateway:
    """In-memory enforcement gateway.

    Records every call in ``calls``. Add a notification kind (or
    ``"create"``) to ``fail`` to make that call raise ``UpstreamError``, or
    to ``hang`` to make it block until the caller gives up.
    """

    def __init__(self):
        self.calls = []
        self.fail = set()
        self.hang = set()
        self.channel_errors = {}
        self.existing = set()
        self._ids = itertools.count(900000000000000001)

    def _maybe_fail(self, kind):
        if kind in self.fail:
            raise UpstreamError("The Discord bot is offline.", status=503, code=ErrorCode.BOT_OFFLINE)

    async def create(self, report):
        self._maybe_fail("create")
        self.calls.append(("create", report))
        message = str(next(self._ids))
        self.existing.add(message)
        return message

    async def notify(self, kind, message, payload=None):
        kind = Notification(kind).value
        self.calls.append((kind, message, payload))
        # Yield so concurrent operations interleave at the gateway call
        await asyncio.sleep(0)
        if kind in self.hang:
            await asyncio.sleep(10)
        self._maybe_fail(kind)

    async def validate_channel(self, guild, channel):
        self.calls.append(("validate_channel", guild, channel))
        return self.channel_errors.get(channel)

    async def message_exists(self, message):
        return message in self.existing

    def kinds(self):
        return [call[0] for call in self.calls]


class Clock:
    """Manually advanced millisecond clock."""

    def __init__(self, now=1_700_000_000_000):
        self.now = now

    def __call__(self):
        return self.now


def make_workflow(tmpdir, gateway=None, clock=None):
    """Build a workflow over stores rooted in *tmpdir*."""
    base = Path(tmpdir)
    store = BanshareStore(base / "banshares")
    audit = AuditLogger(base / "audit_logs")
    gateway = gateway or FakeGateway()
    workflow = BanshareWorkflow(
        store,
        BanshareSettingsStore(base / "banshares"),
        gateway,
        audit,
        clock=clock or Clock(),
    )
    return workflow, store, gateway, audit


def submit(workflow, **overrides):
    """Create a banshare with sensible defaults and return its message ID."""
    fields = {
        "author": AUTHOR,
        "server": GUILD_A,
        "severity": "P1",
        "reason": "Raid coordination across several servers",
        "evidence": "https://example.org/evidence",
        "ids": TARGETS,
    }
    fields.update(overrides)
    return asyncio.run(workflow.create(**fields))

"""Application services, built once per app instance.

Stores, the gateway client and the workflow are constructed explicitly from
``Settings`` and attached to ``app.state``; routers reach them through the
``get_services`` dependency.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import Request

from tcn.auth.permissions import PermissionChecker
from tcn.auth.store import UserStore
from tcn.banshares.gateway import EnforcementGateway, HttpEnforcementGateway
from tcn.banshares.settings_store import BanshareSettingsStore
from tcn.banshares.store import BanshareStore
from tcn.banshares.workflow import BanshareWorkflow
from tcn.config import Settings
from tcn.security.audit_log import AuditLogger
from tcn.security.rate_limit import RateLimiter


@dataclass
class Services:
    settings: Settings
    users: UserStore
    permissions: PermissionChecker
    workflow: BanshareWorkflow
    audit: AuditLogger
    rate_limiter: RateLimiter


def build_services(settings: Settings, gateway: Optional[EnforcementGateway] = None) -> Services:
    base = Path(settings.data_dir)
    users = UserStore(base / "auth")
    audit = AuditLogger(base / "audit_logs")
    if gateway is None:
        gateway = HttpEnforcementGateway(
            settings.gateway_url, timeout=settings.gateway_timeout, token=settings.gateway_token
        )
    workflow = BanshareWorkflow(
        BanshareStore(base / "banshares"),
        BanshareSettingsStore(base / "banshares"),
        gateway,
        audit,
        urgent_remind_after=settings.urgent_remind_after,
        remind_after=settings.remind_after,
    )
    return Services(
        settings=settings,
        users=users,
        permissions=PermissionChecker(users, hub_guild=settings.hub_guild),
        workflow=workflow,
        audit=audit,
        rate_limiter=RateLimiter(),
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the app's ``Services``."""
    return request.app.state.services

"""Client for the enforcement gateway (the Discord bot's internal API).

The gateway posts banshare alerts, executes bans and relays every review
decision to the federation. It also issues the message ID that becomes a
banshare's primary key. Every call is a bounded-timeout HTTP request; a
timeout, a connection failure and a non-2xx response are all reported as
``UpstreamError`` so the workflow can compensate uniformly.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, Protocol

import httpx

from tcn.errors import ErrorCode, UpstreamError, ValidationError

logger = logging.getLogger(__name__)


class Notification(str, Enum):
    """Kinds of committed transitions the gateway is told about."""

    severity = "severity"
    reject = "reject"
    publish = "publish"
    rescind = "rescind"
    execute = "execute"
    report = "report"
    remind = "remind"


class EnforcementGateway(Protocol):
    """What the workflow needs from the enforcement side."""

    async def create(self, report: dict[str, Any]) -> str:
        """Post a new banshare for review and return its message ID."""
        ...

    async def notify(self, kind: Notification, message: str, payload: Optional[dict[str, Any]] = None) -> None:
        """Tell the gateway about a committed transition. Raises on failure."""
        ...

    async def validate_channel(self, guild: str, channel: str) -> Optional[str]:
        """Return an error message if *channel* cannot receive banshares for *guild*."""
        ...

    async def message_exists(self, message: str) -> bool:
        """Return True if the banshare's alert message still exists."""
        ...


class HttpEnforcementGateway:
    """``EnforcementGateway`` over the bot's HTTP interface.

    Parameters
    ----------
    base_url : str
        Root URL of the bot interface, e.g. ``http://bot:8001``.
    timeout : float
        Per-request timeout in seconds.
    token : str
        Optional bearer token sent with every request.
    transport : httpx.AsyncBaseTransport | None
        Custom transport, mainly for tests (``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        token: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._transport = transport

    async def _request(self, method: str, path: str, body: Optional[dict[str, Any]] = None) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                return await client.request(method, path, json=body)
        except httpx.TimeoutException as exc:
            logger.warning("Gateway request %s %s timed out: %s", method, path, exc)
            raise UpstreamError(
                f"The Discord bot did not respond in time ({method} {path}).",
                status=503,
                code=ErrorCode.BOT_OFFLINE,
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("Gateway request %s %s failed: %s", method, path, exc)
            raise UpstreamError("The Discord bot is offline.", status=503, code=ErrorCode.BOT_OFFLINE) from exc

    @staticmethod
    def _json(resp: httpx.Response) -> dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _raise_for_status(self, resp: httpx.Response, method: str, path: str) -> None:
        if resp.is_success:
            return
        logger.warning("Gateway request %s %s returned %s", method, path, resp.status_code)
        raise UpstreamError(
            f"An unexpected error occurred in an internal Discord bot API request ({method} {path})."
        )

    async def create(self, report: dict[str, Any]) -> str:
        resp = await self._request("POST", "/banshares", report)
        data = self._json(resp)
        if resp.status_code == 400:
            raise ValidationError(data.get("message") or "The bot rejected this banshare.")
        self._raise_for_status(resp, "POST", "/banshares")
        message = data.get("message")
        if not message:
            raise UpstreamError("The Discord bot did not return a message ID for the banshare.")
        return str(message)

    async def notify(self, kind: Notification, message: str, payload: Optional[dict[str, Any]] = None) -> None:
        payload = payload or {}
        kind = Notification(kind)
        if kind is Notification.severity:
            method, path, body = "PATCH", f"/banshares/{message}/severity/{payload['severity']}", None
        elif kind is Notification.execute:
            method, path, body = "POST", f"/banshares/{message}/execute/{payload['guild']}", None
        elif kind is Notification.remind:
            method, path, body = "POST", "/banshares/remind", None
        elif kind is Notification.report:
            method, path, body = "POST", f"/banshares/{message}/report", payload
        else:
            method, path, body = "POST", f"/banshares/{message}/{kind.value}", None

        resp = await self._request(method, path, body)
        self._raise_for_status(resp, method, path)

    async def validate_channel(self, guild: str, channel: str) -> Optional[str]:
        path = f"/channels/{channel}/banshare-valid/{guild}"
        resp = await self._request("GET", path)
        self._raise_for_status(resp, "GET", path)
        return self._json(resp).get("error") or None

    async def message_exists(self, message: str) -> bool:
        path = f"/banshares/{message}/exists"
        resp = await self._request("GET", path)
        self._raise_for_status(resp, "GET", path)
        return bool(self._json(resp).get("exists", True))

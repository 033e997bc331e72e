"""Tests for the HTTP enforcement gateway client."""

import asyncio
import json

import httpx
import pytest

from tcn.banshares.gateway import HttpEnforcementGateway, Notification
from tcn.errors import ErrorCode, UpstreamError, ValidationError


def _gateway(handler, token=""):
    return HttpEnforcementGateway("http://bot.test/", timeout=1.0, token=token, transport=httpx.MockTransport(handler))


def test_create_returns_message_id():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"message": 900000000000000001})

    message = asyncio.run(_gateway(handler, token="s3cret").create({"ids": "1", "severity": "P0"}))

    assert message == "900000000000000001"
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/banshares"
    assert json.loads(seen[0].content) == {"ids": "1", "severity": "P0"}
    assert seen[0].headers["Authorization"] == "Bearer s3cret"


def test_create_bad_request_is_a_validation_error():
    def handler(request):
        return httpx.Response(400, json={"message": "One of the IDs is not a valid user."})

    with pytest.raises(ValidationError, match="not a valid user"):
        asyncio.run(_gateway(handler).create({}))


def test_create_without_message_id_fails():
    def handler(request):
        return httpx.Response(200, json={})

    with pytest.raises(UpstreamError):
        asyncio.run(_gateway(handler).create({}))


def test_server_error_is_upstream_error():
    def handler(request):
        return httpx.Response(500, text="boom")

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(_gateway(handler).notify(Notification.publish, "900000000000000001"))
    assert exc.value.status == 500


def test_connection_failure_reports_bot_offline():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(_gateway(handler).notify(Notification.reject, "900000000000000001"))
    assert exc.value.status == 503
    assert exc.value.code == ErrorCode.BOT_OFFLINE


def test_timeout_reports_bot_offline():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(_gateway(handler).create({}))
    assert exc.value.code == ErrorCode.BOT_OFFLINE
    assert "did not respond in time" in exc.value.message


@pytest.mark.parametrize(
    "kind, payload, method, path",
    [
        (Notification.severity, {"severity": "P0"}, "PATCH", "/banshares/42/severity/P0"),
        (Notification.reject, None, "POST", "/banshares/42/reject"),
        (Notification.publish, None, "POST", "/banshares/42/publish"),
        (Notification.rescind, None, "POST", "/banshares/42/rescind"),
        (Notification.execute, {"guild": "7"}, "POST", "/banshares/42/execute/7"),
        (Notification.report, {"user": "9", "reason": "r"}, "POST", "/banshares/42/report"),
        (Notification.remind, None, "POST", "/banshares/remind"),
    ],
)
def test_notification_routes(kind, payload, method, path):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(204)

    message = "" if kind is Notification.remind else "42"
    asyncio.run(_gateway(handler).notify(kind, message, payload))

    assert (seen[0].method, seen[0].url.path) == (method, path)


def test_report_notification_carries_body():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={})

    asyncio.run(_gateway(handler).notify(Notification.report, "42", {"user": "9", "reason": "framed"}))

    assert seen == [{"user": "9", "reason": "framed"}]


def test_validate_channel():
    def handler(request):
        assert request.url.path == "/channels/66/banshare-valid/44"
        return httpx.Response(200, json={"error": "Missing permissions."})

    assert asyncio.run(_gateway(handler).validate_channel("44", "66")) == "Missing permissions."


def test_validate_channel_ok():
    def handler(request):
        return httpx.Response(200, json={"error": None})

    assert asyncio.run(_gateway(handler).validate_channel("44", "66")) is None


def test_message_exists():
    def handler(request):
        assert request.url.path == "/banshares/42/exists"
        return httpx.Response(200, json={"exists": False})

    assert asyncio.run(_gateway(handler).message_exists("42")) is False

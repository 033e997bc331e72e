"""Tests for banshare submission checks."""

import pytest

from tcn.banshares.models import Severity
from tcn.banshares.validation import (
    check_length,
    contains_media_link,
    is_snowflake,
    parse_id_list,
    parse_severity,
    validate_explanation,
    validate_report_reason,
    validate_submission,
)
from tcn.errors import ValidationError


def test_parse_id_list():
    assert parse_id_list("111111111111111111 222222222222222222") == [
        "111111111111111111",
        "222222222222222222",
    ]
    assert parse_id_list("  12345678901234567\n\t98765432109876543210 ") == [
        "12345678901234567",
        "98765432109876543210",
    ]


@pytest.mark.parametrize("ids", ["", "1234", "011111111111111111", "111111111111111111,222222222222222222"])
def test_parse_id_list_rejects_malformed(ids):
    with pytest.raises(ValidationError):
        parse_id_list(ids)


def test_is_snowflake():
    assert is_snowflake("444444444444444444")
    assert not is_snowflake("44444444444444444444444")
    assert not is_snowflake("abc")


def test_parse_severity():
    assert parse_severity("DM") is Severity.DM
    with pytest.raises(ValidationError, match="P0, P1, P2, or DM"):
        parse_severity("p0")


def test_media_links_are_detected_case_insensitively():
    assert contains_media_link("see https://CDN.discordapp.com/attachments/x")
    assert contains_media_link("ok", "https://media.discordapp.net/y")
    assert not contains_media_link("https://imgur.com/a/b")


def test_length_limits():
    check_length("Reason", "x" * 498, 498)
    with pytest.raises(ValidationError, match="1-498"):
        check_length("Reason", "", 498)
    with pytest.raises(ValidationError):
        validate_explanation("x" * 1801)
    with pytest.raises(ValidationError):
        validate_report_reason("")


def test_validate_submission():
    severity, id_list = validate_submission(
        "111111111111111111", "222222222222222222", "Raids", "https://example.org", "P2", skip_checks=False
    )
    assert severity is Severity.P2
    assert id_list == ["222222222222222222"]

    with pytest.raises(ValidationError, match="yourself"):
        validate_submission(
            "111111111111111111", "111111111111111111", "Raids", "evidence", "P2", skip_checks=False
        )
    with pytest.raises(ValidationError):
        validate_submission("1", "ids", "x" * 499, "evidence", "P2", skip_checks=True)

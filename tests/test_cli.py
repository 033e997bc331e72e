"""Tests for the tcn command line."""

import asyncio
import tempfile

from click.testing import CliRunner

from fakes import GUILD_A, make_workflow, submit
from tcn.auth.models import User
from tcn.auth.store import UserStore
from tcn.cli import main


def _run(tmpdir, *args):
    return CliRunner().invoke(main, list(args), env={"TCN_DATA_DIR": tmpdir, "TCN_CONFIG": ""})


def test_autoban_matrix():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _run(tmpdir, "autoban", "136")

    assert result.exit_code == 0
    assert "10001000" in result.output
    assert "non-member" in result.output


def test_autoban_rejects_out_of_range():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _run(tmpdir, "autoban", "300")

    assert result.exit_code != 0


def test_pending_and_show():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert "No pending banshares" in _run(tmpdir, "pending").output

        workflow, _, _, _ = make_workflow(tmpdir)
        message = submit(workflow, reason="Scam links in DMs")

        result = _run(tmpdir, "pending")
        assert result.exit_code == 0
        assert message in result.output

        result = _run(tmpdir, "show", message)
        assert result.exit_code == 0
        assert "Scam links in DMs" in result.output

        assert _run(tmpdir, "show", "999999999999999999").exit_code == 1


def test_settings_shows_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        workflow, _, _, _ = make_workflow(tmpdir)
        asyncio.run(workflow.update_settings("1", GUILD_A, {"blockdms": True}))

        result = _run(tmpdir, "settings", GUILD_A)

    assert result.exit_code == 0
    assert "blockdms" in result.output
    assert "True" in result.output


def test_create_key():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert _run(tmpdir, "create-key", "42").exit_code == 1

        UserStore(f"{tmpdir}/auth").save_user(User(id="42"))
        result = _run(tmpdir, "create-key", "42", "--days", "7")

        assert result.exit_code == 0
        assert "tcn_" in result.output
        raw = max((w for w in result.output.split() if w.startswith("tcn_")), key=len)
        assert UserStore(f"{tmpdir}/auth").validate_api_key(raw).id == "42"

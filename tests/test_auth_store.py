"""Tests for the user, guild and API key store."""

import json
import tempfile
from pathlib import Path

from tcn.auth.models import Guild, GuildMembership, User
from tcn.auth.store import UserStore


def test_users_roundtrip_with_memberships():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = UserStore(tmpdir)
        store.save_user(
            User(id="1", council=True, guilds={"44": GuildMembership(staff=True, roles=["banshares"])})
        )

        user = store.get_user("1")
        assert user.council is True
        assert user.guilds["44"].banshare_staff is True
        assert user.internal is False
        assert store.get_user("2") is None

        store.save_user(User(id="1", observer=True))
        assert [u.observer for u in store.list_users()] == [True]


def test_guild_directory():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = UserStore(tmpdir)
        store.save_guild(Guild(id="44", name="Guild A", owner="1"))

        assert store.get_guild("44").owner == "1"
        assert store.get_guild("55") is None
        assert [g.id for g in store.list_guilds()] == ["44"]


def test_api_keys():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = UserStore(tmpdir)
        store.save_user(User(id="1"))

        key, raw = store.create_api_key("1", "bot")
        assert raw.startswith("tcn_")
        assert key.prefix == raw[:8]
        assert store.validate_api_key(raw).id == "1"
        assert store.validate_api_key(raw + "x") is None

        assert store.delete_api_key(key.id) is True
        assert store.delete_api_key(key.id) is False
        assert store.validate_api_key(raw) is None


def test_expired_keys_are_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = UserStore(tmpdir)
        store.save_user(User(id="1"))
        _, raw = store.create_api_key("1", "old")

        path = Path(tmpdir) / "api_keys.json"
        keys = json.loads(path.read_text())
        keys[0]["expires_at"] = "2000-01-01T00:00:00"
        path.write_text(json.dumps(keys))

        assert store.validate_api_key(raw) is None

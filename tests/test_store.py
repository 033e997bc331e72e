"""Tests for the file-backed banshare and settings stores."""

import json
import tempfile
from pathlib import Path

import pytest

from tcn.banshares.models import Banshare, BanshareStatus, Crosspost, Report
from tcn.banshares.settings_store import BanshareSettingsStore
from tcn.banshares.store import BanshareStore
from tcn.errors import DuplicateError, ErrorCode, NotFoundError, StorageError
from tcn.storage import JsonListFile


def _banshare(message="900000000000000001", **overrides) -> Banshare:
    fields = dict(
        message=message,
        status="pending",
        urgent=False,
        severity="P1",
        ids="777777777777777777",
        id_list=["777777777777777777"],
        reason="Spam raids",
        evidence="https://example.org",
        server="444444444444444444",
        author="111111111111111111",
        created=1000,
        reminded=1000,
    )
    fields.update(overrides)
    return Banshare(**fields)


def test_insert_and_get_roundtrip():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareStore(tmpdir)
        store.insert(_banshare())

        b = store.get("900000000000000001")
        assert b.status == BanshareStatus.pending
        assert b.id_list == ["777777777777777777"]
        assert store.exists("900000000000000001")
        assert store.get("900000000000000002") is None


def test_insert_duplicate_key():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareStore(tmpdir)
        store.insert(_banshare())

        with pytest.raises(DuplicateError):
            store.insert(_banshare())


def test_records_survive_a_new_store_instance():
    with tempfile.TemporaryDirectory() as tmpdir:
        BanshareStore(tmpdir).insert(_banshare())

        assert BanshareStore(tmpdir).list_messages() == ["900000000000000001"]


def test_corrupted_file_raises_and_is_left_untouched():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareStore(tmpdir)
        store.insert(_banshare("900000000000000001"))
        path = Path(tmpdir) / "banshares.json"
        truncated = path.read_text()[:-5]
        path.write_text(truncated)

        with pytest.raises(StorageError):
            store.list_banshares()
        with pytest.raises(StorageError):
            store.insert(_banshare("900000000000000002"))

        assert path.read_text() == truncated


def test_id_list_is_persisted_in_camel_case():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareStore(tmpdir)
        store.insert(_banshare())

        record = json.loads((Path(tmpdir) / "banshares.json").read_text())[0]
        assert record["idList"] == ["777777777777777777"]
        assert "id_list" not in record

        # records written under the snake_case name still load
        record["id_list"] = record.pop("idList")
        (Path(tmpdir) / "banshares.json").write_text(json.dumps([record]))
        assert store.get("900000000000000001").id_list == ["777777777777777777"]


def test_list_filters_by_status():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareStore(tmpdir)
        store.insert(_banshare("900000000000000001"))
        store.insert(_banshare("900000000000000002", status="published"))

        assert store.list_messages(BanshareStatus.pending) == ["900000000000000001"]
        assert store.list_messages(BanshareStatus.published) == ["900000000000000002"]
        assert len(store.list_banshares()) == 2


def test_update_where_guards_on_status_and_returns_prior():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareStore(tmpdir)
        store.insert(_banshare())

        before = store.update_where("900000000000000001", BanshareStatus.pending, {"severity": "P0"})
        assert before.severity.value == "P1"
        assert before.version == 0

        after = store.get("900000000000000001")
        assert after.severity.value == "P0"
        assert after.version == 1

        assert store.update_where("900000000000000001", BanshareStatus.published, {"severity": "P2"}) is None
        assert store.update_where("900000000000000009", None, {"severity": "P2"}) is None
        assert store.get("900000000000000001").version == 1


def test_update_where_condition_and_unset():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareStore(tmpdir)
        store.insert(_banshare(status="rejected", rejecter="333333333333333333"))

        assert (
            store.update_where(
                "900000000000000001",
                BanshareStatus.rejected,
                {"status": "pending"},
                unset_fields=["rejecter"],
                condition=lambda r: r.get("rejecter") == "somebody else",
            )
            is None
        )

        store.update_where(
            "900000000000000001",
            BanshareStatus.rejected,
            {"status": "pending"},
            unset_fields=["rejecter"],
            condition=lambda r: r.get("rejecter") == "333333333333333333",
        )
        b = store.get("900000000000000001")
        assert b.status == BanshareStatus.pending
        assert b.rejecter is None


def test_transition_only_follows_status_dag():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareStore(tmpdir)
        store.insert(_banshare())

        with pytest.raises(ValueError):
            store.transition("900000000000000001", BanshareStatus.pending, BanshareStatus.rescinded)
        with pytest.raises(ValueError):
            store.transition("900000000000000001", BanshareStatus.rejected, BanshareStatus.published)

        assert store.transition(
            "900000000000000001", BanshareStatus.pending, BanshareStatus.published, {"publisher": "3"}
        )
        assert store.get("900000000000000001").publisher == "3"
        assert store.transition("900000000000000001", BanshareStatus.pending, BanshareStatus.rejected) is None


def test_executors_are_once_per_guild():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareStore(tmpdir)
        store.insert(_banshare(status="published"))

        assert store.add_executor("900000000000000001", "444444444444444444", "alice") is not None
        assert store.add_executor("900000000000000001", "444444444444444444", "bob") is None
        assert store.add_executor("900000000000000001", "555555555555555555", "bob") is not None

        # only the matching executor's entry can be removed
        assert store.remove_executor("900000000000000001", "444444444444444444", "bob") is False
        assert store.remove_executor("900000000000000001", "444444444444444444", "alice") is True
        assert store.get("900000000000000001").executors == {"555555555555555555": "bob"}


def test_add_executor_requires_published():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareStore(tmpdir)
        store.insert(_banshare(status="rescinded"))

        assert store.add_executor("900000000000000001", "444444444444444444", "alice") is None


def test_append_crossposts_and_reports():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareStore(tmpdir)
        store.insert(_banshare())
        a = Crosspost(guild="1", channel="2", message="3")
        b = Crosspost(guild="1", channel="4", message="5")
        c = Crosspost(guild="6", channel="7", message="8")

        assert store.append_crossposts("900000000000000001", [a, b, c]) == [a, c]
        assert store.append_crossposts("900000000000000001", [b]) == []
        assert store.append_crossposts("900000000000000009", [a]) is None

        assert store.append_report("900000000000000001", Report(reporter="9", reason="wrong person"))
        assert not store.append_report("900000000000000009", Report(reporter="9", reason="x"))

        saved = store.get("900000000000000001")
        assert saved.crossposts == [a, c]
        assert saved.reports == [Report(reporter="9", reason="wrong person")]


def test_mark_reminded_and_archive():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareStore(tmpdir)
        store.insert(_banshare("900000000000000001", urgent=True, reminded=100))
        store.insert(_banshare("900000000000000002", reminded=100))

        assert store.mark_reminded(500, urgent_before=200, normal_before=50) == ["900000000000000001"]
        assert store.get("900000000000000001").reminded == 500
        assert store.get("900000000000000002").reminded == 100

        removed = store.archive("900000000000000002")
        assert removed.message == "900000000000000002"
        assert store.archive("900000000000000002") is None
        assert store.list_messages() == ["900000000000000001"]
        assert [b.message for b in store.list_deleted()] == ["900000000000000002"]


# ── Settings store ───────────────────────────────────────────────────


def test_settings_upsert_returns_previous():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareSettingsStore(tmpdir)

        assert store.upsert("g1", {"blockdms": True}) is None
        previous = store.upsert("g1", {"autoban": 3})

        assert previous == {"guild": "g1", "blockdms": True}
        assert store.get_raw("g1") == {"guild": "g1", "blockdms": True, "autoban": 3}
        assert store.get_raw("g2") is None


def test_settings_log_limits():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareSettingsStore(tmpdir)
        for i in range(10):
            store.add_log("g1", f"c{i}")

        with pytest.raises(DuplicateError) as exc:
            store.add_log("g1", "c10")
        assert exc.value.code == ErrorCode.LIMIT_REACHED

        with pytest.raises(DuplicateError) as exc:
            store.add_log("g1", "c0")
        assert exc.value.code == ErrorCode.DUPLICATE

        store.remove_log("g1", "c0")
        with pytest.raises(NotFoundError):
            store.remove_log("g1", "c0")
        with pytest.raises(NotFoundError):
            store.remove_log("g2", "c0")


def test_settings_delete():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = BanshareSettingsStore(tmpdir)
        store.upsert("g1", {"daedalus": True})

        assert store.delete("g1") is True
        assert store.delete("g1") is False
        assert store.list_all() == []


def test_json_list_file_rejects_non_list_content():
    with tempfile.TemporaryDirectory() as tmpdir:
        file = JsonListFile(Path(tmpdir) / "records.json")
        assert file.read() == []

        file.path.write_text('{"guild": "g1"}')
        with pytest.raises(StorageError):
            file.read()

        file.write([{"guild": "g1"}])
        assert file.read() == [{"guild": "g1"}]
        assert not (Path(tmpdir) / "records.tmp").exists()

import sqlite3

import pytest

from dynstandby.db import SqliteStore
from dynstandby.errors import Conflict, NotFound, StoreUnavailable
from dynstandby.models import FleetKey


def test_upsert_and_get_fleet(store, key):
    created = store.upsert_fleet(key, "build-id", 10, active=3, standby=4)
    got = store.get_fleet(key)
    assert got == created
    assert (got.active, got.standby, got.target_standby) == (3, 4, 10)
    assert got.uid
    assert store.list_fleets() == [key]


def test_get_missing_fleet_raises_not_found(store):
    with pytest.raises(NotFound):
        store.get_fleet(FleetKey("default", "nope"))


def test_update_rejects_stale_revision(store, make_fleet):
    fleet = make_fleet(target=10)
    updated = store.update_target_standby(fleet, 15)
    assert updated.target_standby == 15
    assert updated.revision != fleet.revision

    with pytest.raises(Conflict):
        store.update_target_standby(fleet, 20)
    assert store.get_fleet(fleet.key).target_standby == 15


def test_status_change_invalidates_pending_write(store, make_fleet):
    fleet = make_fleet(target=10)
    store.set_status(fleet.key, active=30, standby=0)
    with pytest.raises(Conflict):
        store.update_target_standby(fleet, 15)


def test_update_of_deleted_fleet_is_not_found(store, make_fleet):
    fleet = make_fleet()
    store.delete_fleet(fleet.key)
    with pytest.raises(NotFound):
        store.update_target_standby(fleet, 5)


def test_floor_record_is_deleted_with_its_fleet(store, make_fleet):
    fleet = make_fleet(target=4)
    store.create_floor_data(fleet, {"floor": "4"})
    store.delete_fleet(fleet.key)

    with pytest.raises(NotFound):
        store.get_floor_data(fleet.key)
    with store.connect() as conn:
        assert conn.execute("SELECT COUNT(*) FROM floor_data").fetchone()[0] == 0


def test_floor_record_requires_live_owner(store, make_fleet):
    fleet = make_fleet()
    store.delete_fleet(fleet.key)
    with pytest.raises(NotFound):
        store.create_floor_data(fleet, {"floor": "1"})


def test_log_event_writes_row(store, key):
    assert store.log_event("info", "hello", key=key, reason="UnitTest") is True
    ev = store.latest_events(1)[0]
    assert (ev["level"], ev["namespace"], ev["name"], ev["reason"], ev["message"]) == (
        "INFO",
        "default",
        "build-a",
        "UnitTest",
        "hello",
    )


def test_directory_db_path_gets_a_file_inside(tmp_path):
    s = SqliteStore(str(tmp_path))
    assert s.path == str(tmp_path / "dynstandby.db")


def test_operational_errors_become_store_unavailable(store, monkeypatch):
    def boom():
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(store, "connect", boom)
    with pytest.raises(StoreUnavailable):
        store.list_fleets()
    assert store.log_event("INFO", "dropped") is False


def _corrupt(path):
    with open(path, "wb") as fh:
        fh.write(b"not a database" * 100)


def test_corrupt_db_file_becomes_store_unavailable(store, make_fleet, key):
    make_fleet()
    _corrupt(store.path)

    with pytest.raises(StoreUnavailable):
        store.get_fleet(key)
    with pytest.raises(StoreUnavailable):
        store.list_fleets()
    assert store.log_event("INFO", "dropped") is False

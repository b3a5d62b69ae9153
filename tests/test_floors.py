import pytest

from dynstandby.errors import AlreadyExists, MalformedFloor, NotFound, StoreUnavailable
from dynstandby.floors import FloorStore, floor_data, parse_floor


def test_floor_data_snapshots_fleet_as_decimal_text(make_fleet):
    fleet = make_fleet(target=42, active=7, standby=3)
    assert floor_data(fleet) == {
        "buildID": fleet.build_id,
        "floor": "42",
        "active": "7",
        "standby": "3",
        "target": "42",
    }


@pytest.mark.parametrize("raw,expected", [("42", 42), ("0", 0), (" 7 ", 7)])
def test_parse_floor(raw, expected):
    assert parse_floor({"floor": raw}) == expected


@pytest.mark.parametrize("raw", ["", "-1", "+3", "4.5", "abc", "٣"])
def test_parse_floor_rejects_malformed(raw):
    with pytest.raises(MalformedFloor):
        parse_floor({"floor": raw})


def test_parse_floor_requires_field():
    with pytest.raises(MalformedFloor):
        parse_floor({"buildID": "x"})


def test_ensure_creates_once_from_current_target(store, make_fleet):
    fleet = make_fleet(target=20)
    floors = FloorStore(store)

    rec = floors.ensure(fleet)
    assert rec.floor == 20
    assert rec.build_id == fleet.build_id

    # Later targets do not move the recorded floor.
    fleet = store.update_target_standby(fleet, 80)
    assert floors.ensure(fleet).floor == 20

    created = [e for e in store.latest_events() if e["reason"] == "FloorCreated"]
    assert len(created) == 1


class _RacingStore:
    """Reports the record as absent, then loses the create race to another writer."""

    def __init__(self, inner, fleet):
        self.inner = inner
        self.fleet = fleet
        self.reads = 0

    def get_floor_data(self, key, timeout_s=None):
        self.reads += 1
        if self.reads == 1:
            # Another actor creates it right after our read.
            self.inner.create_floor_data(self.fleet, floor_data(self.fleet))
            raise NotFound("not yet")
        return self.inner.get_floor_data(key)

    def create_floor_data(self, fleet, data, timeout_s=None):
        return self.inner.create_floor_data(fleet, data)

    def log_event(self, *args, **kwargs):
        return self.inner.log_event(*args, **kwargs)


def test_ensure_treats_lost_create_race_as_success(store, make_fleet):
    fleet = make_fleet(target=12)
    racing = _RacingStore(store, fleet)

    rec = FloorStore(racing).ensure(fleet.with_target(99))

    assert racing.reads == 2
    assert rec.floor == 12
    assert FloorStore(store).ensure(fleet).floor == 12


def test_concurrent_double_create_leaves_one_record(store, make_fleet):
    fleet = make_fleet(target=9)
    store.create_floor_data(fleet, floor_data(fleet))
    with pytest.raises(AlreadyExists):
        store.create_floor_data(fleet, floor_data(fleet.with_target(1)))
    assert parse_floor(store.get_floor_data(fleet.key)) == 9


def test_ensure_propagates_other_store_errors(make_fleet):
    class _Down:
        def get_floor_data(self, key, timeout_s=None):
            raise StoreUnavailable("db locked")

    with pytest.raises(StoreUnavailable):
        FloorStore(_Down()).ensure(make_fleet())


def test_ensure_surfaces_malformed_floor(store, make_fleet):
    fleet = make_fleet(target=5)
    store.create_floor_data(fleet, {"buildID": fleet.build_id, "floor": "five"})
    with pytest.raises(MalformedFloor):
        FloorStore(store).ensure(fleet)

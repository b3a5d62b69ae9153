from __future__ import annotations

from .errors import AlreadyExists, MalformedFloor, NotFound
from .models import FleetState, FloorRecord
from .store import Store

# Field names of a persisted floor record. Only FLOOR drives decisions; the
# rest is a snapshot of the fleet at creation time, kept for operators.
BUILD_ID = "buildID"
FLOOR = "floor"
ACTIVE = "active"
STANDBY = "standby"
TARGET = "target"


def floor_data(fleet: FleetState) -> dict[str, str]:
    """String map persisted for a fleet seen for the first time."""
    return {
        BUILD_ID: fleet.build_id,
        FLOOR: str(fleet.target_standby),
        ACTIVE: str(fleet.active),
        STANDBY: str(fleet.standby),
        TARGET: str(fleet.target_standby),
    }


def parse_floor(data: dict[str, str]) -> int:
    raw = data.get(FLOOR)
    if raw is None:
        raise MalformedFloor(f"floor record has no {FLOOR!r} field")
    text = raw.strip()
    # isdecimal() rejects signs, so negatives are malformed too.
    if not (text.isascii() and text.isdecimal()):
        raise MalformedFloor(f"floor value {raw!r} is not a non-negative integer", raw=raw)
    return int(text)


def to_record(fleet: FleetState, data: dict[str, str]) -> FloorRecord:
    return FloorRecord(
        key=fleet.key,
        build_id=data.get(BUILD_ID, fleet.build_id),
        floor=parse_floor(data),
        data=dict(data),
    )


class FloorStore:
    """Create-if-absent access to per-fleet floor records."""

    def __init__(self, store: Store):
        self.store = store

    def ensure(self, fleet: FleetState, timeout_s: float | None = None) -> FloorRecord:
        """Return the fleet's floor record, creating it from the current target if absent.

        Losing a create race to another actor is not an error: the winner's
        record is re-read and returned. Other store errors propagate.
        Raises MalformedFloor if the stored floor cannot be parsed.
        """
        try:
            data = self.store.get_floor_data(fleet.key, timeout_s=timeout_s)
        except NotFound:
            try:
                data = self.store.create_floor_data(fleet, floor_data(fleet), timeout_s=timeout_s)
                self.store.log_event(
                    "INFO",
                    f"Recorded standby floor {fleet.target_standby}",
                    key=fleet.key,
                    reason="FloorCreated",
                )
            except AlreadyExists:
                data = self.store.get_floor_data(fleet.key, timeout_s=timeout_s)
        return to_record(fleet, data)

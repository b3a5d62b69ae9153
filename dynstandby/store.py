from __future__ import annotations

from typing import Protocol

from .models import FleetKey, FleetState


class Store(Protocol):
    """What the reconciler needs from the external platform.

    Implementations translate their native failures into ``dynstandby.errors``.
    """

    def get_fleet(self, key: FleetKey, timeout_s: float | None = None) -> FleetState:
        """Raises NotFound when the fleet is gone."""
        ...

    def list_fleets(self) -> list[FleetKey]:
        ...

    def update_target_standby(self, fleet: FleetState, target_standby: int, timeout_s: float | None = None) -> FleetState:
        """Write the new target against ``fleet.revision``; raises Conflict on a stale revision."""
        ...

    def get_floor_data(self, key: FleetKey, timeout_s: float | None = None) -> dict[str, str]:
        ...

    def create_floor_data(self, fleet: FleetState, data: dict[str, str], timeout_s: float | None = None) -> dict[str, str]:
        """Create-if-absent, owned by ``fleet``; raises AlreadyExists when another actor won."""
        ...

    def log_event(self, level: str, message: str, key: FleetKey | None = None, reason: str = "") -> bool:
        ...

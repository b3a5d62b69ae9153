from __future__ import annotations

from . import sizer
from .alerts import send_escalation_alert
from .errors import Cancelled, Conflict, MalformedFloor, NotFound, StandbyError
from .floors import FloorStore
from .models import FleetKey, FleetState, Outcome, ReconcileResult
from .runtime import PassContext
from .settings import settings
from .store import Store


class Reconciler:
    """One level-triggered pass over a single fleet's standby target.

    Holds no state between passes: every pass reads the fleet and its floor
    record fresh, decides, and writes at most once.
    """

    def __init__(self, store: Store, floors: FloorStore | None = None):
        self.store = store
        self.floors = floors or FloorStore(store)

    def reconcile(self, key: FleetKey, ctx: PassContext | None = None) -> ReconcileResult:
        ctx = ctx or PassContext()
        try:
            return self._reconcile(key, ctx)
        except Cancelled as e:
            return ReconcileResult(Outcome.CANCELLED, message=str(e))
        except NotFound as e:
            # The fleet went away mid-pass; nothing left to size.
            return ReconcileResult(Outcome.NOT_FOUND, message=str(e))
        except Conflict as e:
            self.store.log_event("WARN", f"Standby update conflicted: {e}", key=key, reason="UpdateConflict")
            return ReconcileResult(Outcome.CONFLICT, message=str(e))
        except MalformedFloor as e:
            self.store.log_event("ERROR", f"Unusable standby floor: {e}", key=key, reason="MalformedFloor")
            return ReconcileResult(Outcome.INVALID, message=str(e))
        except StandbyError as e:
            return ReconcileResult(Outcome.RETRY, message=f"{type(e).__name__}: {e}")

    def _reconcile(self, key: FleetKey, ctx: PassContext) -> ReconcileResult:
        ctx.check()
        try:
            fleet = self.store.get_fleet(key, timeout_s=ctx.remaining())
        except NotFound:
            return ReconcileResult(Outcome.NOT_FOUND, message=f"fleet {key} not found, skipping")

        ctx.check()
        record = self.floors.ensure(fleet, timeout_s=ctx.remaining())

        decision = sizer.decide(fleet.active, fleet.standby, fleet.target_standby, record.floor)
        if decision.target == fleet.target_standby:
            return ReconcileResult(Outcome.UNCHANGED, target=fleet.target_standby, message=decision.reason)

        ctx.check()
        updated = self.store.update_target_standby(fleet, decision.target, timeout_s=ctx.remaining())

        msg = (
            f"Standby target {fleet.target_standby} -> {updated.target_standby} "
            f"({decision.reason}; active={fleet.active} standby={fleet.standby} floor={record.floor})"
        )
        self.store.log_event("INFO", msg, key=key, reason="StandbyEscalated" if decision.changed else "StandbyConverged")
        if decision.changed:
            self._maybe_email(fleet, updated.target_standby, decision.reason, record.floor)
        return ReconcileResult(Outcome.UPDATED, target=updated.target_standby, message=msg)

    def _maybe_email(self, fleet: FleetState, new_target: int, reason: str, floor: int) -> None:
        if not settings.enable_email:
            return
        if not send_escalation_alert(fleet, new_target, reason, floor, settings):
            self.store.log_event("WARN", "Escalation email not sent", key=fleet.key, reason="AlertFailed")

"""Dynamic standby sizing for warm pools.

Watches how many workers of a fleet are active versus standing by and moves
the fleet's requested standby count:
 - escalate when demand drains the standby pool
 - converge back toward the recorded floor once pressure is gone
 - record the floor once per fleet, owned by (and deleted with) the fleet

The decision itself is a pure function (``sizer.decide``); everything else is
store plumbing and a small work-queue driver.
"""
from __future__ import annotations

from .controller import Controller, ControllerConfig
from .floors import FloorStore
from .models import FleetKey, FleetState, FloorRecord, Outcome, ReconcileResult
from .reconciler import Reconciler
from .sizer import Decision, decide

__all__ = [
    "Controller",
    "ControllerConfig",
    "Decision",
    "FleetKey",
    "FleetState",
    "FloorRecord",
    "FloorStore",
    "Outcome",
    "ReconcileResult",
    "Reconciler",
    "decide",
]

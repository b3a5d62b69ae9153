from __future__ import annotations

from typing import NamedTuple

# (threshold, reason), most severe first. Comparisons are strict.
ESCALATION_STEPS: tuple[tuple[float, str], ...] = (
    (0.005, "escalate-4x"),
    (0.25, "escalate-3x"),
    (0.5, "escalate-1.5x"),
)


class Decision(NamedTuple):
    changed: bool
    target: int
    reason: str = "steady"


def ratio(standby: int, floor: int) -> float:
    """Fraction of the floor that is currently standing by.

    A zero floor has no meaningful ratio; 0.0 keeps it below every threshold.
    """
    if floor <= 0:
        return 0.0
    return standby / floor


def _escalate(target: int, reason: str) -> int:
    if reason == "escalate-4x":
        return 4 * target
    if reason == "escalate-3x":
        return 3 * target
    # 1.5x, rounded half-up: 3 -> 5. round() rounds half to even and would give 4.
    return (3 * target + 1) // 2


def converge(target: int, floor: int) -> int:
    """Halve the distance between target and floor; never goes below floor."""
    if target <= floor:
        return target
    return floor + (target - floor) // 2


def decide(active: int, standby: int, target: int, floor: int) -> Decision:
    """Compute the next standby target for a fleet.

    Under pressure (more active workers than the standby target) and with the
    standby pool drained below a fraction of the floor, the target is
    multiplied; the most severe matching threshold wins. Every threshold is
    evaluated against the original target.

    Without pressure the target converges toward the floor instead, and
    ``changed`` stays False.
    """
    if active > target:
        r = ratio(standby, floor)
        for threshold, reason in ESCALATION_STEPS:
            if r < threshold:
                return Decision(True, _escalate(target, reason), reason)

    new_target = converge(target, floor)
    if new_target != target:
        return Decision(False, new_target, "converge")
    return Decision(False, target, "steady")

from __future__ import annotations

import heapq
import time
from threading import Condition, Event, Lock

from .errors import Cancelled
from .models import FleetKey


class PassContext:
    """Deadline and cancellation signal for one reconciliation pass."""

    def __init__(self, deadline: float | None = None, timeout_s: float | None = None) -> None:
        if deadline is None and timeout_s is not None:
            deadline = time.monotonic() + timeout_s
        self.deadline = deadline
        self._cancel = Event()

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        if self._cancel.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        if self._cancel.is_set():
            raise Cancelled("pass cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise Cancelled("pass deadline exceeded")


class RuntimeState:
    """In-memory work queue for fleet keys.

    - a key is queued at most once at a time;
    - a key being processed is never handed to a second worker; if it is added
      meanwhile it is marked dirty and queued again by ``done``;
    - delayed adds (``add_after``) wait in a heap until due.
    """

    def __init__(self, backoff_base_s: float = 0.5, backoff_max_s: float = 60.0) -> None:
        self.lock = Lock()
        self._cond = Condition(self.lock)
        self.queue: list[FleetKey] = []
        self.queued: set[FleetKey] = set()
        self.processing: set[FleetKey] = set()
        self.dirty: set[FleetKey] = set()
        self.delayed: list[tuple[float, int, FleetKey]] = []  # (due, seq, key)
        self.fail_counts: dict[FleetKey, int] = {}  # key -> consecutive requeues
        self.backoff_base_s = backoff_base_s
        self.backoff_max_s = backoff_max_s
        self._seq = 0
        self._shutdown = False

    def __len__(self) -> int:
        with self.lock:
            return len(self.queue)

    def _add_locked(self, key: FleetKey) -> None:
        if key in self.processing:
            self.dirty.add(key)
            return
        if key in self.queued:
            return
        self.queued.add(key)
        self.queue.append(key)
        self._cond.notify()

    def add(self, key: FleetKey) -> None:
        with self.lock:
            if self._shutdown:
                return
            self._add_locked(key)

    def add_after(self, key: FleetKey, delay_s: float) -> None:
        if delay_s <= 0:
            self.add(key)
            return
        with self.lock:
            if self._shutdown:
                return
            self._seq += 1
            heapq.heappush(self.delayed, (time.monotonic() + delay_s, self._seq, key))
            self._cond.notify()

    def _promote_due_locked(self) -> float | None:
        """Move due delayed keys to the queue; return seconds until the next one."""
        now = time.monotonic()
        while self.delayed and self.delayed[0][0] <= now:
            _, _, key = heapq.heappop(self.delayed)
            self._add_locked(key)
        if self.delayed:
            return self.delayed[0][0] - now
        return None

    def get(self, timeout_s: float | None = None) -> FleetKey | None:
        """Block until a key is ready; None on timeout or shutdown."""
        end = None if timeout_s is None else time.monotonic() + timeout_s
        with self.lock:
            while True:
                if self._shutdown:
                    return None
                next_due = self._promote_due_locked()
                if self.queue:
                    key = self.queue.pop(0)
                    self.queued.discard(key)
                    self.processing.add(key)
                    return key
                wait = next_due
                if end is not None:
                    left = end - time.monotonic()
                    if left <= 0:
                        return None
                    wait = left if wait is None else min(wait, left)
                self._cond.wait(wait)

    def done(self, key: FleetKey) -> None:
        with self.lock:
            self.processing.discard(key)
            if key in self.dirty:
                self.dirty.discard(key)
                self._add_locked(key)

    def backoff(self, key: FleetKey) -> float:
        """Register another failure for key and return how long to wait before retrying."""
        with self.lock:
            n = self.fail_counts.get(key, 0)
            self.fail_counts[key] = n + 1
        return min(self.backoff_max_s, self.backoff_base_s * (2**n))

    def forget(self, key: FleetKey) -> None:
        with self.lock:
            self.fail_counts.pop(key, None)

    def shutdown(self) -> None:
        with self.lock:
            self._shutdown = True
            self._cond.notify_all()

    @property
    def is_shutdown(self) -> bool:
        with self.lock:
            return self._shutdown

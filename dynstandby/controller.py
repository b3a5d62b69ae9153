from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Event, Thread

from .errors import StandbyError
from .index import owner_index
from .models import FleetKey, ReconcileResult, WorkerObject
from .reconciler import Reconciler
from .runtime import PassContext, RuntimeState
from .settings import Settings
from .store import Store


@dataclass(frozen=True)
class ControllerConfig:
    owner_api_version: str
    owner_kind: str
    workers: int = 2
    resync_interval_s: float = 30.0
    pass_timeout_s: float = 15.0
    backoff_base_s: float = 0.5
    backoff_max_s: float = 60.0

    @classmethod
    def from_settings(cls, s: Settings) -> ControllerConfig:
        return cls(
            owner_api_version=s.group_version,
            owner_kind=s.build_kind,
            workers=max(1, s.workers),
            resync_interval_s=max(1.0, s.resync_interval_s),
            pass_timeout_s=max(0.1, s.pass_timeout_s),
            backoff_base_s=max(0.0, s.backoff_base_s),
            backoff_max_s=max(0.0, s.backoff_max_s),
        )


class Controller:
    """Feeds fleet keys to the reconciler from a periodic resync and worker events."""

    def __init__(self, store: Store, config: ControllerConfig, reconciler: Reconciler | None = None):
        self.store = store
        self.config = config
        self.reconciler = reconciler or Reconciler(store)
        self.runtime = RuntimeState(config.backoff_base_s, config.backoff_max_s)
        self._stop = Event()
        self._threads: list[Thread] = []

    def enqueue(self, key: FleetKey) -> None:
        self.runtime.add(key)

    def enqueue_for_worker(self, worker: WorkerObject) -> set[str]:
        """A worker changed: queue the fleet(s) that own it."""
        names = owner_index(worker, self.config.owner_api_version, self.config.owner_kind)
        for name in names:
            self.enqueue(FleetKey(worker.metadata.namespace, name))
        return names

    def resync(self) -> int:
        keys = self.store.list_fleets()
        for key in keys:
            self.enqueue(key)
        return len(keys)

    def process_next(self, timeout_s: float | None = None) -> ReconcileResult | None:
        """Run one pass for the next ready key; None if nothing became ready."""
        key = self.runtime.get(timeout_s)
        if key is None:
            return None
        try:
            result = self.reconciler.reconcile(key, PassContext(timeout_s=self.config.pass_timeout_s))
            if result.requeue:
                self.runtime.add_after(key, self.runtime.backoff(key))
            else:
                self.runtime.forget(key)
            return result
        finally:
            self.runtime.done(key)

    # -- threads -----------------------------------------------------------------

    def start(self) -> None:
        if self._threads:
            return
        if self.runtime.is_shutdown:
            # A stopped queue drops every add; restart with a fresh one.
            self.runtime = RuntimeState(self.config.backoff_base_s, self.config.backoff_max_s)
        self._stop.clear()
        self._threads.append(Thread(target=self._resync_loop, name="dsb-resync", daemon=True))
        for i in range(self.config.workers):
            self._threads.append(Thread(target=self._worker_loop, name=f"dsb-worker-{i}", daemon=True))
        for thr in self._threads:
            thr.start()
        self.store.log_event("INFO", f"Controller started with {self.config.workers} worker(s)")

    def stop(self, timeout_s: float = 5.0) -> None:
        self._stop.set()
        self.runtime.shutdown()
        for thr in self._threads:
            thr.join(timeout_s)
        self._threads = []

    def _resync_loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.resync()
            except StandbyError as e:
                self.store.log_event("ERROR", f"Resync failed: {type(e).__name__}: {e}")
            self._stop.wait(self.config.resync_interval_s)

    def _worker_loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.process_next(timeout_s=1.0)
            except Exception as e:
                self.store.log_event("ERROR", f"Reconcile pass failed: {type(e).__name__}: {e}")
                time.sleep(self.config.backoff_base_s)

"""
Per-login device session: registration plus the periodic background work
(heartbeat, pending-push poll, cloud refresh).

Tasks are driven by tick(); run_forever() is just tick + sleep. The clock
and sleep are injectable so tests can advance time without waiting.
"""
import time
from dataclasses import dataclass
from typing import Callable, Optional

from . import config as _cfg
from .cloud.sync import SyncReconciler
from .device import local_device_id, local_device_name
from .utils.logging import log, vlog, warn


@dataclass
class PeriodicTask:
    name: str
    interval: float
    action: Callable[[], object]
    next_due: float


class DeviceSession:

    def __init__(self, account, local_store,
                 device_id: Optional[str] = None, device_name: Optional[str] = None,
                 clock=time.monotonic, sleep=time.sleep):
        self.account = account
        self.local_store = local_store
        self.device_id = device_id or local_device_id()
        self.device_name = device_name or local_device_name()
        self.reconciler = SyncReconciler(account)
        self._clock = clock
        self._sleep = sleep
        self.tasks: list[PeriodicTask] = []
        self.active = False
        self.last_stats: Optional[dict] = None

    # ── lifecycle ───────────────────────────────────────────────────────────

    def start(self):
        """Register this device and schedule the background tasks."""
        if self.active:
            return
        self.account.registry.register_device(self.device_id, self.device_name)
        now = self._clock()
        self.tasks = [
            PeriodicTask("heartbeat", _cfg.HEARTBEAT_INTERVAL, self._heartbeat,
                         now + _cfg.HEARTBEAT_INTERVAL),
            PeriodicTask("pending-push", _cfg.PENDING_PUSH_INTERVAL, self._check_pending_push,
                         now + _cfg.PENDING_PUSH_INTERVAL),
            PeriodicTask("refresh", _cfg.REFRESH_INTERVAL, self._refresh,
                         now + _cfg.REFRESH_INTERVAL),
        ]
        self.active = True
        log(f"[session] started for {self.device_id} on account {self.account.name!r}")

    def stop(self):
        self.tasks = []
        self.active = False
        vlog("[session] stopped")

    def logout(self):
        """Mark the device offline, then stop every task."""
        try:
            self.account.registry.explicit_logout(self.device_id)
        finally:
            self.stop()

    # ── scheduling ──────────────────────────────────────────────────────────

    def tick(self, now: Optional[float] = None) -> list[str]:
        """Run every task that is due. Returns the names of the tasks that ran."""
        if not self.active:
            return []
        now = self._clock() if now is None else now
        ran = []
        for task in list(self.tasks):
            if now < task.next_due:
                continue
            task.next_due = now + task.interval
            ran.append(task.name)
            try:
                task.action()
            except Exception as exc:
                warn(f"[session] {task.name} failed: {exc} (will retry in {task.interval:.0f}s)")
        return ran

    def seconds_until_next(self, now: Optional[float] = None) -> Optional[float]:
        if not self.tasks:
            return None
        now = self._clock() if now is None else now
        return max(0.0, min(t.next_due for t in self.tasks) - now)

    def run_forever(self):
        """Tick until stopped; Ctrl-C logs the device out."""
        self.start()
        try:
            while self.active:
                self.tick()
                wait = self.seconds_until_next()
                if wait is None:
                    break
                self._sleep(wait)
        except KeyboardInterrupt:
            print()
            log("[session] interrupted, logging out")
            self.logout()

    # ── tasks ───────────────────────────────────────────────────────────────

    def _heartbeat(self):
        self.account.registry.heartbeat(self.device_id)

    def _check_pending_push(self):
        if self.reconciler.check_and_apply_pending_push(self.device_id, self.local_store):
            log("[session] configuration updated from cloud")

    def _refresh(self):
        self.last_stats = self.reconciler.stats()
        vlog(f"[session] cloud has {self.last_stats['profiles']} profile(s), "
             f"{self.last_stats['commands']} command(s)")

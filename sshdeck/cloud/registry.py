"""
Device registry: which installations are linked to an account, and whether
they are alive.

Two notions of liveness are kept apart:
  - the stored ``online`` flag, which only an explicit logout sets to False
    and only a registration sets back to True;
  - the effective status, derived from that flag plus heartbeat recency.
"""
from datetime import datetime, timedelta
from typing import Optional

from .. import config as _cfg
from ..errors import DeviceNotFound
from ..models import Device, DeviceStatus, Snapshot, utcnow
from ..utils.logging import log, vlog


def compute_effective_online(device: Device, now: datetime,
                             window: Optional[timedelta] = None) -> bool:
    """
    Explicit logout wins; otherwise online while the last heartbeat is recent.
    A device that has never been seen is offline.
    """
    if device.online is False or device.last_seen is None:
        return False
    window = window or timedelta(seconds=_cfg.LIVENESS_WINDOW_SECONDS)
    return now - device.last_seen < window


class DeviceRegistry:

    def __init__(self, account, clock=utcnow):
        self.account = account
        self._clock = clock

    def _find(self, devices: list[Device], device_id: str) -> Optional[Device]:
        return next((d for d in devices if d.device_id == device_id), None)

    # ── queries ─────────────────────────────────────────────────────────────

    def get_device(self, device_id: str) -> Device:
        device = self._find(self.account.load_devices(), device_id)
        if device is None:
            raise DeviceNotFound(device_id)
        return device

    def list_devices(self, now: Optional[datetime] = None) -> list[DeviceStatus]:
        now = now or self._clock()
        return [DeviceStatus(device=d, effective_online=compute_effective_online(d, now))
                for d in self.account.load_devices()]

    def compute_effective_online(self, device: Device, now: Optional[datetime] = None) -> bool:
        return compute_effective_online(device, now or self._clock())

    # ── mutations ───────────────────────────────────────────────────────────

    def register_device(self, device_id: str, device_name: str) -> Device:
        """Idempotent upsert; always leaves the device online."""
        devices = self.account.load_devices()
        now = self._clock()
        device = self._find(devices, device_id)
        if device is None:
            device = Device(device_id=device_id, device_name=device_name, last_seen=now, online=True)
            devices.append(device)
            log(f"[device] registered new device {device_id} ({device_name})")
        else:
            device.device_name = device_name
            device.last_seen = now
            device.online = True
            vlog(f"[device] re-registered {device_id}")
        self.account.save_devices(devices)
        return device

    def heartbeat(self, device_id: str) -> Device:
        """Refresh last_seen. A logged-out device stays logged out."""
        devices = self.account.load_devices()
        device = self._find(devices, device_id)
        if device is None:
            raise DeviceNotFound(device_id)
        device.last_seen = self._clock()
        self.account.save_devices(devices)
        vlog(f"[device] heartbeat {device_id}")
        return device

    def explicit_logout(self, device_id: str) -> Device:
        devices = self.account.load_devices()
        device = self._find(devices, device_id)
        if device is None:
            raise DeviceNotFound(device_id)
        device.online = False
        device.last_seen = self._clock()
        self.account.save_devices(devices)
        log(f"[device] {device_id} logged out")
        return device

    def remove_device(self, device_id: str):
        devices = self.account.load_devices()
        if self._find(devices, device_id) is None:
            raise DeviceNotFound(device_id)
        self.account.save_devices([d for d in devices if d.device_id != device_id])
        log(f"[device] removed {device_id}")

    def stage_push(self, device_ids: list[str], snapshot: Snapshot) -> list[str]:
        """
        Mark each known device as having *snapshot* pending.
        Unknown ids are skipped; returns the ids that were staged.
        """
        devices = self.account.load_devices()
        staged = []
        for device_id in device_ids:
            device = self._find(devices, device_id)
            if device is None:
                vlog(f"[device] stage_push: skipping unknown device {device_id}")
                continue
            device.pending_push = True
            device.push_data = snapshot
            staged.append(device_id)
        if staged:
            self.account.save_devices(devices)
        return staged

    def clear_pending_push(self, device_id: str):
        """Idempotent; clearing an unknown or already-clear device is a no-op."""
        devices = self.account.load_devices()
        device = self._find(devices, device_id)
        if device is None or (not device.pending_push and device.push_data is None):
            return
        device.pending_push = False
        device.push_data = None
        self.account.save_devices(devices)

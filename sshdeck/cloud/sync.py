"""
Sync reconciler: moves whole configurations between a local store, the
cloud configuration and individual devices.

There is no merge and no conflict detection anywhere in here. Push replaces
the cloud copy, pull replaces the local copy, and a device-targeted push is
staged on the registry for the device to pick up on its next poll.
"""
from ..errors import SshDeckError, SyncError
from ..models import Configuration, Snapshot, utcnow
from ..utils.logging import log


class SyncReconciler:

    def __init__(self, account, clock=utcnow):
        self.account = account
        self._clock = clock

    @property
    def registry(self):
        return self.account.registry

    # ── cloud side ──────────────────────────────────────────────────────────

    def push(self, profiles: list, commands: list) -> Configuration:
        """Replace the cloud configuration with the given local snapshot."""
        cfg = Configuration(profiles=list(profiles), commands=list(commands),
                            last_synced_at=self._clock())
        _guarded("push", self.account.save_configuration, cfg)
        log(f"[sync] pushed {len(cfg.profiles)} profile(s), {len(cfg.commands)} command(s) "
            f"to {self.account.name!r}")
        return cfg

    def push_from(self, local_store) -> Configuration:
        profiles, commands = local_store.snapshot()
        return self.push(profiles, commands)

    def pull(self) -> tuple[list, list]:
        """The cloud profiles and commands, in the order they were stored."""
        cfg = _guarded("pull", self.account.load_configuration)
        return cfg.profiles, cfg.commands

    def pull_into(self, local_store) -> tuple[list, list]:
        """Pull, then replace *local_store* wholesale with the cloud copy."""
        profiles, commands = self.pull()
        _guarded("pull", local_store.replace_all, profiles, commands)
        log(f"[sync] pulled {len(profiles)} profile(s), {len(commands)} command(s) "
            f"from {self.account.name!r}")
        return profiles, commands

    def update_profiles(self, profiles: list) -> Configuration:
        cfg = _guarded("update profiles", self.account.load_configuration)
        cfg.profiles = list(profiles)
        _guarded("update profiles", self.account.save_configuration, cfg)
        return cfg

    def update_commands(self, commands: list) -> Configuration:
        cfg = _guarded("update commands", self.account.load_configuration)
        cfg.commands = list(commands)
        _guarded("update commands", self.account.save_configuration, cfg)
        return cfg

    def stats(self) -> dict:
        cfg = _guarded("stats", self.account.load_configuration)
        return {
            "profiles": len(cfg.profiles),
            "commands": len(cfg.commands),
            "last_synced_at": cfg.last_synced_at,
        }

    def push_to_devices(self, device_ids: list[str]) -> list[str]:
        """Stage the current cloud configuration on each listed device."""
        if not device_ids:
            raise ValueError("at least one device id is required")
        cfg = _guarded("push to devices", self.account.load_configuration)
        snapshot = Snapshot(profiles=cfg.profiles, commands=cfg.commands, timestamp=self._clock())
        staged = _guarded("push to devices", self.registry.stage_push, list(device_ids), snapshot)
        log(f"[sync] configuration queued for {len(staged)} of {len(device_ids)} device(s)")
        return staged

    # ── device side ─────────────────────────────────────────────────────────

    def check_and_apply_pending_push(self, device_id: str, local_store) -> bool:
        """
        Poll this device's registry entry; when a push is pending, replace the
        local store with it and clear the flag. Returns True if applied.
        """
        devices = _guarded("pending push check", self.account.load_devices)
        device = next((d for d in devices if d.device_id == device_id), None)
        if device is None or not device.pending_push or device.push_data is None:
            return False

        data: Snapshot = device.push_data
        _guarded("apply pending push", local_store.replace_all, data.profiles, data.commands)
        _guarded("clear pending push", self.registry.clear_pending_push, device_id)
        log(f"[sync] applied configuration pushed at {data.timestamp.isoformat()} "
            f"({len(data.profiles)} profile(s), {len(data.commands)} command(s))")
        return True


def _guarded(what: str, fn, *args, **kwargs):
    """Call *fn*; anything I/O-shaped comes back as SyncError."""
    try:
        return fn(*args, **kwargs)
    except SshDeckError:
        raise
    except (OSError, ValueError) as exc:
        raise SyncError(f"{what} failed: {exc}") from exc


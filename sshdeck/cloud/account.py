"""
One cloud account: its configuration document and its device list.

Both live on a document backend as
  <account>/configuration.json
  <account>/devices.json
Any backend failure leaves this module as SyncError.
"""
import re
from typing import Any, Optional

import paramiko

from ..errors import SyncError
from ..models import Configuration, Device, utcnow

_ACCOUNT_RE = re.compile(r"^[A-Za-z0-9_.@-]+$")


class CloudAccount:

    def __init__(self, backend, name: str, clock=utcnow):
        if not name or not _ACCOUNT_RE.match(name) or name in (".", ".."):
            raise ValueError(f"invalid account name: {name!r}")
        self.backend = backend
        self.name = name
        self._clock = clock
        self._registry = None

    @property
    def configuration_doc(self) -> str:
        return f"{self.name}/configuration"

    @property
    def devices_doc(self) -> str:
        return f"{self.name}/devices"

    @property
    def registry(self):
        if self._registry is None:
            from .registry import DeviceRegistry
            self._registry = DeviceRegistry(self, clock=self._clock)
        return self._registry

    # ── raw documents ───────────────────────────────────────────────────────

    def _read(self, name: str) -> Optional[Any]:
        try:
            return self.backend.read(name)
        except (OSError, paramiko.SSHException, ValueError) as exc:
            raise SyncError(f"could not read {name}: {exc}") from exc

    def _write(self, name: str, value: Any):
        try:
            self.backend.write(name, value)
        except (OSError, paramiko.SSHException, ValueError) as exc:
            raise SyncError(f"could not write {name}: {exc}") from exc

    # ── configuration ───────────────────────────────────────────────────────

    def load_configuration(self) -> Configuration:
        """The account's configuration; an empty one is created on first access."""
        raw = self._read(self.configuration_doc)
        if raw is None:
            cfg = Configuration()
            self.save_configuration(cfg)
            return cfg
        try:
            return Configuration.from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            raise SyncError(f"malformed configuration for {self.name!r}: {exc}") from exc

    def save_configuration(self, cfg: Configuration):
        self._write(self.configuration_doc, cfg.to_dict())

    # ── devices ─────────────────────────────────────────────────────────────

    def load_devices(self) -> list[Device]:
        raw = self._read(self.devices_doc) or []
        try:
            return [Device.from_dict(d) for d in raw]
        except (KeyError, TypeError, ValueError) as exc:
            raise SyncError(f"malformed device list for {self.name!r}: {exc}") from exc

    def save_devices(self, devices: list[Device]):
        self._write(self.devices_doc, [d.to_dict() for d in devices])

"""
Device identity for this installation.

The id is derived from hostname, platform and architecture so the same
machine always registers under the same id; nothing random goes into it.
"""
import platform
import re
import socket

from . import config as _cfg


def _machine_parts() -> tuple[str, str, str]:
    return socket.gethostname(), platform.system().lower(), platform.machine().lower()


def machine_device_id(hostname: str, system: str, arch: str) -> str:
    machine = re.sub(r"[^a-zA-Z0-9-]", "-", f"{hostname}-{system}-{arch}").lower()
    return f"dev-{machine}"


def machine_device_name(hostname: str, system: str, arch: str) -> str:
    return f"{hostname} ({system} {arch})"


def local_device_id() -> str:
    """Configured override, else the machine-derived id."""
    if _cfg.DEVICE_ID:
        return _cfg.DEVICE_ID
    return machine_device_id(*_machine_parts())


def local_device_name() -> str:
    if _cfg.DEVICE_NAME:
        return _cfg.DEVICE_NAME
    return machine_device_name(*_machine_parts())

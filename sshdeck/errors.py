"""
Exception taxonomy for sshdeck
"""


class SshDeckError(Exception):
    """Base class for every error sshdeck raises on purpose."""


class DuplicateTitle(SshDeckError):
    """A profile or command with the same title already exists."""

    def __init__(self, kind: str, title: str):
        self.kind = kind
        self.title = title
        super().__init__(f"{kind} title already exists: {title!r}")


class ProfileNotFound(SshDeckError):
    def __init__(self, title: str):
        self.title = title
        super().__init__(f"profile not found: {title!r}")


class CommandNotFound(SshDeckError):
    def __init__(self, title: str):
        self.title = title
        super().__init__(f"command not found: {title!r}")


class ConnectionError(SshDeckError):  # noqa: A001 - shadows the builtin on purpose
    """SSH transport or authentication failure before the command ran."""


class ExecutionError(SshDeckError):
    """The exec channel could not be opened on an established connection."""


class SyncError(SshDeckError):
    """Any failed round-trip to the cloud document store."""


class DeviceNotFound(SshDeckError):
    def __init__(self, device_id: str):
        self.device_id = device_id
        super().__init__(f"device not found: {device_id!r}")

"""
Data model: profiles, commands, devices and the cloud configuration.

Field names are snake_case in Python and camelCase on disk, matching the
documents written by earlier desktop/cloud installations.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

DEFAULT_SSH_PORT = 22


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_ts(ts: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string for a datetime (naive values are taken as UTC)."""
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.isoformat()


def parse_ts(value) -> Optional[datetime]:
    """Accept ISO strings, epoch milliseconds (legacy pushData) or datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


@dataclass
class Profile:
    title: str
    username: str
    password: str
    host: str
    port: int = DEFAULT_SSH_PORT

    @classmethod
    def from_dict(cls, d: dict) -> "Profile":
        return cls(
            title=str(d["title"]),
            username=str(d.get("username", "")),
            password=str(d.get("password", "")),
            host=str(d.get("host", "")),
            port=int(d.get("port") or DEFAULT_SSH_PORT),
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "username": self.username,
            "password": self.password,
            "host": self.host,
            "port": self.port,
        }


@dataclass
class Command:
    line_number: int
    title: str
    command: str
    profile: str
    url: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> "Command":
        return cls(
            line_number=int(d.get("lineNumber") or 0),
            title=str(d["title"]),
            command=str(d.get("command", "")),
            profile=str(d.get("profile", "")),
            url=str(d.get("url") or ""),
        )

    def to_dict(self) -> dict:
        return {
            "lineNumber": self.line_number,
            "title": self.title,
            "command": self.command,
            "url": self.url,
            "profile": self.profile,
        }


@dataclass
class Snapshot:
    """A staged copy of the cloud configuration waiting for one device."""
    profiles: list
    commands: list
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def from_dict(cls, d: dict) -> "Snapshot":
        return cls(
            profiles=[Profile.from_dict(p) for p in d.get("profiles") or []],
            commands=[Command.from_dict(c) for c in d.get("commands") or []],
            timestamp=parse_ts(d.get("timestamp")) or utcnow(),
        )

    def to_dict(self) -> dict:
        return {
            "profiles": [p.to_dict() for p in self.profiles],
            "commands": [c.to_dict() for c in self.commands],
            "timestamp": format_ts(self.timestamp),
        }


@dataclass
class Device:
    device_id: str
    device_name: str
    # None when the device has never been seen; reads as offline
    last_seen: Optional[datetime] = field(default_factory=utcnow)
    # True / False (explicit logout) / None (infer from last_seen)
    online: Optional[bool] = True
    pending_push: bool = False
    push_data: Optional[Snapshot] = None

    @classmethod
    def from_dict(cls, d: dict) -> "Device":
        push_data = d.get("pushData")
        return cls(
            device_id=str(d["deviceId"]),
            device_name=str(d.get("deviceName", "")),
            last_seen=parse_ts(d.get("lastSeen")),
            online=d.get("online"),
            pending_push=bool(d.get("pendingPush", False)),
            push_data=Snapshot.from_dict(push_data) if push_data else None,
        )

    def to_dict(self) -> dict:
        return {
            "deviceId": self.device_id,
            "deviceName": self.device_name,
            "lastSeen": format_ts(self.last_seen),
            "online": self.online,
            "pendingPush": self.pending_push,
            "pushData": self.push_data.to_dict() if self.push_data else None,
        }


@dataclass
class DeviceStatus:
    """A device together with its derived liveness."""
    device: Device
    effective_online: bool


@dataclass
class Configuration:
    """The one-per-account cloud document."""
    profiles: list = field(default_factory=list)
    commands: list = field(default_factory=list)
    last_synced_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, d: dict) -> "Configuration":
        return cls(
            profiles=[Profile.from_dict(p) for p in d.get("profiles") or []],
            commands=[Command.from_dict(c) for c in d.get("commands") or []],
            last_synced_at=parse_ts(d.get("lastSyncedAt")),
        )

    def to_dict(self) -> dict:
        return {
            "profiles": [p.to_dict() for p in self.profiles],
            "commands": [c.to_dict() for c in self.commands],
            "lastSyncedAt": format_ts(self.last_synced_at),
        }


@dataclass
class ExecutionResult:
    """Outcome of one remote command: combined output, or the timeout marker."""
    output: str
    timed_out: bool = False

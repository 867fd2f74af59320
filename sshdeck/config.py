"""
Configuration constants for sshdeck
"""
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse, unquote

# ══════════════════════════════════════════════════════════════════════════════
#  DEFAULTS  ── overridden by env, YAML config or apply_settings()
# ══════════════════════════════════════════════════════════════════════════════

# Wall-clock budget for one remote command, in milliseconds
COMMAND_TIMEOUT_MS = 10000

# A device is considered online while its last heartbeat is younger than this
LIVENESS_WINDOW_SECONDS = 5 * 60

# Background task cadence (seconds)
HEARTBEAT_INTERVAL = 120
PENDING_PUSH_INTERVAL = 30
REFRESH_INTERVAL = 10

# SSH connect/auth timeouts (seconds)
SSH_CONNECT_TIMEOUT = 20

# Local store directory (profiles.json + commands.json)
DATA_DIR: Optional[Path] = None

# Cloud location: file:///srv/sshdeck  or  sftp://user@host:22/srv/sshdeck
CLOUD_URL: Optional[str] = None
CLOUD_PASSWORD: Optional[str] = None
CLOUD_KEY_PATH: Optional[str] = None

# Account (owner) name inside the cloud
ACCOUNT: Optional[str] = None

# Overrides for the machine-derived device identity
DEVICE_ID: Optional[str] = None
DEVICE_NAME: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════════
#  DYNAMIC PATHS
# ══════════════════════════════════════════════════════════════════════════════

def get_global_config_dir() -> Path:
    """Return the global config directory for sshdeck."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        return Path(xdg) / "sshdeck"
    if os.name == "nt":
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return Path(appdata) / "sshdeck"
    return Path.home() / ".config" / "sshdeck"


def get_config_file() -> Path:
    """Config file path; SSHDECK_CONFIG wins over the global config dir."""
    explicit = os.environ.get("SSHDECK_CONFIG", "")
    if explicit:
        return Path(explicit).expanduser()
    return get_global_config_dir() / "config.yaml"


def get_data_dir() -> Path:
    """Directory holding the local profiles.json / commands.json."""
    if DATA_DIR is not None:
        return Path(DATA_DIR)
    return get_global_config_dir() / "data"


# ══════════════════════════════════════════════════════════════════════════════
#  CONFIG FILE  ── YAML
# ══════════════════════════════════════════════════════════════════════════════

def load_config_file(path: Optional[Path] = None) -> dict:
    """Parse the YAML config file and return its contents as a dict ({} if absent)."""
    import yaml

    cfg_path = path or get_config_file()
    if not cfg_path.is_file():
        return {}
    with cfg_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{cfg_path}: expected a mapping at the top level")
    return data


# ══════════════════════════════════════════════════════════════════════════════
#  APPLY SETTINGS  ── mutates module-level variables
# ══════════════════════════════════════════════════════════════════════════════

def apply_settings(settings: dict):
    """
    Apply a settings dict to the module-level config variables.
    Supports keys: command_timeout_ms, heartbeat_interval, pending_push_interval,
                   refresh_interval, ssh_connect_timeout, data_dir, cloud_url,
                   cloud_password, cloud_key, account, device_id, device_name.
    """
    global COMMAND_TIMEOUT_MS, HEARTBEAT_INTERVAL, PENDING_PUSH_INTERVAL
    global REFRESH_INTERVAL, SSH_CONNECT_TIMEOUT, DATA_DIR
    global CLOUD_URL, CLOUD_PASSWORD, CLOUD_KEY_PATH, ACCOUNT, DEVICE_ID, DEVICE_NAME

    if "command_timeout_ms" in settings:
        COMMAND_TIMEOUT_MS = int(settings["command_timeout_ms"])
    if "heartbeat_interval" in settings:
        HEARTBEAT_INTERVAL = float(settings["heartbeat_interval"])
    if "pending_push_interval" in settings:
        PENDING_PUSH_INTERVAL = float(settings["pending_push_interval"])
    if "refresh_interval" in settings:
        REFRESH_INTERVAL = float(settings["refresh_interval"])
    if "ssh_connect_timeout" in settings:
        SSH_CONNECT_TIMEOUT = float(settings["ssh_connect_timeout"])
    if settings.get("data_dir"):
        DATA_DIR = Path(settings["data_dir"]).expanduser().resolve()
    if "cloud_url" in settings:
        CLOUD_URL = str(settings["cloud_url"]) if settings["cloud_url"] else None
    if "cloud_password" in settings:
        CLOUD_PASSWORD = str(settings["cloud_password"]) if settings["cloud_password"] else None
    if "cloud_key" in settings:
        CLOUD_KEY_PATH = str(settings["cloud_key"]) if settings["cloud_key"] else None
    if "account" in settings:
        ACCOUNT = str(settings["account"]) if settings["account"] else None
    if "device_id" in settings:
        DEVICE_ID = str(settings["device_id"]) if settings["device_id"] else None
    if "device_name" in settings:
        DEVICE_NAME = str(settings["device_name"]) if settings["device_name"] else None


def apply_env(environ=None):
    """Apply SSHDECK_* environment overrides on top of the current settings."""
    env = os.environ if environ is None else environ
    mapping = {
        "SSHDECK_DATA_DIR": "data_dir",
        "SSHDECK_CLOUD_URL": "cloud_url",
        "SSHDECK_CLOUD_PASSWORD": "cloud_password",
        "SSHDECK_ACCOUNT": "account",
        "SSHDECK_COMMAND_TIMEOUT": "command_timeout_ms",
        "SSHDECK_DEVICE_ID": "device_id",
    }
    apply_settings({key: env[var] for var, key in mapping.items() if env.get(var)})


# ══════════════════════════════════════════════════════════════════════════════
#  CLOUD URL
# ══════════════════════════════════════════════════════════════════════════════

def parse_cloud_url(url: str) -> dict:
    """
    Split a cloud URL into backend parameters.

      file:///srv/sshdeck             → {"scheme": "file", "path": "/srv/sshdeck"}
      /srv/sshdeck                    → same as above
      sftp://deck@cloud:2222/srv/deck → {"scheme": "sftp", "host": "cloud", "port": 2222,
                                         "user": "deck", "path": "/srv/deck"}
    """
    parsed = urlparse(url)
    if parsed.scheme in ("", "file"):
        path = unquote(parsed.path if parsed.scheme else url)
        if not path:
            raise ValueError(f"cloud URL has no path: {url!r}")
        return {"scheme": "file", "path": path}
    if parsed.scheme == "sftp":
        if not parsed.hostname:
            raise ValueError(f"cloud URL has no host: {url!r}")
        return {
            "scheme": "sftp",
            "host": parsed.hostname,
            "port": parsed.port or 22,
            "user": unquote(parsed.username) if parsed.username else "root",
            "password": unquote(parsed.password) if parsed.password else None,
            "path": unquote(parsed.path) or ".",
        }
    raise ValueError(f"unsupported cloud URL scheme {parsed.scheme!r} (use file:// or sftp://)")

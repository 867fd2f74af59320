"""
Document backends: whole-document read / replace, keyed by name.

A name such as "alice/configuration" maps to <root>/alice/configuration.json.
Backends never patch fields; every write replaces the whole document.
"""
import json
import posixpath
import re
from pathlib import Path
from typing import Any, Optional

from .. import config as _cfg
from ..core.ssh_manager import SSHManager
from ..utils.file_utils import read_json, write_json_atomic, dump_json

_NAME_RE = re.compile(r"^[A-Za-z0-9_.@-]+(/[A-Za-z0-9_.@-]+)*$")


def _check_name(name: str) -> str:
    if not _NAME_RE.match(name) or ".." in name.split("/"):
        raise ValueError(f"invalid document name: {name!r}")
    return name


class DirectoryBackend:
    """JSON documents in a local directory."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, name: str) -> Path:
        *dirs, leaf = _check_name(name).split("/")
        return self.root.joinpath(*dirs, leaf + ".json")

    def read(self, name: str) -> Optional[Any]:
        return read_json(self._path(name))

    def write(self, name: str, value: Any):
        write_json_atomic(self._path(name), value)

    def describe(self) -> str:
        return str(self.root)


class SftpBackend:
    """JSON documents under a directory on a remote host, reached over SFTP."""

    def __init__(self, manager: SSHManager, root: str):
        self.manager = manager
        self.root = root.rstrip("/") or "/"

    def _path(self, name: str) -> str:
        return posixpath.join(self.root, _check_name(name) + ".json")

    def read(self, name: str) -> Optional[Any]:
        path = self._path(name)
        if not self.manager.sftp_exists(path):
            return None
        text = self.manager.sftp_read_text(path)
        if not text.strip():
            return None
        return json.loads(text)

    def write(self, name: str, value: Any):
        self.manager.sftp_write_text_atomic(self._path(name), dump_json(value))

    def close(self):
        self.manager.disconnect()

    def describe(self) -> str:
        m = self.manager
        return f"sftp://{m.user}@{m.host}:{m.port}{self.root}"


def open_backend(url: str):
    """Build the backend a cloud URL points at."""
    params = _cfg.parse_cloud_url(url)
    if params["scheme"] == "file":
        return DirectoryBackend(Path(params["path"]).expanduser())
    manager = SSHManager(
        host=params["host"],
        port=params["port"],
        user=params["user"],
        password=params["password"] or _cfg.CLOUD_PASSWORD,
        key_path=_cfg.CLOUD_KEY_PATH,
    )
    return SftpBackend(manager, params["path"])

"""
SSH connection manager for the SFTP-hosted cloud store
"""
import posixpath
import uuid
from typing import Optional
import paramiko
from .. import config as _cfg
from ..utils.logging import log, vlog


class SSHManager:
    """
    Wraps paramiko SSHClient + SFTPClient for one remote host.
    Reconnects lazily when the transport has dropped; never retries a failed
    operation on its own.
    """

    def __init__(self, host: str, port: int = 22, user: str = "root",
                 password: Optional[str] = None, key_path: Optional[str] = None,
                 client_factory=paramiko.SSHClient):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.key_path = key_path
        self._client_factory = client_factory
        self._ssh: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    # ── connection ─────────────────────────────────────────────────────────

    def connect(self):
        log(f"[SSH] connecting to {self.user}@{self.host}:{self.port} …")
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        kw: dict = dict(hostname=self.host, port=self.port, username=self.user,
                        timeout=_cfg.SSH_CONNECT_TIMEOUT, banner_timeout=30, auth_timeout=30)
        if self.key_path:
            kw["key_filename"] = self.key_path
        if self.password:
            kw["password"] = self.password

        client.connect(**kw)

        self._ssh = client
        self._sftp = client.open_sftp()
        log("[SSH] connected ✓")

    def _close_quietly(self):
        try:
            if self._sftp:
                self._sftp.close()
        except Exception:
            pass
        try:
            if self._ssh:
                self._ssh.close()
        except Exception:
            pass
        self._ssh = None
        self._sftp = None

    def disconnect(self):
        self._close_quietly()
        vlog("[SSH] disconnected.")

    def ensure_connected(self):
        """Call before any remote operation."""
        try:
            if self._ssh and self._ssh.get_transport().is_active():
                return
        except Exception:
            pass
        self._close_quietly()
        self.connect()

    # ── sftp ops ────────────────────────────────────────────────────────────

    def sftp_exists(self, remote: str) -> bool:
        self.ensure_connected()
        try:
            self._sftp.stat(remote)
            return True
        except FileNotFoundError:
            return False

    def sftp_read_text(self, remote: str) -> str:
        self.ensure_connected()
        with self._sftp.open(remote, "r") as f:
            return f.read().decode("utf-8", errors="replace")

    def sftp_makedirs(self, remote_dir: str):
        """mkdir -p over SFTP."""
        self.ensure_connected()
        parts = [p for p in remote_dir.split("/") if p]
        current = "/" if remote_dir.startswith("/") else ""
        for part in parts:
            current = posixpath.join(current, part) if current else part
            try:
                self._sftp.stat(current)
            except FileNotFoundError:
                self._sftp.mkdir(current)

    def sftp_write_text_atomic(self, remote: str, text: str):
        """Upload to a temp name next to *remote*, then rename it into place."""
        self.ensure_connected()
        self.sftp_makedirs(posixpath.dirname(remote) or ".")
        tmp = f"{remote}.{uuid.uuid4().hex}.tmp"
        with self._sftp.open(tmp, "w") as f:
            f.write(text.encode("utf-8"))
        try:
            self._sftp.posix_rename(tmp, remote)
        except Exception:
            try:
                self._sftp.remove(tmp)
            except Exception:
                pass
            raise

"""
Command executor: one SSH connection, one exec channel, one bounded result.
"""
import time
from typing import Optional

import paramiko

from .. import config as _cfg
from ..errors import ConnectionError, ExecutionError
from ..models import ExecutionResult, Profile
from ..utils.logging import log, vlog

TIMED_OUT_OUTPUT = "Command timed out"
RECV_CHUNK = 32768
POLL_INTERVAL = 0.01  # seconds between channel polls while nothing arrives


class CommandExecutor:
    """
    Runs stored or ad-hoc commands against profiles from *store*.

    stdout and stderr are combined on the channel itself, so the output
    keeps the order in which the remote side wrote them. The exit code is
    not reported. When the budget runs out, the channel and connection are
    torn down and the collected output is replaced by "Command timed out".
    """

    def __init__(self, store, timeout_ms: Optional[int] = None,
                 client_factory=paramiko.SSHClient,
                 clock=time.monotonic, sleep=time.sleep,
                 poll_interval: float = POLL_INTERVAL):
        self.store = store
        self.timeout_ms = timeout_ms
        self._client_factory = client_factory
        self._clock = clock
        self._sleep = sleep
        self.poll_interval = poll_interval

    def run_command(self, title: str, timeout_ms: Optional[int] = None) -> ExecutionResult:
        """Execute the stored command *title* against the profile it names."""
        cmd = self.store.get_command(title)
        log(f"[run] {cmd.title!r} on profile {cmd.profile!r}")
        return self.execute(cmd.command, cmd.profile, timeout_ms)

    def execute(self, command_text: str, profile_title: str,
                timeout_ms: Optional[int] = None) -> ExecutionResult:
        budget_ms = self._budget(timeout_ms)
        # Raises ProfileNotFound before anything touches the network
        profile = self.store.get_profile(profile_title)

        client = self._connect(profile)
        try:
            channel = self._open_channel(client, command_text)
            return self._collect(channel, budget_ms)
        finally:
            _close_quietly(client)
            vlog("[run] connection closed")

    # ── steps ───────────────────────────────────────────────────────────────

    def _budget(self, timeout_ms: Optional[int]) -> int:
        for candidate in (timeout_ms, self.timeout_ms, _cfg.COMMAND_TIMEOUT_MS):
            if candidate is not None:
                budget = int(candidate)
                if budget <= 0:
                    raise ValueError(f"timeout must be positive, got {budget} ms")
                return budget
        return 10000

    def _connect(self, profile: Profile):
        vlog(f"[run] connecting to {profile.username}@{profile.host}:{profile.port} …")
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=profile.host,
                port=profile.port,
                username=profile.username,
                password=profile.password,
                timeout=_cfg.SSH_CONNECT_TIMEOUT,
                banner_timeout=_cfg.SSH_CONNECT_TIMEOUT,
                auth_timeout=_cfg.SSH_CONNECT_TIMEOUT,
                allow_agent=False,
                look_for_keys=False,
            )
        except (paramiko.SSHException, OSError) as exc:
            _close_quietly(client)
            raise ConnectionError(f"SSH connection failed: {exc}") from exc
        vlog("[run] connected")
        return client

    def _open_channel(self, client, command_text: str):
        transport = client.get_transport()
        if transport is None or not transport.is_active():
            raise ExecutionError("Command execution failed: SSH transport is not active")
        try:
            channel = transport.open_session()
            # stderr lands in the stdout buffer, in arrival order
            channel.set_combine_stderr(True)
            channel.exec_command(command_text)
        except (paramiko.SSHException, OSError) as exc:
            raise ExecutionError(f"Command execution failed: {exc}") from exc
        vlog("[run] executing")
        return channel

    def _collect(self, channel, budget_ms: int) -> ExecutionResult:
        deadline = self._clock() + budget_ms / 1000.0
        chunks: list[bytes] = []
        try:
            while True:
                progressed = False
                if channel.recv_ready():
                    chunks.append(channel.recv(RECV_CHUNK))
                    progressed = True
                if not progressed and (channel.exit_status_ready() or channel.closed):
                    break
                if self._clock() >= deadline:
                    log(f"[run] timed out after {budget_ms} ms")
                    _close_quietly(channel)
                    return ExecutionResult(output=TIMED_OUT_OUTPUT, timed_out=True)
                if not progressed:
                    self._sleep(self.poll_interval)
        except (paramiko.SSHException, OSError) as exc:
            _close_quietly(channel)
            raise ConnectionError(f"SSH connection lost: {exc}") from exc

        _close_quietly(channel)
        vlog("[run] channel closed")
        return ExecutionResult(output=b"".join(chunks).decode("utf-8", errors="replace"))


def _close_quietly(resource):
    try:
        resource.close()
    except Exception:
        pass

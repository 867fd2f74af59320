"""
Test doubles: scripted paramiko client/channel, virtual clocks, in-memory backend.
"""
import copy
import json
from datetime import datetime, timedelta, timezone


class FakeChannel:
    """
    Replays a script of ("out", bytes) / ("err", bytes) / ("exit", code) events.
    Only the head event is ever "ready", so reads happen in script order.
    An empty script never closes. With stderr combined, "err" events are
    read through recv() like stdout.
    """

    def __init__(self, events=(), exec_error=None):
        self.events = list(events)
        self.exec_error = exec_error
        self.combine_stderr = False
        self.exec_text = None
        self.closed = False
        self.close_calls = 0

    def _head(self):
        return self.events[0] if self.events else None

    def set_combine_stderr(self, combine):
        self.combine_stderr = combine

    def exec_command(self, text):
        if self.exec_error:
            raise self.exec_error
        self.exec_text = text

    def recv_ready(self):
        head = self._head()
        if head is None:
            return False
        return head[0] == "out" or (self.combine_stderr and head[0] == "err")

    def recv(self, n):
        return self.events.pop(0)[1]

    def recv_stderr_ready(self):
        head = self._head()
        return head is not None and head[0] == "err" and not self.combine_stderr

    def recv_stderr(self, n):
        return self.events.pop(0)[1]

    def exit_status_ready(self):
        head = self._head()
        return head is not None and head[0] == "exit"

    def close(self):
        self.closed = True
        self.close_calls += 1


class BufferedChannel:
    """
    Channel whose output is all buffered before the first poll, with
    separate stdout and stderr buffers as paramiko keeps them. Combining
    stderr merges both into the stdout buffer in arrival order.
    """

    def __init__(self, arrivals):
        self.arrivals = list(arrivals)
        self.combine_stderr = False
        self.exec_text = None
        self.out = b""
        self.err = b""
        self.closed = False

    def set_combine_stderr(self, combine):
        self.combine_stderr = combine

    def exec_command(self, text):
        self.exec_text = text
        for stream, data in self.arrivals:
            if stream == "out" or self.combine_stderr:
                self.out += data
            else:
                self.err += data

    def recv_ready(self):
        return bool(self.out)

    def recv(self, n):
        data, self.out = self.out[:n], self.out[n:]
        return data

    def recv_stderr_ready(self):
        return bool(self.err)

    def recv_stderr(self, n):
        data, self.err = self.err[:n], self.err[n:]
        return data

    def exit_status_ready(self):
        return True

    def close(self):
        self.closed = True


class FakeTransport:
    def __init__(self, channel, active=True):
        self.channel = channel
        self.active = active

    def is_active(self):
        return self.active

    def open_session(self):
        return self.channel


class FakeSSHClient:
    """Stands in for paramiko.SSHClient; every instance is recorded on the spy."""

    def __init__(self, spy):
        self.spy = spy
        self.connect_kwargs = None
        self.closed = False
        self.close_calls = 0

    def set_missing_host_key_policy(self, policy):
        pass

    def connect(self, **kwargs):
        self.spy.connect_calls.append(kwargs)
        if self.spy.connect_error is not None:
            raise self.spy.connect_error
        self.connect_kwargs = kwargs

    def get_transport(self):
        return FakeTransport(self.spy.channel)

    def close(self):
        self.closed = True
        self.close_calls += 1


class SSHSpy:
    """Factory for FakeSSHClient that remembers what was done with it."""

    def __init__(self, channel=None, connect_error=None):
        self.channel = channel if channel is not None else FakeChannel([("exit", 0)])
        self.connect_error = connect_error
        self.connect_calls = []
        self.clients = []

    def __call__(self):
        client = FakeSSHClient(self)
        self.clients.append(client)
        return client


class MonotonicClock:
    """Virtual time.monotonic/time.sleep pair."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds):
        self.now += seconds


class WallClock:
    """Virtual UTC wall clock for registry timestamps."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class MemoryBackend:
    """Whole-document backend in a dict; round-trips through JSON like the real ones."""

    def __init__(self):
        self.docs = {}
        self.writes = []
        self.fail_with = None

    def read(self, name):
        if self.fail_with is not None:
            raise self.fail_with
        raw = self.docs.get(name)
        return None if raw is None else json.loads(raw)

    def write(self, name, value):
        if self.fail_with is not None:
            raise self.fail_with
        self.docs[name] = json.dumps(copy.deepcopy(value))
        self.writes.append(name)

    def describe(self):
        return "memory"


class FakeSFTPFile:
    def __init__(self, sftp, path, mode):
        self.sftp = sftp
        self.path = path
        self.mode = mode
        self.buf = b""

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        if "w" in self.mode:
            self.sftp.files[self.path] = self.buf
        return False

    def read(self):
        return self.sftp.files[self.path]

    def write(self, data):
        self.buf += data


class FakeSFTP:
    def __init__(self):
        self.files = {}
        self.dirs = {"/"}
        self.renames = []

    def stat(self, path):
        if path not in self.files and path not in self.dirs:
            raise FileNotFoundError(path)
        return object()

    def mkdir(self, path):
        self.dirs.add(path)

    def open(self, path, mode="r"):
        if "r" in mode and path not in self.files:
            raise FileNotFoundError(path)
        return FakeSFTPFile(self, path, mode)

    def posix_rename(self, src, dst):
        self.files[dst] = self.files.pop(src)
        self.renames.append((src, dst))

    def remove(self, path):
        self.files.pop(path, None)

    def close(self):
        pass


def connected_manager(manager, sftp):
    """Wire a FakeSFTP into an SSHManager without a network connection."""

    class _Transport:
        def is_active(self):
            return True

    class _Client:
        def get_transport(self):
            return _Transport()

        def close(self):
            pass

    manager._ssh = _Client()
    manager._sftp = sftp
    return manager


__all__ = [
    "FakeChannel", "BufferedChannel", "FakeSSHClient", "SSHSpy", "MonotonicClock", "WallClock",
    "MemoryBackend", "FakeSFTP", "connected_manager",
]

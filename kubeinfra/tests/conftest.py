import hashlib
import logging
import os
import shlex
import shutil
import threading
from collections import defaultdict
from pathlib import Path

import pytest

from kubeinfra.config import Config
from kubeinfra.exceptions import SSHConnectionError
from kubeinfra.modules.infra.memory import reset_memory_clouds


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch):
    """Keep persisted status and downloads inside the test's tmp dir."""
    monkeypatch.setattr(Config, "STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setattr(Config, "RETRY_DELAY", 0)
    monkeypatch.setattr(Config, "MAX_CONCURRENT_TRANSFERS", 0)
    monkeypatch.setattr(Config, "STRICT_CHECKSUM", False)
    root = logging.getLogger()
    level = root.level
    reset_memory_clouds()
    yield
    reset_memory_clouds()
    # CLI invocations attach stream handlers bound to the runner's streams
    for handler in list(root.handlers):
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
    root.setLevel(level)


class CorruptingWriter:
    """Remote file that silently drops the last byte of every write."""

    def __init__(self, f):
        self._f = f

    def write(self, data):
        return self._f.write(data[:-1])

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self._f.close()


class CountingWriter:
    def __init__(self, f, counter, host):
        self._f = f
        self._counter = counter
        self._host = host

    def write(self, data):
        self._counter(self._host, len(data))
        return self._f.write(data)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self._f.close()


class FakeSession:
    """SSH session whose remote filesystem is a local directory per host."""

    def __init__(self, factory, host):
        self.factory = factory
        self.host = host
        self.root = factory.root / host
        self.root.mkdir(parents=True, exist_ok=True)
        self.commands = factory.commands[host]
        self.closed = False

    def local(self, remote_path: str) -> Path:
        return self.root / remote_path.lstrip("/")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def execute(self, command, timeout=None, check=False):
        self.commands.append(command)
        argv = shlex.split(command)
        if argv[:2] == ["mkdir", "-p"]:
            self.local(argv[2]).mkdir(parents=True, exist_ok=True)
            return 0, "", ""
        if argv[:2] == ["rm", "-f"]:
            path = self.local(argv[2])
            if path.exists():
                path.unlink()
            self.factory.removed[self.host].append(argv[2])
            return 0, "", ""
        if argv[0] == "md5sum":
            path = self.local(argv[1])
            if not path.is_file():
                return 1, "", f"md5sum: {argv[1]}: No such file or directory"
            return 0, hashlib.md5(path.read_bytes()).hexdigest() + "\n", ""
        return 0, "", ""

    def exists(self, path):
        return self.local(path).exists()

    def mkdir_p(self, path):
        self.execute(f"mkdir -p {shlex.quote(path)} || true")

    def mkdir(self, path):
        self.factory.mkdirs[self.host].append(path)
        self.local(path).mkdir(exist_ok=True)

    def remove(self, path):
        self.execute(f"rm -f {shlex.quote(path)}", check=True)

    def open_remote(self, path, mode="wb"):
        f = open(self.local(path), mode)
        if self.host in self.factory.corrupt:
            return CorruptingWriter(f)
        return CountingWriter(f, self.factory.count_bytes, self.host)

    def get(self, remote_path, local_path):
        shutil.copyfile(self.local(remote_path), local_path)

    def close(self):
        self.closed = True


class FakeSessionFactory:
    """Callable used in place of ssh.open_session."""

    def __init__(self, root: Path):
        self.root = root
        self.unreachable = set()
        self.corrupt = set()
        self.opened = defaultdict(int)
        self.bytes_written = defaultdict(int)
        self.commands = defaultdict(list)
        self.removed = defaultdict(list)
        self.mkdirs = defaultdict(list)
        self._lock = threading.Lock()

    def __call__(self, host, config):
        if host in self.unreachable:
            raise SSHConnectionError(host, "connect failed: host unreachable")
        with self._lock:
            self.opened[host] += 1
        return FakeSession(self, host)

    def count_bytes(self, host, length):
        with self._lock:
            self.bytes_written[host] += length

    def remote_file(self, host, path) -> Path:
        return self.root / host / path.lstrip("/")

    def put_remote(self, host, path, data: bytes) -> None:
        target = self.remote_file(host, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


@pytest.fixture
def sessions(tmp_path):
    return FakeSessionFactory(tmp_path / "remote")


@pytest.fixture
def artifact(tmp_path):
    path = tmp_path / "src" / "kube1.18.0.tar.gz"
    path.parent.mkdir(parents=True)
    path.write_bytes(os.urandom(1024 * 1024 + 4321))
    return path

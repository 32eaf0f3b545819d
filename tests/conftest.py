"""pytest configuration and fakes for fleetdeploy tests."""

from __future__ import annotations

import shlex

import paramiko
import pytest

from fleetdeploy.models.results import ConnectResult
from fleetdeploy.services.node_pool import NodePool
from fleetdeploy.services.remote_commands import (
    ALIVE_MARKER,
    EXTRACT_OK_MARKER,
    PID_FILE,
    PLATFORM_COMMAND,
    REMOTE_ARCHIVE_PATH,
    parse_pid,
)


class FakeRemote:
    """
    A node as seen through SSH: a few text files, a process table and a
    log of every command issued. Knobs switch individual stages off.
    """

    def __init__(self, platform: str = "Linux node1 6.1.0-18-amd64 x86_64 GNU/Linux"):
        self.platform = platform
        self.auth_ok = True
        self.connect_error: Exception | None = None
        self.upload_error: Exception | None = None
        self.extract_ok = True
        self.version_output = "runner 1.4.2\n"
        self.launch_ok = True

        self.files: dict[str, str] = {}
        self.uploads: dict[str, bytes] = {}
        self.extracted = False
        self.running_pids: set[int] = set()
        self.killed: list[int] = []
        self.next_pid = 4242

        self.commands: list[str] = []
        self.scripts: list[list[str]] = []
        self.sessions: list[FakeSession] = []

    def factory(self, host, port, username, password):
        session = FakeSession(self, host, port, username, password)
        self.sessions.append(session)
        return session

    def execute(self, command: str) -> str:
        self.commands.append(command)

        if command == PLATFORM_COMMAND:
            return self.platform + "\n"
        if "tar xf" in command:
            if self.extract_ok and REMOTE_ARCHIVE_PATH in self.uploads:
                self.extracted = True
                return EXTRACT_OK_MARKER + "\n"
            return ""
        if command.endswith("--version"):
            return self.version_output if self.extracted else ""
        if command.startswith("cat "):
            return self.files.get(shlex.split(command)[1], "")
        if command.startswith("kill -0 "):
            pid = int(command.split()[2])
            return ALIVE_MARKER + "\n" if pid in self.running_pids else ""
        if command.startswith("/bin/sh -c"):
            pid = parse_pid(self.files.get(PID_FILE, ""))
            if pid:
                self.killed.append(pid)
                self.running_pids.discard(pid)
            return ""
        return ""

    def execute_script(self, commands) -> str:
        commands = list(commands)
        self.scripts.append(commands)

        output = []
        last_pid = None
        for command in commands:
            if command.endswith("&"):
                last_pid = self.next_pid
                self.next_pid += 1
                if self.launch_ok:
                    self.running_pids.add(last_pid)
            elif command.startswith("echo $! > "):
                self.files[shlex.split(command)[-1]] = f"{last_pid}\n"
            elif command.startswith("echo "):
                _, value, _, path = shlex.split(command)
                self.files[path] = value + "\n"
            elif command.startswith("kill -0"):
                if last_pid in self.running_pids:
                    output.append(f"{ALIVE_MARKER} {last_pid}\n")
                else:
                    output.append("sh: 1: kill: No such process\n")
        return "".join(output)


class FakeSession:
    def __init__(self, remote: FakeRemote, host, port, username, password):
        self.remote = remote
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.connected = False
        self.closed = False

    def connect(self):
        if self.remote.connect_error is not None:
            raise self.remote.connect_error
        if not self.remote.auth_ok:
            raise paramiko.AuthenticationException("Authentication failed.")
        self.connected = True
        return self

    def run(self, command):
        return self.remote.execute(command), ""

    def run_script(self, commands):
        return self.remote.execute_script(commands)

    def upload(self, local_path, remote_path):
        if self.remote.upload_error is not None:
            raise self.remote.upload_error
        with open(local_path, "rb") as f:
            self.remote.uploads[remote_path] = f.read()

    def close(self):
        self.closed = True


# ── Fixtures ──────────────────────────────────────────────────────


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def pool(remote):
    return NodePool(session_factory=remote.factory, startup_wait=0)


@pytest.fixture
def archive(tmp_path):
    path = tmp_path / "runner.tar.xz"
    path.write_bytes(b"\xfd7zXZ\x00 fake archive")
    return str(path)


@pytest.fixture
def connected_pool(pool, archive):
    pool.add("n1", "host:22", {"username": "deploy", "password": "secret", "distr": archive})
    assert pool.connect("n1") is ConnectResult.OK
    return pool

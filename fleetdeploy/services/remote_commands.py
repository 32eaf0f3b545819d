# fleetdeploy/services/remote_commands.py
"""
Remote layout and shell commands issued against deployed nodes.

Everything interpolated into a command goes through shlex.quote.
"""
from __future__ import annotations

import os
import re
import shlex
from typing import List, Optional

from fleetdeploy.models.status import DeploySubject

# Fixed layout on every node
REMOTE_DEPLOY_DIR = os.getenv("FLEETDEPLOY_REMOTE_DIR", "/tmp/fleetdeploy")
REMOTE_ARCHIVE_PATH = os.getenv(
    "FLEETDEPLOY_REMOTE_ARCHIVE", "/tmp/fleetdeploy-archive.tar.xz"
)

# Sentinel files written by the run pipeline
PID_FILE = f"{REMOTE_DEPLOY_DIR}/pid"
BIND_ADDR_FILE = f"{REMOTE_DEPLOY_DIR}/bind_addr"
BIND_PORT_FILE = f"{REMOTE_DEPLOY_DIR}/bind_port"

# Heuristic pause between launch and the liveness check, not a readiness signal
STARTUP_WAIT_SECONDS = int(os.getenv("FLEETDEPLOY_STARTUP_WAIT", "4"))

DEFAULT_BIND_ADDR = "127.0.0.1"
DEFAULT_BIND_PORT = "5700"

PLATFORM_COMMAND = "uname -a"
EXTRACT_OK_MARKER = "extracted-ok"
ALIVE_MARKER = "fleetdeploy-alive"

_PORT_RE = re.compile(r"[0-9]{1,5}")
_PID_RE = re.compile(r"[0-9]+")


def shell_quote(value: str) -> str:
    return shlex.quote(str(value))


def parse_port(value: str) -> Optional[int]:
    """Unsigned 16-bit port or None."""
    value = (value or "").strip()
    if not _PORT_RE.fullmatch(value):
        return None
    port = int(value)
    if port > 65535:
        return None
    return port


def parse_pid(value: str) -> Optional[int]:
    value = (value or "").strip()
    if not _PID_RE.fullmatch(value):
        return None
    return int(value)


def binary_path(subject: DeploySubject) -> str:
    return f"{REMOTE_DEPLOY_DIR}/bin/{subject.value}"


def extract_command() -> str:
    return (
        f"mkdir -p {shell_quote(REMOTE_DEPLOY_DIR)} && "
        f"tar xf {shell_quote(REMOTE_ARCHIVE_PATH)} -C {shell_quote(REMOTE_DEPLOY_DIR)} > /dev/null 2>&1 && "
        f"echo {EXTRACT_OK_MARKER}"
    )


def version_command(subject: DeploySubject) -> str:
    return f"{shell_quote(binary_path(subject))} --version"


def read_file_command(path: str) -> str:
    return f"cat {shell_quote(path)} 2>/dev/null"


def stop_previous_command() -> str:
    pid = f'"$(cat {shell_quote(PID_FILE)})"'
    inner = f"test -f {shell_quote(PID_FILE)} && test {pid} -gt 0 && kill {pid}"
    return f"/bin/sh -c {shell_quote(inner)}"


def probe_pid_command(pid: int) -> str:
    return f"kill -0 {int(pid)} 2>/dev/null && echo {ALIVE_MARKER}"


def launch_commands(
    subject: DeploySubject,
    bind_addr: str,
    bind_port: str,
    wait_seconds: int = STARTUP_WAIT_SECONDS,
) -> List[str]:
    """
    Script for one /bin/sh session: start the binary in the background,
    record pid and endpoint, wait, then print ALIVE_MARKER only if the
    process survived.
    """
    server = f"tcp://{bind_addr}:{bind_port}"
    pid = f'"$(cat {shell_quote(PID_FILE)})"'
    return [
        f"{shell_quote(binary_path(subject))} --server {shell_quote(server)} < /dev/null > /dev/null 2>&1 &",
        f"echo $! > {shell_quote(PID_FILE)}",
        f"echo {shell_quote(bind_addr)} > {shell_quote(BIND_ADDR_FILE)}",
        f"echo {shell_quote(bind_port)} > {shell_quote(BIND_PORT_FILE)}",
        f"sleep {int(wait_seconds)}",
        f"kill -0 {pid} && echo {ALIVE_MARKER} {pid}",
    ]

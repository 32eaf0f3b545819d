# fleetdeploy/services/lifecycle.py
from __future__ import annotations

import logging

from fleetdeploy.models.results import RunResult
from fleetdeploy.models.status import DeploySubject, SubjectAliveStatus, SubjectStatus
from fleetdeploy.services.remote_commands import (
    ALIVE_MARKER,
    BIND_ADDR_FILE,
    BIND_PORT_FILE,
    DEFAULT_BIND_ADDR,
    DEFAULT_BIND_PORT,
    PID_FILE,
    STARTUP_WAIT_SECONDS,
    launch_commands,
    parse_pid,
    parse_port,
    probe_pid_command,
    read_file_command,
    stop_previous_command,
)
from fleetdeploy.vps.connection import TRANSPORT_ERRORS, RemoteSession

logger = logging.getLogger(__name__)

_QUOTES = ("'", '"')


def sanitize_bind_addr(value: str) -> str:
    if any(ch in value for ch in _QUOTES):
        logger.warning("Reset bind address due to bad symbols: %r", value)
        value = ""
    return value or DEFAULT_BIND_ADDR


def sanitize_bind_port(value: str) -> str:
    if value and parse_port(value) is None:
        logger.warning("Reset bind port due to bad symbols: %r", value)
        value = ""
    if not value:
        return DEFAULT_BIND_PORT
    return str(parse_port(value))


def stop_previous(session: RemoteSession) -> None:
    """Best effort: kill whatever the pid sentinel points at."""
    try:
        session.run(stop_previous_command())
    except TRANSPORT_ERRORS as e:
        logger.warning("Could not stop previous instance: %s", e)


def run_subject(
    session: RemoteSession,
    subject: DeploySubject,
    bind_addr: str,
    bind_port: str,
    status: SubjectStatus,
    wait_seconds: int = STARTUP_WAIT_SECONDS,
) -> RunResult:
    status.running = False

    stop_previous(session)

    bind_addr = sanitize_bind_addr(bind_addr)
    bind_port = sanitize_bind_port(bind_port)

    try:
        output = session.run_script(
            launch_commands(subject, bind_addr, bind_port, wait_seconds)
        )
    except TRANSPORT_ERRORS as e:
        logger.error("Launch of %s failed: %s", subject.value, e)
        return RunResult.RUN_FAILED

    if ALIVE_MARKER not in output:
        logger.error("%s did not stay up on %s:%s", subject.value, bind_addr, bind_port)
        return RunResult.RUN_FAILED

    status.running = True
    logger.info("%s running on %s:%s", subject.value, bind_addr, bind_port)
    return RunResult.OK


def _read(session: RemoteSession, path: str) -> str:
    out, _ = session.run(read_file_command(path))
    return out.strip()


def probe_alive(session: RemoteSession) -> SubjectAliveStatus:
    """Fresh read of the sentinels. Never raises."""
    status = SubjectAliveStatus()
    try:
        pid = parse_pid(_read(session, PID_FILE))
        if not pid:
            # kill -0 0 would probe the whole process group
            return status

        out, _ = session.run(probe_pid_command(pid))
        if ALIVE_MARKER not in out:
            return status

        bind_addr = _read(session, BIND_ADDR_FILE)
        bind_port = parse_port(_read(session, BIND_PORT_FILE))
    except TRANSPORT_ERRORS as e:
        logger.warning("Liveness probe failed: %s", e)
        return status

    if bind_port is None:
        # process is up but advertises no usable endpoint
        return status

    status.alive = True
    status.bind_addr = bind_addr
    status.bind_port = bind_port
    return status

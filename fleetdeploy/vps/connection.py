# fleetdeploy/vps/connection.py
from __future__ import annotations

import logging
import os
from typing import Callable, Iterable, Optional, Protocol, Tuple

import paramiko

logger = logging.getLogger(__name__)

SSH_TIMEOUT_SECONDS = float(os.getenv("FLEETDEPLOY_SSH_TIMEOUT", "10"))
DEFAULT_SSH_PORT = 22


class RemoteSession(Protocol):
    """What the node pool needs from a live remote session."""

    def connect(self) -> "RemoteSession":
        ...

    def run(self, command: str) -> Tuple[str, str]:
        ...

    def run_script(self, commands: Iterable[str]) -> str:
        ...

    def upload(self, local_path: str, remote_path: str) -> None:
        ...

    def close(self) -> None:
        ...


SessionFactory = Callable[[str, int, str, Optional[str]], RemoteSession]


class NotConnectedError(paramiko.SSHException):
    """Command or transfer attempted before connect() or after close()."""


def split_address(address: str) -> Tuple[str, int]:
    """
    "host" or "host:port" -> (host, port). Bracketed IPv6 is accepted.
    """
    address = address.strip()
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        port = rest.lstrip(":")
        return host, int(port) if port else DEFAULT_SSH_PORT

    if address.count(":") == 1:
        host, port = address.split(":")
        return host, int(port) if port else DEFAULT_SSH_PORT
    return address, DEFAULT_SSH_PORT


class VPSConnection:
    """
    Remote session on one node:
    - SSH (remote commands, one-shot or as a shell script)
    - SFTP (upload)
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: Optional[str] = None,
        timeout: float = SSH_TIMEOUT_SECONDS,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout

        self.client: Optional[paramiko.SSHClient] = None
        self.sftp: Optional[paramiko.SFTPClient] = None

    def __enter__(self) -> "VPSConnection":
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ---------- SSH Connection ----------
    def connect(self) -> "VPSConnection":
        """
        Handshake and password authentication.

        Raises paramiko.AuthenticationException when the credentials are
        rejected, and SSHException / OSError for transport faults.
        """
        self.client = paramiko.SSHClient()
        self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            self.client.connect(
                self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                timeout=self.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            transport = self.client.get_transport()
            if transport is None or not transport.is_authenticated():
                raise paramiko.AuthenticationException(
                    f"session to {self.host} is not authenticated"
                )
        except Exception:
            self.close()
            raise

        logger.debug("SSH session open: %s@%s:%s", self.username, self.host, self.port)
        return self

    # ---------- Run command ----------
    def run(self, command: str) -> Tuple[str, str]:
        """
        Run remote command and return (stdout, stderr).
        """
        if not self.client:
            raise NotConnectedError(f"No session to {self.host}")

        stdin, stdout, stderr = self.client.exec_command(command)
        out = stdout.read().decode("utf-8", errors="ignore")
        err = stderr.read().decode("utf-8", errors="ignore")
        return out, err

    def run_script(self, commands: Iterable[str]) -> str:
        """
        Feed ordered commands to one remote /bin/sh and return everything
        it printed. stderr is merged into stdout on the channel so a chatty
        stderr cannot fill its window while stdout is drained. No pty, so
        commands are not echoed.
        """
        if not self.client:
            raise NotConnectedError(f"No session to {self.host}")

        stdin, stdout, stderr = self.client.exec_command("/bin/sh")
        stdout.channel.set_combine_stderr(True)
        for command in commands:
            stdin.write(command + "\n")
        stdin.flush()
        stdin.channel.shutdown_write()

        return stdout.read().decode("utf-8", errors="ignore")

    # ---------- SFTP Upload ----------
    def upload(self, local_path: str, remote_path: str) -> None:
        if not self.client:
            raise NotConnectedError(f"No session to {self.host}")
        if not self.sftp:
            self.sftp = self.client.open_sftp()
        self.sftp.put(local_path, remote_path)

    # ---------- Close ----------
    def close(self) -> None:
        if self.sftp:
            try:
                self.sftp.close()
            except Exception:
                logger.debug("SFTP close failed on %s", self.host, exc_info=True)
            self.sftp = None

        if self.client:
            try:
                self.client.close()
            except Exception:
                logger.debug("SSH close failed on %s", self.host, exc_info=True)
            self.client = None


# Faults a live session can raise mid-operation. socket.timeout and
# NoValidConnectionsError are OSError subclasses.
TRANSPORT_ERRORS = (paramiko.SSHException, OSError, EOFError)

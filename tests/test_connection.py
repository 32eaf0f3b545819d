"""Tests for the paramiko-backed VPSConnection."""

from __future__ import annotations

from unittest.mock import MagicMock

import paramiko
import pytest

from fleetdeploy.vps import connection
from fleetdeploy.vps.connection import TRANSPORT_ERRORS, NotConnectedError, VPSConnection, split_address


@pytest.fixture
def client(monkeypatch):
    client = MagicMock(name="SSHClient")
    client.get_transport.return_value.is_authenticated.return_value = True
    monkeypatch.setattr(connection.paramiko, "SSHClient", lambda: client)
    return client


def _streams(out=b"", err=b""):
    stdin, stdout, stderr = MagicMock(), MagicMock(), MagicMock()
    stdout.read.return_value = out
    stderr.read.return_value = err
    return stdin, stdout, stderr


class TestSplitAddress:
    @pytest.mark.parametrize(
        "address, expected",
        [
            ("host", ("host", 22)),
            ("host:2222", ("host", 2222)),
            ("10.0.0.5:22", ("10.0.0.5", 22)),
            ("[fe80::1]:2200", ("fe80::1", 2200)),
            ("fe80::1", ("fe80::1", 22)),
            ("host:", ("host", 22)),
        ],
    )
    def test_split(self, address, expected):
        assert split_address(address) == expected

    def test_bad_port(self):
        with pytest.raises(ValueError):
            split_address("host:ssh")


class TestVPSConnection:
    def test_connect_uses_password_only(self, client):
        conn = VPSConnection("host", 2222, "deploy", "secret", timeout=3)
        assert conn.connect() is conn
        client.connect.assert_called_once_with(
            "host",
            port=2222,
            username="deploy",
            password="secret",
            timeout=3,
            allow_agent=False,
            look_for_keys=False,
        )

    def test_auth_rejected_closes_client(self, client):
        client.connect.side_effect = paramiko.AuthenticationException("Authentication failed.")
        conn = VPSConnection("host", 22, "deploy", "wrong")
        with pytest.raises(paramiko.AuthenticationException):
            conn.connect()
        client.close.assert_called_once()
        assert conn.client is None

    def test_unauthenticated_transport(self, client):
        client.get_transport.return_value.is_authenticated.return_value = False
        with pytest.raises(paramiko.AuthenticationException):
            VPSConnection("host", 22, "deploy", "pw").connect()

    def test_run(self, client):
        client.exec_command.return_value = _streams(b"Linux\n", b"")
        with VPSConnection("host", 22, "deploy", "pw") as conn:
            assert conn.run("uname -a") == ("Linux\n", "")
        client.exec_command.assert_called_once_with("uname -a")

    def test_run_requires_connection(self):
        with pytest.raises(NotConnectedError):
            VPSConnection("host", 22, "deploy").run("true")

    def test_closed_session_is_a_transport_error(self, client):
        conn = VPSConnection("host", 22, "deploy", "pw").connect()
        conn.close()
        with pytest.raises(TRANSPORT_ERRORS):
            conn.run("true")
        with pytest.raises(TRANSPORT_ERRORS):
            conn.run_script(["true"])
        with pytest.raises(TRANSPORT_ERRORS):
            conn.upload("/tmp/a", "/remote/a")

    def test_programming_errors_are_not_transport_errors(self):
        assert not isinstance(RuntimeError("bug"), TRANSPORT_ERRORS)
        assert not isinstance(NotImplementedError(), TRANSPORT_ERRORS)

    def test_run_script(self, client):
        stdin, stdout, stderr = _streams(b"warn\nfleetdeploy-alive 42\n")
        client.exec_command.return_value = (stdin, stdout, stderr)

        conn = VPSConnection("host", 22, "deploy", "pw").connect()
        out = conn.run_script(["echo a", "echo b"])

        client.exec_command.assert_called_once_with("/bin/sh")
        stdout.channel.set_combine_stderr.assert_called_once_with(True)
        stderr.read.assert_not_called()
        stdin.write.assert_any_call("echo a\n")
        stdin.write.assert_any_call("echo b\n")
        stdin.channel.shutdown_write.assert_called_once()
        assert out == "warn\nfleetdeploy-alive 42\n"

    def test_upload_reuses_sftp(self, client):
        conn = VPSConnection("host", 22, "deploy", "pw").connect()
        conn.upload("/tmp/a", "/remote/a")
        conn.upload("/tmp/b", "/remote/b")
        client.open_sftp.assert_called_once()
        sftp = client.open_sftp.return_value
        sftp.put.assert_any_call("/tmp/a", "/remote/a")
        sftp.put.assert_any_call("/tmp/b", "/remote/b")

    def test_close_tolerates_errors(self, client):
        conn = VPSConnection("host", 22, "deploy", "pw").connect()
        conn.upload("/tmp/a", "/remote/a")
        client.open_sftp.return_value.close.side_effect = EOFError()
        client.close.side_effect = OSError("socket closed")

        conn.close()
        assert conn.client is None
        assert conn.sftp is None

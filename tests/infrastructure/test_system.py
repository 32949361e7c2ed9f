"""Tests for LocalSystem with psutil, httpx and subprocess patched out."""

from __future__ import annotations

import subprocess
from collections import namedtuple
from pathlib import Path

import httpx
import psutil
import pytest

from onionctl.infrastructure import system as system_module
from onionctl.infrastructure.system import LocalSystem, SystemFacade, _service_command
from tests.conftest import FakeSystem

Addr = namedtuple("Addr", ["ip", "port"])
Conn = namedtuple("Conn", ["laddr", "status"])


class TestServiceCommand:
    @pytest.mark.parametrize(
        "init_system,expected",
        [
            ("systemd", ["systemctl", "restart", "tor"]),
            ("openrc", ["rc-service", "tor", "restart"]),
            ("runit", ["sv", "restart", "tor"]),
            ("sysv", ["service", "tor", "restart"]),
            ("s6", ["s6-svc", "-r", "/run/service/tor"]),
            ("dinit", ["dinitctl", "restart", "tor"]),
        ],
    )
    def test_restart(self, init_system: str, expected: list[str]) -> None:
        assert _service_command(init_system, "restart", "tor") == expected

    def test_s6_stop(self) -> None:
        assert _service_command("s6", "stop", "web")[1] == "-d"  # type: ignore[index]

    def test_none(self) -> None:
        assert _service_command("none", "restart", "tor") is None


class TestSockets:
    @pytest.fixture(autouse=True)
    def _connections(self, monkeypatch: pytest.MonkeyPatch) -> None:
        table = [
            Conn(Addr("127.0.0.1", 5000), psutil.CONN_LISTEN),
            Conn(Addr("0.0.0.0", 8080), psutil.CONN_LISTEN),
            Conn(Addr("127.0.0.1", 43210), psutil.CONN_ESTABLISHED),
        ]
        monkeypatch.setattr(psutil, "net_connections", lambda kind="inet": table)

    def test_only_listening_sockets(self) -> None:
        local = LocalSystem()
        assert local.listening_ports() == {5000, 8080}
        assert local.is_port_listening(5000)
        assert not local.is_port_listening(43210)

    def test_listening_address(self) -> None:
        local = LocalSystem()
        assert local.listening_address(8080) == "0.0.0.0"
        assert local.listening_address(9999) is None

    def test_access_denied(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def denied(kind: str = "inet") -> list[Conn]:
            raise psutil.AccessDenied()

        monkeypatch.setattr(psutil, "net_connections", denied)
        assert LocalSystem().listening_ports() == set()


class TestProbe:
    def test_any_response_counts(self, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: list[str] = []

        def fake_get(url: str, timeout: float) -> httpx.Response:
            seen.append(url)
            return httpx.Response(404)

        monkeypatch.setattr(httpx, "get", fake_get)
        assert LocalSystem().probe_http(5000) is True
        assert seen == ["http://127.0.0.1:5000/"]

    def test_connection_refused(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_get(url: str, timeout: float) -> httpx.Response:
            raise httpx.ConnectError("refused")

        monkeypatch.setattr(httpx, "get", fake_get)
        assert LocalSystem().probe_http(5000) is False


class TestControlService:
    def test_success_and_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[list[str]] = []
        returncode = {"value": 0}

        def fake_run(args: list[str], **_kwargs: object) -> subprocess.CompletedProcess[str]:
            calls.append(args)
            return subprocess.CompletedProcess(args, returncode["value"], "", "boom")

        monkeypatch.setattr(subprocess, "run", fake_run)
        local = LocalSystem("openrc")
        assert local.control_service("reload", "tor") is True
        returncode["value"] = 1
        assert local.control_service("reload", "tor") is False
        assert calls[0] == ["rc-service", "tor", "reload"]

    def test_missing_binary(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_run(args: list[str], **_kwargs: object) -> subprocess.CompletedProcess[str]:
            raise FileNotFoundError(args[0])

        monkeypatch.setattr(subprocess, "run", fake_run)
        assert LocalSystem("systemd").control_service("restart", "tor") is False

    def test_no_init_system(self) -> None:
        assert LocalSystem("none").control_service("restart", "tor") is False

    def test_runit_status(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_run(args: list[str], **_kwargs: object) -> subprocess.CompletedProcess[str]:
            return subprocess.CompletedProcess(args, 0, "run: tor: (pid 12) 40s\n", "")

        monkeypatch.setattr(subprocess, "run", fake_run)
        assert LocalSystem("runit").is_service_active("tor") is True


class TestProcesses:
    def test_start_and_terminate_real_process(self, tmp_path: Path) -> None:
        local = LocalSystem()
        log_path = tmp_path / "state" / "sleep.log"
        pid = local.start_process(["sleep", "30"], cwd=tmp_path, log_path=log_path)
        assert log_path.exists()
        assert local.is_process_alive(pid)
        assert local.terminate_process(pid, timeout=2.0) is True

    def test_terminate_missing_pid(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def gone(pid: int) -> psutil.Process:
            raise psutil.NoSuchProcess(pid)

        monkeypatch.setattr(system_module.psutil, "Process", gone)
        assert LocalSystem().terminate_process(999999) is True


def test_implementations_satisfy_protocol() -> None:
    assert isinstance(LocalSystem(), SystemFacade)
    assert isinstance(FakeSystem(), SystemFacade)

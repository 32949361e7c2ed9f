"""Shared pytest fixtures and test helpers for onionctl tests."""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from onionctl.config.models import ProvisionConfig, RegistryConfig, TorConfig, WebConfig
from onionctl.config.settings import OnionSettings
from onionctl.domain import torrc
from onionctl.domain.records import ServiceRecord, ServiceStatus
from onionctl.infrastructure.workspace import Workspace
from onionctl.services.telemetry import disable_telemetry


class FakeSystem:
    """In-memory host: sockets, processes and a service manager.

    Restarting ``tor`` writes an identity file into every service
    directory named in the torrc, the way a healthy Tor would.
    """

    def __init__(self, torrc_path: Path | None = None) -> None:
        self.torrc_path = torrc_path
        self.listening: dict[int, str] = {}
        self.responsive: set[int] = set()
        self.alive: set[int] = set()
        self.started: list[list[str]] = []
        self.terminated: list[int] = []
        self.calls: list[tuple[str, str]] = []
        self.active_services: set[str] = {"tor"}
        self.units: set[str] = set()
        self.programs: dict[str, str] = {
            "apt-get": "/usr/bin/apt-get",
            "systemctl": "/usr/bin/systemctl",
            "tor": "/usr/bin/tor",
        }
        self.markers: set[str] = {"/run/systemd/system"}
        self.control_ok = True
        self.generate_identities = True
        self.start_alive = True
        self._next_pid = 4000

    # sockets
    def is_port_listening(self, port: int) -> bool:
        return port in self.listening

    def listening_ports(self) -> set[int]:
        return set(self.listening)

    def listening_address(self, port: int) -> str | None:
        return self.listening.get(port)

    def probe_http(self, port: int, *, host: str = "127.0.0.1", timeout: float = 3.0) -> bool:
        return port in self.responsive

    # processes
    def start_process(self, args: list[str], *, cwd: Path, log_path: Path) -> int:
        self.started.append(list(args))
        self._next_pid += 1
        if self.start_alive:
            self.alive.add(self._next_pid)
        return self._next_pid

    def is_process_alive(self, pid: int) -> bool:
        return pid in self.alive

    def terminate_process(self, pid: int, *, timeout: float = 5.0) -> bool:
        self.terminated.append(pid)
        self.alive.discard(pid)
        return True

    # service manager
    def control_service(self, action: str, name: str) -> bool:
        self.calls.append((action, name))
        if not self.control_ok:
            return False
        if action == "stop":
            self.active_services.discard(name)
        else:
            self.active_services.add(name)
        if name == "tor" and action in {"restart", "reload"} and self.generate_identities:
            self._emit_identities()
        return True

    def is_service_active(self, name: str) -> bool:
        return name in self.active_services

    def has_service(self, name: str) -> bool:
        return name in self.units

    def which(self, program: str) -> str | None:
        return self.programs.get(program)

    def path_exists(self, path: Path) -> bool:
        if str(path) in self.markers:
            return True
        return os.path.lexists(path)

    # helpers
    def reloads(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[1] == "tor" and c[0] in {"restart", "reload"}]

    def _emit_identities(self) -> None:
        if self.torrc_path is None or not self.torrc_path.exists():
            return
        for found in torrc.find_services(self.torrc_path.read_text(encoding="utf-8")):
            directory = Path(found.directory)
            directory.mkdir(parents=True, exist_ok=True)
            hostname = directory / "hostname"
            if not hostname.exists():
                hostname.write_text(f"{found.name.replace('_', '')}.onion\n", encoding="utf-8")


@pytest.fixture(autouse=True)
def _reset_global_state() -> Generator[None]:
    """Undo the logging and telemetry setup a CLI invocation leaves behind."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    logging.getLogger("onionctl").setLevel(logging.NOTSET)
    disable_telemetry()


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def onion_root(tmp_path: Path) -> Path:
    """Temporary host layout: torrc, Tor data dir, web root, state dir."""
    (tmp_path / "etc" / "tor").mkdir(parents=True)
    (tmp_path / "lib" / "tor").mkdir(parents=True)
    (tmp_path / "www").mkdir()
    (tmp_path / "state").mkdir()
    (tmp_path / "etc" / "tor" / "torrc").write_text(
        "SocksPort 9050\nLog notice file /var/log/tor/notices.log\n", encoding="utf-8"
    )
    return tmp_path


@pytest.fixture
def settings(onion_root: Path) -> OnionSettings:
    return OnionSettings(
        tor=TorConfig(
            torrc_path=onion_root / "etc" / "tor" / "torrc",
            hidden_service_base_dir=onion_root / "lib" / "tor",
            backup_max_count=3,
        ),
        web=WebConfig(site_base_dir=onion_root / "www", stop_timeout=0.1),
        registry=RegistryConfig(state_dir=onion_root / "state"),
        provision=ProvisionConfig(poll_interval=0, max_polls=3),
    )


@pytest.fixture
def fake_system(settings: OnionSettings) -> FakeSystem:
    return FakeSystem(torrc_path=settings.tor.torrc_path)


@pytest.fixture
def workspace(settings: OnionSettings, fake_system: FakeSystem) -> Workspace:
    ws = Workspace.from_settings(settings, fake_system)
    ws.registry.ensure_initialized()
    return ws


@pytest.fixture
def _cli_home(onion_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point the CLI at the temporary host layout via a discovered onionctl.toml.

    Use via ``@pytest.mark.usefixtures("_cli_home")`` on command test classes.
    """
    (onion_root / "onionctl.toml").write_text(
        "[tor]\n"
        f'torrc_path = "{onion_root / "etc" / "tor" / "torrc"}"\n'
        f'hidden_service_base_dir = "{onion_root / "lib" / "tor"}"\n'
        "[web]\n"
        f'site_base_dir = "{onion_root / "www"}"\n'
        "stop_timeout = 0.1\n"
        "[registry]\n"
        f'state_dir = "{onion_root / "state"}"\n'
        "[provision]\n"
        "poll_interval = 0\n"
        "max_polls = 3\n",
        encoding="utf-8",
    )
    monkeypatch.delenv("ONIONCTL_CONFIG", raising=False)
    monkeypatch.chdir(onion_root)


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def add_service(
    workspace: Workspace,
    name: str,
    port: int,
    *,
    identity: str | None = None,
    block: bool = True,
    **kwargs: Any,
) -> ServiceRecord:
    """Register *name* with a real directory (and torrc block, by default)."""
    directory = workspace.service_directory(name)
    directory.mkdir(parents=True, exist_ok=True)
    if identity is not None:
        (directory / "hostname").write_text(f"{identity}\n", encoding="utf-8")
    record = ServiceRecord(
        name=name,
        directory=directory,
        port=port,
        status=kwargs.pop("status", ServiceStatus.ACTIVE if identity else ServiceStatus.INACTIVE),
        address=kwargs.pop("address", identity or ""),
        **kwargs,
    )
    workspace.registry.append(record)
    if block:
        tor = workspace.settings.tor
        workspace.torrc.insert_block(
            name, torrc.block_lines(str(directory), tor.virtual_port, tor.bind_host, port)
        )
    return record

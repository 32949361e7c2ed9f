"""System facade: sockets, HTTP probes, processes and the service manager.

Services talk to the host only through :class:`SystemFacade`, so the
orchestration logic can be driven by an in-memory fake in tests.
:class:`LocalSystem` is the real implementation, built on psutil for
sockets and processes, httpx for HTTP probes and subprocess for the
init system's control command.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Protocol, runtime_checkable

import httpx
import psutil

logger = logging.getLogger(__name__)

ServiceAction = str  # "start" | "stop" | "restart" | "reload"


@runtime_checkable
class SystemFacade(Protocol):
    """Everything onionctl needs to observe or change on the host."""

    def is_port_listening(self, port: int) -> bool: ...

    def listening_ports(self) -> set[int]: ...

    def listening_address(self, port: int) -> str | None: ...

    def probe_http(self, port: int, *, host: str = "127.0.0.1", timeout: float = 3.0) -> bool: ...

    def start_process(self, args: list[str], *, cwd: Path, log_path: Path) -> int: ...

    def is_process_alive(self, pid: int) -> bool: ...

    def terminate_process(self, pid: int, *, timeout: float = 5.0) -> bool: ...

    def control_service(self, action: ServiceAction, name: str) -> bool: ...

    def is_service_active(self, name: str) -> bool: ...

    def has_service(self, name: str) -> bool: ...

    def which(self, program: str) -> str | None: ...

    def path_exists(self, path: Path) -> bool: ...


_S6_FLAGS = {"start": "-u", "stop": "-d", "restart": "-r", "reload": "-h"}
_S6_SCAN_DIR = Path("/run/service")


def _service_command(init_system: str, action: ServiceAction, name: str) -> list[str] | None:
    if init_system == "systemd":
        return ["systemctl", action, name]
    if init_system == "openrc":
        return ["rc-service", name, action]
    if init_system == "runit":
        return ["sv", action, name]
    if init_system == "sysv":
        return ["service", name, action]
    if init_system == "s6":
        return ["s6-svc", _S6_FLAGS.get(action, "-r"), str(_S6_SCAN_DIR / name)]
    if init_system == "dinit":
        return ["dinitctl", action, name]
    return None


class LocalSystem:
    """The real host, controlled through *init_system*'s command line tool."""

    def __init__(self, init_system: str = "systemd", *, command_timeout: float = 60.0) -> None:
        self.init_system = init_system
        self.command_timeout = command_timeout

    # ── Sockets ───────────────────────────────────────────────────────

    def _listeners(self) -> list[tuple[str, int]]:
        try:
            connections = psutil.net_connections(kind="inet")
        except psutil.AccessDenied:
            logger.debug("Socket table not readable; assuming no listeners")
            return []
        return [
            (conn.laddr.ip, conn.laddr.port)
            for conn in connections
            if conn.status == psutil.CONN_LISTEN and conn.laddr
        ]

    def listening_ports(self) -> set[int]:
        return {port for _, port in self._listeners()}

    def is_port_listening(self, port: int) -> bool:
        return port in self.listening_ports()

    def listening_address(self, port: int) -> str | None:
        """Bind address of the socket listening on *port*, if any."""
        for ip, listen_port in self._listeners():
            if listen_port == port:
                return ip
        return None

    def probe_http(self, port: int, *, host: str = "127.0.0.1", timeout: float = 3.0) -> bool:
        """True if anything answers an HTTP GET on *port*, whatever the status."""
        try:
            httpx.get(f"http://{host}:{port}/", timeout=timeout)
        except httpx.HTTPError as exc:
            logger.debug("HTTP probe of %s:%d failed: %s", host, port, exc)
            return False
        return True

    # ── Processes ─────────────────────────────────────────────────────

    def start_process(self, args: list[str], *, cwd: Path, log_path: Path) -> int:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with log_path.open("ab") as log_handle:
            process = subprocess.Popen(  # noqa: S603
                args,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=log_handle,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        logger.debug("Started %s as PID %d", args[0], process.pid)
        return process.pid

    def is_process_alive(self, pid: int) -> bool:
        if not psutil.pid_exists(pid):
            return False
        try:
            return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
        except psutil.Error:
            return False

    def terminate_process(self, pid: int, *, timeout: float = 5.0) -> bool:
        """SIGTERM, then SIGKILL after *timeout*. True once the process is gone."""
        try:
            process = psutil.Process(pid)
        except psutil.NoSuchProcess:
            return True
        try:
            process.terminate()
            process.wait(timeout=timeout)
            return True
        except psutil.TimeoutExpired:
            logger.warning("PID %d did not stop in %.1fs; killing", pid, timeout)
            try:
                process.kill()
                process.wait(timeout=timeout)
                return True
            except psutil.Error as exc:
                logger.error("Failed to kill PID %d: %s", pid, exc)
                return False
        except psutil.NoSuchProcess:
            return True
        except psutil.Error as exc:
            logger.error("Error while stopping PID %d: %s", pid, exc)
            return False

    # ── Service manager ───────────────────────────────────────────────

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[str] | None:
        try:
            return subprocess.run(  # noqa: S603
                args,
                capture_output=True,
                text=True,
                timeout=self.command_timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("%s failed: %s", " ".join(args), exc)
            return None

    def control_service(self, action: ServiceAction, name: str) -> bool:
        args = _service_command(self.init_system, action, name)
        if args is None:
            logger.warning("No init system available to %s %s", action, name)
            return False
        completed = self._run(args)
        if completed is None or completed.returncode != 0:
            stderr = completed.stderr.strip() if completed else ""
            logger.warning("'%s' failed: %s", " ".join(args), stderr or "no output")
            return False
        return True

    def _process_named(self, name: str) -> bool:
        for proc in psutil.process_iter(["name"]):
            if proc.info.get("name") == name:
                return True
        return False

    def is_service_active(self, name: str) -> bool:
        if self.init_system == "systemd":
            completed = self._run(["systemctl", "is-active", "--quiet", name])
            return completed is not None and completed.returncode == 0
        if self.init_system == "openrc":
            completed = self._run(["rc-service", name, "status"])
            return completed is not None and completed.returncode == 0
        if self.init_system == "runit":
            completed = self._run(["sv", "status", name])
            return completed is not None and completed.stdout.startswith("run:")
        if self.init_system == "s6":
            completed = self._run(["s6-svstat", str(_S6_SCAN_DIR / name)])
            return completed is not None and completed.stdout.startswith("up")
        if self.init_system == "dinit":
            completed = self._run(["dinitctl", "is-started", name])
            return completed is not None and completed.returncode == 0
        return self._process_named(name)

    def has_service(self, name: str) -> bool:
        """Whether the service manager knows a unit/service called *name*."""
        if self.init_system == "systemd":
            completed = self._run(["systemctl", "list-unit-files", f"{name}.service", "--no-legend"])
            return completed is not None and bool(completed.stdout.strip())
        if self.init_system in {"openrc", "sysv"}:
            return Path("/etc/init.d", name).exists()
        if self.init_system == "runit":
            return Path("/etc/sv", name).exists() or Path("/etc/runit/sv", name).exists()
        if self.init_system == "s6":
            return (_S6_SCAN_DIR / name).exists()
        if self.init_system == "dinit":
            return Path("/etc/dinit.d", name).exists()
        return False

    # ── Misc ──────────────────────────────────────────────────────────

    def which(self, program: str) -> str | None:
        return shutil.which(program)

    def path_exists(self, path: Path) -> bool:
        return os.path.lexists(path)

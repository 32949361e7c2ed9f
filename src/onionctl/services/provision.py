"""ProvisionService: create a new onion service end to end.

Flow: check the host, then under the registry lock discover existing
services, pick a name and a port, register the record as INACTIVE and
append its torrc block. Outside the lock, restart Tor and wait for the
identity file. The record ends up ACTIVE (with its address) or ERROR.
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from onionctl.domain import torrc
from onionctl.domain.errors import (
    ExternalProcessFailure,
    ResourceExhaustedError,
    UnsupportedEnvironmentError,
)
from onionctl.domain.records import ServiceRecord, ServiceStatus
from onionctl.infrastructure import environment
from onionctl.services._helpers import local_url
from onionctl.services.allocator import allocate_port
from onionctl.services.base import BaseService
from onionctl.services.naming import generate_unique_name
from onionctl.services.reconcile import ReconcileService, read_identity
from onionctl.services.result import ServiceResult
from onionctl.services.telemetry import trace_span, traced

if TYPE_CHECKING:
    from onionctl.infrastructure.workspace import Workspace

logger = logging.getLogger(__name__)


class ProvisionService(BaseService):
    """Creates onion services."""

    def __init__(
        self,
        workspace: Workspace,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(workspace)
        self._sleep = sleep

    # ── Host checks ───────────────────────────────────────────────────

    def check_environment(self) -> environment.HostEnvironment:
        """Detect the host and make sure Tor is installed.

        Raises:
            UnsupportedEnvironmentError: No package manager, or no ``tor``.
        """
        system = self._workspace.system
        host = environment.detect(
            which=system.which,
            exists=lambda marker: system.path_exists(Path(marker)),
        )
        environment.require_tor(host, which=system.which)
        return host

    # ── Steps ─────────────────────────────────────────────────────────

    def _register(self, warnings: list[str]) -> ServiceRecord:
        """Pick a name and port, register the record, append the torrc block."""
        ws = self._workspace
        tor = self.settings.tor
        registry = ws.registry

        with registry.locked():
            registry.ensure_initialized()
            ReconcileService(ws).discover_records(warnings)
            records = registry.load()

            with trace_span("allocate"):
                name = generate_unique_name(
                    {r.name for r in records},
                    ws.torrc.read(),
                    ws.system.path_exists,
                    directories=(tor.hidden_service_base_dir, self.settings.web.site_base_dir),
                    max_attempts=self.settings.provision.name_attempts,
                )
                port = allocate_port(
                    self.settings.web.base_port,
                    {r.port for r in records},
                    ws.system.is_port_listening,
                )

            record = ServiceRecord(name=name, directory=ws.service_directory(name), port=port)
            registry.append(record)
            logger.debug("Allocated %s on port %d", name, port)

            body = torrc.block_lines(str(record.directory), tor.virtual_port, tor.bind_host, port)
            try:
                ws.torrc.insert_block(name, body)
            except OSError as exc:
                registry.update_field(name, "status", ServiceStatus.ERROR)
                msg = f"Cannot update {ws.torrc.path}: {exc}"
                raise ExternalProcessFailure(
                    msg,
                    hints=[f"Check write permission on {ws.torrc.path} (try sudo)"],
                    detail={"name": name},
                ) from exc
        return record

    def _diagnostic_hints(self, record: ServiceRecord) -> list[str]:
        tor = self.settings.tor
        return [
            f"Check Tor logs: journalctl -u {tor.service_name} -n 20",
            "Verify torrc syntax: sudo tor --verify-config",
            f"Check directory permissions: ls -la {tor.hidden_service_base_dir}",
            f"Look for the address: cat {self._workspace.identity_path(record.directory)}",
        ]

    def _wait_for_identity(self, record: ServiceRecord, warnings: list[str]) -> str:
        """Restart Tor and poll for the identity file.

        Raises:
            ExternalProcessFailure: Tor died, or the file never appeared.
        """
        ws = self._workspace
        tor = self.settings.tor
        provision = self.settings.provision

        if not ws.system.control_service("restart", tor.service_name):
            warnings.append(
                f"Could not restart {tor.service_name}; restart it manually to apply the change"
            )

        with trace_span("wait_for_identity") as span:
            for attempt in range(1, provision.max_polls + 1):
                identity = read_identity(record.directory, tor.identity_filename)
                if identity:
                    if span:
                        span.annotate("polls", attempt)
                    return identity
                if not ws.system.is_service_active(tor.service_name):
                    msg = f"Tor stopped while generating {record.name}"
                    raise ExternalProcessFailure(msg, hints=self._diagnostic_hints(record))
                logger.debug("Waiting for identity (%d/%d)", attempt, provision.max_polls)
                self._sleep(provision.poll_interval)

        identity = read_identity(record.directory, tor.identity_filename)
        if identity:
            return identity
        msg = (
            f"Tor did not generate {record.name} after "
            f"{provision.max_polls * provision.poll_interval:g}s"
        )
        raise ExternalProcessFailure(msg, hints=self._diagnostic_hints(record))

    def start_website(self, record: ServiceRecord, warnings: list[str]) -> ServiceRecord:
        """Create the site directory and serve it on the record's port.

        A server that fails to start is a warning; the port is never
        re-allocated.
        """
        ws = self._workspace
        site_dir = ws.website_directory(record.name)
        try:
            site_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            warnings.append(f"Cannot create website directory {site_dir}: {exc}")
            return record

        args = [
            sys.executable,
            "-m",
            "http.server",
            str(record.port),
            "--bind",
            self.settings.tor.bind_host,
            "--directory",
            str(site_dir),
        ]
        try:
            pid = ws.system.start_process(args, cwd=site_dir, log_path=ws.pids.log_path(record.name))
        except OSError as exc:
            warnings.append(f"Web server failed to start: {exc}")
            return ws.registry.update_field(record.name, "website_directory", site_dir)

        ws.pids.write(record.name, pid)
        if not ws.system.is_process_alive(pid):
            failure = ExternalProcessFailure(
                f"Web server exited right away (port {record.port} may be taken)",
                hints=[f"See {ws.pids.log_path(record.name)}"],
            )
            warnings.append(f"{failure.message}; {failure.hints[0]}")
            ws.pids.clear(record.name)
        return ws.registry.update_field(record.name, "website_directory", site_dir)

    # ── Operation ─────────────────────────────────────────────────────

    @traced
    def create(self, *, website: bool = False) -> ServiceResult:
        """Provision a new onion service, optionally with a local test website."""
        op = "create"
        warnings: list[str] = []
        ws = self._workspace

        try:
            host = self.check_environment()
        except UnsupportedEnvironmentError as exc:
            return ServiceResult.failure(op, exc.code, exc.message, detail=exc.detail)
        if not host.has_service_manager:
            warnings.append("No supported init system; restart Tor manually if it is not running")

        try:
            record = self._register(warnings)
        except ResourceExhaustedError as exc:
            return ServiceResult.failure(
                op, exc.code, exc.message, detail=exc.detail, warnings=warnings
            )
        except ExternalProcessFailure as exc:
            return ServiceResult.failure(
                op,
                exc.code,
                exc.message,
                detail={**exc.detail, "hints": exc.hints},
                warnings=warnings,
            )

        try:
            identity = self._wait_for_identity(record, warnings)
        except ExternalProcessFailure as exc:
            failed = ws.registry.update_field(record.name, "status", ServiceStatus.ERROR)
            return ServiceResult.failure(
                op,
                exc.code,
                exc.message,
                detail={"name": record.name, "hints": exc.hints},
                data={"service": failed.to_summary()},
                warnings=warnings,
            )

        record = record.with_changes(status=ServiceStatus.ACTIVE, address=identity)
        ws.registry.put(record)

        if website:
            with trace_span("website"):
                record = self.start_website(record, warnings)

        data: dict[str, Any] = {
            "service": record.to_summary(),
            "onion_url": f"http://{record.address}",
            "local_url": local_url(record.port, self.settings.tor.bind_host),
            "website": record.website_directory is not None,
        }
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

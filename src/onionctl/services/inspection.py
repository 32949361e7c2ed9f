"""InspectionService: the ``--list`` and ``--test`` views.

Both views first discover and reconcile, so what they show is the
registry as it stands after syncing with the host.
"""

from __future__ import annotations

import logging
from typing import Any

from onionctl.domain.records import ServiceRecord, ServiceStatus, WebStatus
from onionctl.services._helpers import binding_scope, local_url
from onionctl.services.base import BaseService
from onionctl.services.reconcile import ReconcileService
from onionctl.services.result import ServiceResult
from onionctl.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)


class InspectionService(BaseService):
    """Read-mostly views over the registry and the host."""

    def _probe_host(self, port: int) -> str:
        address = self._workspace.system.listening_address(port)
        if address is None or binding_scope(address) in {"all", "localhost"}:
            return "127.0.0.1"
        return address

    def probe(self, port: int) -> WebStatus:
        """Raw port check: NOT_LISTENING, NOT_RESPONDING or RUNNING."""
        system = self._workspace.system
        if not system.is_port_listening(port):
            return WebStatus.NOT_LISTENING
        if system.probe_http(
            port, host=self._probe_host(port), timeout=self.settings.web.probe_timeout
        ):
            return WebStatus.RUNNING
        return WebStatus.NOT_RESPONDING

    def managed_label(self, record: ServiceRecord) -> str:
        """``SYS`` (has a web unit), ``YES`` (tool-managed) or ``NO``."""
        if not record.is_tool_managed:
            return "NO"
        if self._workspace.system.has_service(self._workspace.web_unit(record.name)):
            return "SYS"
        return "YES"

    def _pid_alive(self, record: ServiceRecord) -> bool:
        """Liveness of the PID-file process. Stale PID files are removed."""
        pids = self._workspace.pids
        pid = pids.read(record.name)
        if pid is None:
            return False
        if self._workspace.system.is_process_alive(pid):
            return True
        logger.debug("Removing stale PID file for %s (PID %d)", record.name, pid)
        pids.clear(record.name)
        return False

    def web_status(self, record: ServiceRecord) -> WebStatus:
        """Combined web server status for one record."""
        if not record.is_tool_managed:
            return self.probe(record.port) if record.port else WebStatus.NOT_APPLICABLE

        system = self._workspace.system
        unit = self._workspace.web_unit(record.name)
        if system.has_service(unit):
            if not system.is_service_active(unit):
                return WebStatus.STOPPED
            if self.probe(record.port) == WebStatus.RUNNING:
                return WebStatus.RUNNING
            return WebStatus.SERVICE_UP_PORT_DOWN

        alive = self._pid_alive(record)
        probed = self.probe(record.port)
        if probed == WebStatus.RUNNING:
            return WebStatus.RUNNING
        if probed == WebStatus.NOT_RESPONDING and alive:
            return WebStatus.UNRESPONSIVE
        return WebStatus.STOPPED

    def _row(self, record: ServiceRecord, warnings: list[str]) -> dict[str, Any]:
        address = self._workspace.system.listening_address(record.port)
        scope = binding_scope(address)
        if scope == "all":
            warnings.append(
                f"{record.name}: port {record.port} listens on all interfaces; "
                f"direct access by machine IP bypasses Tor"
            )
        return {
            **record.to_summary(),
            "managed_label": self.managed_label(record),
            "web_status": str(self.web_status(record)),
            "local_url": local_url(record.port),
            "binding": scope,
        }

    @traced
    def list_services(self) -> ServiceResult:
        """Status table of every registered service."""
        warnings: list[str] = []
        self._workspace.registry.ensure_initialized()
        records, _, _ = ReconcileService(self._workspace).refresh(warnings)

        with trace_span("rows"):
            rows = [self._row(record, warnings) for record in records]
        return ServiceResult(
            ok=True,
            op="list",
            data={
                "services": rows,
                "count": len(rows),
                "registry": str(self._workspace.registry.path),
            },
            warnings=warnings,
        )

    @traced
    def test_services(self) -> ServiceResult:
        """Actively probe every registered service's local port."""
        warnings: list[str] = []
        self._workspace.registry.ensure_initialized()
        records, _, _ = ReconcileService(self._workspace).refresh(warnings)

        results: list[dict[str, Any]] = []
        with trace_span("probe"):
            for record in records:
                probed = self.probe(record.port)
                results.append(
                    {
                        "name": record.name,
                        "port": record.port,
                        "status": str(record.status),
                        "address": record.address,
                        "managed": record.is_tool_managed,
                        "probe": str(probed),
                        "web_status": str(self.web_status(record)),
                        "local_url": local_url(record.port),
                    }
                )

        totals = {
            "tested": len(results),
            "active": sum(1 for r in records if r.status == ServiceStatus.ACTIVE),
            "responsive": sum(1 for r in results if r["probe"] == WebStatus.RUNNING),
        }
        return ServiceResult(
            ok=True,
            op="test",
            data={"results": results, "totals": totals},
            warnings=warnings,
        )

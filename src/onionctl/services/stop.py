"""StopService: stop the local web server of a tool-managed service."""

from __future__ import annotations

import logging

from onionctl.services.base import BaseService
from onionctl.services.result import ServiceResult
from onionctl.services.telemetry import traced

logger = logging.getLogger(__name__)


class StopService(BaseService):
    """Stops web servers. The onion service itself is left alone."""

    def stop_web_server(self, name: str, warnings: list[str]) -> str:
        """Stop whatever serves *name*'s website.

        Returns how it was stopped: ``"unit"``, ``"pid"``, ``"stale"``
        (PID file pointed at a dead process) or ``"none"``.
        """
        ws = self._workspace
        unit = ws.web_unit(name)
        if ws.system.has_service(unit):
            if not ws.system.control_service("stop", unit):
                warnings.append(f"Failed to stop {unit}")
            return "unit"

        pid = ws.pids.read(name)
        if pid is None:
            return "none"
        if not ws.system.is_process_alive(pid):
            ws.pids.clear(name)
            return "stale"
        if not ws.system.terminate_process(pid, timeout=self.settings.web.stop_timeout):
            warnings.append(f"Web server PID {pid} for {name} did not exit")
            return "pid"
        ws.pids.clear(name)
        logger.debug("Stopped web server PID %d for %s", pid, name)
        return "pid"

    @traced
    def stop(self, name: str) -> ServiceResult:
        op = "stop"
        record = self._workspace.registry.find(name)
        if record is None:
            return ServiceResult.failure(
                op, "NOT_FOUND", f"Service '{name}' not found in registry", detail={"name": name}
            )
        if not record.is_tool_managed:
            return ServiceResult.failure(
                op,
                "NOT_MANAGED",
                f"Service '{name}' was not created by onionctl; stop its web server yourself",
                detail={"name": name},
            )

        warnings: list[str] = []
        method = self.stop_web_server(name, warnings)
        stopped = method in {"unit", "pid"} and not warnings
        if method == "stale":
            warnings.append(f"Removed stale PID file for {name}")
        return ServiceResult(
            ok=True,
            op=op,
            data={"name": name, "method": method, "stopped": stopped},
            warnings=warnings,
        )

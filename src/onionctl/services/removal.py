"""RemovalService: permanent single and bulk removal of onion services.

Removal is irreversible: deleting a service directory destroys Tor's
keys, and the onion address can never be recovered. The CLI therefore
shows :meth:`RemovalService.plan` and asks for confirmation before it
calls :meth:`RemovalService.execute`.

Each name is processed on its own. A failure is recorded and the batch
moves on; Tor is reloaded once at the end if anything was removed.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Any

from onionctl.domain import torrc
from onionctl.domain.records import ServiceRecord
from onionctl.services.base import BaseService
from onionctl.services.result import ServiceResult
from onionctl.services.stop import StopService
from onionctl.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[,\s]+")


def parse_names(raw: str | list[str] | tuple[str, ...]) -> list[str]:
    """Split a comma/space separated name list.

    Quotes are stripped, empties dropped, duplicates removed (first one wins).

    Examples:
        >>> parse_names('"svcA, svcB" svcA')
        ['svcA', 'svcB']
    """
    text = raw if isinstance(raw, str) else " ".join(raw)
    names: list[str] = []
    for token in _SEPARATORS.split(text):
        name = token.strip().strip("'\"")
        if name and name not in names:
            names.append(name)
    return names


class RemovalService(BaseService):
    """Deletes services: directories, torrc block, PID file, registry record."""

    def website_directories(self, record: ServiceRecord) -> list[Path]:
        """Recorded and conventional website directories, deduplicated."""
        candidates: list[Path] = []
        if record.website_directory is not None:
            candidates.append(record.website_directory)
        if record.is_tool_managed:
            candidates.append(self._workspace.website_directory(record.name))
        unique: list[Path] = []
        for path in candidates:
            if path not in unique:
                unique.append(path)
        return unique

    def _preview(self, record: ServiceRecord, config_text: str) -> dict[str, Any]:
        exists = self._workspace.system.path_exists
        block = torrc.get_block(config_text, record.name)
        if block:
            lines = [line.rstrip("\r\n") for line in block.lines if line.strip()]
        else:
            lines = torrc.find_directives(config_text, str(record.directory))
        sites = [p for p in self.website_directories(record) if exists(p)]
        return {
            "name": record.name,
            "address": record.address,
            "port": record.port,
            "managed": record.is_tool_managed,
            "directory": str(record.directory),
            "directory_exists": exists(record.directory),
            "website_directories": [str(p) for p in sites],
            "torrc_lines": lines,
        }

    @traced
    def plan(self, raw: str | list[str] | tuple[str, ...]) -> ServiceResult:
        """Validate the requested names and describe what removal would delete."""
        op = "remove_plan"
        names = parse_names(raw)
        registry = self._workspace.registry
        known = {r.name: r for r in registry.load()}
        valid = [n for n in names if n in known]
        invalid = [n for n in names if n not in known]

        if not valid:
            shown = ", ".join(invalid) or "(none)"
            return ServiceResult.failure(
                op,
                "NOT_FOUND",
                f"Service(s) not found in registry: {shown}",
                detail={"invalid": invalid},
                data={"valid": [], "invalid": invalid},
            )

        config_text = self._workspace.torrc.read()
        services = [self._preview(known[n], config_text) for n in valid]
        totals = {
            "services": len(services),
            "directories": sum(1 for s in services if s["directory_exists"]),
            "website_directories": sum(len(s["website_directories"]) for s in services),
            "managed": sum(1 for s in services if s["managed"]),
            "torrc_blocks": sum(1 for s in services if s["torrc_lines"]),
        }
        warnings = [f"'{n}' not found in registry; it will be skipped" for n in invalid]
        return ServiceResult(
            ok=True,
            op=op,
            data={"valid": valid, "invalid": invalid, "services": services, "totals": totals},
            warnings=warnings,
        )

    def _remove_one(self, record: ServiceRecord, warnings: list[str]) -> None:
        """Remove one service.

        Raises:
            OSError: A directory or the registry record could not be deleted.
        """
        ws = self._workspace
        name = record.name

        if record.is_tool_managed:
            StopService(ws).stop_web_server(name, warnings)

        try:
            if not ws.torrc.remove_block(name) and not ws.torrc.remove_directives(
                str(record.directory)
            ):
                warnings.append(
                    f"{name}: no torrc entry found for {record.directory}; if Tor still "
                    f"lists it, it will come back with a new onion address"
                )
        except OSError as exc:
            warnings.append(f"{name}: could not edit torrc: {exc}")

        for directory in [record.directory, *self.website_directories(record)]:
            if ws.system.path_exists(directory):
                shutil.rmtree(directory)
                logger.debug("Deleted %s", directory)

        ws.pids.clear(name)
        ws.pids.log_path(name).unlink(missing_ok=True)
        ws.registry.delete(name)

    @traced
    def execute(self, names: list[str]) -> ServiceResult:
        """Remove every named service, continuing past per-item failures."""
        op = "remove"
        registry = self._workspace.registry
        requested = parse_names(names)
        known = {r.name: r for r in registry.load()}

        failed: list[dict[str, str]] = [
            {"name": n, "reason": "not found in registry"} for n in requested if n not in known
        ]
        valid = [n for n in requested if n in known]
        if not valid:
            shown = ", ".join(requested) or "(none)"
            return ServiceResult.failure(
                op,
                "NOT_FOUND",
                f"Service(s) not found in registry: {shown}",
                detail={"invalid": [f["name"] for f in failed]},
                data={"removed": [], "failed": failed, "succeeded": 0, "failed_count": len(failed)},
            )

        warnings: list[str] = []
        removed: list[str] = []
        with registry.locked():
            for name in valid:
                with trace_span(f"remove:{name}"):
                    try:
                        self._remove_one(known[name], warnings)
                    except OSError as exc:
                        logger.warning("Removing %s failed: %s", name, exc)
                        failed.append({"name": name, "reason": str(exc)})
                        continue
                removed.append(name)

        reloaded = self._reload_tor(warnings) if removed else False

        data = {
            "removed": removed,
            "failed": failed,
            "succeeded": len(removed),
            "failed_count": len(failed),
            "reloaded": reloaded,
        }
        if failed:
            shown = ", ".join(f["name"] for f in failed)
            return ServiceResult.failure(
                op,
                "BULK_PARTIAL",
                f"{len(removed)} removed, {len(failed)} failed: {shown}",
                detail={"failed": failed},
                data=data,
                warnings=warnings,
            )
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

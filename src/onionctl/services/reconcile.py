"""Registry reconciliation against Tor's identity files and the torrc.

The ``hostname`` file Tor writes into each service directory is the only
source of truth for ``ACTIVE``. :func:`reconcile_record` is a pure
function of a record and that file's content; :class:`ReconcileService`
applies it to the registry and also registers services that exist in the
torrc but not yet in the registry.

INVARIANT: ``reconcile(reconcile(R)) == reconcile(R)`` for unchanged
identity files.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from onionctl.domain import torrc
from onionctl.domain.errors import DuplicateRecordError
from onionctl.domain.ids import is_tool_managed
from onionctl.domain.records import RESERVED_CHARACTERS, ServiceRecord, ServiceStatus
from onionctl.services.base import BaseService
from onionctl.services.result import ServiceResult
from onionctl.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)

IdentityReader = Callable[[Path], str | None]


def read_identity(directory: Path, filename: str = "hostname") -> str | None:
    """The trimmed content of the identity file, or None.

    Missing, unreadable and empty files all count as absent, as does
    content that cannot be stored in the registry (a ``|`` or a line
    break left after trimming).
    """
    path = directory / filename
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    identity = content.strip()
    if RESERVED_CHARACTERS.intersection(identity):
        logger.warning("%s: ignoring identity with reserved characters", path)
        return None
    return identity or None


def reconcile_record(record: ServiceRecord, identity: str | None) -> ServiceRecord:
    """Bring *record* in line with the observed *identity*."""
    if identity is not None:
        if record.status == ServiceStatus.ACTIVE and record.address == identity:
            return record
        return record.with_changes(status=ServiceStatus.ACTIVE, address=identity)
    if record.status == ServiceStatus.ACTIVE:
        return record.with_changes(status=ServiceStatus.INACTIVE, address="")
    return record


def reconcile(records: Iterable[ServiceRecord], reader: IdentityReader) -> list[ServiceRecord]:
    """Reconcile every record, reading identities through *reader*."""
    return [reconcile_record(record, reader(record.directory)) for record in records]


class ReconcileService(BaseService):
    """Keeps the registry consistent with what Tor has actually done."""

    def _reader(self) -> IdentityReader:
        filename = self.settings.tor.identity_filename
        return lambda directory: read_identity(directory, filename)

    def discover_records(self, warnings: list[str]) -> list[ServiceRecord]:
        """Register torrc services missing from the registry.

        A service is new only when neither its name nor its directory is
        registered yet. Runs under the registry lock so it cannot race a
        concurrent create.
        """
        registry = self._workspace.registry
        added: list[ServiceRecord] = []
        with registry.locked():
            text = self._workspace.torrc.read()
            if not text:
                return added
            existing = registry.load()
            names = {r.name for r in existing}
            directories = {str(r.directory).rstrip("/") for r in existing}
            reader = self._reader()

            for found in torrc.find_services(text):
                if found.name in names or found.directory in directories:
                    continue
                directory = Path(found.directory)
                identity = reader(directory)
                website = (
                    self._workspace.website_directory(found.name)
                    if is_tool_managed(found.name)
                    else None
                )
                try:
                    record = ServiceRecord(
                        name=found.name,
                        directory=directory,
                        port=found.port,
                        address=identity or "",
                        website_directory=website,
                        status=ServiceStatus.ACTIVE if identity else ServiceStatus.INACTIVE,
                    )
                    registry.append(record)
                except (ValueError, DuplicateRecordError) as exc:
                    warnings.append(f"Skipped torrc service {found.name!r}: {exc}")
                    continue
                names.add(record.name)
                directories.add(found.directory)
                added.append(record)
                logger.debug("Discovered %s (%s:%d)", record.name, directory, record.port)
        return added

    def sync_records(self) -> tuple[list[ServiceRecord], list[str]]:
        """Reconcile the stored records. Returns all records and the changed names.

        Only changed records are written back.
        """
        registry = self._workspace.registry
        changed: list[str] = []
        with registry.locked():
            current = registry.load()
            updated = reconcile(current, self._reader())
            for before, after in zip(current, updated, strict=True):
                if after != before:
                    registry.put(after)
                    changed.append(after.name)
                    logger.debug("%s: %s -> %s", after.name, before.status, after.status)
        return updated, changed

    def refresh(self, warnings: list[str]) -> tuple[list[ServiceRecord], list[str], list[str]]:
        """Discover, then sync. Returns (records, discovered names, changed names)."""
        with self._workspace.registry.locked():
            with trace_span("discover"):
                discovered = self.discover_records(warnings)
            with trace_span("reconcile"):
                records, changed = self.sync_records()
        return records, [r.name for r in discovered], changed

    @traced
    def sync(self) -> ServiceResult:
        """Discover torrc services and reconcile the whole registry."""
        warnings: list[str] = []
        records, discovered, changed = self.refresh(warnings)
        return ServiceResult(
            ok=True,
            op="sync",
            data={
                "count": len(records),
                "discovered": discovered,
                "changed": changed,
            },
            warnings=warnings,
        )

    @traced
    def discover(self) -> ServiceResult:
        """Register torrc services that the registry does not know yet."""
        warnings: list[str] = []
        added = self.discover_records(warnings)
        return ServiceResult(
            ok=True,
            op="discover",
            data={"discovered": [r.to_summary() for r in added], "count": len(added)},
            warnings=warnings,
        )

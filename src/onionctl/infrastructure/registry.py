"""RegistryStore: the line-oriented service registry file.

The whole file is rewritten on every mutation. Lines that are not
records (comments, blanks) and lines that fail to parse are kept
verbatim in their original positions, so a hand-edited or partly
corrupt registry never loses data through this tool.

INVARIANT: Mutations are read-modify-write under the store lock and
land on disk through an atomic replace.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from onionctl.domain.errors import DuplicateRecordError, RecordNotFoundError
from onionctl.domain.records import (
    MUTABLE_FIELDS,
    ServiceRecord,
    is_record_line,
    parse_line,
    render_line,
)
from onionctl.infrastructure.locking import atomic_write_text, locked_file

logger = logging.getLogger(__name__)

HEADER_LINES: tuple[str, ...] = (
    "# Tor Hidden Services Registry",
    "# Format: SERVICE_NAME|DIRECTORY|PORT|ONION_ADDRESS|WEBSITE_DIR|STATUS|CREATED_DATE",
    "# Status: ACTIVE, INACTIVE, ERROR",
)
HEADER = "\n".join(HEADER_LINES) + "\n"


def _starts_with_header(lines: list[str]) -> bool:
    """True when the first lines are exactly the three header lines."""
    head = [line.rstrip("\r\n") for line in lines[: len(HEADER_LINES)]]
    return head == list(HEADER_LINES)


@dataclass
class _Entry:
    """One physical line: either a parsed record or raw text kept as-is."""

    raw: str
    record: ServiceRecord | None = None

    def render(self) -> str:
        if self.record is not None:
            return render_line(self.record)
        return self.raw


class RegistryStore:
    """File-backed registry of :class:`ServiceRecord` entries."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock_depth = 0

    # ── Locking ───────────────────────────────────────────────────────

    @contextmanager
    def locked(self) -> Iterator[RegistryStore]:
        """Exclusive lock on the registry. Re-entrant within this instance."""
        if self._lock_depth:
            self._lock_depth += 1
            try:
                yield self
            finally:
                self._lock_depth -= 1
            return

        with locked_file(self.path):
            self._lock_depth = 1
            try:
                yield self
            finally:
                self._lock_depth = 0

    # ── Raw file access ───────────────────────────────────────────────

    def _read_entries(self) -> list[_Entry]:
        if not self.path.exists():
            return []
        entries: list[_Entry] = []
        text = self.path.read_text(encoding="utf-8")
        for lineno, line in enumerate(text.splitlines(), start=1):
            if not is_record_line(line):
                entries.append(_Entry(raw=line))
                continue
            try:
                entries.append(_Entry(raw=line, record=parse_line(line)))
            except ValueError as exc:
                logger.warning("%s:%d: skipping malformed line (%s)", self.path, lineno, exc)
                entries.append(_Entry(raw=line))
        return entries

    def _write_entries(self, entries: list[_Entry]) -> None:
        lines = [entry.render() for entry in entries]
        if not _starts_with_header(lines):
            lines = [*HEADER_LINES, *lines]
        atomic_write_text(self.path, "\n".join(lines) + "\n")

    def _has_header(self) -> bool:
        if not self.path.exists():
            return False
        with self.path.open(encoding="utf-8") as handle:
            head = [handle.readline() for _ in HEADER_LINES]
        return _starts_with_header(head)

    # ── Public API ────────────────────────────────────────────────────

    def ensure_initialized(self) -> bool:
        """Create the registry (or prepend a missing header).

        Returns True when the file was written. A file that already
        starts with the header is never touched.
        """
        with self.locked():
            if self._has_header():
                return False
            self.path.parent.mkdir(parents=True, exist_ok=True)
            existing = self.path.read_text(encoding="utf-8") if self.path.exists() else ""
            if existing and not existing.endswith("\n"):
                existing += "\n"
            atomic_write_text(self.path, HEADER + existing)
            logger.debug("Initialized registry at %s", self.path)
            return True

    def load(self) -> list[ServiceRecord]:
        """All parseable records in file order. A missing file is empty."""
        return [entry.record for entry in self._read_entries() if entry.record is not None]

    def find(self, name: str) -> ServiceRecord | None:
        for record in self.load():
            if record.name == name:
                return record
        return None

    def names(self) -> set[str]:
        return {record.name for record in self.load()}

    def append(self, record: ServiceRecord) -> ServiceRecord:
        with self.locked():
            entries = self._read_entries()
            if any(e.record is not None and e.record.name == record.name for e in entries):
                msg = f"Service '{record.name}' is already registered"
                raise DuplicateRecordError(msg, detail={"name": record.name})
            entries.append(_Entry(raw="", record=record))
            self._write_entries(entries)
        logger.debug("Registered %s on port %d", record.name, record.port)
        return record

    def update_field(self, name: str, field: str, value: Any) -> ServiceRecord:
        """Change one mutable field of the record called *name*.

        Raises:
            ValueError: *field* is immutable or unknown.
            RecordNotFoundError: No record is called *name*.
        """
        if field not in MUTABLE_FIELDS:
            msg = f"Field '{field}' cannot be updated"
            raise ValueError(msg)
        with self.locked():
            record = self.find(name)
            if record is None:
                msg = f"Service '{name}' not found in registry"
                raise RecordNotFoundError(msg, detail={"name": name})
            updated = record.with_changes(**{field: value})
            self.put(updated)
        return updated

    def put(self, record: ServiceRecord) -> ServiceRecord:
        """Replace the stored record carrying ``record.name``."""
        with self.locked():
            entries = self._read_entries()
            for entry in entries:
                if entry.record is not None and entry.record.name == record.name:
                    entry.record = record
                    break
            else:
                msg = f"Service '{record.name}' not found in registry"
                raise RecordNotFoundError(msg, detail={"name": record.name})
            self._write_entries(entries)
        return record

    def delete(self, name: str) -> bool:
        """Permanently drop the record called *name*. False if absent."""
        with self.locked():
            entries = self._read_entries()
            kept = [e for e in entries if e.record is None or e.record.name != name]
            if len(kept) == len(entries):
                return False
            self._write_entries(kept)
        logger.debug("Deleted registry record %s", name)
        return True

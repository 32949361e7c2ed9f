"""ServiceRecord model and the registry line format.

One record per provisioned onion service. Records are frozen; every
change produces a new, re-validated instance via :meth:`with_changes`.

Registry line layout (one record per line)::

    name|directory|port|address|website_directory|status|created_at

Values containing the delimiter or a line break are rejected at
validation time, so every valid record has an unambiguous line form.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from onionctl.domain.ids import is_tool_managed

FIELD_DELIMITER = "|"
RESERVED_CHARACTERS = frozenset({FIELD_DELIMITER, "\n", "\r"})
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

FIELD_ORDER: tuple[str, ...] = (
    "name",
    "directory",
    "port",
    "address",
    "website_directory",
    "status",
    "created_at",
)

# Older registries carried a system-service column before the timestamp.
_LEGACY_FIELD_COUNT = 8

MUTABLE_FIELDS = frozenset({"directory", "port", "address", "website_directory", "status"})


class ServiceStatus(StrEnum):
    """Onion service status, derived from the identity file."""

    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"
    ERROR = "ERROR"


class WebStatus(StrEnum):
    """Local web server status as reported by list/test."""

    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    UNRESPONSIVE = "UNRESPONSIVE"
    NOT_LISTENING = "NOT_LISTENING"
    NOT_RESPONDING = "NOT_RESPONDING"
    SERVICE_UP_PORT_DOWN = "SERVICE_UP_PORT_DOWN"
    NOT_APPLICABLE = "N/A"


def now_seconds() -> datetime:
    """Local wall-clock time truncated to whole seconds."""
    return datetime.now().replace(microsecond=0)


def _reject_reserved(value: str, field_name: str) -> str:
    bad = RESERVED_CHARACTERS.intersection(value)
    if bad:
        shown = ", ".join(sorted(repr(c) for c in bad))
        msg = f"{field_name} contains reserved character(s) {shown}: {value!r}"
        raise ValueError(msg)
    return value


class ServiceRecord(BaseModel):
    """A registry entry for one onion service."""

    model_config = {"frozen": True}

    name: str = Field(min_length=1)
    directory: Path
    port: int = Field(ge=1, le=65535)
    address: str = ""
    website_directory: Path | None = None
    status: ServiceStatus = ServiceStatus.INACTIVE
    created_at: datetime = Field(default_factory=now_seconds)

    @field_validator("name", "address")
    @classmethod
    def _check_text(cls, value: str, info: ValidationInfo) -> str:
        value = _reject_reserved(value, info.field_name)
        if info.field_name != "name":
            return value
        if value != value.strip():
            msg = f"name has surrounding whitespace: {value!r}"
            raise ValueError(msg)
        # The name opens the registry line; a leading '#' would read back as a comment.
        if value.startswith("#"):
            msg = f"name must not start with '#': {value!r}"
            raise ValueError(msg)
        return value

    @field_validator("website_directory", mode="before")
    @classmethod
    def _empty_is_none(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @field_validator("directory", "website_directory")
    @classmethod
    def _check_path(cls, value: Path | None, info: ValidationInfo) -> Path | None:
        if value is not None:
            _reject_reserved(str(value), info.field_name)
        return value

    @field_validator("created_at")
    @classmethod
    def _truncate_timestamp(cls, value: datetime) -> datetime:
        return value.replace(microsecond=0)

    @property
    def is_tool_managed(self) -> bool:
        """True when the name matches the generated-name pattern."""
        return is_tool_managed(self.name)

    def with_changes(self, **changes: Any) -> ServiceRecord:
        """Return a re-validated copy with *changes* applied."""
        data = self.model_dump()
        data.update(changes)
        return ServiceRecord.model_validate(data)

    def to_summary(self) -> dict[str, Any]:
        """JSON-friendly dict used in ServiceResult payloads."""
        return {
            "name": self.name,
            "directory": str(self.directory),
            "port": self.port,
            "address": self.address,
            "website_directory": str(self.website_directory or ""),
            "status": str(self.status),
            "managed": self.is_tool_managed,
            "created_at": self.created_at.strftime(TIMESTAMP_FORMAT),
        }


# ---------------------------------------------------------------------------
# Line format
# ---------------------------------------------------------------------------


def render_line(record: ServiceRecord) -> str:
    """Serialize *record* to one registry line (no trailing newline)."""
    values = [
        record.name,
        str(record.directory),
        str(record.port),
        record.address,
        str(record.website_directory or ""),
        str(record.status),
        record.created_at.strftime(TIMESTAMP_FORMAT),
    ]
    return FIELD_DELIMITER.join(values)


def parse_line(line: str) -> ServiceRecord:
    """Parse one registry line.

    Raises:
        ValueError: The line does not describe a valid record.
    """
    fields = line.rstrip("\r\n").split(FIELD_DELIMITER)
    if len(fields) == _LEGACY_FIELD_COUNT:
        del fields[6]
    if len(fields) != len(FIELD_ORDER):
        msg = f"expected {len(FIELD_ORDER)} fields, found {len(fields)}"
        raise ValueError(msg)

    name, directory, port, address, website, status, created = fields
    if not directory.strip():
        msg = "directory is empty"
        raise ValueError(msg)

    # int(), the enum and strptime all raise ValueError on bad input,
    # as does pydantic's ValidationError.
    return ServiceRecord(
        name=name,
        directory=Path(directory),
        port=int(port),
        address=address,
        website_directory=website or None,
        status=ServiceStatus(status.strip()),
        created_at=datetime.strptime(created.strip(), TIMESTAMP_FORMAT),
    )


def is_record_line(line: str) -> bool:
    """True for lines that should hold a record (not blank, not a comment)."""
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")

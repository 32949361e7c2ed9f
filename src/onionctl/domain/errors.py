"""Exception taxonomy for onionctl.

Services catch these at their boundary and convert them into
``ServiceResult`` errors; only argument validation and unsupported
environments abort the CLI outright.
"""

from __future__ import annotations

from typing import Any


class OnionctlError(Exception):
    """Base class for every onionctl-specific failure."""

    code = "ONIONCTL_ERROR"

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class UnsupportedEnvironmentError(OnionctlError):
    """No supported package manager (or other host prerequisite) was found."""

    code = "UNSUPPORTED_ENVIRONMENT"


class ResourceExhaustedError(OnionctlError):
    """A bounded name or port search ran out of candidates."""

    code = "RESOURCE_EXHAUSTED"


class ExternalProcessFailure(OnionctlError):
    """Tor (or a local web server) failed to start or to emit its identity."""

    code = "EXTERNAL_PROCESS_FAILURE"

    def __init__(
        self,
        message: str,
        *,
        hints: list[str] | None = None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.hints = hints or []


class RecordNotFoundError(OnionctlError, KeyError):
    """No registry record carries the requested name."""

    code = "NOT_FOUND"

    def __str__(self) -> str:
        return self.message


class DuplicateRecordError(OnionctlError):
    """A record with the same name is already registered."""

    code = "DUPLICATE"

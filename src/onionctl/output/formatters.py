"""Output mode selection.

A ServiceResult is rendered for humans (Rich tables and panels) or for
machines (``--json``, the full result model).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from onionctl.output.renderers import render_result

if TYPE_CHECKING:
    from onionctl.services.result import ServiceResult


@dataclass(frozen=True)
class OutputSettings:
    """How a result should be shown."""

    json_output: bool = False
    verbose: bool = False


def format_result(result: ServiceResult, *, settings: OutputSettings | None = None) -> str:
    """Format *result* according to *settings* (human output by default)."""
    settings = settings or OutputSettings()
    if settings.json_output:
        return result.model_dump_json(indent=2)
    return render_result(result, verbose=settings.verbose)

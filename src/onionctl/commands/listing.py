"""``--list`` and ``--test``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from onionctl.services.inspection import InspectionService

if TYPE_CHECKING:
    from onionctl.commands._context import AppContext


def run_list(app: AppContext) -> None:
    app.emit(InspectionService(app.workspace).list_services())


def run_test(app: AppContext) -> None:
    app.emit(InspectionService(app.workspace).test_services())

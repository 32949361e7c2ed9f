"""``--stop NAME``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from onionctl.services.stop import StopService

if TYPE_CHECKING:
    from onionctl.commands._context import AppContext


def run_stop(app: AppContext, name: str) -> None:
    app.emit(StopService(app.workspace).stop(name))

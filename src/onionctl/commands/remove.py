"""``--remove NAME[,NAME...]`` with its confirmation gate.

Every confirmation restates that the onion address is lost for good;
any "no" cancels before anything is touched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from onionctl.services.removal import RemovalService, parse_names
from onionctl.services.result import ServiceResult

if TYPE_CHECKING:
    from onionctl.commands._context import AppContext


def _confirmations(count: int) -> list[str]:
    noun = "service" if count == 1 else f"{count} services"
    return [
        f"Permanently delete {noun}? The onion address will be lost forever.",
        "The private keys are deleted too, so the onion address can NEVER be recovered. "
        "Are you sure?",
        f"Last chance: delete {noun} and lose the onion address forever?",
    ]


def run_remove(app: AppContext, raw: str) -> None:
    service = RemovalService(app.workspace)
    plan = service.plan(raw)
    if not plan.ok:
        app.emit(plan)
        return

    if app.settings.no_interact or app.settings.json_output:
        app.emit(
            ServiceResult.failure(
                "remove",
                "CONFIRMATION_REQUIRED",
                "Removal needs interactive confirmation; refusing with --no-interact or --json",
                detail={"names": plan.data["valid"]},
            )
        )
        return

    for warning in plan.warnings:
        click.echo(f"WARNING: {warning}", err=True)
    click.echo(app.render(plan.model_copy(update={"warnings": []})))
    click.prompt("Press Enter to review the confirmations", default="", show_default=False)

    for question in _confirmations(len(plan.data["valid"])):
        if not click.confirm(question, default=False):
            click.echo("Removal cancelled. Nothing was deleted.", err=True)
            return

    app.emit(service.execute(parse_names(raw)))

"""Interactive creation of a new onion service."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from onionctl.services.provision import ProvisionService

if TYPE_CHECKING:
    from onionctl.commands._context import AppContext


def run_create(app: AppContext, *, website: bool | None = None) -> None:
    """Create a service. Without ``--website/--no-website`` the user is asked."""
    if website is None:
        website = app.interactive and click.confirm(
            "Start a local test website for the new service?", default=True
        )
    if not app.settings.json_output:
        click.echo("Creating onion service; this can take a minute while Tor starts...", err=True)
    app.emit(ProvisionService(app.workspace).create(website=website))

"""AppContext: shared state for one CLI invocation.

Created once by the root command. Provides the lazily built workspace
and centralized result emission (stdout/stderr routing + exit codes).
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

import click

from onionctl.config.logging import configure_logging
from onionctl.output.formatters import OutputSettings, format_result
from onionctl.services.telemetry import enable_telemetry

if TYPE_CHECKING:
    from onionctl.config.settings import OnionSettings
    from onionctl.infrastructure.system import SystemFacade
    from onionctl.infrastructure.workspace import Workspace
    from onionctl.services.result import ServiceResult


class AppContext:
    """Settings, workspace and output for the running command.

    The workspace is built on first use, so ``--help`` and
    ``--version`` never touch the host. A *system* passed in (tests)
    replaces the real :class:`LocalSystem`.
    """

    def __init__(self, settings: OnionSettings, *, system: SystemFacade | None = None) -> None:
        self.settings = settings
        self._system = system
        self._workspace: Workspace | None = None

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)
        if settings.verbose:
            enable_telemetry()

    @property
    def system(self) -> SystemFacade:
        if self._system is None:
            from onionctl.infrastructure.environment import detect_init_system
            from onionctl.infrastructure.system import LocalSystem

            self._system = LocalSystem(init_system=detect_init_system())
        return self._system

    @property
    def workspace(self) -> Workspace:
        """The workspace (created lazily on first access)."""
        if self._workspace is None:
            from onionctl.infrastructure.workspace import Workspace

            self._workspace = Workspace.from_settings(self.settings, self.system)
        return self._workspace

    @property
    def interactive(self) -> bool:
        """Prompts fire only without ``--no-interact``/``--json`` and on a TTY."""
        return (
            not self.settings.no_interact
            and not self.settings.json_output
            and sys.stdin.isatty()
        )

    def render(self, result: ServiceResult) -> str:
        settings = OutputSettings(
            json_output=self.settings.json_output,
            verbose=self.settings.verbose,
        )
        return format_result(result, settings=settings)

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: stdout, returns normally. Warnings go to stderr so they
          don't pollute piped output.
        * Failure: stderr, exit code 1.
        """
        output = self.render(result)
        if not self.settings.json_output:
            for warning in result.warnings:
                click.echo(f"WARNING: {warning}", err=True)
        if result.ok:
            click.echo(output)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)

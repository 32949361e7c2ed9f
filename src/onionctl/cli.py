"""Root CLI command for onionctl with global flags and action dispatch."""

from __future__ import annotations

import signal
from types import FrameType

import click

from onionctl import __version__
from onionctl.commands import run_create, run_list, run_remove, run_stop, run_test
from onionctl.commands._base import ArgumentError, OnionCommand
from onionctl.commands._context import AppContext
from onionctl.config.settings import OnionSettings

_EXAMPLES = """\
  onionctl                         # create a service, asking about a website
  onionctl --no-website            # create a service without a website
  onionctl --list                  # status of every registered service
  onionctl --test                  # probe every service's local port
  onionctl --stop hidden_service_ab12cd34e
  onionctl --remove hidden_service_ab12cd34e
  onionctl --remove "svc_one, svc_two svc_three"
  onionctl --json --list           # machine-readable output"""


@click.command(
    "onionctl",
    cls=OnionCommand,
    examples=_EXAMPLES,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(__version__, "-V", "--version", prog_name="onionctl")
@click.option("-l", "--list", "do_list", is_flag=True, help="Show the status of every service.")
@click.option("-t", "--test", "do_test", is_flag=True, help="Probe every service's local port.")
@click.option("-s", "--stop", "stop_name", metavar="NAME", help="Stop a service's web server.")
@click.option(
    "-r",
    "--remove",
    "remove_names",
    metavar="NAME[,NAME...]",
    help="Permanently remove one or more services.",
)
@click.option(
    "--website/--no-website",
    default=None,
    help="Create a local test website with the new service (asked when omitted).",
)
@click.option("-v", "--verbose", is_flag=True, help="Debug logging and timing spans.")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("--no-interact", is_flag=True, help="Non-interactive mode (no prompts).")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    do_list: bool,
    do_test: bool,
    stop_name: str | None,
    remove_names: str | None,
    website: bool | None,
    verbose: bool,
    json_output: bool,
    log_json: bool,
    no_interact: bool,
    config_path: str | None,
) -> None:
    """onionctl: provision, track and tear down Tor onion services."""
    actions = [
        flag
        for flag, chosen in (
            ("--list", do_list),
            ("--test", do_test),
            ("--stop", stop_name is not None),
            ("--remove", remove_names is not None),
        )
        if chosen
    ]
    if len(actions) > 1:
        msg = f"Options {', '.join(actions)} cannot be combined; pick one action"
        raise ArgumentError(msg, ctx=ctx)
    if website is not None and actions:
        msg = "--website/--no-website only applies when creating a service"
        raise ArgumentError(msg, ctx=ctx)

    ctx.ensure_object(dict)
    system = ctx.obj.get("system") if isinstance(ctx.obj, dict) else None
    settings = OnionSettings.from_cli(
        config_path=config_path,
        json_output=json_output,
        verbose=verbose,
        log_json=log_json,
        no_interact=no_interact,
    )
    app = AppContext(settings, system=system)
    ctx.obj = app

    if do_list:
        run_list(app)
    elif do_test:
        run_test(app)
    elif stop_name is not None:
        run_stop(app, stop_name)
    elif remove_names is not None:
        run_remove(app, remove_names)
    else:
        run_create(app, website=website)


def _terminate(signum: int, _frame: FrameType | None) -> None:
    raise SystemExit(1)


def main() -> None:
    """Console-script entry point."""
    signal.signal(signal.SIGTERM, _terminate)
    cli()

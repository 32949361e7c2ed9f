"""Rich Console factory and theme for onionctl output.

Consoles render into a StringIO buffer so renderers keep a plain
``-> str`` contract. Outside a terminal (tests, pipes) Rich drops the
colour codes on its own.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

ONION_THEME = Theme(
    {
        "onion.ok": "bold green",
        "onion.error": "bold red",
        "onion.warning": "bold yellow",
        "onion.op": "bold cyan",
        "onion.key": "dim",
        "onion.name": "bold blue",
        "onion.address": "magenta",
        "onion.path": "dim",
        "onion.status.active": "green",
        "onion.status.inactive": "yellow",
        "onion.status.error": "red",
        "onion.web.good": "green",
        "onion.web.warn": "yellow",
        "onion.web.bad": "red",
    }
)

_STATUS_STYLES: dict[str, str] = {
    "ACTIVE": "onion.status.active",
    "INACTIVE": "onion.status.inactive",
    "ERROR": "onion.status.error",
}

_WEB_STYLES: dict[str, str] = {
    "RUNNING": "onion.web.good",
    "SERVICE_UP_PORT_DOWN": "onion.web.warn",
    "STOPPED": "onion.web.warn",
    "UNRESPONSIVE": "onion.web.bad",
    "NOT_LISTENING": "onion.web.bad",
    "NOT_RESPONDING": "onion.web.bad",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes.
        width: Override terminal width (keeps test output stable).
    """
    return Console(
        file=StringIO(),
        theme=ONION_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_status(status: str) -> str:
    return _STATUS_STYLES.get(status, "")


def style_for_web(web_status: str) -> str:
    return _WEB_STYLES.get(web_status, "dim")

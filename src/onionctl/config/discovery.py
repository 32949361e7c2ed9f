"""Where ``onionctl.toml`` comes from.

Precedence: ``ONIONCTL_CONFIG``, then the nearest ``onionctl.toml`` in
the working directory or one of its parents, then the per-user file
under ``$XDG_CONFIG_HOME/onionctl/`` (``~/.config`` when unset).
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

CONFIG_FILENAME = "onionctl.toml"
CONFIG_ENV_VAR = "ONIONCTL_CONFIG"


def user_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "onionctl" / CONFIG_FILENAME


def _candidates(start: Path) -> Iterator[Path]:
    resolved = start.resolve()
    for directory in (resolved, *resolved.parents):
        yield directory / CONFIG_FILENAME
    yield user_config_path()


def find_config(start: Path | None = None) -> Path | None:
    """Return the config file onionctl should read, if any.

    A set ``ONIONCTL_CONFIG`` is authoritative: when it names a missing
    file the result is None and no other location is tried.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        path = Path(override)
        return path if path.is_file() else None
    return next((c for c in _candidates(start or Path.cwd()) if c.is_file()), None)

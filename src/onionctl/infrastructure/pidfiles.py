"""PID files for local web servers started by onionctl."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PidTracker:
    """``<state_dir>/<name>.pid`` plus the matching ``.log`` file."""

    def __init__(self, state_dir: Path) -> None:
        self.state_dir = state_dir

    def path(self, name: str) -> Path:
        return self.state_dir / f"{name}.pid"

    def log_path(self, name: str) -> Path:
        return self.state_dir / f"{name}.log"

    def read(self, name: str) -> int | None:
        """The recorded PID, or None when the file is missing or garbage."""
        try:
            text = self.path(name).read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Cannot read PID file for %s: %s", name, exc)
            return None
        if not text.isdigit():
            logger.debug("Ignoring non-numeric PID file for %s", name)
            return None
        return int(text)

    def write(self, name: str, pid: int) -> Path:
        path = self.path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"{pid}\n", encoding="utf-8")
        return path

    def clear(self, name: str) -> bool:
        """Delete the PID file. True if one existed."""
        path = self.path(name)
        if not path.exists():
            return False
        path.unlink(missing_ok=True)
        return True

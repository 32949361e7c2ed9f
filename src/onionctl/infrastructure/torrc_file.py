"""TorrcFile: backed-up, atomic edits of the on-disk ``torrc``.

Every write copies the current file to ``torrc.backup.<YYYYmmddTHHMMSS>``
first. Backups beyond ``backup_max_count`` are pruned oldest first.
"""

from __future__ import annotations

import logging
import re
import shutil
from datetime import datetime
from pathlib import Path

from onionctl.domain import torrc
from onionctl.infrastructure.locking import atomic_write_text

logger = logging.getLogger(__name__)

_BACKUP_STAMP = "%Y%m%dT%H%M%S"


class TorrcFile:
    """The Tor configuration file at *path*."""

    def __init__(self, path: Path, backup_max_count: int = 10) -> None:
        self.path = path
        self.backup_max_count = backup_max_count
        self._backup_pattern = re.compile(
            rf"^{re.escape(path.name)}\.backup\.(?P<stamp>\d{{8}}T\d{{6}})(?:\.(?P<n>\d+))?$"
        )

    def read(self) -> str:
        """Current contents, or ``""`` when the file does not exist."""
        if not self.path.exists():
            return ""
        return self.path.read_text(encoding="utf-8")

    def backups(self) -> list[Path]:
        """Existing backups, oldest first."""
        if not self.path.parent.is_dir():
            return []
        found: list[tuple[str, int, Path]] = []
        for candidate in self.path.parent.iterdir():
            match = self._backup_pattern.match(candidate.name)
            if match:
                found.append((match.group("stamp"), int(match.group("n") or 0), candidate))
        return [path for _, _, path in sorted(found)]

    def backup(self) -> Path | None:
        """Copy the current file aside. Returns None when there is nothing to copy."""
        if not self.path.exists():
            return None
        stamp = datetime.now().strftime(_BACKUP_STAMP)
        target = self.path.with_name(f"{self.path.name}.backup.{stamp}")
        counter = 1
        while target.exists():
            target = self.path.with_name(f"{self.path.name}.backup.{stamp}.{counter}")
            counter += 1
        shutil.copy2(self.path, target)
        logger.debug("Backed up %s to %s", self.path, target)
        self._prune_backups()
        return target

    def _prune_backups(self) -> None:
        backups = self.backups()
        if len(backups) > self.backup_max_count:
            for old in backups[: len(backups) - self.backup_max_count]:
                old.unlink(missing_ok=True)

    def write(self, text: str) -> Path | None:
        """Back up, then atomically replace the file, keeping its mode."""
        mode = self.path.stat().st_mode & 0o7777 if self.path.exists() else 0o644
        backup_path = self.backup()
        atomic_write_text(self.path, text, mode=mode)
        return backup_path

    def insert_block(self, name: str, body_lines: list[str]) -> None:
        self.write(torrc.insert_block(self.read(), name, body_lines))

    def remove_block(self, name: str) -> bool:
        """Remove the block for *name*. Nothing is written when it is absent."""
        text, removed = torrc.remove_block(self.read(), name)
        if removed:
            self.write(text)
        return removed

    def remove_directives(self, directory: str) -> bool:
        """Remove the unmarked directives for *directory*, if present."""
        text, removed = torrc.remove_directives(self.read(), directory)
        if removed:
            self.write(text)
        return removed

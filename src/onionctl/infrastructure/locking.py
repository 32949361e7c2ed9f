"""Advisory file locks and atomic text writes.

Writers take an exclusive ``fcntl`` lock on a ``<file>.lock`` sidecar
rather than the data file itself, so the data file can be replaced with
``os.replace`` while the lock is held.
"""

from __future__ import annotations

import fcntl
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path


def lock_path_for(path: Path) -> Path:
    return path.with_name(f"{path.name}.lock")


@contextmanager
def locked_file(path: Path) -> Iterator[None]:
    """Hold an exclusive lock for *path* for the duration of the block."""
    lock_path = lock_path_for(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with lock_path.open("a+", encoding="utf-8") as handle:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def atomic_write_text(path: Path, content: str, *, mode: int | None = None) -> None:
    """Write *content* to a temp file beside *path*, then rename it into place.

    Readers see either the old file or the new one, never a partial write.
    When *mode* is given the new file gets those permission bits.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as tmp_handle:
            tmp_handle.write(content)
            tmp_handle.flush()
            os.fsync(tmp_handle.fileno())
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise

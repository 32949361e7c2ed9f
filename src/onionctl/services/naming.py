"""Unique service name generation."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Collection, Iterable
from pathlib import Path

from onionctl.domain.errors import ResourceExhaustedError
from onionctl.domain.ids import entropy_source, generate_candidate

logger = logging.getLogger(__name__)


def generate_unique_name(
    taken: Collection[str],
    config_text: str,
    path_exists: Callable[[Path], bool],
    *,
    directories: Iterable[Path] = (),
    max_attempts: int = 50,
    rng: random.Random | None = None,
) -> str:
    """Draw candidates until one collides with nothing.

    A candidate is rejected when it is already registered, appears
    anywhere in the torrc text, or names an existing entry under any of
    *directories* (the Tor data directory and the website root).

    Raises:
        ResourceExhaustedError: No free name within *max_attempts* draws.
    """
    rng = rng or entropy_source()
    roots = list(directories)
    for attempt in range(1, max_attempts + 1):
        candidate = generate_candidate(rng)
        if candidate in taken:
            reason = "registered"
        elif candidate in config_text:
            reason = "in torrc"
        elif any(path_exists(root / candidate) for root in roots):
            reason = "on disk"
        else:
            return candidate
        logger.debug("Name attempt %d: %s rejected (%s)", attempt, candidate, reason)

    msg = f"Could not generate a unique service name after {max_attempts} attempts"
    raise ResourceExhaustedError(msg, detail={"attempts": max_attempts})

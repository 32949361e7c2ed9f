"""Local port allocation.

Picks the lowest port at or above the base that is neither claimed by
a registry record nor bound by any process on the host. The check is
racy by nature: a port can be taken between allocation and bind. That
surfaces later as a web server start failure, never as a silent
re-allocation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from onionctl.domain.errors import ResourceExhaustedError

logger = logging.getLogger(__name__)

MAX_PORT = 65535


def allocate_port(
    base_port: int,
    busy: Iterable[int],
    is_listening: Callable[[int], bool],
) -> int:
    """Return the first free port >= *base_port*.

    Raises:
        ValueError: *base_port* is outside 1-65535.
        ResourceExhaustedError: Every port up to 65535 is taken.
    """
    if not 1 <= base_port <= MAX_PORT:
        msg = f"Base port must be between 1 and {MAX_PORT}, got {base_port}"
        raise ValueError(msg)

    taken = set(busy)
    for port in range(base_port, MAX_PORT + 1):
        if port in taken:
            continue
        if is_listening(port):
            logger.debug("Port %d is in use on the host", port)
            continue
        return port

    msg = f"No free port between {base_port} and {MAX_PORT}"
    raise ResourceExhaustedError(msg, detail={"base_port": base_port})

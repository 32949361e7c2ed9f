"""Service name patterns and candidate generation.

Tool-managed services are named ``hidden_service_`` followed by nine
lowercase alphanumeric characters. Anything else in the registry was
discovered in an existing torrc and is treated as externally managed.

INVARIANT: Names are permanent. Once registered, a name never changes.
"""

from __future__ import annotations

import os
import random
import re
import string
import time

SERVICE_PREFIX = "hidden_service_"
SUFFIX_LENGTH = 9
SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

MANAGED_NAME_PATTERN: re.Pattern[str] = re.compile(
    rf"^{SERVICE_PREFIX}[a-z0-9]{{{SUFFIX_LENGTH}}}$"
)


def is_tool_managed(name: str) -> bool:
    """Check whether *name* has the shape of a generated service name."""
    return MANAGED_NAME_PATTERN.match(name) is not None


def entropy_source() -> random.Random:
    """Return an OS-backed RNG, or a time-seeded one if the OS has none.

    The fallback guarantees that name generation terminates instead of
    failing on platforms without ``os.urandom``.
    """
    try:
        os.urandom(1)
    except NotImplementedError:
        return random.Random(time.time_ns())
    return random.SystemRandom()


def generate_candidate(rng: random.Random | None = None) -> str:
    """Build one ``hidden_service_xxxxxxxxx`` candidate."""
    rng = rng or entropy_source()
    suffix = "".join(rng.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{SERVICE_PREFIX}{suffix}"

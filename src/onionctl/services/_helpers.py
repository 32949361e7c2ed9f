"""Shared service-layer helper functions."""

from __future__ import annotations

import ipaddress

ALL_INTERFACES = frozenset({"0.0.0.0", "::", "*"})


def local_url(port: int, host: str = "127.0.0.1") -> str:
    """The URL a browser on this machine would use to reach *port*."""
    if ":" in host:
        return f"http://[{host}]:{port}"
    return f"http://{host}:{port}"


def binding_scope(address: str | None) -> str:
    """Classify a listening socket's bind address.

    Returns ``"localhost"``, ``"all"`` (every interface), ``"none"`` when
    nothing listens, or the address itself for a specific interface.

    Examples:
        >>> binding_scope("127.0.0.1")
        'localhost'
        >>> binding_scope("0.0.0.0")
        'all'
        >>> binding_scope(None)
        'none'
    """
    if address is None:
        return "none"
    if address in ALL_INTERFACES:
        return "all"
    try:
        if ipaddress.ip_address(address).is_loopback:
            return "localhost"
    except ValueError:
        return address
    return address

"""onionctl: Tor onion service control CLI."""

__version__ = "0.3.0"

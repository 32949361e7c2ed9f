"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults live here, ``onionctl.toml`` only holds
overrides. A stock Debian/Ubuntu Tor install needs no config file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class TorConfig(BaseModel):
    """[tor] section."""

    model_config = {"frozen": True}

    torrc_path: Path = Path("/etc/tor/torrc")
    hidden_service_base_dir: Path = Path("/var/lib/tor")
    service_name: str = "tor"
    identity_filename: str = "hostname"
    virtual_port: int = Field(default=80, ge=1, le=65535)
    bind_host: str = "127.0.0.1"
    reload_action: Literal["restart", "reload"] = "restart"
    backup_max_count: int = Field(default=10, ge=1)


class WebConfig(BaseModel):
    """[web] section."""

    model_config = {"frozen": True}

    base_port: int = Field(default=5000, ge=1, le=65535)
    site_base_dir: Path = Path("/var/www/tor-test")
    probe_timeout: float = Field(default=3.0, gt=0)
    unit_prefix: str = "tor-web-"
    stop_timeout: float = Field(default=5.0, gt=0)


class RegistryConfig(BaseModel):
    """[registry] section."""

    model_config = {"frozen": True}

    state_dir: Path = Path("~/.torstp")
    filename: str = ".services_available"

    @field_validator("state_dir")
    @classmethod
    def _expand_home(cls, value: Path) -> Path:
        return value.expanduser()

    @property
    def path(self) -> Path:
        return self.state_dir / self.filename


class ProvisionConfig(BaseModel):
    """[provision] section."""

    model_config = {"frozen": True}

    name_attempts: int = Field(default=50, ge=1)
    poll_interval: float = Field(default=2.0, ge=0)
    max_polls: int = Field(default=60, ge=1)

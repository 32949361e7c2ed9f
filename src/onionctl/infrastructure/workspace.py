"""Workspace: the single dependency injected into every service.

Bundles the frozen settings with the stores and the system facade built
from them, so no component reaches for ambient globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from onionctl.infrastructure.pidfiles import PidTracker
from onionctl.infrastructure.registry import RegistryStore
from onionctl.infrastructure.torrc_file import TorrcFile

if TYPE_CHECKING:
    from onionctl.config.settings import OnionSettings
    from onionctl.infrastructure.system import SystemFacade

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Workspace:
    """Everything a service needs to read or change state."""

    settings: OnionSettings
    registry: RegistryStore
    torrc: TorrcFile
    system: SystemFacade
    pids: PidTracker

    @classmethod
    def from_settings(cls, settings: OnionSettings, system: SystemFacade) -> Workspace:
        return cls(
            settings=settings,
            registry=RegistryStore(settings.registry.path),
            torrc=TorrcFile(settings.tor.torrc_path, settings.tor.backup_max_count),
            system=system,
            pids=PidTracker(settings.registry.state_dir),
        )

    # ── Conventional paths ────────────────────────────────────────────

    def service_directory(self, name: str) -> Path:
        return self.settings.tor.hidden_service_base_dir / name

    def website_directory(self, name: str) -> Path:
        return self.settings.web.site_base_dir / name

    def identity_path(self, directory: Path) -> Path:
        return directory / self.settings.tor.identity_filename

    def web_unit(self, name: str) -> str:
        return f"{self.settings.web.unit_prefix}{name}"

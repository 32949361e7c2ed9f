"""BaseService: common foundation for onionctl services.

Every service receives a :class:`Workspace` at construction time and
reaches the registry, the torrc file and the host only through it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from onionctl.config.settings import OnionSettings
    from onionctl.infrastructure.workspace import Workspace

logger = logging.getLogger(__name__)


class BaseService:
    """Base for all service-layer classes.

    Usage::

        class StopService(BaseService):
            def stop(self, name: str) -> ServiceResult:
                record = self._workspace.registry.find(name)
                ...
    """

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    @property
    def settings(self) -> OnionSettings:
        return self._workspace.settings

    def _reload_tor(self, warnings: list[str]) -> bool:
        """Ask the service manager to restart/reload Tor.

        INVARIANT: A failed reload is a warning, never an error.
        """
        tor = self.settings.tor
        if self._workspace.system.control_service(tor.reload_action, tor.service_name):
            logger.debug("Tor %s requested", tor.reload_action)
            return True
        warnings.append(
            f"Could not {tor.reload_action} {tor.service_name}; "
            f"run it manually to apply torrc changes"
        )
        return False

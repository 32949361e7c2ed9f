"""Host environment detection: package manager and init system.

onionctl never installs packages itself. It detects the package manager
only to tell the user the exact command to run when Tor is missing.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass

from onionctl.domain.errors import UnsupportedEnvironmentError

logger = logging.getLogger(__name__)

Which = Callable[[str], str | None]
Exists = Callable[[str], bool]

# (binary, family, install command template), in probe order.
_PACKAGE_MANAGERS: tuple[tuple[str, str, str], ...] = (
    ("apt-get", "debian-based", "sudo apt-get install -y {packages}"),
    ("yum", "rhel-based", "sudo yum install -y {packages}"),
    ("dnf", "fedora-based", "sudo dnf install -y {packages}"),
    ("pacman", "arch-based", "sudo pacman -S --noconfirm {packages}"),
    ("zypper", "suse-based", "sudo zypper install -y {packages}"),
)

# (init system, marker path, control binary), in probe order.
_INIT_SYSTEMS: tuple[tuple[str, str, str], ...] = (
    ("systemd", "/run/systemd/system", "systemctl"),
    ("openrc", "/run/openrc", "rc-service"),
    ("runit", "/etc/runit", "sv"),
    ("sysv", "/etc/init.d", "service"),
    ("s6", "/run/s6", "s6-svc"),
    ("dinit", "/run/dinitctl", "dinitctl"),
)

SUPPORTED_PACKAGE_MANAGERS = tuple(binary for binary, _, _ in _PACKAGE_MANAGERS)


@dataclass(frozen=True)
class PackageManager:
    name: str
    family: str
    install_template: str

    def install_command(self, *packages: str) -> str:
        return self.install_template.format(packages=" ".join(packages))


@dataclass(frozen=True)
class HostEnvironment:
    """What was found on this host."""

    package_manager: PackageManager
    init_system: str

    @property
    def has_service_manager(self) -> bool:
        return self.init_system != "none"


def detect_package_manager(which: Which = shutil.which) -> PackageManager:
    """First supported package manager on ``PATH``.

    Raises:
        UnsupportedEnvironmentError: None of the supported managers exist.
    """
    for binary, family, template in _PACKAGE_MANAGERS:
        if which(binary):
            logger.debug("Found %s package manager (%s)", binary, family)
            return PackageManager(name=binary, family=family, install_template=template)
    supported = ", ".join(SUPPORTED_PACKAGE_MANAGERS)
    msg = f"Unsupported package manager. Supported: {supported}"
    raise UnsupportedEnvironmentError(
        msg,
        detail={"remediation": f"Install Tor manually, then re-run. Supported: {supported}"},
    )


def detect_init_system(which: Which = shutil.which, exists: Exists = os.path.exists) -> str:
    """Name of the running init system, or ``"none"``.

    With ``"none"`` there is no service manager; local web servers are
    tracked through PID files only.
    """
    for name, marker, binary in _INIT_SYSTEMS:
        if exists(marker) and which(binary):
            logger.debug("Detected %s init system", name)
            return name
    logger.warning("No supported init system detected; falling back to PID tracking")
    return "none"


def detect(which: Which = shutil.which, exists: Exists = os.path.exists) -> HostEnvironment:
    return HostEnvironment(
        package_manager=detect_package_manager(which),
        init_system=detect_init_system(which, exists),
    )


def require_tor(environment: HostEnvironment, which: Which = shutil.which) -> str:
    """Path of the ``tor`` binary.

    Raises:
        UnsupportedEnvironmentError: Tor is not installed; the detail
            carries the install command for this host.
    """
    path = which("tor")
    if path:
        return path
    command = environment.package_manager.install_command("tor")
    raise UnsupportedEnvironmentError(
        "Tor is not installed",
        detail={"remediation": command},
    )

"""
OS service registration for screenclip.
"""

from .installer import (
    LAUNCHD_LABEL,
    SYSTEMD_UNIT,
    InstallOutcome,
    LaunchdInstaller,
    ServiceInstaller,
    SystemdUserInstaller,
    create_installer,
    service_command,
    service_environment,
)

__all__ = [
    "LAUNCHD_LABEL",
    "SYSTEMD_UNIT",
    "InstallOutcome",
    "LaunchdInstaller",
    "ServiceInstaller",
    "SystemdUserInstaller",
    "create_installer",
    "service_command",
    "service_environment",
]

"""
OS detection utilities for apmagent.

Provides the operating system and Linux distribution, used to pick the
package-manager command shown when an external tool is missing.

Public exports:
    OSInfo: Data class containing operating system information
    detect_os: Function to detect current OS and distribution
"""

import platform
from dataclasses import dataclass
from typing import Optional


@dataclass
class OSInfo:
    """
    Operating system information for install instruction lookup.

    Attributes:
        system: Operating system type ('Linux', 'Darwin')
        release: OS kernel release version
        machine: Machine architecture ('x86_64', 'arm64', etc.)
        distro_id: Linux distribution ID ('ubuntu', 'rhel', 'rocky', etc.)
        distro_like: Space separated parent distributions from ID_LIKE
        distro_name: Full distribution name
        distro_version: Distribution version ('22.04', '9.3', etc.)
    """
    system: str
    release: str
    machine: str
    distro_id: Optional[str] = None
    distro_like: Optional[str] = None
    distro_name: Optional[str] = None
    distro_version: Optional[str] = None


def detect_os() -> OSInfo:
    """
    Detect the current operating system and Linux distribution.

    Distribution details come from /etc/os-release via
    ``platform.freedesktop_os_release()``; hosts without that file get an
    OSInfo with no distro fields.

    Examples:
        >>> info = detect_os()
        >>> info.system
        'Linux'
    """
    info = OSInfo(
        system=platform.system(),
        release=platform.release(),
        machine=platform.machine(),
    )

    if info.system == 'Linux':
        try:
            os_release = platform.freedesktop_os_release()
        except OSError:
            return info
        info.distro_id = os_release.get('ID', '').lower() or None
        info.distro_like = os_release.get('ID_LIKE', '').lower() or None
        info.distro_name = os_release.get('NAME', '') or None
        info.distro_version = os_release.get('VERSION_ID', '') or None

    return info

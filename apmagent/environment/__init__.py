"""
Environment detection for apmagent.

Detects the operating system and Linux distribution and maps missing
external tools to the matching install command.

Public exports:
    OSInfo: Data class containing operating system information
    detect_os: Function to detect current OS and distribution
    get_install_instruction: Function to get OS-specific install commands
    INSTALL_INSTRUCTIONS: Dictionary of install commands by OS/dependency
"""

from apmagent.environment.os_detect import OSInfo, detect_os
from apmagent.environment.install_hints import (
    get_install_instruction,
    INSTALL_INSTRUCTIONS,
)

__all__ = [
    "OSInfo",
    "detect_os",
    "get_install_instruction",
    "INSTALL_INSTRUCTIONS",
]

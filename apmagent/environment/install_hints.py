"""
OS-specific installation instructions for the external tools apmagent uses.

Public exports:
    INSTALL_INSTRUCTIONS: Dictionary mapping (dependency, system, distro) to install commands
    get_install_instruction: Function to get the appropriate install command
"""

from typing import Optional

from apmagent.environment.os_detect import OSInfo


# Installation instructions keyed by (dependency, system, distro_id)
# None values act as wildcards for less-specific lookups
INSTALL_INSTRUCTIONS: dict[tuple[str, Optional[str], Optional[str]], str] = {
    # C compiler for building workloads
    ('gcc', 'Linux', 'ubuntu'): 'sudo apt-get install gcc',
    ('gcc', 'Linux', 'debian'): 'sudo apt-get install gcc',
    ('gcc', 'Linux', 'rhel'): 'sudo dnf install gcc',
    ('gcc', 'Linux', 'rocky'): 'sudo dnf install gcc',
    ('gcc', 'Linux', 'fedora'): 'sudo dnf install gcc',
    ('gcc', 'Linux', 'centos'): 'sudo yum install gcc',
    ('gcc', 'Linux', 'arch'): 'sudo pacman -S gcc',
    ('gcc', 'Linux', None): 'Install gcc via your package manager',
    ('gcc', 'Darwin', None): 'xcode-select --install',

    # ifstat ships with iproute2
    ('ifstat', 'Linux', 'ubuntu'): 'sudo apt-get install iproute2',
    ('ifstat', 'Linux', 'debian'): 'sudo apt-get install iproute2',
    ('ifstat', 'Linux', 'rhel'): 'sudo dnf install iproute',
    ('ifstat', 'Linux', 'rocky'): 'sudo dnf install iproute',
    ('ifstat', 'Linux', 'fedora'): 'sudo dnf install iproute',
    ('ifstat', 'Linux', 'centos'): 'sudo yum install iproute',
    ('ifstat', 'Linux', None): 'Install iproute2 via your package manager',

    ('iostat', 'Linux', 'ubuntu'): 'sudo apt-get install sysstat',
    ('iostat', 'Linux', 'debian'): 'sudo apt-get install sysstat',
    ('iostat', 'Linux', 'rhel'): 'sudo dnf install sysstat',
    ('iostat', 'Linux', 'rocky'): 'sudo dnf install sysstat',
    ('iostat', 'Linux', 'fedora'): 'sudo dnf install sysstat',
    ('iostat', 'Linux', 'centos'): 'sudo yum install sysstat',
    ('iostat', 'Linux', None): 'Install sysstat via your package manager',

    ('ps', 'Linux', 'ubuntu'): 'sudo apt-get install procps',
    ('ps', 'Linux', 'debian'): 'sudo apt-get install procps',
    ('ps', 'Linux', None): 'Install procps(-ng) via your package manager',

    ('df', 'Linux', None): 'Install coreutils via your package manager',
}


def get_install_instruction(dependency: str, os_info: OSInfo) -> str:
    """
    Get the OS-specific installation instruction for a dependency.

    Looks up installation instructions in order of specificity:
    1. (dependency, system, distro_id) - Most specific
    2. (dependency, system, parent) for each parent in ID_LIKE
    3. (dependency, system, None) - System-specific, any distro
    4. (dependency, None, None) - Generic, any system

    Examples:
        >>> rocky = OSInfo(system='Linux', release='', machine='x86_64', distro_id='rocky')
        >>> get_install_instruction('iostat', rocky)
        'sudo dnf install sysstat'
    """
    system = os_info.system
    lookups = [(dependency, system, os_info.distro_id)]
    for parent in (os_info.distro_like or '').split():
        lookups.append((dependency, system, parent))
    lookups.extend([
        (dependency, system, None),
        (dependency, None, None),
    ])

    for key in lookups:
        if key in INSTALL_INSTRUCTIONS:
            return INSTALL_INSTRUCTIONS[key]

    return f"Install {dependency} using your system's package manager"

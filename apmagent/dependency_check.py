"""
Dependency validation for apmagent.

Fail-fast checks for the external tools a run needs, performed before any
workload is built or launched:

- the C compiler, when workloads are compiled from source
- ps, ifstat, iostat and df, when the sysstat metrics source is selected

Missing tools raise DependencyError with an install command for the
detected OS.

Public exports:
    check_tool_with_hints: Find a tool or raise DependencyError with an install hint
    validate_run_dependencies: Check everything a configured run needs
"""

import os
import shutil
from typing import Dict, Optional

from apmagent.collectors.sysstat import REQUIRED_TOOLS as SYSSTAT_TOOLS
from apmagent.config import METRICS_SOURCE, MonitorConfig
from apmagent.environment import detect_os, get_install_instruction
from apmagent.error_messages import format_error
from apmagent.errors import DependencyError

FRIENDLY_NAMES = {
    'ps': 'Process status tool (ps)',
    'ifstat': 'Interface statistics tool (ifstat)',
    'iostat': 'I/O statistics tool (iostat)',
    'df': 'Disk free tool (df)',
}


def check_tool_with_hints(tool: str, friendly_name: Optional[str] = None) -> str:
    """
    Check for a tool and, if missing, suggest the install command for this OS.

    Examples:
        >>> check_tool_with_hints('iostat')
        '/usr/bin/iostat'

        # When sysstat is missing on Rocky Linux:
        # DependencyError: Required tool not found: iostat ...
        #   Install with: sudo dnf install sysstat
    """
    path = shutil.which(tool)
    if path:
        return path

    install_cmd = get_install_instruction(os.path.basename(tool), detect_os())
    raise DependencyError(
        message=format_error('DEPENDENCY_MISSING',
                             dependency=friendly_name or FRIENDLY_NAMES.get(tool, tool),
                             install_instructions=install_cmd),
        dependency=tool,
        install_cmd=install_cmd,
        suggestion=install_cmd,
    )


def validate_run_dependencies(config: MonitorConfig, needs_compiler: bool, logger=None) -> Dict[str, str]:
    """
    Validate the external tools required by a configured run.

    Args:
        config: The run configuration.
        needs_compiler: Whether workloads will be compiled from source.
        logger: Optional logger for debug output.

    Returns:
        Mapping of tool name to resolved path.

    Raises:
        DependencyError: If any required tool is missing.
    """
    required = []
    if needs_compiler:
        required.append(config.compiler)
    if config.metrics_source == METRICS_SOURCE.sysstat.value:
        required.extend(SYSSTAT_TOOLS)

    found = {}
    for tool in required:
        if logger:
            logger.debug(f"Checking for {tool}...")
        found[tool] = check_tool_with_hints(tool)
        if logger:
            logger.debug(f"Found {tool} at: {found[tool]}")
    return found

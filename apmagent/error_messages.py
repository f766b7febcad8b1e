"""
Centralized error message templates for the APM agent.

Usage:
    from apmagent.error_messages import format_error

    msg = format_error('CONFIG_FILE_NOT_FOUND', path='monitor.yaml')
"""

from typing import Dict, Optional


ERROR_MESSAGES: Dict[str, str] = {
    # Configuration Errors
    'CONFIG_FILE_NOT_FOUND': (
        "Configuration file not found: {path}\n"
        "Please ensure the file exists and the path is correct."
    ),

    'CONFIG_PARSE_ERROR': (
        "Failed to parse configuration file: {path}\n"
        "Error: {error}\n"
        "Please check the file syntax (YAML mapping of option names to values)."
    ),

    'INPUT_DIR_NOT_FOUND': (
        "Input folder not found: {path}\n"
        "Pass the folder holding the workload sources with -i/--input,\n"
        "or skip compilation with -e/--executables."
    ),

    'NO_SOURCES': (
        "No workload sources matching '{pattern}' found in: {path}\n"
        "Add at least one source file or pass prebuilt executables with -e."
    ),

    'NO_EXECUTABLES': (
        "No executables to monitor.\n"
        "At least one workload must be launched for a monitoring run."
    ),

    'OUTPUT_DIR_FAILED': (
        "Cannot prepare output folder: {path}\n"
        "Error: {error}"
    ),

    # Workload Errors
    'BUILD_FAILED': (
        "Compilation of {source} failed with exit code {exit_code}.\n"
        "Command: {command}"
    ),

    'LAUNCH_FAILED': (
        "Failed to launch workload {executable}.\n"
        "Error: {error}"
    ),

    'DEPENDENCY_MISSING': (
        "Required tool not found: {dependency}\n"
        "Installation:\n"
        "  {install_instructions}\n"
        "After installation, retry the run."
    ),

    # Output Errors
    'OUTPUT_OPEN_FAILED': (
        "Cannot create metrics file {path}: {error}"
    ),

    'OUTPUT_APPEND_FAILED': (
        "Cannot append to metrics file {path}: {error}"
    ),

    'INTERNAL_ERROR': (
        "An internal error occurred: {error}\n"
        "This is likely a bug in apmagent.\n"
        "Re-run with --debug and include the full output when reporting it."
    ),
}


def format_error(error_key: str, **kwargs) -> str:
    """
    Format an error message with the given parameters.

    Args:
        error_key: Key for the error message template.
        **kwargs: Parameters to substitute in the template.

    Returns:
        Formatted error message string.

    Example:
        >>> format_error('NO_EXECUTABLES')
        'No executables to monitor...'
    """
    template = ERROR_MESSAGES.get(error_key)
    if template is None:
        return f"Unknown error: {error_key}\nContext: {kwargs}"

    try:
        return template.format(**kwargs)
    except KeyError as e:
        return f"{template}\n(Missing format parameter: {e})"


def get_error_template(error_key: str) -> Optional[str]:
    return ERROR_MESSAGES.get(error_key)

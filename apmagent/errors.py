"""
Custom exceptions for the APM agent.

This module provides custom exception classes with user-friendly messaging
that include:
- Clear error descriptions
- Technical details for debugging
- Actionable suggestions for resolution

Fatal errors (configuration, build, launch, dependency) abort the run before
or during startup. Metric errors (process not found, metric source
unavailable) are expected during normal operation and are handled locally by
the samplers. Output errors stop only the sampler that owns the file.
"""

from dataclasses import dataclass, field
from typing import List, Any
from enum import Enum


class ErrorCode(Enum):
    """Machine-readable error codes for APM agent errors."""
    # Configuration errors (1xx)
    CONFIG_INVALID_VALUE = "E102"
    CONFIG_DIRECTORY_NOT_FOUND = "E103"
    CONFIG_PARSE_ERROR = "E104"
    CONFIG_NO_SOURCES = "E105"
    CONFIG_NO_EXECUTABLES = "E106"
    CONFIG_FILE_NOT_FOUND = "E107"

    # Workload errors (2xx)
    WORKLOAD_BUILD_FAILED = "E201"
    WORKLOAD_LAUNCH_FAILED = "E202"
    WORKLOAD_DEPENDENCY_MISSING = "E204"

    # Metric source errors (3xx)
    METRIC_PROCESS_NOT_FOUND = "E301"
    METRIC_SOURCE_UNAVAILABLE = "E302"
    METRIC_INTERFACE_UNAVAILABLE = "E303"
    METRIC_DEVICE_UNAVAILABLE = "E304"

    # Output errors (4xx)
    OUTPUT_WRITE_FAILED = "E401"

    # Internal errors (9xx)
    INTERNAL_ERROR = "E901"


@dataclass
class APMError:
    """
    Structured error information for the APM agent.

    Attributes:
        code: Machine-readable error code.
        message: User-facing error message.
        details: Technical details for debugging.
        suggestion: How to fix the issue.
        context: Additional context information.
    """
    code: ErrorCode
    message: str
    details: str = ""
    suggestion: str = ""
    context: dict = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        lines = [f"[{self.code.value}] {self.message}"]
        if self.details:
            lines.append(f"  Details: {self.details}")
        if self.suggestion:
            lines.append(f"  Suggestion: {self.suggestion}")
        return "\n".join(lines)


class APMException(Exception):
    """
    Base exception class for the APM agent.

    All custom exceptions inherit from this class and provide
    structured error information.
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INTERNAL_ERROR,
                 details: str = "", suggestion: str = "", **context):
        self.error = APMError(
            code=code,
            message=message,
            details=details,
            suggestion=suggestion,
            context=context
        )
        super().__init__(str(self.error))

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def suggestion(self) -> str:
        return self.error.suggestion


class ConfigurationError(APMException):
    """
    Raised when configuration is invalid or missing.

    Examples:
        - Input directory does not exist
        - Sampling interval out of range
        - No workload sources or executables to monitor
    """

    def __init__(self, message: str, parameter: str = None,
                 expected: Any = None, actual: Any = None,
                 suggestion: str = None,
                 code: ErrorCode = ErrorCode.CONFIG_INVALID_VALUE):
        details_parts = []
        if parameter:
            details_parts.append(f"Parameter: {parameter}")
        if expected is not None:
            details_parts.append(f"Expected: {expected}")
        if actual is not None:
            details_parts.append(f"Actual: {actual}")

        super().__init__(
            message=message,
            code=code,
            details="; ".join(details_parts) if details_parts else "",
            suggestion=suggestion or self._default_suggestion(code),
            parameter=parameter,
            expected=expected,
            actual=actual
        )

    @staticmethod
    def _default_suggestion(code: ErrorCode) -> str:
        suggestions = {
            ErrorCode.CONFIG_INVALID_VALUE: "Check the parameter value and correct it",
            ErrorCode.CONFIG_DIRECTORY_NOT_FOUND: "Verify the directory exists and is readable",
            ErrorCode.CONFIG_PARSE_ERROR: "Check config file syntax (YAML format)",
            ErrorCode.CONFIG_NO_SOURCES: "Place at least one .c file in the input folder",
            ErrorCode.CONFIG_NO_EXECUTABLES: "Provide at least one workload to monitor",
            ErrorCode.CONFIG_FILE_NOT_FOUND: "Check the path given to --config-file",
        }
        return suggestions.get(code, "Check the configuration and try again")


class NoExecutablesError(ConfigurationError):
    """Raised when there is nothing to launch and monitor."""

    def __init__(self, message: str = "No executables available to monitor",
                 suggestion: str = None,
                 code: ErrorCode = ErrorCode.CONFIG_NO_EXECUTABLES):
        super().__init__(message, suggestion=suggestion, code=code)


class BuildError(APMException):
    """
    Raised when a workload source fails to compile.
    """

    def __init__(self, message: str, source: str = None, command: str = None,
                 exit_code: int = None, stderr: str = None, suggestion: str = None):
        details_parts = []
        if source:
            details_parts.append(f"Source: {source}")
        if command:
            cmd_display = command[:200] + "..." if len(command) > 200 else command
            details_parts.append(f"Command: {cmd_display}")
        if exit_code is not None:
            details_parts.append(f"Exit code: {exit_code}")
        if stderr:
            stderr_display = stderr[:500] + "..." if len(stderr) > 500 else stderr
            details_parts.append(f"Error output: {stderr_display}")

        super().__init__(
            message=message,
            code=ErrorCode.WORKLOAD_BUILD_FAILED,
            details="; ".join(details_parts),
            suggestion=suggestion or "Fix the compiler errors shown above and re-run",
            source=source,
            command=command,
            exit_code=exit_code,
        )


class LaunchError(APMException):
    """
    Raised when a workload executable cannot be started.

    A single launch failure aborts the whole run rather than monitoring a
    partial set of workloads.
    """

    def __init__(self, message: str, executable: str = None,
                 os_error: str = None, suggestion: str = None):
        details_parts = []
        if executable:
            details_parts.append(f"Executable: {executable}")
        if os_error:
            details_parts.append(f"OS error: {os_error}")

        super().__init__(
            message=message,
            code=ErrorCode.WORKLOAD_LAUNCH_FAILED,
            details="; ".join(details_parts),
            suggestion=suggestion or "Check that the file exists and is executable (chmod +x)",
            executable=executable,
        )


class DependencyError(APMException):
    """
    Raised when a required external tool is missing.

    Examples:
        - Compiler not installed
        - ifstat / iostat not installed for the sysstat metrics source
    """

    def __init__(self, message: str, dependency: str = None,
                 install_cmd: str = None, suggestion: str = None,
                 code: ErrorCode = ErrorCode.WORKLOAD_DEPENDENCY_MISSING):
        details_parts = []
        if dependency:
            details_parts.append(f"Missing: {dependency}")
        if install_cmd:
            details_parts.append(f"Install with: {install_cmd}")

        super().__init__(
            message=message,
            code=code,
            details="; ".join(details_parts) if details_parts else "",
            suggestion=suggestion or f"Install the required dependency: {dependency}",
            dependency=dependency,
            install_cmd=install_cmd
        )


class ProcessNotFoundError(APMException):
    """Raised by a metrics provider when a PID no longer maps to a live process."""

    def __init__(self, pid: int, message: str = None):
        self.pid = pid
        super().__init__(
            message=message or f"Process {pid} is no longer running",
            code=ErrorCode.METRIC_PROCESS_NOT_FOUND,
            pid=pid,
        )


class MetricUnavailableError(APMException):
    """Raised by a metrics provider when a host metric cannot be read."""

    def __init__(self, message: str, source: str = None,
                 code: ErrorCode = ErrorCode.METRIC_SOURCE_UNAVAILABLE):
        self.source = source
        super().__init__(
            message=message,
            code=code,
            details=f"Source: {source}" if source else "",
            source=source,
        )


class InterfaceUnavailableError(MetricUnavailableError):
    """The requested network interface cannot be read."""

    def __init__(self, interface: str, reason: str = ""):
        self.interface = interface
        message = f"Network interface {interface} is unavailable"
        if reason:
            message += f": {reason}"
        super().__init__(message, source=interface, code=ErrorCode.METRIC_INTERFACE_UNAVAILABLE)


class DeviceUnavailableError(MetricUnavailableError):
    """The requested block device or filesystem cannot be read."""

    def __init__(self, device: str, reason: str = ""):
        self.device = device
        message = f"Device {device} is unavailable"
        if reason:
            message += f": {reason}"
        super().__init__(message, source=device, code=ErrorCode.METRIC_DEVICE_UNAVAILABLE)


class OutputFileError(APMException):
    """
    Raised when a metrics file cannot be created or appended to.
    """

    def __init__(self, message: str, path: str = None, operation: str = None,
                 suggestion: str = None):
        details_parts = []
        if path:
            details_parts.append(f"Path: {path}")
        if operation:
            details_parts.append(f"Operation: {operation}")

        super().__init__(
            message=message,
            code=ErrorCode.OUTPUT_WRITE_FAILED,
            details="; ".join(details_parts),
            suggestion=suggestion or "Check that the output folder exists, is writable and has free space",
            path=path,
            operation=operation,
        )


__all__: List[str] = [
    'ErrorCode',
    'APMError',
    'APMException',
    'ConfigurationError',
    'NoExecutablesError',
    'BuildError',
    'LaunchError',
    'DependencyError',
    'ProcessNotFoundError',
    'MetricUnavailableError',
    'InterfaceUnavailableError',
    'DeviceUnavailableError',
    'OutputFileError',
]

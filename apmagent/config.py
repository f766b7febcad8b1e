"""
Constants and run configuration for the APM agent.

Module-level constants define the on-disk format of the metric streams and
the process exit codes. ``MonitorConfig`` holds the validated settings for a
single monitoring run and is built from the parsed command line.
"""

import enum
import os
from dataclasses import dataclass, field
from typing import List, Optional

from apmagent.errors import ConfigurationError, ErrorCode


class EXIT_CODE(enum.IntEnum):
    SUCCESS = 0
    FAILURE = 1
    INTERRUPTED = 130


# Sampling cadence shared by every sampler, in seconds
SAMPLING_INTERVAL = 5
MIN_SAMPLING_INTERVAL = 1

# Window over which host byte counters are differenced into a rate
DEFAULT_RATE_WINDOW = 1.0

DEFAULT_INPUT_DIR = "."
DEFAULT_OUTPUT_DIR = "."
DEFAULT_CAPACITY_PATH = "/"
DEFAULT_COMPILER = "gcc"

PROCESS_METRICS_SUFFIX = "_metrics.csv"
SYSTEM_METRICS_FILENAME = "system_metrics.csv"

PROCESS_HEADER = ("seconds", "%CPU", "%memory")
SYSTEM_HEADER = ("seconds", "RX data rate", "TX data rate", "disk writes", "available disk capacity")

# Written in place of a host metric that could not be read on a tick
MISSING_VALUE = "NA"

# Decimal places per column, fixed for the lifetime of a stream
PERCENT_PRECISION = 1
RATE_PRECISION = 2
CAPACITY_PRECISION = 0

WORKLOAD_SOURCE_PATTERN = "*.c"


class METRICS_SOURCE(enum.Enum):
    procfs = "procfs"
    sysstat = "sysstat"


METRICS_SOURCES = [source.value for source in METRICS_SOURCE]


# Seconds to wait for a terminated workload before escalating to SIGKILL
KILL_TIMEOUT = 5.0

# How often the supervisor checks sampler and workload state while waiting
SUPERVISOR_POLL_INTERVAL = 0.5

# Bound on every external command issued by a metrics provider
COMMAND_TIMEOUT = 10.0


@dataclass
class MonitorConfig:
    """
    Validated settings for one monitoring run.

    Attributes:
        output_dir: Directory the metric CSV files are written to.
        input_dir: Directory searched for workload sources to compile.
        executables: Prebuilt executables; when set, compilation is skipped.
        interval: Sampling interval in seconds.
        rate_window: Window in seconds for network and disk rate sampling.
        interface: Network interface for the RX/TX columns (None = detect).
        disk_device: Block device for the disk writes column (None = detect).
        capacity_path: Filesystem path whose free capacity is recorded.
        metrics_source: Which MetricsProvider implementation to use.
        compiler: Compiler used to build workload sources.
        duration: Stop automatically after this many seconds (None = never).
        exit_when_idle: Stop once every workload process has exited.
    """
    output_dir: str = DEFAULT_OUTPUT_DIR
    input_dir: str = DEFAULT_INPUT_DIR
    executables: List[str] = field(default_factory=list)
    interval: float = SAMPLING_INTERVAL
    rate_window: float = DEFAULT_RATE_WINDOW
    interface: Optional[str] = None
    disk_device: Optional[str] = None
    capacity_path: str = DEFAULT_CAPACITY_PATH
    metrics_source: str = METRICS_SOURCE.procfs.value
    compiler: str = DEFAULT_COMPILER
    duration: Optional[float] = None
    exit_when_idle: bool = False

    def validate(self) -> None:
        """
        Check the settings for consistency.

        Raises:
            ConfigurationError: If any setting is out of range.
        """
        # Values from a YAML config file bypass argparse type conversion
        for name in ("interval", "rate_window", "duration"):
            value = getattr(self, name)
            if name == "duration" and value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(
                    f"{name} must be a number",
                    parameter=name,
                    expected="number",
                    actual=value,
                )
        if self.interval < MIN_SAMPLING_INTERVAL:
            raise ConfigurationError(
                "Sampling interval is too small",
                parameter="interval",
                expected=f">= {MIN_SAMPLING_INTERVAL}",
                actual=self.interval,
            )
        if self.rate_window <= 0 or self.rate_window >= self.interval:
            raise ConfigurationError(
                "Rate window must be positive and shorter than the sampling interval",
                parameter="rate_window",
                expected=f"0 < rate_window < {self.interval}",
                actual=self.rate_window,
            )
        if self.metrics_source not in METRICS_SOURCES:
            raise ConfigurationError(
                f"Unknown metrics source: {self.metrics_source}",
                parameter="metrics_source",
                expected=METRICS_SOURCES,
                actual=self.metrics_source,
            )
        if self.duration is not None and self.duration <= 0:
            raise ConfigurationError(
                "Duration must be positive",
                parameter="duration",
                expected="> 0",
                actual=self.duration,
            )
        if not self.executables and not os.path.isdir(self.input_dir):
            raise ConfigurationError(
                f"Input folder not found: {self.input_dir}",
                parameter="input",
                code=ErrorCode.CONFIG_DIRECTORY_NOT_FOUND,
            )

    @classmethod
    def from_args(cls, args) -> 'MonitorConfig':
        """Build and validate a config from a parsed argparse namespace."""
        config = cls(
            output_dir=args.output,
            input_dir=args.input,
            executables=list(args.executables or []),
            interval=args.interval,
            rate_window=args.rate_window,
            interface=args.interface,
            disk_device=args.disk_device,
            capacity_path=args.capacity_path,
            metrics_source=args.metrics_source,
            compiler=args.compiler,
            duration=args.duration,
            exit_when_idle=args.exit_when_idle,
        )
        config.validate()
        return config

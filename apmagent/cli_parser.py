"""
CLI argument parsing for the APM agent.

``parse_arguments`` builds the parser, applies overrides from an optional
YAML config file and returns the namespace that ``MonitorConfig.from_args``
turns into a validated run configuration.
"""

import argparse
from typing import List, Optional

import yaml

from apmagent import VERSION
from apmagent.config import (
    DEFAULT_CAPACITY_PATH,
    DEFAULT_COMPILER,
    DEFAULT_INPUT_DIR,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_RATE_WINDOW,
    METRICS_SOURCE,
    METRICS_SOURCES,
    MIN_SAMPLING_INTERVAL,
    SAMPLING_INTERVAL,
)
from apmagent.error_messages import format_error
from apmagent.errors import ConfigurationError, ErrorCode
from apmagent.utils import read_yaml_file

PROGRAM_DESCRIPTION = (
    "Launch workload executables and record per-process CPU/memory usage and host "
    "network, disk and capacity metrics as CSV time series."
)

HELP_MESSAGES = {
    'input': "Folder containing the *.c workload sources to compile and monitor.",
    'executables': "Prebuilt workload executables to monitor. Skips compilation.",
    'output': (
        "Folder the metrics CSV files are written to. Created if missing; metrics files "
        "from a previous run are removed."
    ),
    'interval': f"Seconds between samples (minimum {MIN_SAMPLING_INTERVAL}).",
    'interface': "Network interface for the RX/TX columns. Default: the interface owning the primary address.",
    'disk_device': "Block device for the disk writes column. Default: the device holding --capacity-path.",
    'capacity_path': "Path whose filesystem free capacity is recorded.",
    'metrics_source': (
        "How metrics are read: 'procfs' reads kernel counters directly, 'sysstat' runs "
        "ps, ifstat, iostat and df."
    ),
    'rate_window': "Seconds over which network and disk counters are differenced into a rate.",
    'compiler': "Compiler used to build the workload sources.",
    'duration': "Stop automatically after this many seconds.",
    'exit_when_idle': "Stop once every workload process has exited.",
    'config_file': "Path to a YAML file whose keys override command line values.",
}


def positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not a number")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"{value!r} must be greater than zero")
    return number


def add_monitor_arguments(parser):
    """Add the options that describe what to monitor and where to write it."""
    workload_args = parser.add_argument_group("Workloads")
    sources = workload_args.add_mutually_exclusive_group()
    sources.add_argument('--input', '-i', type=str, default=DEFAULT_INPUT_DIR, help=HELP_MESSAGES['input'])
    sources.add_argument('--executables', '-e', type=str, nargs='+', metavar="PATH",
                         help=HELP_MESSAGES['executables'])
    workload_args.add_argument('--compiler', type=str, default=DEFAULT_COMPILER, help=HELP_MESSAGES['compiler'])

    sampling_args = parser.add_argument_group("Sampling")
    sampling_args.add_argument('--output', '-o', type=str, default=DEFAULT_OUTPUT_DIR, help=HELP_MESSAGES['output'])
    sampling_args.add_argument('--interval', type=positive_float, default=SAMPLING_INTERVAL,
                               help=HELP_MESSAGES['interval'])
    sampling_args.add_argument('--metrics-source', choices=METRICS_SOURCES, default=METRICS_SOURCE.procfs.value,
                               help=HELP_MESSAGES['metrics_source'])
    sampling_args.add_argument('--rate-window', type=positive_float, default=DEFAULT_RATE_WINDOW,
                               help=HELP_MESSAGES['rate_window'])
    sampling_args.add_argument('--interface', type=str, help=HELP_MESSAGES['interface'])
    sampling_args.add_argument('--disk-device', type=str, help=HELP_MESSAGES['disk_device'])
    sampling_args.add_argument('--capacity-path', type=str, default=DEFAULT_CAPACITY_PATH,
                               help=HELP_MESSAGES['capacity_path'])

    stop_args = parser.add_argument_group("Stopping")
    stop_args.add_argument('--duration', type=positive_float, metavar="SECONDS", help=HELP_MESSAGES['duration'])
    stop_args.add_argument('--exit-when-idle', action='store_true', help=HELP_MESSAGES['exit_when_idle'])


def add_universal_arguments(parser):
    """Add config-file and output-control arguments."""
    standard_args = parser.add_argument_group("Standard Arguments")
    standard_args.add_argument('--config-file', '-c', type=str, help=HELP_MESSAGES['config_file'])

    output_control = parser.add_argument_group("Output Control")
    output_control.add_argument("--debug", action="store_true", help="Enable debug mode")
    output_control.add_argument("--verbose", action="store_true", help="Enable verbose mode")
    output_control.add_argument("--stream-log-level", type=str, default=None,
                                help="Explicit console log level (e.g. DEBUG, VERBOSE, STATUS)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="apmagent", description=PROGRAM_DESCRIPTION)
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    add_monitor_arguments(parser)
    add_universal_arguments(parser)
    return parser


def apply_yaml_config_overrides(args, logger=None):
    """
    Apply overrides from a YAML config file to the parsed arguments.

    Keys may use dashes or underscores (``rate-window`` or ``rate_window``).
    Unknown keys are skipped with a warning; null values are ignored.

    Raises:
        ConfigurationError: If the file is missing or is not a YAML mapping.
    """
    try:
        yaml_config = read_yaml_file(args.config_file)
    except FileNotFoundError:
        raise ConfigurationError(
            format_error('CONFIG_FILE_NOT_FOUND', path=args.config_file),
            parameter="config_file",
            actual=args.config_file,
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
        )
    except (yaml.YAMLError, ValueError) as e:
        raise ConfigurationError(
            format_error('CONFIG_PARSE_ERROR', path=args.config_file, error=e),
            parameter="config_file",
            code=ErrorCode.CONFIG_PARSE_ERROR,
        )

    args_dict = vars(args)
    for raw_key, value in yaml_config.items():
        key = str(raw_key).replace('-', '_')
        if key not in args_dict or key == 'config_file':
            if logger:
                logger.warning(f"Config file contains unknown parameter '{raw_key}', skipping")
            continue
        if value is None:
            continue
        if key == 'executables' and isinstance(value, str):
            value = [value]
        args_dict[key] = value

    return argparse.Namespace(**args_dict)


def parse_arguments(argv: Optional[List[str]] = None, logger=None) -> argparse.Namespace:
    """Parse command-line arguments, then apply config-file overrides.

    Returns:
        argparse.Namespace: Parsed arguments.
    """
    parser = build_parser()
    parsed_args = parser.parse_args(argv)

    if parsed_args.config_file:
        parsed_args = apply_yaml_config_overrides(parsed_args, logger=logger)

    return parsed_args

#!/usr/bin/env python3
"""
apmagent - Main Entry Point

Builds (or takes) the workload executables, prepares the output folder and
hands over to the Supervisor, with top-level error handling that maps every
failure to an exit code.
"""

import sys
import traceback

from apmagent.apm_logging import setup_logging, apply_logging_options
from apmagent.builder import WorkloadBuilder
from apmagent.cli_parser import parse_arguments
from apmagent.collectors import create_provider
from apmagent.config import EXIT_CODE, MonitorConfig
from apmagent.dependency_check import validate_run_dependencies
from apmagent.error_messages import format_error
from apmagent.errors import (
    APMException,
    BuildError,
    ConfigurationError,
    DependencyError,
    LaunchError,
    NoExecutablesError,
)
from apmagent.supervisor import Supervisor
from apmagent.utils import prepare_output_dir

logger = setup_logging("apmagent")
debug_mode = False


def run_monitor(config: MonitorConfig, debug: bool = False) -> int:
    """
    Run one monitoring session for a validated configuration.

    Raises:
        DependencyError: If a required external tool is missing.
        ConfigurationError: If there is nothing to monitor or the output
            folder cannot be prepared.
        BuildError: If a workload fails to compile.
        LaunchError: If a workload cannot be started.
    """
    needs_compiler = not config.executables
    validate_run_dependencies(config, needs_compiler, logger=logger)

    if needs_compiler:
        builder = WorkloadBuilder(config.input_dir, compiler=config.compiler, logger=logger, debug=debug)
        executables = builder.build()
    else:
        executables = list(config.executables)

    if not executables:
        raise NoExecutablesError(format_error('NO_EXECUTABLES'))

    try:
        prepare_output_dir(config.output_dir, logger=logger)
    except OSError as e:
        raise ConfigurationError(
            format_error('OUTPUT_DIR_FAILED', path=config.output_dir, error=e),
            parameter="output",
            actual=config.output_dir,
        )

    provider = create_provider(config.metrics_source, config.rate_window, logger=logger)
    supervisor = Supervisor(config, executables, provider, logger=logger)
    return supervisor.run()


def _main_impl(argv=None):
    """
    Main implementation; main() wraps it with exception handling.
    """
    global debug_mode

    args = parse_arguments(argv, logger=logger)
    debug_mode = args.debug
    apply_logging_options(logger, args)

    config = MonitorConfig.from_args(args)
    logger.verbose(f"Run configuration: {config}")
    return run_monitor(config, debug=args.debug)


def main(argv=None):
    """
    Main entry point with comprehensive error handling.
    """
    try:
        return _main_impl(argv)

    except ConfigurationError as e:
        logger.error(str(e))
        return EXIT_CODE.FAILURE

    except BuildError as e:
        logger.error(str(e))
        return EXIT_CODE.FAILURE

    except LaunchError as e:
        logger.error(str(e))
        logger.info("Run aborted; workloads launched before the failure were terminated")
        return EXIT_CODE.FAILURE

    except DependencyError as e:
        logger.error(str(e))
        return EXIT_CODE.FAILURE

    except APMException as e:
        logger.error(str(e))
        return EXIT_CODE.FAILURE

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return EXIT_CODE.INTERRUPTED

    except SystemExit:
        raise

    except Exception as e:
        logger.error(format_error('INTERNAL_ERROR', error=str(e)))
        if debug_mode:
            logger.debug("Stack trace:")
            traceback.print_exc()
        else:
            logger.info("Run with --debug for full stack trace")
        return EXIT_CODE.FAILURE


if __name__ == "__main__":
    sys.exit(main())

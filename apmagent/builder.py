"""
Compilation of workload sources into executables.

Every ``*.c`` file in the input folder is compiled with the configured
compiler into an executable of the same name without the extension, placed
next to the source.
"""

import glob
import logging
import os
import signal
from typing import List, Optional

from apmagent.apm_logging import get_quiet_logger
from apmagent.config import DEFAULT_COMPILER, WORKLOAD_SOURCE_PATTERN
from apmagent.error_messages import format_error
from apmagent.errors import BuildError, ConfigurationError, ErrorCode, NoExecutablesError
from apmagent.progress import progress_context
from apmagent.utils import CommandExecutor


class WorkloadBuilder:
    """Builds the workload executables for a run.

    Args:
        input_dir: Folder containing the workload sources.
        compiler: Compiler executable.
        logger: Logger for progress and compiler output.
        debug: Echo compiler output while it runs.
    """

    def __init__(self, input_dir: str, compiler: str = DEFAULT_COMPILER,
                 logger: Optional[logging.Logger] = None, debug: bool = False):
        self.input_dir = input_dir
        self.compiler = compiler
        self.logger = logger or get_quiet_logger(__name__)
        self.debug = debug

    def discover_sources(self) -> List[str]:
        """Return the sorted workload sources in the input folder.

        Raises:
            ConfigurationError: If the input folder does not exist.
            NoExecutablesError: If it holds no sources.
        """
        if not os.path.isdir(self.input_dir):
            raise ConfigurationError(
                format_error('INPUT_DIR_NOT_FOUND', path=self.input_dir),
                parameter="input",
                actual=self.input_dir,
                code=ErrorCode.CONFIG_DIRECTORY_NOT_FOUND,
            )

        sources = sorted(glob.glob(os.path.join(self.input_dir, WORKLOAD_SOURCE_PATTERN)))
        if not sources:
            raise NoExecutablesError(
                format_error('NO_SOURCES', pattern=WORKLOAD_SOURCE_PATTERN, path=self.input_dir),
                code=ErrorCode.CONFIG_NO_SOURCES,
            )
        return sources

    def compile(self, source: str) -> str:
        """Compile one source and return the path of the executable.

        Raises:
            BuildError: If the compiler cannot run or reports an error.
        """
        target = os.path.splitext(source)[0]
        command = [self.compiler, source, "-o", target]
        executor = CommandExecutor(self.logger, debug=self.debug)
        try:
            stdout, stderr, return_code = executor.execute(
                command,
                print_stdout=self.debug,
                print_stderr=self.debug,
                watch_signals={signal.SIGINT, signal.SIGTERM},
            )
        except OSError as e:
            raise BuildError(
                f"Cannot run compiler {self.compiler}: {e}",
                source=source,
                command=" ".join(command),
            )

        if return_code != 0:
            raise BuildError(
                format_error('BUILD_FAILED', source=source, exit_code=return_code, command=" ".join(command)),
                source=source,
                command=" ".join(command),
                exit_code=return_code,
                stderr=stderr.strip(),
            )
        if stderr.strip():
            self.logger.warning(f"Compiler output for {source}:\n{stderr.strip()}")
        return target

    def build(self) -> List[str]:
        """Compile every source and return the executables in source order."""
        sources = self.discover_sources()
        executables = []
        with progress_context(f"Compiling {len(sources)} workload(s)", total=len(sources),
                              logger=self.logger) as (update, set_desc):
            for source in sources:
                set_desc(f"Compiling {os.path.basename(source)}")
                executables.append(self.compile(source))
                update()
        self.logger.status(f"Built {len(executables)} workload executable(s) in {self.input_dir}")
        return executables

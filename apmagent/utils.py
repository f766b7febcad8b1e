"""
Utility functions for the APM agent.

Classes:
    CommandExecutor: Execute external commands with bounded runtime and
        signal handling.

Functions:
    read_yaml_file: Load a YAML mapping from disk.
    prepare_output_dir: Create the output folder and clear stale metric files.
"""

import glob
import io
import logging
import os
import select
import shlex
import signal
import subprocess
import sys
import threading
import time
from typing import Any, Dict, List, Optional, Set, Tuple, Union

import yaml

from apmagent.config import PROCESS_METRICS_SUFFIX


def read_yaml_file(path: str) -> Dict[str, Any]:
    """Load a YAML mapping from a file.

    Args:
        path: Path to the YAML file.

    Returns:
        The parsed mapping; an empty file yields an empty dict.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        yaml.YAMLError: If the file contains invalid YAML.
        ValueError: If the top level of the document is not a mapping.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, 'r') as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at the top level of {path}, got {type(data).__name__}")
    return data


def prepare_output_dir(output_dir: str, logger: Optional[logging.Logger] = None) -> List[str]:
    """Create ``output_dir`` if missing and delete metric files from earlier runs.

    Only files ending in the metrics suffix are removed; anything else in the
    folder is left alone.

    Returns:
        The paths that were removed.
    """
    os.makedirs(output_dir, exist_ok=True)
    removed = []
    for path in sorted(glob.glob(os.path.join(output_dir, f"*{PROCESS_METRICS_SUFFIX}"))):
        if os.path.isfile(path):
            os.remove(path)
            removed.append(path)
    if removed and logger:
        logger.verbose(f"Removed {len(removed)} metrics file(s) from a previous run in {output_dir}")
    return removed


class CommandExecutor:
    """
    Execute commands in a subprocess with live output capture and signal handling.

    This class allows:
    - Executing commands as a string or list of arguments
    - Capturing stdout and stderr
    - Bounding the runtime of the command
    - Terminating the child when a watched signal arrives

    An executor holds the state of one running command, so concurrent callers
    should each use their own instance.
    """

    def __init__(self, logger: logging.Logger, debug: bool = False):
        self.logger = logger
        self.debug = debug
        self.process = None
        self.terminated_by_signal = False
        self.signal_received = None
        self._original_handlers = {}
        self._stop_event = threading.Event()

    def execute(self,
                command: Union[str, List[str]],
                print_stdout: bool = False,
                print_stderr: bool = False,
                watch_signals: Optional[Set[int]] = None,
                timeout: Optional[float] = None) -> Tuple[str, str, int]:
        """
        Execute a command and return its stdout, stderr, and return code.

        Args:
            command: The command to execute (string or list of strings)
            print_stdout: If True, prints stdout in real-time
            print_stderr: If True, prints stderr in real-time
            watch_signals: Signals that terminate the command when received.
                Only usable from the main thread.
            timeout: Seconds after which the command is terminated.

        Returns:
            Tuple of (stdout_content, stderr_content, return_code)

        Raises:
            FileNotFoundError: If the executable does not exist.
            subprocess.TimeoutExpired: If the command outlives ``timeout``.
        """
        self.logger.debug(f"Executing command: {command}")

        if isinstance(command, str):
            cmd_args = shlex.split(command)
        else:
            cmd_args = command

        if watch_signals:
            self._setup_signal_handlers(watch_signals)

        self._stop_event.clear()
        self.terminated_by_signal = False
        self.signal_received = None

        stdout_buffer = io.StringIO()
        stderr_buffer = io.StringIO()
        deadline = time.monotonic() + timeout if timeout is not None else None

        try:
            self.process = subprocess.Popen(
                cmd_args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1
            )

            stdout_fd = self.process.stdout.fileno()
            stderr_fd = self.process.stderr.fileno()

            while self.process.poll() is None and not self._stop_event.is_set():
                if deadline is not None and time.monotonic() > deadline:
                    raise subprocess.TimeoutExpired(cmd_args, timeout)

                readable, _, _ = select.select(
                    [self.process.stdout, self.process.stderr],
                    [],
                    [],
                    0.1
                )

                for stream in readable:
                    line = stream.readline()
                    if not line:
                        continue

                    if stream.fileno() == stdout_fd:
                        stdout_buffer.write(line)
                        if print_stdout:
                            sys.stdout.write(line)
                            sys.stdout.flush()
                    elif stream.fileno() == stderr_fd:
                        stderr_buffer.write(line)
                        if print_stderr:
                            sys.stderr.write(line)
                            sys.stderr.flush()

            stdout_remainder = self.process.stdout.read()
            if stdout_remainder:
                stdout_buffer.write(stdout_remainder)
                if print_stdout:
                    sys.stdout.write(stdout_remainder)
                    sys.stdout.flush()

            stderr_remainder = self.process.stderr.read()
            if stderr_remainder:
                stderr_buffer.write(stderr_remainder)
                if print_stderr:
                    sys.stderr.write(stderr_remainder)
                    sys.stderr.flush()

            return_code = self.process.wait()

            if self.terminated_by_signal:
                self.logger.debug(f"Process terminated by signal: {self.signal_received}")

            return stdout_buffer.getvalue(), stderr_buffer.getvalue(), return_code

        finally:
            if self.process and self.process.poll() is None:
                self.process.terminate()
                try:
                    self.process.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    self.process.kill()
                    self.process.wait()
            if self.process:
                self.process.stdout.close()
                self.process.stderr.close()

            self._restore_signal_handlers()

    def _setup_signal_handlers(self, signals: Set[int]):
        """Set up signal handlers for the specified signals."""
        self._original_handlers = {}

        def signal_handler(sig, frame):
            self.logger.debug(f"Received signal: {sig}")
            self.terminated_by_signal = True
            self.signal_received = sig
            self._stop_event.set()

            if self.process and self.process.poll() is None:
                self.process.terminate()

            original = self._original_handlers.get(sig)
            if callable(original):
                original(sig, frame)

        for sig in signals:
            self._original_handlers[sig] = signal.getsignal(sig)
            signal.signal(sig, signal_handler)

    def _restore_signal_handlers(self):
        """Restore original signal handlers."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers = {}

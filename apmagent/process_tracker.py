"""
Launching and tracking of workload processes.

The ProcessTracker is the only owner of the workload child processes: it
starts them, hands out TrackedProcess records to the samplers, reaps them
when they exit and terminates whatever is still alive on shutdown.
"""

import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from apmagent.apm_logging import get_quiet_logger
from apmagent.config import KILL_TIMEOUT, PROCESS_METRICS_SUFFIX
from apmagent.errors import LaunchError
from apmagent.error_messages import format_error


@dataclass
class TrackedProcess:
    """A workload process started by the tracker.

    Attributes:
        executable: Path the process was started from.
        display_name: Unique name used for logs and the metrics file name.
        output_file: Path of this process's metrics CSV.
        process: The underlying Popen handle.
    """
    executable: str
    display_name: str
    output_file: str
    process: subprocess.Popen = field(repr=False)
    exit_reported: bool = field(default=False, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode

    def poll(self) -> Optional[int]:
        """Reap the process if it has exited and return its exit code."""
        return self.process.poll()

    @property
    def is_alive(self) -> bool:
        return self.poll() is None


def derive_display_name(executable: str) -> str:
    """Name of the executable without its directory."""
    return os.path.basename(os.path.normpath(executable))


class ProcessTracker:
    """
    Registry of the workload processes launched for one run.

    Args:
        output_dir: Directory holding the per-process metrics files.
        logger: Logger for launch and exit messages.
        kill_timeout: Seconds to wait after SIGTERM before sending SIGKILL.
    """

    def __init__(self, output_dir: str, logger: Optional[logging.Logger] = None,
                 kill_timeout: float = KILL_TIMEOUT):
        self.output_dir = output_dir
        self.logger = logger or get_quiet_logger(__name__)
        self.kill_timeout = kill_timeout
        self._processes: List[TrackedProcess] = []
        self._names = set()
        self._lock = threading.Lock()

    def _unique_name(self, base_name: str) -> str:
        name = base_name
        suffix = 2
        while name in self._names:
            name = f"{base_name}-{suffix}"
            suffix += 1
        self._names.add(name)
        return name

    def launch(self, executable: str, args: Sequence[str] = ()) -> TrackedProcess:
        """Start ``executable`` with ``args`` and begin tracking it.

        Raises:
            LaunchError: If the executable cannot be started.
        """
        # A bare name in the current folder would otherwise be looked up on PATH
        command_path = os.path.abspath(executable) if os.path.exists(executable) else executable
        command = [command_path, *args]

        with self._lock:
            try:
                process = subprocess.Popen(command, stdin=subprocess.DEVNULL)
            except OSError as e:
                raise LaunchError(
                    format_error('LAUNCH_FAILED', executable=executable, error=e),
                    executable=executable,
                    os_error=str(e),
                )

            display_name = self._unique_name(derive_display_name(executable))
            tracked = TrackedProcess(
                executable=executable,
                display_name=display_name,
                output_file=os.path.join(self.output_dir, f"{display_name}{PROCESS_METRICS_SUFFIX}"),
                process=process,
            )
            self._processes.append(tracked)

        self.logger.status(f"Launched {display_name} (pid {tracked.pid}): {' '.join(command)}")
        return tracked

    def reap(self) -> List[TrackedProcess]:
        """Collect exit status of finished workloads.

        Returns:
            The processes whose exit was observed for the first time.
        """
        exited = []
        with self._lock:
            for tracked in self._processes:
                if tracked.exit_reported or tracked.poll() is None:
                    continue
                tracked.exit_reported = True
                exited.append(tracked)

        for tracked in exited:
            self.logger.status(f"Workload {tracked.display_name} (pid {tracked.pid}) "
                               f"exited with code {tracked.returncode}")
        return exited

    def kill_all(self) -> int:
        """Terminate every tracked process that is still running.

        Processes get SIGTERM first and SIGKILL if they outlive
        ``kill_timeout``. Every process is waited on, so none is left as a
        zombie. Calling this more than once is harmless.

        Returns:
            Number of processes that were still running.
        """
        with self._lock:
            alive = [t for t in self._processes if t.poll() is None]
            for tracked in alive:
                self.logger.verbose(f"Terminating {tracked.display_name} (pid {tracked.pid})")
                try:
                    tracked.process.terminate()
                except ProcessLookupError:
                    self.logger.debug(f"{tracked.display_name} exited before it could be terminated")

            deadline = time.monotonic() + self.kill_timeout
            for tracked in alive:
                try:
                    tracked.process.wait(timeout=max(deadline - time.monotonic(), 0))
                except subprocess.TimeoutExpired:
                    self.logger.warning(f"{tracked.display_name} (pid {tracked.pid}) ignored SIGTERM, killing")
                    tracked.process.kill()
                    tracked.process.wait()
                tracked.exit_reported = True

        if alive:
            self.logger.status(f"Terminated {len(alive)} workload process(es)")
        return len(alive)

    @property
    def processes(self) -> List[TrackedProcess]:
        with self._lock:
            return list(self._processes)

    def alive(self) -> List[TrackedProcess]:
        with self._lock:
            return [t for t in self._processes if t.poll() is None]

"""
Run lifecycle: startup, waiting and the shutdown sequence.

The Supervisor launches the workloads, starts one ProcessSampler per
workload plus the SystemSampler, waits for a stop condition and then runs
the shutdown sequence exactly once:

1. stop every sampler and wait for its writer to close,
2. terminate every workload still running,
3. terminate helper processes left behind by the metrics provider.

Signal handlers only record the request; the sequence itself always runs on
the supervisor's thread. A second SIGINT/SIGTERM makes step 1 stop waiting
for samplers that have not finished yet.
"""

import logging
import signal
import subprocess
import threading
import time
from typing import List, Optional

import psutil

from apmagent.apm_logging import get_quiet_logger
from apmagent.config import EXIT_CODE, KILL_TIMEOUT, MonitorConfig, SUPERVISOR_POLL_INTERVAL
from apmagent.errors import NoExecutablesError, OutputFileError
from apmagent.error_messages import format_error
from apmagent.interfaces.metrics import MetricsProvider
from apmagent.network import NetworkAddressResolver, detect_disk_device, detect_interface
from apmagent.process_tracker import ProcessTracker
from apmagent.samplers import ProcessSampler, Sampler, StopReason, SystemSampler
from apmagent.timeseries import RunClock

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Supervisor:
    """
    Lifecycle controller for one monitoring run.

    Args:
        config: Validated run configuration.
        executables: Workload executables to launch.
        provider: Metrics provider shared by all samplers.
        logger: Logger passed down to every component.
        tracker: Process registry; built from ``config`` when omitted.
        resolver: Primary address resolver; built when omitted.
        clock: Run clock for the ``seconds`` column; started now when omitted.
        poll_interval: How often the wait loop re-checks its stop conditions.
    """

    def __init__(self, config: MonitorConfig, executables: List[str], provider: MetricsProvider,
                 logger: Optional[logging.Logger] = None,
                 tracker: Optional[ProcessTracker] = None,
                 resolver: Optional[NetworkAddressResolver] = None,
                 clock: Optional[RunClock] = None,
                 poll_interval: float = SUPERVISOR_POLL_INTERVAL):
        self.config = config
        self.executables = list(executables)
        self.provider = provider
        self.logger = logger or get_quiet_logger(__name__)
        self.tracker = tracker or ProcessTracker(config.output_dir, logger=self.logger)
        self.resolver = resolver or NetworkAddressResolver(logger=self.logger)
        self.clock = clock or RunClock()
        self.poll_interval = poll_interval

        self.process_samplers: List[ProcessSampler] = []
        self.system_sampler: Optional[SystemSampler] = None

        self._shutdown_requested = threading.Event()
        self._force = threading.Event()
        self._shutdown_lock = threading.RLock()
        self._shutdown_started = False
        self._shutdown_complete = threading.Event()
        self._original_handlers = {}
        self._started_at: Optional[float] = None

    @property
    def samplers(self) -> List[Sampler]:
        samplers: List[Sampler] = list(self.process_samplers)
        if self.system_sampler is not None:
            samplers.append(self.system_sampler)
        return samplers

    # Signal handling

    def install_signal_handlers(self) -> None:
        """Route SIGINT/SIGTERM to :meth:`_signal_handler`. Main thread only."""
        if threading.current_thread() is not threading.main_thread():
            self.logger.debug("Not on the main thread, leaving signal handlers alone")
            return
        for sig in HANDLED_SIGNALS:
            self._original_handlers[sig] = signal.getsignal(sig)
            signal.signal(sig, self._signal_handler)

    def restore_signal_handlers(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers = {}

    def _signal_handler(self, sig, frame):
        signal_name = signal.Signals(sig).name
        if self._shutdown_requested.is_set():
            self.logger.warning(f"Received {signal_name} again, no longer waiting for samplers")
            self._force.set()
        else:
            self.logger.warning(f"Received signal {signal_name} ({sig}), shutting down")
            self._shutdown_requested.set()

    def request_shutdown(self, force: bool = False) -> None:
        """Ask the wait loop to end. Safe to call from any thread."""
        if force:
            self._force.set()
        self._shutdown_requested.set()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested.is_set()

    @property
    def shutdown_complete(self) -> bool:
        return self._shutdown_complete.is_set()

    # Startup

    def start(self) -> None:
        """Launch every workload and start all samplers.

        Raises:
            NoExecutablesError: If there is nothing to launch.
            LaunchError: If a workload cannot be started. Workloads already
                launched are left for :meth:`shutdown` to terminate.
        """
        if not self.executables:
            raise NoExecutablesError(format_error('NO_EXECUTABLES'))

        self._started_at = time.time()
        address = self.resolver.resolve()
        interface = self.config.interface or detect_interface(address, logger=self.logger)
        disk_device = self.config.disk_device or detect_disk_device(self.config.capacity_path, logger=self.logger)

        if interface:
            self.provider.prepare(interface, self.config.interval)

        launched = [self.tracker.launch(executable, [address]) for executable in self.executables]

        for tracked in launched:
            self.process_samplers.append(ProcessSampler(
                tracked,
                provider=self.provider,
                clock=self.clock,
                interval=self.config.interval,
                logger=self.logger,
            ))
        self.system_sampler = SystemSampler(
            self.config.output_dir,
            provider=self.provider,
            clock=self.clock,
            interface=interface,
            disk_device=disk_device,
            capacity_path=self.config.capacity_path,
            interval=self.config.interval,
            logger=self.logger,
        )

        for sampler in self.samplers:
            try:
                sampler.start()
            except OutputFileError as e:
                # Only this stream is lost; the others keep running
                self.logger.error(str(e))

        running = sum(1 for s in self.samplers if s.is_running)
        self.logger.status(f"Monitoring {len(launched)} workload(s) with {running} sampler(s) "
                           f"every {self.config.interval}s, writing to {self.config.output_dir}")

    # Waiting

    def _stop_condition(self) -> Optional[str]:
        if not any(s.is_running for s in self.samplers):
            return "all samplers have stopped"
        if self.config.duration is not None and self.clock.elapsed() >= self.config.duration:
            return f"run duration of {self.config.duration}s reached"
        if self.config.exit_when_idle and not any(s.is_running for s in self.process_samplers):
            return "all workloads have exited"
        return None

    def wait(self) -> None:
        """Block until a signal arrives or a stop condition is met.

        Exited workloads are reaped on every pass so none lingers as a zombie.
        """
        while not self._shutdown_requested.is_set():
            self.tracker.reap()
            reason = self._stop_condition()
            if reason:
                self.logger.status(f"Stopping: {reason}")
                return
            self._shutdown_requested.wait(timeout=self.poll_interval)

    # Shutdown

    def _stop_samplers(self) -> None:
        for sampler in self.samplers:
            sampler.request_stop()
        for sampler in self.samplers:
            while not sampler.join(timeout=self.poll_interval):
                if self._force.is_set():
                    self.logger.warning(f"Not waiting for the {sampler.name} sampler to finish")
                    return

    def _release_helpers(self) -> None:
        try:
            self.provider.close()
        except (OSError, subprocess.SubprocessError) as e:
            self.logger.warning(f"Could not stop {self.provider.name} helper: {e}")

        names = set(self.provider.helper_process_names)
        if not names or self._started_at is None:
            return

        # Helpers may have daemonized away from us, so find them by name and age
        helpers = []
        for proc in psutil.process_iter(['name', 'create_time']):
            name = proc.info.get('name')
            created = proc.info.get('create_time')
            if name in names and created is not None and created >= self._started_at - 1:
                helpers.append(proc)

        for proc in helpers:
            try:
                proc.terminate()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied as e:
                self.logger.warning(f"Cannot terminate helper {proc.pid}: {e}")

        gone, alive = psutil.wait_procs(helpers, timeout=KILL_TIMEOUT)
        for proc in alive:
            try:
                proc.kill()
            except psutil.Error as e:
                self.logger.warning(f"Cannot kill helper {proc.pid}: {e}")
        if helpers:
            self.logger.verbose(f"Terminated {len(helpers)} helper process(es): {', '.join(sorted(names))}")

    def shutdown(self) -> None:
        """Run the shutdown sequence. Only the first call does any work."""
        with self._shutdown_lock:
            if self._shutdown_started:
                return
            self._shutdown_started = True

            self.logger.status("Stopping samplers")
            self._stop_samplers()

            self.logger.status("Terminating workloads")
            self.tracker.kill_all()

            try:
                self._release_helpers()
            except psutil.Error as e:
                self.logger.warning(f"Helper process cleanup failed: {e}")

            self._shutdown_complete.set()
            self.logger.status("Shutdown complete")

    def run(self) -> int:
        """Start, wait and shut down. Returns the process exit code."""
        self.install_signal_handlers()
        try:
            self.start()
            self.wait()
        finally:
            self.shutdown()
            self.restore_signal_handlers()

        for sampler in self.samplers:
            if sampler.stop_reason is StopReason.OUTPUT_ERROR:
                self.logger.error(f"{sampler.name} metrics are incomplete: {sampler.path}")
            else:
                self.logger.result(f"{sampler.name}: {sampler.rows_written} rows in {sampler.path}")
        return EXIT_CODE.SUCCESS

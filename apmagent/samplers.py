"""
Periodic samplers that turn metrics provider readings into CSV rows.

Each sampler owns one background thread and one TimeSeriesWriter. A sampler
moves through ``IDLE -> RUNNING -> STOPPED`` exactly once:

- ``start()`` creates the output file and starts the thread; the first tick
  runs immediately.
- Ticks are scheduled against absolute deadlines (start + k * interval), so a
  slow provider call delays one row but never shifts the cadence. Deadlines
  that have already passed when a tick finishes are skipped, not replayed.
- ``stop()`` sets a cancellation flag that the thread observes at the next
  tick boundary. The writer is closed on every exit path of the thread.

Two concrete samplers are provided:

- ProcessSampler: CPU% and memory% of one tracked process. The subject's
  liveness is re-checked on every tick and the sampler stops on the first
  tick that finds it gone.
- SystemSampler: host network, disk and capacity metrics. A field that
  cannot be read is written as the missing marker and the row is kept.
"""

import abc
import enum
import logging
import os
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from apmagent.apm_logging import SAMPLER_THREAD_PREFIX, get_quiet_logger
from apmagent.config import (
    CAPACITY_PRECISION,
    PERCENT_PRECISION,
    PROCESS_HEADER,
    RATE_PRECISION,
    SAMPLING_INTERVAL,
    SYSTEM_HEADER,
    SYSTEM_METRICS_FILENAME,
)
from apmagent.errors import MetricUnavailableError, OutputFileError, ProcessNotFoundError
from apmagent.interfaces.metrics import MetricsProvider
from apmagent.timeseries import RunClock, SampleRow, TimeSeriesWriter


class SamplerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class StopReason(enum.Enum):
    REQUESTED = "stop requested"
    SUBJECT_EXITED = "subject exited"
    OUTPUT_ERROR = "output error"
    INTERNAL_ERROR = "internal error"


class Sampler(abc.ABC):
    """Base class for a fixed-interval sampler writing one CSV stream.

    Subclasses define ``header`` and ``precisions`` and implement
    :meth:`sample`, which returns the metric values for one row or None when
    the subject is gone and the sampler should stop.

    Args:
        name: Stream name used in log messages and the thread name.
        path: Output CSV file; must not exist yet.
        provider: Source of raw readings.
        clock: Shared run clock for the ``seconds`` column.
        interval: Seconds between tick starts.
        logger: Logger for lifecycle and error messages.
        monotonic: Clock used for deadline scheduling.
    """

    header: Tuple[str, ...] = ()
    precisions: Tuple[int, ...] = ()

    def __init__(self, name: str, path: str, provider: MetricsProvider, clock: RunClock,
                 interval: float = SAMPLING_INTERVAL, logger: Optional[logging.Logger] = None,
                 monotonic: Callable[[], float] = time.monotonic):
        self.name = name
        self.provider = provider
        self.clock = clock
        self.interval = interval
        self.logger = logger or get_quiet_logger(__name__)
        self._monotonic = monotonic

        self._writer = TimeSeriesWriter(path, self.header, logger=self.logger)
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._state = SamplerState.IDLE
        self._last_elapsed: Optional[int] = None
        self._thread = threading.Thread(
            target=self._sampling_loop,
            daemon=False,
            name=f"{SAMPLER_THREAD_PREFIX}{name}",
        )
        self.stop_reason: Optional[StopReason] = None
        self.error: Optional[Exception] = None

    def __repr__(self):
        return f"{self.__class__.__name__}({self.name!r}, state={self._state.value})"

    @abc.abstractmethod
    def sample(self) -> Optional[Tuple[Optional[float], ...]]:
        """Take one reading. None means the subject is gone."""

    def start(self) -> None:
        """Open the output file and start sampling.

        Raises:
            RuntimeError: If the sampler was already started or stopped.
            OutputFileError: If the output file cannot be created; the
                sampler is then stopped.
        """
        with self._lock:
            if self._state is SamplerState.RUNNING:
                raise RuntimeError(f"{self.name} sampler already started")
            if self._state is SamplerState.STOPPED:
                raise RuntimeError(f"{self.name} sampler already stopped; create a new instance")

            try:
                self._writer.open()
            except OutputFileError as e:
                self.error = e
                self.stop_reason = StopReason.OUTPUT_ERROR
                self._state = SamplerState.STOPPED
                raise

            self._state = SamplerState.RUNNING
            self._thread.start()

        self.logger.verbose(f"Started {self.name} sampler (interval={self.interval}s, file={self.path})")

    def request_stop(self) -> None:
        """Ask the sampler to stop at the next tick boundary without waiting."""
        with self._lock:
            if self._state is SamplerState.IDLE:
                self._state = SamplerState.STOPPED
                self.stop_reason = StopReason.REQUESTED
                return
        self._stop_event.set()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Stop sampling and wait for the writer to be closed.

        Returns:
            True once the sampling thread has finished, False if ``timeout``
            expired first.
        """
        self.request_stop()
        return self.join(timeout)

    def join(self, timeout: Optional[float] = None) -> bool:
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    def _sampling_loop(self):
        next_deadline = self._monotonic()
        try:
            while not self._stop_event.is_set():
                if not self._tick():
                    break

                next_deadline += self.interval
                now = self._monotonic()
                if now >= next_deadline:
                    missed = int((now - next_deadline) // self.interval) + 1
                    self.logger.debug(f"{self.name} sampler fell behind, skipping {missed} tick(s)")
                    next_deadline += missed * self.interval
                self._stop_event.wait(timeout=next_deadline - now)
            else:
                self.stop_reason = StopReason.REQUESTED
        except OutputFileError as e:
            self.error = e
            self.stop_reason = StopReason.OUTPUT_ERROR
            self.logger.error(f"{self.name} sampler stopped: {e}")
        except Exception as e:
            self.error = e
            self.stop_reason = StopReason.INTERNAL_ERROR
            self.logger.error(f"{self.name} sampler failed: {e}", exc_info=True)
        finally:
            self._writer.close()
            with self._lock:
                self._state = SamplerState.STOPPED
            self.logger.verbose(
                f"Stopped {self.name} sampler after {self._writer.rows_written} rows "
                f"({self.stop_reason.value if self.stop_reason else 'unknown'})"
            )

    def _tick(self) -> bool:
        elapsed = self.clock.elapsed_seconds()
        if self._last_elapsed is not None and elapsed <= self._last_elapsed:
            # A late tick can land in the same whole second as the previous one
            self.logger.debug(f"{self.name} sampler skipping tick at {elapsed}s, row already written")
            return True

        values = self.sample()
        if values is None:
            self.stop_reason = StopReason.SUBJECT_EXITED
            return False

        row = SampleRow(elapsed_seconds=elapsed, values=values)
        self._writer.append_row(row.render(self.precisions))
        self._last_elapsed = elapsed
        return True

    @property
    def state(self) -> SamplerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SamplerState.RUNNING

    @property
    def path(self) -> str:
        return self._writer.path

    @property
    def rows_written(self) -> int:
        return self._writer.rows_written


class ProcessSampler(Sampler):
    """Samples CPU% and memory% of one tracked process."""

    header = PROCESS_HEADER
    precisions = (PERCENT_PRECISION, PERCENT_PRECISION)

    def __init__(self, tracked, provider: MetricsProvider, clock: RunClock,
                 interval: float = SAMPLING_INTERVAL, logger: Optional[logging.Logger] = None,
                 monotonic: Callable[[], float] = time.monotonic):
        self.tracked = tracked
        self._usage_failing = False
        super().__init__(
            name=tracked.display_name,
            path=tracked.output_file,
            provider=provider,
            clock=clock,
            interval=interval,
            logger=logger,
            monotonic=monotonic,
        )

    def _subject_exited(self):
        self.logger.status(f"Workload {self.name} (pid {self.tracked.pid}) has exited")

    def sample(self):
        # Once reaped, the pid may already belong to an unrelated process
        if self.tracked.returncode is not None:
            self._subject_exited()
            return None
        try:
            usage = self.provider.process_usage(self.tracked.pid)
        except ProcessNotFoundError:
            self._subject_exited()
            return None
        except MetricUnavailableError as e:
            if not self._usage_failing:
                self.logger.warning(f"Cannot read usage of {self.name}: {e.error.message}")
            self._usage_failing = True
            return None, None

        self._usage_failing = False
        return usage.cpu_percent, usage.mem_percent


class SystemSampler(Sampler):
    """Samples host network throughput, disk writes and free capacity.

    ``interface`` or ``disk_device`` may be None when auto-detection failed;
    the matching columns are then always written as missing.
    """

    header = SYSTEM_HEADER
    precisions = (RATE_PRECISION, RATE_PRECISION, RATE_PRECISION, CAPACITY_PRECISION)

    def __init__(self, output_dir: str, provider: MetricsProvider, clock: RunClock,
                 interface: Optional[str], disk_device: Optional[str], capacity_path: str,
                 interval: float = SAMPLING_INTERVAL, logger: Optional[logging.Logger] = None,
                 monotonic: Callable[[], float] = time.monotonic):
        self.interface = interface
        self.disk_device = disk_device
        self.capacity_path = capacity_path
        self._failing: Dict[str, bool] = {}
        super().__init__(
            name="system",
            path=os.path.join(output_dir, SYSTEM_METRICS_FILENAME),
            provider=provider,
            clock=clock,
            interval=interval,
            logger=logger,
            monotonic=monotonic,
        )

    def _field_failed(self, field_name: str, error: MetricUnavailableError):
        if not self._failing.get(field_name):
            self.logger.warning(f"{field_name} unavailable, recording {field_name} as missing: {error.error.message}")
        else:
            self.logger.debug(f"{field_name} still unavailable: {error.error.message}")
        self._failing[field_name] = True

    def _field_ok(self, field_name: str):
        if self._failing.get(field_name):
            self.logger.verbose(f"{field_name} readings recovered")
        self._failing[field_name] = False

    def sample(self):
        rx = tx = disk = capacity = None

        rates = self.provider.host_rates(self.interface, self.disk_device)
        if self.interface:
            if 'network' in rates.errors:
                self._field_failed("network rate", rates.errors['network'])
            else:
                rx, tx = rates.network.rx_kbps, rates.network.tx_kbps
                self._field_ok("network rate")
        if self.disk_device:
            if 'disk' in rates.errors:
                self._field_failed("disk write rate", rates.errors['disk'])
            else:
                disk = rates.disk_write
                self._field_ok("disk write rate")

        try:
            capacity = self.provider.free_capacity(self.capacity_path)
            self._field_ok("free capacity")
        except MetricUnavailableError as e:
            self._field_failed("free capacity", e)

        return rx, tx, disk, capacity

"""
Time-series primitives shared by all samplers.

- RunClock: monotonic elapsed-time counter started with the run; its value
  is the ``seconds`` column of every stream.
- SampleRow: one immutable row of a stream.
- TimeSeriesWriter: the exclusive, append-only writer of one CSV file.
"""

import csv
import io
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from apmagent.apm_logging import get_quiet_logger
from apmagent.config import MISSING_VALUE
from apmagent.errors import OutputFileError
from apmagent.error_messages import format_error


class RunClock:
    """Elapsed time since the run started.

    Read-only once created, so one instance is shared by every sampler.
    """

    def __init__(self, time_func: Callable[[], float] = time.monotonic):
        self._time_func = time_func
        self._origin = time_func()

    def elapsed(self) -> float:
        return self._time_func() - self._origin

    def elapsed_seconds(self) -> int:
        """Whole seconds elapsed, truncated."""
        return int(self.elapsed())


def format_value(value: Optional[float], precision: int) -> str:
    """Render a metric with a fixed number of decimals, or the missing marker."""
    if value is None:
        return MISSING_VALUE
    if precision <= 0:
        return str(int(round(value)))
    return f"{value:.{precision}f}"


@dataclass(frozen=True)
class SampleRow:
    """One row of a metric stream.

    ``values`` holds the metric fields in the stream's column order; a value
    of None marks a field that could not be read on this tick.
    """
    elapsed_seconds: int
    values: Tuple[Optional[float], ...]

    def render(self, precisions: Sequence[int]) -> Tuple[str, ...]:
        if len(precisions) != len(self.values):
            raise ValueError(f"Expected {len(self.values)} precisions, got {len(precisions)}")
        formatted = tuple(format_value(v, p) for v, p in zip(self.values, precisions))
        return (str(self.elapsed_seconds),) + formatted


class TimeSeriesWriter:
    """
    Exclusive append-only writer for one metrics CSV file.

    The file is created on :meth:`open` and must not already exist, so two
    writers can never share a file during a run. Every row is written with a
    single ``write`` call and flushed, so a reader never observes a partial
    row and a crash loses at most the row in flight.

    Usage:
        with TimeSeriesWriter(path, PROCESS_HEADER) as writer:
            writer.append_row(("5", "0.3", "1.2"))
    """

    def __init__(self, path: str, header: Sequence[str], logger: Optional[logging.Logger] = None):
        self.path = path
        self.header = tuple(header)
        self.logger = logger or get_quiet_logger(__name__)
        self._file = None
        self._rows_written = 0

    @staticmethod
    def _encode(fields: Sequence[str]) -> str:
        buffer = io.StringIO()
        csv.writer(buffer, lineterminator='\n').writerow(fields)
        return buffer.getvalue()

    def open(self) -> 'TimeSeriesWriter':
        """Create the file and write the header.

        Raises:
            OutputFileError: If the file exists or cannot be created.
        """
        if self._file is not None:
            raise RuntimeError(f"{self.path} is already open")
        try:
            self._file = open(self.path, 'x', newline='')
            self._file.write(self._encode(self.header))
            self._file.flush()
        except OSError as e:
            self._discard()
            raise OutputFileError(
                format_error('OUTPUT_OPEN_FAILED', path=self.path, error=e),
                path=self.path,
                operation="create",
            )
        self.logger.debug(f"Opened metrics file {self.path}")
        return self

    def append_row(self, fields: Sequence[str]) -> None:
        """Append one complete row.

        Raises:
            OutputFileError: If the row cannot be written.
        """
        if self._file is None:
            raise RuntimeError(f"{self.path} is not open")
        if len(fields) != len(self.header):
            raise ValueError(f"Row has {len(fields)} fields, header has {len(self.header)}")
        try:
            self._file.write(self._encode(fields))
            self._file.flush()
        except OSError as e:
            raise OutputFileError(
                format_error('OUTPUT_APPEND_FAILED', path=self.path, error=e),
                path=self.path,
                operation="append",
            )
        self._rows_written += 1

    def close(self) -> None:
        """Close the file. Calling close on a closed writer does nothing."""
        if self._file is None:
            return
        try:
            self._file.close()
        except OSError as e:
            self.logger.error(f"Error closing metrics file {self.path}: {e}")
        finally:
            self._file = None
        self.logger.debug(f"Closed metrics file {self.path} after {self._rows_written} rows")

    def _discard(self):
        if self._file is not None:
            try:
                self._file.close()
            except OSError as e:
                self.logger.debug(f"Ignoring close error on {self.path}: {e}")
            self._file = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    @property
    def rows_written(self) -> int:
        return self._rows_written

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

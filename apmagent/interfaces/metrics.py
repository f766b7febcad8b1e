"""
Metrics provider interface definitions for apmagent.

This module defines the abstract interface the samplers use to obtain raw
resource readings from the operating system. Implementations may read kernel
counters directly (procfs) or shell out to the classic sysstat tools; the
samplers only depend on this contract.

Every query is bounded in time and either returns a reading or raises one of
the typed metric errors from ``apmagent.errors``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from apmagent.errors import MetricUnavailableError


@dataclass(frozen=True)
class ProcessUsage:
    """CPU and memory usage of a single process.

    Attributes:
        cpu_percent: CPU time used over the process lifetime, as a percentage
            of one CPU (ps-style, may exceed 100 on multi-threaded workloads).
        mem_percent: Resident memory as a percentage of total physical memory.
    """
    cpu_percent: float
    mem_percent: float


@dataclass(frozen=True)
class NetworkRate:
    """Receive and transmit throughput of one interface in kB/s."""
    rx_kbps: float
    tx_kbps: float


@dataclass
class HostRates:
    """Network and disk rates measured over one shared window.

    A field that could not be read is None and its error is kept in
    ``errors`` under the same key ('network' or 'disk').
    """
    network: Optional[NetworkRate] = None
    disk_write: Optional[float] = None
    errors: Dict[str, MetricUnavailableError] = field(default_factory=dict)


class MetricsProvider(ABC):
    """Interface for raw OS resource queries.

    Example:
        class StaticProvider(MetricsProvider):
            name = "static"

            def process_usage(self, pid):
                return ProcessUsage(cpu_percent=1.0, mem_percent=0.5)
            ...
    """

    name: str = "abstract"

    def prepare(self, interface: str, interval: float) -> None:
        """Start any helper machinery needed before the first query.

        Called once by the supervisor before samplers start. The default
        implementation does nothing.
        """

    def close(self) -> None:
        """Release anything started by :meth:`prepare`. Safe to call twice."""

    @property
    def helper_process_names(self) -> List[str]:
        """Names of external helper processes this provider may leave running.

        The supervisor terminates any process with one of these names during
        shutdown.
        """
        return []

    @abstractmethod
    def process_usage(self, pid: int) -> ProcessUsage:
        """Return CPU% and memory% for a PID.

        Raises:
            ProcessNotFoundError: If the PID no longer maps to a running
                process. A zombie counts as not running.
        """
        pass

    @abstractmethod
    def network_rate(self, interface: str) -> NetworkRate:
        """Return the RX/TX rate of an interface over one sampling window.

        Raises:
            InterfaceUnavailableError: If the interface cannot be read.
        """
        pass

    @abstractmethod
    def disk_write_rate(self, device: str) -> float:
        """Return kB written per second to a block device.

        Raises:
            DeviceUnavailableError: If the device cannot be read.
        """
        pass

    @abstractmethod
    def free_capacity(self, path: str) -> int:
        """Return free megabytes on the filesystem holding ``path``.

        Raises:
            DeviceUnavailableError: If the filesystem cannot be queried.
        """
        pass

    def host_rates(self, interface: Optional[str], device: Optional[str]) -> HostRates:
        """Return network and disk rates for one system tick.

        A None ``interface`` or ``device`` skips that measurement. Failures
        are recorded per field instead of raised. Providers that measure over
        a window override this so both rates share a single window and a
        tick costs one window, not two.
        """
        rates = HostRates()
        if interface:
            try:
                rates.network = self.network_rate(interface)
            except MetricUnavailableError as e:
                rates.errors['network'] = e
        if device:
            try:
                rates.disk_write = self.disk_write_rate(device)
            except MetricUnavailableError as e:
                rates.errors['disk'] = e
        return rates

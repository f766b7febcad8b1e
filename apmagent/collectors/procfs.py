"""
Metrics provider backed by /proc and psutil.

Host network and disk rates are computed by reading the kernel counters in
``/proc/net/dev`` and ``/proc/diskstats`` twice, ``rate_window`` seconds
apart, and differencing them. A system tick snapshots both files around one
shared window. Per-process usage and free capacity come from
psutil.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import psutil

from apmagent.apm_logging import get_quiet_logger
from apmagent.config import DEFAULT_RATE_WINDOW
from apmagent.errors import (
    DeviceUnavailableError,
    InterfaceUnavailableError,
    MetricUnavailableError,
    ProcessNotFoundError,
)
from apmagent.interfaces.metrics import HostRates, MetricsProvider, NetworkRate, ProcessUsage

# /proc/diskstats counts in 512-byte sectors regardless of the device's block size
SECTOR_SIZE = 512
BYTES_PER_KB = 1024
BYTES_PER_MB = 1024 * 1024


@dataclass
class InterfaceCounters:
    """
    Byte and packet counters for one interface from /proc/net/dev.
    """
    interface_name: str
    rx_bytes: int = 0
    rx_packets: int = 0
    tx_bytes: int = 0
    tx_packets: int = 0


@dataclass
class DiskCounters:
    """
    Write counters for one block device from /proc/diskstats.

    Fields correspond to columns of /proc/diskstats as documented in
    Documentation/admin-guide/iostats.rst.
    """
    device_name: str
    writes_completed: int = 0
    sectors_written: int = 0


def parse_proc_net_dev(content: str) -> List[InterfaceCounters]:
    """
    Parse /proc/net/dev content into a list of InterfaceCounters.

    Args:
        content: Raw content of /proc/net/dev.

    Returns:
        One InterfaceCounters per interface line; malformed lines are skipped.
    """
    interfaces = []
    lines = content.strip().split('\n')

    # First two lines are column headers
    for line in lines[2:]:
        if not line.strip() or ':' not in line:
            continue

        # Format: "iface: rx_bytes rx_packets ... (8 rx fields) tx_bytes tx_packets ..."
        name, _, stats_text = line.partition(':')
        stats = stats_text.split()
        if len(stats) < 16:
            continue

        try:
            interfaces.append(InterfaceCounters(
                interface_name=name.strip(),
                rx_bytes=int(stats[0]),
                rx_packets=int(stats[1]),
                tx_bytes=int(stats[8]),
                tx_packets=int(stats[9]),
            ))
        except ValueError:
            continue

    return interfaces


def parse_proc_diskstats(content: str) -> List[DiskCounters]:
    """
    Parse /proc/diskstats content into a list of DiskCounters.

    Partitions are included; callers pick the device they want by name.
    """
    disks = []

    for line in content.strip().split('\n'):
        parts = line.split()
        # major minor name reads_completed reads_merged sectors_read time_reading
        # writes_completed writes_merged sectors_written ...
        if len(parts) < 14:
            continue

        try:
            disks.append(DiskCounters(
                device_name=parts[2],
                writes_completed=int(parts[7]),
                sectors_written=int(parts[9]),
            ))
        except ValueError:
            continue

    return disks


class ProcfsMetricsProvider(MetricsProvider):
    """MetricsProvider reading Linux kernel counters directly.

    Args:
        rate_window: Seconds between the two counter snapshots of a rate.
        logger: Logger for diagnostics.
        proc_root: Mount point of procfs.
        sleep: Function used to wait out the rate window.
        clock: Monotonic clock used to time the rate window.
    """

    name = "procfs"

    def __init__(self, rate_window: float = DEFAULT_RATE_WINDOW,
                 logger: Optional[logging.Logger] = None,
                 proc_root: str = "/proc",
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.rate_window = rate_window
        self.logger = logger or get_quiet_logger(__name__)
        self.proc_root = proc_root
        self._sleep = sleep
        self._clock = clock

    def _read_proc_file(self, relative_path: str) -> str:
        with open(os.path.join(self.proc_root, relative_path), 'r') as f:
            return f.read()

    def process_usage(self, pid: int) -> ProcessUsage:
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                if proc.status() == psutil.STATUS_ZOMBIE:
                    raise ProcessNotFoundError(pid, f"Process {pid} has exited (zombie)")
                cpu_times = proc.cpu_times()
                created = proc.create_time()
                mem_percent = proc.memory_percent()
        except psutil.NoSuchProcess:
            raise ProcessNotFoundError(pid)
        except psutil.AccessDenied as e:
            raise MetricUnavailableError(f"Access denied reading process {pid}: {e}", source=f"pid {pid}")

        # Same definition as ps %cpu: CPU time over wall time since start
        lifetime = time.time() - created
        if lifetime <= 0:
            cpu_percent = 0.0
        else:
            cpu_percent = (cpu_times.user + cpu_times.system) / lifetime * 100.0
        return ProcessUsage(cpu_percent=cpu_percent, mem_percent=mem_percent)

    def _wait_window(self) -> float:
        """Sleep for the rate window and return how long it actually took."""
        start = self._clock()
        self._sleep(self.rate_window)
        elapsed = self._clock() - start
        return elapsed if elapsed > 0 else self.rate_window

    @staticmethod
    def _network_rate(before: InterfaceCounters, after: InterfaceCounters, elapsed: float) -> NetworkRate:
        # Counter resets (interface re-created) show up as negative deltas
        rx_delta = max(after.rx_bytes - before.rx_bytes, 0)
        tx_delta = max(after.tx_bytes - before.tx_bytes, 0)
        return NetworkRate(
            rx_kbps=rx_delta / BYTES_PER_KB / elapsed,
            tx_kbps=tx_delta / BYTES_PER_KB / elapsed,
        )

    @staticmethod
    def _disk_write_rate(before: DiskCounters, after: DiskCounters, elapsed: float) -> float:
        sectors = max(after.sectors_written - before.sectors_written, 0)
        return sectors * SECTOR_SIZE / BYTES_PER_KB / elapsed

    def _interface_counters(self, interface: str) -> InterfaceCounters:
        try:
            content = self._read_proc_file("net/dev")
        except OSError as e:
            raise InterfaceUnavailableError(interface, str(e))
        for counters in parse_proc_net_dev(content):
            if counters.interface_name == interface:
                return counters
        raise InterfaceUnavailableError(interface, "not listed in /proc/net/dev")

    def network_rate(self, interface: str) -> NetworkRate:
        before = self._interface_counters(interface)
        elapsed = self._wait_window()
        return self._network_rate(before, self._interface_counters(interface), elapsed)

    def _disk_counters(self, device: str) -> DiskCounters:
        try:
            content = self._read_proc_file("diskstats")
        except OSError as e:
            raise DeviceUnavailableError(device, str(e))
        for counters in parse_proc_diskstats(content):
            if counters.device_name == device:
                return counters
        raise DeviceUnavailableError(device, "not listed in /proc/diskstats")

    def disk_write_rate(self, device: str) -> float:
        before = self._disk_counters(device)
        elapsed = self._wait_window()
        return self._disk_write_rate(before, self._disk_counters(device), elapsed)

    def host_rates(self, interface: Optional[str], device: Optional[str]) -> HostRates:
        """Snapshot both counter files, wait one window, snapshot again."""
        rates = HostRates()
        readers = {}
        if interface:
            readers['network'] = lambda: self._interface_counters(interface)
        if device:
            readers['disk'] = lambda: self._disk_counters(device)

        before = {}
        for key, read in readers.items():
            try:
                before[key] = read()
            except MetricUnavailableError as e:
                rates.errors[key] = e
        if not before:
            return rates

        elapsed = self._wait_window()
        for key, first in before.items():
            try:
                second = readers[key]()
            except MetricUnavailableError as e:
                rates.errors[key] = e
                continue
            if key == 'network':
                rates.network = self._network_rate(first, second, elapsed)
            else:
                rates.disk_write = self._disk_write_rate(first, second, elapsed)
        return rates

    def free_capacity(self, path: str) -> int:
        try:
            usage = psutil.disk_usage(path)
        except OSError as e:
            raise DeviceUnavailableError(path, str(e))
        return usage.free // BYTES_PER_MB

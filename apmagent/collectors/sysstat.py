"""
Metrics provider that shells out to the classic command line tools.

Readings come from ``ps``, ``ifstat`` (iproute2), ``iostat`` (sysstat) and
``df``. Network rates are read from a background ``ifstat -d`` daemon started
in :meth:`SysstatMetricsProvider.prepare`; that daemon is the helper process
the supervisor cleans up on shutdown.
"""

import json
import logging
import subprocess
from typing import Any, Dict, List, Optional

from apmagent.apm_logging import get_quiet_logger
from apmagent.config import COMMAND_TIMEOUT, DEFAULT_RATE_WINDOW
from apmagent.errors import (
    DeviceUnavailableError,
    InterfaceUnavailableError,
    MetricUnavailableError,
    ProcessNotFoundError,
)
from apmagent.interfaces.metrics import MetricsProvider, NetworkRate, ProcessUsage
from apmagent.utils import CommandExecutor

IFSTAT_BIN = "ifstat"
IOSTAT_BIN = "iostat"
DF_BIN = "df"
PS_BIN = "ps"

REQUIRED_TOOLS = [PS_BIN, IFSTAT_BIN, IOSTAT_BIN, DF_BIN]


def parse_ps_output(pid: int, stdout: str) -> ProcessUsage:
    """Parse ``ps -o stat=,%cpu=,%mem=`` output for one PID."""
    fields = stdout.split()
    if len(fields) < 3:
        raise ProcessNotFoundError(pid)
    state, cpu, mem = fields[0], fields[1], fields[2]
    if state.startswith('Z'):
        raise ProcessNotFoundError(pid, f"Process {pid} has exited (zombie)")
    try:
        return ProcessUsage(cpu_percent=float(cpu), mem_percent=float(mem))
    except ValueError:
        raise MetricUnavailableError(f"Unexpected ps output for {pid}: {stdout.strip()}", source=PS_BIN)


def parse_ifstat_json(interface: str, stdout: str) -> NetworkRate:
    """Parse ``ifstat -j`` output.

    The document has one top-level key (the history name, usually "kernel")
    mapping interface names to counters sampled by the daemon.
    """
    try:
        document = json.loads(stdout)
        history = document[sorted(document.keys())[0]]
        counters = history[interface]
        return NetworkRate(
            rx_kbps=float(counters["rx_bytes"]) / 1024,
            tx_kbps=float(counters["tx_bytes"]) / 1024,
        )
    except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
        raise InterfaceUnavailableError(interface, f"cannot parse ifstat output: {e}")


def parse_iostat_json(device: str, stdout: str) -> float:
    """Parse ``iostat -d -o JSON`` output and return ``kB_wrtn/s`` for a device."""
    try:
        document = json.loads(stdout)
        statistics = document["sysstat"]["hosts"][0]["statistics"]
        for disk in statistics[-1]["disk"]:
            if disk.get("disk_device") == device:
                return float(disk["kB_wrtn/s"])
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise DeviceUnavailableError(device, f"cannot parse iostat output: {e}")
    raise DeviceUnavailableError(device, "not reported by iostat")


def parse_df_output(path: str, stdout: str) -> int:
    """Return the available-MB column from ``df -P -m`` output."""
    lines = [line for line in stdout.strip().split('\n') if line.strip()]
    if len(lines) < 2:
        raise DeviceUnavailableError(path, "no filesystem line in df output")
    fields = lines[1].split()
    try:
        return int(fields[3])
    except (IndexError, ValueError):
        raise DeviceUnavailableError(path, f"unexpected df output: {lines[1]}")


class SysstatMetricsProvider(MetricsProvider):
    """MetricsProvider built on ps, ifstat, iostat and df.

    Every command is bounded by ``command_timeout``.
    """

    name = "sysstat"

    def __init__(self, rate_window: float = DEFAULT_RATE_WINDOW,
                 logger: Optional[logging.Logger] = None,
                 command_timeout: float = COMMAND_TIMEOUT):
        self.rate_window = rate_window
        self.logger = logger or get_quiet_logger(__name__)
        self.command_timeout = command_timeout
        self.daemon: Optional[subprocess.Popen] = None

    @property
    def helper_process_names(self) -> List[str]:
        return [IFSTAT_BIN]

    def prepare(self, interface: str, interval: float) -> None:
        scan_interval = max(1, int(interval))
        command = [IFSTAT_BIN, "-d", str(scan_interval), interface]
        self.logger.verbose(f"Starting network statistics daemon: {' '.join(command)}")
        try:
            self.daemon = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            # Network columns will be recorded as missing
            self.logger.warning(f"Could not start {IFSTAT_BIN} daemon: {e}")

    def _run(self, command: List[str], source: str) -> Dict[str, Any]:
        try:
            stdout, stderr, return_code = CommandExecutor(self.logger).execute(
                command, timeout=self.command_timeout)
        except subprocess.TimeoutExpired:
            raise MetricUnavailableError(
                f"{source} did not finish within {self.command_timeout} seconds", source=source)
        except OSError as e:
            raise MetricUnavailableError(f"Cannot run {source}: {e}", source=source)
        return {"stdout": stdout, "stderr": stderr, "return_code": return_code}

    def process_usage(self, pid: int) -> ProcessUsage:
        result = self._run([PS_BIN, "-p", str(pid), "-o", "stat=,%cpu=,%mem="], PS_BIN)
        # ps exits 1 when no process matches
        if result["return_code"] != 0:
            raise ProcessNotFoundError(pid)
        return parse_ps_output(pid, result["stdout"])

    def network_rate(self, interface: str) -> NetworkRate:
        try:
            result = self._run([IFSTAT_BIN, "-j", interface], IFSTAT_BIN)
        except MetricUnavailableError as e:
            raise InterfaceUnavailableError(interface, str(e.error.message))
        if result["return_code"] != 0:
            raise InterfaceUnavailableError(interface, result["stderr"].strip())
        return parse_ifstat_json(interface, result["stdout"])

    def disk_write_rate(self, device: str) -> float:
        report_interval = max(1, int(round(self.rate_window)))
        # -y drops the since-boot report so the figure covers only this window
        command = [IOSTAT_BIN, "-d", "-y", "-o", "JSON", device, str(report_interval), "1"]
        try:
            result = self._run(command, IOSTAT_BIN)
        except MetricUnavailableError as e:
            raise DeviceUnavailableError(device, str(e.error.message))
        if result["return_code"] != 0:
            raise DeviceUnavailableError(device, result["stderr"].strip())
        return parse_iostat_json(device, result["stdout"])

    def free_capacity(self, path: str) -> int:
        try:
            result = self._run([DF_BIN, "-P", "-m", path], DF_BIN)
        except MetricUnavailableError as e:
            raise DeviceUnavailableError(path, str(e.error.message))
        if result["return_code"] != 0:
            raise DeviceUnavailableError(path, result["stderr"].strip())
        return parse_df_output(path, result["stdout"])

    def close(self) -> None:
        """Stop the ifstat daemon launched by :meth:`prepare`, if still ours."""
        if self.daemon is None:
            return
        if self.daemon.poll() is None:
            self.daemon.terminate()
            try:
                self.daemon.wait(timeout=COMMAND_TIMEOUT)
            except subprocess.TimeoutExpired:
                self.daemon.kill()
                self.daemon.wait()
        self.daemon = None

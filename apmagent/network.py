"""
Host address and device discovery.

NetworkAddressResolver finds the host's primary IPv4 address, which every
workload receives as its single argument. The detect_* helpers pick the
network interface and block device the system sampler reports on when the
user does not name them.
"""

import ipaddress
import logging
import os
import socket
from typing import Optional

import psutil

from apmagent.apm_logging import get_quiet_logger

LOOPBACK_ADDRESS = "127.0.0.1"

# Never contacted: connecting a UDP socket only selects a route
ROUTE_PROBE_ADDRESS = ("192.0.2.1", 9)


def _is_usable_ipv4(address: str) -> bool:
    try:
        ip = ipaddress.IPv4Address(address)
    except ipaddress.AddressValueError:
        return False
    return not (ip.is_loopback or ip.is_link_local or ip.is_unspecified)


class NetworkAddressResolver:
    """Resolves the host's primary IPv4 address once and caches it.

    Resolution order:
        1. The source address the kernel would use for an outbound route.
        2. The first non-loopback IPv4 address of any interface.
        3. 127.0.0.1.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_quiet_logger(__name__)
        self._address: Optional[str] = None

    def _route_source_address(self) -> Optional[str]:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.connect(ROUTE_PROBE_ADDRESS)
            address = sock.getsockname()[0]
        except OSError as e:
            self.logger.debug(f"No outbound route for address discovery: {e}")
            return None
        finally:
            sock.close()
        return address if _is_usable_ipv4(address) else None

    def _first_interface_address(self) -> Optional[str]:
        for name, addresses in sorted(psutil.net_if_addrs().items()):
            for addr in addresses:
                if addr.family == socket.AF_INET and _is_usable_ipv4(addr.address):
                    return addr.address
        return None

    def resolve(self) -> str:
        if self._address is None:
            address = self._route_source_address() or self._first_interface_address()
            if address is None:
                self.logger.warning(f"No network address found, workloads will receive {LOOPBACK_ADDRESS}")
                address = LOOPBACK_ADDRESS
            self._address = address
            self.logger.verbose(f"Primary network address: {address}")
        return self._address


def detect_interface(address: str, logger: Optional[logging.Logger] = None) -> Optional[str]:
    """Return the name of the interface that owns ``address``.

    The loopback address maps to the loopback interface.
    """
    logger = logger or get_quiet_logger(__name__)
    for name, addresses in psutil.net_if_addrs().items():
        for addr in addresses:
            if addr.family == socket.AF_INET and addr.address == address:
                logger.verbose(f"Reporting network rates for interface {name}")
                return name
    logger.warning(f"No interface owns {address}; network columns will be recorded as missing")
    return None


def detect_disk_device(path: str, logger: Optional[logging.Logger] = None) -> Optional[str]:
    """Return the block device name (e.g. ``sda1``) of the filesystem holding ``path``.

    The partition whose mount point is the longest prefix of ``path`` wins.
    Filesystems without a /dev node (tmpfs, overlay) yield None.
    """
    logger = logger or get_quiet_logger(__name__)
    target = os.path.realpath(path)
    best = None
    for partition in psutil.disk_partitions(all=True):
        mountpoint = partition.mountpoint
        if target != mountpoint and not target.startswith(mountpoint.rstrip(os.sep) + os.sep):
            continue
        if best is None or len(mountpoint) > len(best.mountpoint):
            best = partition

    if best is None or not best.device.startswith("/dev/"):
        logger.warning(f"No block device found for {path}; disk writes will be recorded as missing")
        return None

    device = os.path.basename(os.path.realpath(best.device))
    logger.verbose(f"Reporting disk writes for device {device} (mounted at {best.mountpoint})")
    return device

"""
Tests for apmagent.network module.

Tests cover:
- Primary address resolution order and caching
- Interface detection from an address
- Block device detection from a path
"""

import os
import socket
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from apmagent.network import (
    LOOPBACK_ADDRESS,
    NetworkAddressResolver,
    detect_disk_device,
    detect_interface,
)


def ipv4(address):
    return SimpleNamespace(family=socket.AF_INET, address=address)


def ipv6(address):
    return SimpleNamespace(family=socket.AF_INET6, address=address)


SAMPLE_IF_ADDRS = {
    'lo': [ipv4('127.0.0.1'), ipv6('::1')],
    'eth0': [ipv4('10.1.2.3'), ipv6('fe80::1')],
    'docker0': [ipv4('172.17.0.1')],
}


def partition(device, mountpoint):
    return SimpleNamespace(device=device, mountpoint=mountpoint, fstype="ext4", opts="rw")


class TestNetworkAddressResolver:
    """Tests for NetworkAddressResolver."""

    def test_prefers_route_source_address(self, mock_logger):
        resolver = NetworkAddressResolver(logger=mock_logger)
        with patch.object(resolver, '_route_source_address', return_value='192.168.7.20'):
            assert resolver.resolve() == '192.168.7.20'

    def test_route_probe_uses_udp_socket(self, mock_logger):
        sock = MagicMock()
        sock.getsockname.return_value = ('10.9.8.7', 40000)
        resolver = NetworkAddressResolver(logger=mock_logger)
        with patch('apmagent.network.socket.socket', return_value=sock) as socket_factory:
            assert resolver.resolve() == '10.9.8.7'
        socket_factory.assert_called_once_with(socket.AF_INET, socket.SOCK_DGRAM)
        sock.close.assert_called_once()

    def test_falls_back_to_interface_address(self, mock_logger):
        resolver = NetworkAddressResolver(logger=mock_logger)
        with patch.object(resolver, '_route_source_address', return_value=None), \
                patch('apmagent.network.psutil.net_if_addrs', return_value=SAMPLE_IF_ADDRS):
            # docker0 sorts first and is a usable address
            assert resolver.resolve() == '172.17.0.1'

    def test_unroutable_probe_falls_back(self, mock_logger):
        sock = MagicMock()
        sock.connect.side_effect = OSError("Network is unreachable")
        resolver = NetworkAddressResolver(logger=mock_logger)
        with patch('apmagent.network.socket.socket', return_value=sock), \
                patch('apmagent.network.psutil.net_if_addrs', return_value={'eth0': [ipv4('10.1.2.3')]}):
            assert resolver.resolve() == '10.1.2.3'
        sock.close.assert_called_once()

    def test_falls_back_to_loopback(self, mock_logger):
        resolver = NetworkAddressResolver(logger=mock_logger)
        with patch.object(resolver, '_route_source_address', return_value=None), \
                patch('apmagent.network.psutil.net_if_addrs', return_value={'lo': [ipv4('127.0.0.1')]}):
            assert resolver.resolve() == LOOPBACK_ADDRESS
        mock_logger.warning.assert_called_once()

    def test_result_is_cached(self, mock_logger):
        resolver = NetworkAddressResolver(logger=mock_logger)
        with patch.object(resolver, '_route_source_address', return_value='10.0.0.5') as probe:
            resolver.resolve()
            resolver.resolve()
        probe.assert_called_once()


class TestDetectInterface:
    """Tests for detect_interface."""

    def test_finds_owning_interface(self, mock_logger):
        with patch('apmagent.network.psutil.net_if_addrs', return_value=SAMPLE_IF_ADDRS):
            assert detect_interface('10.1.2.3', logger=mock_logger) == 'eth0'

    def test_loopback_address(self, mock_logger):
        with patch('apmagent.network.psutil.net_if_addrs', return_value=SAMPLE_IF_ADDRS):
            assert detect_interface(LOOPBACK_ADDRESS, logger=mock_logger) == 'lo'

    def test_unknown_address(self, mock_logger):
        with patch('apmagent.network.psutil.net_if_addrs', return_value=SAMPLE_IF_ADDRS):
            assert detect_interface('192.0.2.50', logger=mock_logger) is None
        mock_logger.warning.assert_called_once()


class TestDetectDiskDevice:
    """Tests for detect_disk_device."""

    def test_longest_mountpoint_wins(self, tmp_path, mock_logger):
        data_mount = os.path.realpath(str(tmp_path))
        partitions = [
            partition('/dev/vdz1', '/'),
            partition('/dev/vdz2', data_mount),
        ]
        with patch('apmagent.network.psutil.disk_partitions', return_value=partitions):
            assert detect_disk_device(str(tmp_path / "metrics"), logger=mock_logger) == 'vdz2'

    def test_root_filesystem(self, mock_logger):
        partitions = [partition('/dev/vdz1', '/'), partition('/dev/vdz2', '/srv/data')]
        with patch('apmagent.network.psutil.disk_partitions', return_value=partitions):
            assert detect_disk_device('/', logger=mock_logger) == 'vdz1'

    def test_prefix_must_match_whole_component(self, mock_logger):
        """/srv/database is not under the /srv/data mount."""
        partitions = [partition('/dev/vdz1', '/'), partition('/dev/vdz2', '/srv/data')]
        with patch('apmagent.network.psutil.disk_partitions', return_value=partitions), \
                patch('apmagent.network.os.path.realpath', side_effect=lambda p: p):
            assert detect_disk_device('/srv/database', logger=mock_logger) == 'vdz1'

    def test_virtual_filesystem_has_no_device(self, mock_logger):
        partitions = [partition('overlay', '/')]
        with patch('apmagent.network.psutil.disk_partitions', return_value=partitions):
            assert detect_disk_device('/', logger=mock_logger) is None
        mock_logger.warning.assert_called_once()

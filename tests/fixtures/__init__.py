"""
Test fixtures package for apmagent tests.

This package provides reusable mock classes, sample data and workload
helpers for testing samplers, metrics providers and the supervisor.
"""

from tests.fixtures.mock_executor import MockCommandExecutor
from tests.fixtures.mock_provider import MockMetricsProvider
from tests.fixtures.sample_data import (
    SAMPLE_DF_OUTPUT,
    SAMPLE_DISKSTATS,
    SAMPLE_DISKSTATS_LATER,
    SAMPLE_IFSTAT_JSON,
    SAMPLE_IOSTAT_JSON,
    SAMPLE_NET_DEV,
    SAMPLE_NET_DEV_LATER,
    SAMPLE_PS_OUTPUT,
    SAMPLE_PS_ZOMBIE_OUTPUT,
)
from tests.fixtures.workloads import StepTime, make_tracked, read_rows, wait_for, write_workload

__all__ = [
    # Mock classes
    'MockCommandExecutor',
    'MockMetricsProvider',
    # Sample data
    'SAMPLE_DF_OUTPUT',
    'SAMPLE_DISKSTATS',
    'SAMPLE_DISKSTATS_LATER',
    'SAMPLE_IFSTAT_JSON',
    'SAMPLE_IOSTAT_JSON',
    'SAMPLE_NET_DEV',
    'SAMPLE_NET_DEV_LATER',
    'SAMPLE_PS_OUTPUT',
    'SAMPLE_PS_ZOMBIE_OUTPUT',
    # Workload helpers
    'StepTime',
    'make_tracked',
    'read_rows',
    'wait_for',
    'write_workload',
]

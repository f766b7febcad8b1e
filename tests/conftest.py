"""
Shared pytest fixtures for apmagent tests.

This module provides fixtures that are automatically available to all tests.
"""

from unittest.mock import MagicMock

import pytest

from apmagent.timeseries import RunClock
from tests.fixtures import MockMetricsProvider, StepTime, write_workload


LOG_LEVELS = ['debug', 'info', 'warning', 'error', 'critical',
              'status', 'verbose', 'verboser', 'ridiculous', 'result']


# =============================================================================
# Logger Fixtures
# =============================================================================

@pytest.fixture
def mock_logger():
    """
    Create a mock logger that captures all log calls.

    Usage:
        def test_something(mock_logger):
            some_function(logger=mock_logger)
            mock_logger.status.assert_called_once()
    """
    logger = MagicMock()
    for level in LOG_LEVELS:
        setattr(logger, level, MagicMock())
    return logger


@pytest.fixture
def capturing_logger():
    """
    Create a logger that captures messages to lists keyed by level.

    Usage:
        def test_something(capturing_logger):
            logger, messages = capturing_logger
            some_function(logger=logger)
            assert "expected" in messages['warning'][0]
    """
    messages = {level: [] for level in LOG_LEVELS}
    logger = MagicMock()

    def make_capture(level):
        def capture(msg, *args, **kwargs):
            messages[level].append(msg)
        return capture

    for level in messages:
        setattr(logger, level, make_capture(level))

    return logger, messages


# =============================================================================
# Sampling Fixtures
# =============================================================================

@pytest.fixture
def step_clock():
    """RunClock whose elapsed seconds go 1, 2, 3... on successive reads."""
    return RunClock(time_func=StepTime())


@pytest.fixture
def mock_provider():
    return MockMetricsProvider()


@pytest.fixture
def output_dir(tmp_path):
    """Empty folder for metrics files."""
    path = tmp_path / "metrics"
    path.mkdir()
    return path


@pytest.fixture
def make_workload(tmp_path):
    """
    Factory for executable Python scripts used as workloads.

    Usage:
        def test_something(make_workload):
            path = make_workload("sleeper", sleep=30)
    """
    workload_dir = tmp_path / "workloads"
    workload_dir.mkdir(exist_ok=True)

    def factory(name, **kwargs):
        return write_workload(workload_dir, name, **kwargs)

    return factory


# =============================================================================
# Environment Fixtures
# =============================================================================

@pytest.fixture
def clean_env(monkeypatch):
    """
    Remove locale and terminal variables that change CLI output.
    """
    for var in ['TERM', 'COLUMNS', 'NO_COLOR']:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch

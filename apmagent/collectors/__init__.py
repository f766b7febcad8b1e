"""
Metrics provider implementations.

Use :func:`create_provider` to build the provider named by the
``--metrics-source`` option.
"""

from typing import Dict, Type

from apmagent.collectors.procfs import ProcfsMetricsProvider
from apmagent.collectors.sysstat import SysstatMetricsProvider
from apmagent.config import METRICS_SOURCES
from apmagent.errors import ConfigurationError
from apmagent.interfaces.metrics import MetricsProvider

PROVIDERS: Dict[str, Type[MetricsProvider]] = {
    ProcfsMetricsProvider.name: ProcfsMetricsProvider,
    SysstatMetricsProvider.name: SysstatMetricsProvider,
}


def create_provider(source: str, rate_window: float, logger=None) -> MetricsProvider:
    """Instantiate the metrics provider registered under ``source``."""
    provider_class = PROVIDERS.get(source)
    if provider_class is None:
        raise ConfigurationError(
            f"Unknown metrics source: {source}",
            parameter="metrics_source",
            expected=METRICS_SOURCES,
            actual=source,
        )
    return provider_class(rate_window=rate_window, logger=logger)


__all__ = [
    'PROVIDERS',
    'create_provider',
    'ProcfsMetricsProvider',
    'SysstatMetricsProvider',
]

"""
Interface definitions for apmagent.

Available Interfaces:
    - MetricsProvider: raw OS queries used by the samplers
    - ProcessUsage: CPU/memory reading for one process
    - NetworkRate: RX/TX reading for one interface
    - HostRates: network and disk rates from one shared window
"""

from apmagent.interfaces.metrics import (
    MetricsProvider,
    ProcessUsage,
    NetworkRate,
    HostRates,
)

__all__ = [
    'MetricsProvider',
    'ProcessUsage',
    'NetworkRate',
    'HostRates',
]

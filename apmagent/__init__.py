"""
apmagent - lightweight application performance monitoring agent.

Launches workload executables and samples per-process and host-level
resource usage at a fixed interval, writing each metric stream to its own
append-only CSV time series.
"""

VERSION = "0.1.0"
__version__ = VERSION

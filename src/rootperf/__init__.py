"""
Root nameserver performance.

PerformanceCache holds the last measured latency per root server address and is
the only state kept between runs. RootProber fills it.
"""

from .cache import PerformanceCache, ServerPerformance
from .prober import RootProber

__all__ = ["PerformanceCache", "ServerPerformance", "RootProber"]

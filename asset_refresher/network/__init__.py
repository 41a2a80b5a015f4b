"""
Network Layer.

This package watches connectivity and performs the conditional freshness
probe against the asset's origin server.
"""

from .monitor import NetworkMonitor, Subscription
from .revalidation import RevalidationChecker

__all__ = ["NetworkMonitor", "RevalidationChecker", "Subscription"]

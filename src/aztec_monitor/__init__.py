"""Aztec governance monitor."""

from .config import MonitorConfig
from .errors import ConfigurationError, CycleAbortedError, MonitorError, RPCClientError
from .monitor import CycleResult, GovernanceMonitor, MonitorScheduler
from .state_aggregator import StateAggregator
from .transition_detector import DetectionResult, NotificationPolicy, detect

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "CycleAbortedError",
    "CycleResult",
    "DetectionResult",
    "GovernanceMonitor",
    "MonitorConfig",
    "MonitorError",
    "MonitorScheduler",
    "NotificationPolicy",
    "RPCClientError",
    "StateAggregator",
    "detect",
]

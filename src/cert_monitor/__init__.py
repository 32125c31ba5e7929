"""
TLS Certificate Expiry Monitor

Tracks the expiry of TLS certificates served by registered endpoints and raises
throttled, tiered notifications as expiry approaches.
"""

__version__ = "0.1.0"
__author__ = "Certificate Monitor Team"

from .classifier import ExpiryClassifier, ExpiryThresholds, SilencePeriods
from .config import MonitorConfig, load_config, validate_config, get_default_config_path
from .errors import CertMonitorError
from .models import MonitorRecord, EndpointDescriptor, Tier
from .monitor import SSLMonitor
from .notifier import NotificationAggregator, NotificationLog
from .storage import Storage, MemoryStorage, JsonFileStorage
from .reporter import Reporter

__all__ = [
    'ExpiryClassifier',
    'ExpiryThresholds',
    'SilencePeriods',
    'MonitorConfig',
    'load_config',
    'validate_config',
    'get_default_config_path',
    'CertMonitorError',
    'MonitorRecord',
    'EndpointDescriptor',
    'Tier',
    'SSLMonitor',
    'NotificationAggregator',
    'NotificationLog',
    'Storage',
    'MemoryStorage',
    'JsonFileStorage',
    'Reporter',
]

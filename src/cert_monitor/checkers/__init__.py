"""
Network probes for certificate monitoring.

Each checker wraps one blocking network operation behind an async interface.
"""

from .base_checker import BaseChecker
from .ssl import SSLChecker, probe_hostname
from .dns import DNSChecker

__all__ = ['BaseChecker', 'SSLChecker', 'DNSChecker', 'probe_hostname']

"""
Base checker infrastructure for certificate monitoring.

Provides the abstract base class shared by the network probes (TLS and DNS).
"""

import asyncio
from abc import ABC, abstractmethod
from functools import partial
from typing import Any, Callable


class BaseChecker(ABC):
    """
    Abstract base class for all network probes.

    All checker implementations must inherit from this class and implement
    the check() method. Blocking socket and resolver work is pushed to the
    default executor so a probe never blocks the event loop.
    """

    def __init__(self, timeout: float = 10):
        """
        Initialize the checker.

        Args:
            timeout: Maximum time in seconds to wait for a single network operation (default: 10)
        """
        self.timeout = timeout

    @abstractmethod
    async def check(self, hostname: str, **kwargs) -> Any:
        """
        Execute the probe for the specified hostname.

        Args:
            hostname: The hostname to probe
            **kwargs: Additional parameters specific to the probe type

        Returns:
            Probe-specific result object

        Raises:
            CertMonitorError subclasses describing the failure
        """
        pass

    async def _run_blocking(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking callable in the default thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

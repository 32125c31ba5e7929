"""
DNS fallback resolver for certificate monitoring.

Seeds the informational record type and address of a new monitor entry when
the caller does not already know them.
"""

import logging
from typing import List, Optional

import dns.exception
import dns.resolver

from ..errors import DnsResolutionError
from ..models import DnsRecord
from .base_checker import BaseChecker

logger = logging.getLogger(__name__)


class DNSChecker(BaseChecker):
    """
    Resolver that returns the first record found, trying A, CNAME, then AAAA.

    A failed lookup of one type is ignored and the next type attempted.
    """

    RECORD_TYPES = ('A', 'CNAME', 'AAAA')

    def __init__(self, timeout: float = 5.0, nameservers: Optional[List[str]] = None):
        super().__init__(timeout=timeout)
        self.nameservers = nameservers

    async def check(self, hostname: str, **kwargs) -> DnsRecord:
        """
        Resolve ``hostname`` (a trailing ``:port`` is stripped).

        Args:
            hostname: Hostname, optionally with a port
            **kwargs: Additional parameters (unused)

        Returns:
            DnsRecord with the record type and first address

        Raises:
            DnsResolutionError: If none of the record types resolved
        """
        host = hostname.split(':')[0]

        for record_type in self.RECORD_TYPES:
            records = await self._query_record(host, record_type)
            if records:
                logger.debug(f"{record_type} record for {host}: {records[0]}")
                return DnsRecord(type=record_type, address=records[0])

        raise DnsResolutionError(f"No DNS record found: {host}")

    async def _query_record(self, hostname: str, record_type: str) -> List[str]:
        """
        Query one record type, returning an empty list on any DNS failure.

        Args:
            hostname: The hostname to query
            record_type: Type of DNS record (A, CNAME, AAAA)

        Returns:
            List of record values as strings
        """
        try:
            return await self._run_blocking(self._query_record_sync, hostname, record_type)
        except dns.resolver.NXDOMAIN:
            logger.debug(f"{record_type} lookup for {hostname}: domain does not exist")
        except dns.resolver.NoAnswer:
            logger.debug(f"{record_type} lookup for {hostname}: no answer")
        except dns.resolver.NoNameservers:
            logger.debug(f"{record_type} lookup for {hostname}: all nameservers failed")
        except dns.exception.Timeout:
            logger.debug(f"{record_type} lookup for {hostname} timed out after {self.timeout}s")
        except dns.exception.DNSException as e:
            logger.debug(f"{record_type} lookup for {hostname} failed: {e}")
        return []

    def _query_record_sync(self, hostname: str, record_type: str) -> List[str]:
        """
        Synchronous helper to query DNS records (runs in thread pool).

        Args:
            hostname: The hostname to query
            record_type: Type of DNS record

        Returns:
            List of record values as strings
        """
        resolver = dns.resolver.Resolver()
        resolver.timeout = self.timeout
        resolver.lifetime = self.timeout

        if self.nameservers:
            resolver.nameservers = self.nameservers

        answers = resolver.resolve(hostname, record_type)

        if record_type == 'CNAME':
            return [answer.to_text().rstrip('.') for answer in answers]
        return [answer.to_text() for answer in answers]

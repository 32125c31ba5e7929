"""
TLS certificate fetcher for certificate monitoring.

Opens a TLS handshake to an endpoint and returns the peer certificate's
validity end and DNS subject alternative names. Trust is never verified:
this is a monitoring probe, not a security check.
"""

import asyncio
import logging
import socket
import ssl
import time
from datetime import datetime, timezone
from typing import List, Optional

from cryptography.x509 import DNSName, ExtensionNotFound, SubjectAlternativeName
from OpenSSL import crypto

from ..errors import FetchError, FetchTimeoutError, NoCertificateError
from ..models import DEFAULT_PORT, CertificateInfo
from .base_checker import BaseChecker

logger = logging.getLogger(__name__)

# A handshake cannot target a literal wildcard, so "*.example.com" is probed
# as "<label>.example.com".
WILDCARD_PROBE_LABEL = "cert-probe"


def probe_hostname(hostname: str) -> str:
    """Rewrite a leading ``*.`` to a concrete label that can be connected to."""
    if hostname.startswith('*.'):
        return f"{WILDCARD_PROBE_LABEL}.{hostname[2:]}"
    return hostname


class SSLChecker(BaseChecker):
    """
    Fetcher for the TLS certificate presented by an endpoint.

    The socket connect and every read use ``connect_timeout``; the whole probe
    is additionally aborted after ``abort_timeout``.
    """

    def __init__(self, connect_timeout: float = 2.0, abort_timeout: float = 4.0):
        super().__init__(timeout=connect_timeout)
        self.abort_timeout = abort_timeout

    async def check(self, hostname: str, port: int = DEFAULT_PORT, **kwargs) -> CertificateInfo:
        """
        Fetch the certificate presented by ``hostname:port``.

        Args:
            hostname: Hostname as monitored, may start with ``*.``
            port: TCP port (default: 443)
            **kwargs: Additional parameters (unused)

        Returns:
            CertificateInfo with notAfter and the DNS SAN entries

        Raises:
            FetchTimeoutError: If the connection or handshake timed out
            NoCertificateError: If no (parseable) certificate was returned
            FetchError: For any other connection or TLS failure
        """
        probe = probe_hostname(hostname)
        start = time.time()
        logger.debug(f"Fetching certificate from {probe}:{port} (monitored as {hostname})")

        try:
            cert_der = await asyncio.wait_for(
                self._run_blocking(self._get_certificate_sync, probe, port),
                timeout=self.abort_timeout
            )
        except (asyncio.TimeoutError, socket.timeout):
            logger.warning(f"Certificate fetch from {probe}:{port} timed out")
            raise FetchTimeoutError(
                f"Request to {hostname}:{port} timed out, please check the network connection"
            )
        except socket.gaierror as e:
            logger.warning(f"Failed to resolve {probe}: {e}")
            raise FetchError(f"Request failed: unable to resolve {probe}: {e}") from e
        except ssl.SSLError as e:
            logger.warning(f"TLS handshake with {probe}:{port} failed: {e}")
            raise FetchError(f"Request failed: SSL error: {e}") from e
        except OSError as e:
            logger.warning(f"Connection to {probe}:{port} failed: {e}")
            raise FetchError(f"Request failed: {e}") from e

        if not cert_der:
            raise NoCertificateError(f"Unable to get certificate information from {hostname}:{port}")

        info = self._parse_certificate(cert_der, hostname, port)
        logger.debug(
            f"Certificate for {hostname}:{port} fetched in {time.time() - start:.3f}s: "
            f"notAfter={info.not_after.isoformat()}, SANs={info.sans}"
        )
        return info

    def _get_certificate_sync(self, hostname: str, port: int) -> Optional[bytes]:
        """
        Synchronous helper to get the DER certificate (runs in thread pool).

        Args:
            hostname: The hostname to connect to, also sent as SNI
            port: The port to connect to

        Returns:
            DER-encoded peer certificate, or None if the peer sent none
        """
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

        with socket.create_connection((hostname, port), timeout=self.timeout) as sock:
            with context.wrap_socket(sock, server_hostname=hostname) as ssock:
                return ssock.getpeercert(binary_form=True)

    def _parse_certificate(self, cert_der: bytes, hostname: str, port: int) -> CertificateInfo:
        """
        Parse a DER certificate into CertificateInfo.

        Raises:
            NoCertificateError: If the bytes are not a certificate
        """
        try:
            x509 = crypto.load_certificate(crypto.FILETYPE_ASN1, cert_der)
        except crypto.Error as e:
            raise NoCertificateError(f"Unable to parse certificate from {hostname}:{port}: {e}") from e

        # notAfter format: b'20251105103000Z'
        not_after_raw = x509.get_notAfter() or b''
        try:
            not_after = datetime.strptime(not_after_raw.decode('ascii'), '%Y%m%d%H%M%SZ')
            not_after = not_after.replace(tzinfo=timezone.utc)
        except ValueError:
            not_after = x509.to_cryptography().not_valid_after_utc

        subject = x509.get_subject().commonName
        issuer = x509.get_issuer().organizationName or x509.get_issuer().commonName

        return CertificateInfo(
            hostname=hostname,
            port=port,
            not_after=not_after,
            sans=self._extract_sans(x509),
            subject=subject,
            issuer=issuer
        )

    def _extract_sans(self, x509: crypto.X509) -> List[str]:
        """DNS names from the subjectAltName extension, in certificate order."""
        try:
            ext = x509.to_cryptography().extensions.get_extension_for_class(SubjectAlternativeName)
        except ExtensionNotFound:
            return []
        return list(ext.value.get_values_for_type(DNSName))

"""
Tests for the TLS certificate fetcher.

Tests certificate parsing, wildcard probe rewriting, and error mapping.
"""

import socket
import ssl
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from cert_monitor.checkers.ssl import SSLChecker, probe_hostname, WILDCARD_PROBE_LABEL
from cert_monitor.errors import FetchError, FetchTimeoutError, NoCertificateError
from cert_monitor.models import CertificateInfo


NOT_AFTER = datetime(2030, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def make_certificate_der(sans, not_after=NOT_AFTER, common_name="example.com", issuer_org="Test CA"):
    """Build a self-signed DER certificate with the given DNS SANs."""
    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    issuer = x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, issuer_org),
        x509.NameAttribute(NameOID.COMMON_NAME, "Test Root"),
    ])
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_after - timedelta(days=90))
        .not_valid_after(not_after)
    )
    if sans:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(name) for name in sans]),
            critical=False
        )
    cert = builder.sign(key, hashes.SHA256())
    return cert.public_bytes(serialization.Encoding.DER)


@pytest.fixture
def ssl_checker():
    """Create an SSLChecker instance for testing."""
    return SSLChecker(connect_timeout=2.0, abort_timeout=4.0)


class TestProbeHostname:
    """Tests for wildcard probe rewriting."""

    def test_wildcard_rewritten(self):
        assert probe_hostname("*.example.com") == f"{WILDCARD_PROBE_LABEL}.example.com"

    def test_plain_hostname_unchanged(self):
        assert probe_hostname("www.example.com") == "www.example.com"

    def test_inner_asterisk_unchanged(self):
        assert probe_hostname("a.*.example.com") == "a.*.example.com"


class TestSSLChecker:
    """Tests for SSLChecker class."""

    def test_timeouts(self, ssl_checker):
        assert ssl_checker.timeout == 2.0
        assert ssl_checker.abort_timeout == 4.0

    @pytest.mark.asyncio
    async def test_check_success(self, ssl_checker):
        """Test a fetched certificate is parsed into CertificateInfo."""
        der = make_certificate_der(["example.com", "www.example.com"])

        with patch.object(ssl_checker, '_get_certificate_sync', return_value=der) as mock_get:
            result = await ssl_checker.check("www.example.com")

        mock_get.assert_called_once_with("www.example.com", 443)
        assert isinstance(result, CertificateInfo)
        assert result.hostname == "www.example.com"
        assert result.port == 443
        assert result.not_after == NOT_AFTER
        assert result.sans == ["example.com", "www.example.com"]
        assert result.subject == "example.com"
        assert result.issuer == "Test CA"

    @pytest.mark.asyncio
    async def test_check_custom_port(self, ssl_checker):
        der = make_certificate_der(["api.example.com"])

        with patch.object(ssl_checker, '_get_certificate_sync', return_value=der) as mock_get:
            result = await ssl_checker.check("api.example.com", port=8443)

        mock_get.assert_called_once_with("api.example.com", 8443)
        assert result.port == 8443

    @pytest.mark.asyncio
    async def test_check_wildcard_uses_probe_label(self, ssl_checker):
        """Test a wildcard hostname is connected to through the probe label."""
        der = make_certificate_der(["*.example.com"])

        with patch.object(ssl_checker, '_get_certificate_sync', return_value=der) as mock_get:
            result = await ssl_checker.check("*.example.com")

        mock_get.assert_called_once_with("cert-probe.example.com", 443)
        assert result.hostname == "*.example.com"
        assert result.sans == ["*.example.com"]

    @pytest.mark.asyncio
    async def test_check_without_san_extension(self, ssl_checker):
        der = make_certificate_der([])

        with patch.object(ssl_checker, '_get_certificate_sync', return_value=der):
            result = await ssl_checker.check("example.com")

        assert result.sans == []

    @pytest.mark.asyncio
    async def test_check_no_certificate(self, ssl_checker):
        with patch.object(ssl_checker, '_get_certificate_sync', return_value=None):
            with pytest.raises(NoCertificateError):
                await ssl_checker.check("example.com")

    @pytest.mark.asyncio
    async def test_check_unparseable_certificate(self, ssl_checker):
        with patch.object(ssl_checker, '_get_certificate_sync', return_value=b'not a certificate'):
            with pytest.raises(NoCertificateError):
                await ssl_checker.check("example.com")

    @pytest.mark.asyncio
    async def test_check_socket_timeout(self, ssl_checker):
        with patch.object(ssl_checker, '_get_certificate_sync', side_effect=socket.timeout("timed out")):
            with pytest.raises(FetchTimeoutError) as exc_info:
                await ssl_checker.check("example.com")

        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_check_abort_timeout(self):
        """Test the whole probe is aborted after abort_timeout."""
        checker = SSLChecker(connect_timeout=0.01, abort_timeout=0.05)

        def slow(hostname, port):
            time.sleep(0.3)
            return b''

        with patch.object(checker, '_get_certificate_sync', side_effect=slow):
            with pytest.raises(FetchTimeoutError):
                await checker.check("example.com")

    @pytest.mark.asyncio
    async def test_check_dns_failure(self, ssl_checker):
        error = socket.gaierror(-2, "Name or service not known")
        with patch.object(ssl_checker, '_get_certificate_sync', side_effect=error):
            with pytest.raises(FetchError) as exc_info:
                await ssl_checker.check("nonexistent.example.com")

        assert "unable to resolve" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_check_ssl_error(self, ssl_checker):
        with patch.object(ssl_checker, '_get_certificate_sync', side_effect=ssl.SSLError("handshake failure")):
            with pytest.raises(FetchError) as exc_info:
                await ssl_checker.check("example.com")

        assert "SSL error" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_check_connection_refused(self, ssl_checker):
        with patch.object(ssl_checker, '_get_certificate_sync', side_effect=ConnectionRefusedError("Connection refused")):
            with pytest.raises(FetchError) as exc_info:
                await ssl_checker.check("example.com")

        assert not isinstance(exc_info.value, FetchTimeoutError)
        assert "Connection refused" in str(exc_info.value)

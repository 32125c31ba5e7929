"""
Error types raised by the certificate monitor.

Every error carries a human-readable message that is shown to the user as-is.
"""


class CertMonitorError(Exception):
    """Base class for all certificate monitor errors."""


class InputError(CertMonitorError):
    """Invalid endpoint URI or hostname."""


class FetchError(CertMonitorError):
    """The TLS certificate could not be fetched from the endpoint."""


class FetchTimeoutError(FetchError):
    """The TLS connection or handshake did not finish in time."""


class NoCertificateError(FetchError):
    """The endpoint completed the handshake without presenting a certificate."""


class ExpiredCertificateError(CertMonitorError):
    """The endpoint presents a certificate whose notAfter is already in the past."""


class CoverageError(CertMonitorError):
    """The certificate does not cover the requested hostname."""

    def __init__(self, hostname: str, sans):
        self.hostname = hostname
        self.sans = list(sans)
        super().__init__(
            f"SAN mismatch: certificate covers [{', '.join(self.sans)}], not {hostname}"
        )


class DnsResolutionError(CertMonitorError):
    """No A, CNAME or AAAA record could be resolved for a hostname."""


class StorageError(CertMonitorError):
    """The record store failed to read or write."""

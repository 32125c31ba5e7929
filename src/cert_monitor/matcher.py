"""Decide whether a fetched certificate covers a monitored hostname."""

import logging
from typing import Optional

from .errors import CoverageError, ExpiredCertificateError
from .models import CertificateCheck, CertificateInfo, now_ms, to_epoch_ms

logger = logging.getLogger(__name__)


def match_certificate(cert: CertificateInfo, hostname: str, now: Optional[int] = None) -> CertificateCheck:
    """
    Match a certificate against the hostname as monitored (before any probe rewrite).

    An exact SAN entry wins over a wildcard one. ``*.example.com`` covers any
    name ending in ``.example.com`` but not ``example.com`` itself.

    Args:
        cert: Certificate returned by the fetcher
        hostname: Hostname as monitored, port excluded
        now: Current time in epoch ms (default: wall clock)

    Returns:
        CertificateCheck with expiry in epoch ms and the wildcard flag

    Raises:
        ExpiredCertificateError: If notAfter is already in the past
        CoverageError: If no SAN entry covers the hostname
    """
    now = now_ms() if now is None else now
    expire_time = to_epoch_ms(cert.not_after)

    if expire_time < now:
        raise ExpiredCertificateError(
            f"Certificate for {hostname} already expired on {cert.not_after.isoformat()}"
        )

    host = hostname.lower()
    sans = [name.strip().lower() for name in cert.sans if name and name.strip()]

    if host in sans:
        return CertificateCheck(expire_time=expire_time, is_wildcard=False, sans=sans)

    for name in sans:
        if '*' not in name:
            continue
        suffix = name.replace('*.', '', 1)
        if host.endswith(f".{suffix}"):
            logger.debug(f"{hostname} covered by wildcard SAN {name}")
            return CertificateCheck(expire_time=expire_time, is_wildcard=True, sans=sans)

    raise CoverageError(hostname, cert.sans)

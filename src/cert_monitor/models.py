"""Data models for certificate expiry monitoring."""

import re
import time
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import urlparse

import tldextract

from .errors import InputError


DEFAULT_KEY_PREFIX = "sslmonitor"
DEFAULT_PORT = 443
MS_PER_DAY = 24 * 60 * 60 * 1000

# Offline extractor: bundled public suffix snapshot, no fetch and no disk cache
_SUFFIX_EXTRACTOR = tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime (naive values are taken as UTC) to epoch milliseconds."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def sanitize_string(text: str, max_length: int = 200) -> str:
    """Sanitize string for safe display by removing control characters and limiting length.

    Args:
        text: String to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized string
    """
    if not text:
        return text

    sanitized = re.sub(r'[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f-\x9f]', '', text)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length - 3] + "..."

    return sanitized


def registrable_domain(hostname: str) -> str:
    """Return the registrable domain (eTLD+1) of a hostname.

    Hostnames without a public suffix (``localhost``, IP literals) are
    returned unchanged.
    """
    ext = _SUFFIX_EXTRACTOR(hostname)
    return ".".join(p for p in [ext.domain, ext.suffix] if p) or hostname


class Tier:
    """Urgency tiers for an expiring certificate."""
    NONE = "NONE"
    NOTICE = "NOTICE"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


@dataclass
class MonitorRecord:
    """One monitored endpoint as persisted in the record store."""
    domain: str
    uri: str
    sub: str
    type: Optional[str] = None
    address: Optional[str] = None
    is_wildcard: bool = False
    expire_time: int = 0
    silence_time: Optional[int] = None
    remark: Optional[str] = None
    cloud: Optional[str] = None
    account_key: Optional[str] = None
    # Storage key; attached when listed, never persisted inside the value
    id: Optional[str] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop('id')
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], record_id: Optional[str] = None) -> 'MonitorRecord':
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and k != 'id'}
        for required in ('domain', 'uri', 'sub'):
            if required not in values:
                raise ValueError(f"Monitor record is missing required field '{required}'")
        return cls(id=record_id, **values)

    @property
    def expire_date(self) -> datetime:
        return from_epoch_ms(self.expire_time)

    def remaining_days(self, now: Optional[int] = None) -> int:
        """Whole days left until expiry, floored (negative once expired)."""
        now = now_ms() if now is None else now
        return (self.expire_time - now) // MS_PER_DAY


@dataclass
class EndpointDescriptor:
    """Endpoint as submitted for registration: a URI plus optional metadata."""
    uri: str
    type: Optional[str] = None
    address: Optional[str] = None
    domain: Optional[str] = None
    remark: Optional[str] = None
    cloud: Optional[str] = None
    account_key: Optional[str] = None
    # Carried over from an existing record when editing
    expire_time: int = 0
    is_wildcard: bool = False
    silence_time: Optional[int] = None

    @classmethod
    def from_input(cls, value: Union[str, Mapping[str, Any], 'EndpointDescriptor', MonitorRecord]) -> 'EndpointDescriptor':
        """Build a descriptor from a bare URI, a mapping, or an existing record."""
        if isinstance(value, EndpointDescriptor):
            return value
        if isinstance(value, str):
            return cls(uri=value)
        if isinstance(value, MonitorRecord):
            value = value.to_dict()
        if isinstance(value, Mapping):
            uri = value.get('uri')
            if not isinstance(uri, str):
                raise InputError("Endpoint 'uri' must be a non-empty string")
            known = {f.name for f in fields(cls)}
            return cls(**{k: v for k, v in value.items() if k in known})
        raise InputError(f"Unsupported endpoint descriptor: {value!r}")


@dataclass
class Endpoint:
    """A normalised endpoint, ready to be probed and keyed."""
    url: str
    hostname: str
    port: int
    uri: str
    domain: str
    sub: str
    key: str


def build_key(domain: str, uri: str, prefix: str = DEFAULT_KEY_PREFIX) -> str:
    """Storage key of a monitored endpoint."""
    return f"{prefix}/{domain}/{uri}"


def parse_endpoint(descriptor: EndpointDescriptor, prefix: str = DEFAULT_KEY_PREFIX) -> Endpoint:
    """
    Normalise a descriptor into an Endpoint.

    The scheme defaults to https, the port to 443. A non-default port is kept in
    ``uri`` (and therefore in the key) as ``host:port``.

    Raises:
        InputError: If the URI is empty, has no hostname, or has an invalid port
    """
    raw = (descriptor.uri or '').strip()
    if not raw:
        raise InputError("URI cannot be empty")

    url = raw if '://' in raw else f"https://{raw}"
    try:
        parsed = urlparse(url)
        port = parsed.port or DEFAULT_PORT
    except ValueError as e:
        raise InputError(f"Invalid URI '{raw}': {e}") from e

    hostname = parsed.hostname
    if not hostname:
        raise InputError(f"URI must include a hostname: {raw}")

    uri = hostname if port == DEFAULT_PORT else f"{hostname}:{port}"
    domain = descriptor.domain or registrable_domain(hostname)
    if hostname == domain:
        sub = '@'
    elif hostname.endswith(f".{domain}"):
        sub = hostname[:-(len(domain) + 1)]
    else:
        sub = hostname

    return Endpoint(
        url=url,
        hostname=hostname,
        port=port,
        uri=uri,
        domain=domain,
        sub=sub,
        key=build_key(domain, uri, prefix)
    )


@dataclass
class CertificateInfo:
    """Peer certificate details returned by the fetcher."""
    hostname: str
    port: int
    not_after: datetime
    sans: List[str] = field(default_factory=list)
    subject: Optional[str] = None
    issuer: Optional[str] = None


@dataclass
class CertificateCheck:
    """Outcome of matching a fetched certificate against a hostname."""
    expire_time: int
    is_wildcard: bool
    sans: List[str] = field(default_factory=list)


@dataclass
class DnsRecord:
    """First DNS answer found for a hostname."""
    type: str
    address: str


@dataclass
class NotifyEntry:
    """One record that fired during a monitoring pass."""
    title: str
    content: str
    level: str


@dataclass
class FailedEndpoint:
    """An endpoint whose registration failed in a batch."""
    uri: str
    error: Exception

    @property
    def message(self) -> str:
        return sanitize_string(str(self.error)) or "Unable to connect or invalid certificate"


@dataclass
class BatchResult:
    """Aggregate outcome of a batch registration."""
    success_count: int = 0
    error_count: int = 0
    error_urls: List[FailedEndpoint] = field(default_factory=list)


@dataclass
class RecordError:
    """A record that could not be processed during a monitoring pass."""
    key: Optional[str]
    uri: Optional[str]
    error: Exception


@dataclass
class Digest:
    """Aggregated notification for one monitoring pass."""
    title: str
    content: str
    text: str


@dataclass
class MonitorPassResult:
    """Outcome of one monitoring pass."""
    checked: int = 0
    skipped: int = 0
    notified: List[NotifyEntry] = field(default_factory=list)
    errors: List[RecordError] = field(default_factory=list)
    digest: Optional[Digest] = None
    timestamp: datetime = field(default_factory=datetime.now)

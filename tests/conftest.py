"""Shared fixtures: a scripted certificate fetcher, a stub resolver and in-memory wiring."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from cert_monitor.errors import FetchError
from cert_monitor.models import CertificateInfo, DnsRecord
from cert_monitor.monitor import SSLMonitor
from cert_monitor.notifier import NotificationAggregator, NotificationLog, SystemNotifier
from cert_monitor.storage import MemoryStorage


class FakeFetcher:
    """Fetcher returning scripted certificates (or raising scripted errors) per hostname."""

    def __init__(self):
        self.certs = {}
        self.calls = []

    def serve(self, hostname, sans=None, days=90, port=443):
        self.certs[(hostname, port)] = CertificateInfo(
            hostname=hostname,
            port=port,
            not_after=datetime.now(timezone.utc) + timedelta(days=days),
            sans=list(sans if sans is not None else [hostname]),
        )

    def fail(self, hostname, error, port=443):
        self.certs[(hostname, port)] = error

    async def check(self, hostname, port=443, **kwargs):
        self.calls.append((hostname, port))
        result = self.certs.get((hostname, port))
        if result is None:
            raise FetchError(f"Request failed: unable to resolve {hostname}")
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def resolver():
    stub = Mock()
    stub.check = AsyncMock(return_value=DnsRecord(type='A', address='93.184.216.34'))
    return stub


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def system_notifier():
    return Mock(spec=SystemNotifier)


@pytest.fixture
def sender():
    return AsyncMock()


@pytest.fixture
def aggregator(storage, system_notifier, sender):
    return NotificationAggregator(NotificationLog(storage), system_notifier, sender=sender)


@pytest.fixture
def monitor(storage, aggregator, fetcher, resolver):
    return SSLMonitor(storage, aggregator, fetcher=fetcher, resolver=resolver)

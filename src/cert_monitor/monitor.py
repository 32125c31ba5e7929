"""
Monitor service for TLS certificate expiry.

Registers endpoints (fetching and matching their live certificate before a
record is stored), lists and removes them, and runs monitoring passes that
classify every stored record and decide whether to notify.
"""

import asyncio
import logging
import time
from typing import Any, Callable, List, Optional, Sequence

from .checkers.dns import DNSChecker
from .checkers.ssl import SSLChecker
from .classifier import ExpiryClassifier, is_silenced, remaining_days
from .config import MonitorConfig
from .errors import DnsResolutionError, StorageError
from .matcher import match_certificate
from .models import (
    DEFAULT_KEY_PREFIX,
    BatchResult,
    EndpointDescriptor,
    FailedEndpoint,
    MonitorPassResult,
    MonitorRecord,
    NotifyEntry,
    RecordError,
    Tier,
    build_key,
    now_ms,
    parse_endpoint,
    registrable_domain,
)
from .notifier import NotificationAggregator
from .storage import Storage, StorageEntry

logger = logging.getLogger(__name__)


class SSLMonitor:
    """
    Certificate expiry monitor.

    Collaborators are injected so that the network probes, the store and the
    notification surfaces can be replaced independently.
    """

    # Maximum number of endpoints registered concurrently in a batch
    MAX_CONCURRENT_CHECKS = 20

    def __init__(
        self,
        storage: Storage,
        aggregator: NotificationAggregator,
        fetcher: Optional[SSLChecker] = None,
        resolver: Optional[DNSChecker] = None,
        key_prefix: str = DEFAULT_KEY_PREFIX
    ):
        self.storage = storage
        self.aggregator = aggregator
        self.fetcher = fetcher or SSLChecker()
        self.resolver = resolver or DNSChecker()
        self.key_prefix = key_prefix

    @classmethod
    def from_config(cls, config: MonitorConfig, storage: Storage, aggregator: NotificationAggregator) -> 'SSLMonitor':
        """Build a monitor whose probes use the configured timeouts."""
        return cls(
            storage=storage,
            aggregator=aggregator,
            fetcher=SSLChecker(connect_timeout=config.connect_timeout, abort_timeout=config.abort_timeout),
            resolver=DNSChecker(timeout=config.dns_timeout),
            key_prefix=config.key_prefix
        )

    async def add_monitor(
        self,
        endpoint: Any,
        is_edit: bool = False,
        config: Optional[MonitorConfig] = None
    ) -> MonitorRecord:
        """
        Register or re-check one endpoint.

        The record is written only after a live certificate was fetched and
        matched. If that fails for an endpoint that had no record yet, its key
        is removed so no monitor is left pointing at a dead endpoint; an
        existing record is left as it was. On a re-check the silence window is
        kept while the certificate is unchanged and cleared once it was renewed.

        Args:
            endpoint: URI string, descriptor mapping, EndpointDescriptor or MonitorRecord
            is_edit: Re-check of an existing entry; skips the follow-up pass
            config: When given, a monitoring pass for this key runs after a new registration

        Returns:
            The stored MonitorRecord

        Raises:
            InputError, FetchError, ExpiredCertificateError, CoverageError, StorageError
        """
        descriptor = EndpointDescriptor.from_input(endpoint)
        target = parse_endpoint(descriptor, self.key_prefix)
        logger.debug(f"{'Re-checking' if is_edit else 'Registering'} {target.uri} under {target.key}")

        record_type, address = descriptor.type, descriptor.address
        if not record_type:
            try:
                dns_record = await self.resolver.check(target.hostname)
                record_type, address = dns_record.type, dns_record.address
            except DnsResolutionError as e:
                logger.warning(f"DNS seeding failed for {target.hostname}, continuing without it: {e}")

        record = MonitorRecord(
            domain=target.domain,
            uri=target.uri,
            sub=target.sub,
            type=record_type,
            address=address,
            is_wildcard=descriptor.is_wildcard if is_edit else False,
            expire_time=descriptor.expire_time if is_edit else 0,
            remark=descriptor.remark,
            cloud=descriptor.cloud,
            account_key=descriptor.account_key,
            id=target.key
        )

        previous = await self.storage.get(target.key)

        try:
            cert = await self.fetcher.check(target.hostname, port=target.port)
            checked = match_certificate(cert, target.hostname)
            record.is_wildcard = checked.is_wildcard
            record.expire_time = checked.expire_time

            if previous and previous.get('expire_time') == record.expire_time:
                record.silence_time = previous.get('silence_time')

            await self.storage.set(target.key, record.to_dict())
        except Exception as e:
            if previous is None:
                logger.info(f"Registration of {target.uri} failed, removing {target.key}: {e}")
                await self.storage.remove(target.key)
            else:
                logger.warning(f"Re-check of {target.uri} failed, keeping existing record: {e}")
            raise

        logger.info(
            f"Monitoring {target.uri}: expires {record.expire_date.isoformat()}"
            f"{' (wildcard)' if record.is_wildcard else ''}"
        )

        if not is_edit and config is not None:
            await self.run_pass(config, key=target.key)

        return record

    async def batch_add_monitor(
        self,
        endpoints: Sequence[Any],
        is_edit: bool = False,
        config: Optional[MonitorConfig] = None
    ) -> BatchResult:
        """
        Register many endpoints concurrently.

        One endpoint failing never cancels the others; every failure is
        collected with the URI it was submitted as.
        """
        logger.info(f"{'Re-checking' if is_edit else 'Registering'} {len(endpoints)} endpoint(s)")
        start_time = time.time()

        semaphore = asyncio.Semaphore(self.MAX_CONCURRENT_CHECKS)

        async def bounded_add(endpoint: Any) -> MonitorRecord:
            async with semaphore:
                return await self.add_monitor(endpoint, is_edit=is_edit, config=config)

        results = await asyncio.gather(
            *(bounded_add(endpoint) for endpoint in endpoints),
            return_exceptions=True
        )

        batch = BatchResult()
        for endpoint, result in zip(endpoints, results):
            if isinstance(result, Exception):
                uri = self._submitted_uri(endpoint)
                logger.debug(f"Endpoint {uri} failed: {result}")
                batch.error_count += 1
                batch.error_urls.append(FailedEndpoint(uri=uri, error=result))
            else:
                batch.success_count += 1

        logger.info(
            f"Batch finished in {time.time() - start_time:.2f}s: "
            f"{batch.success_count} succeeded, {batch.error_count} failed"
        )
        return batch

    async def list_monitors(self, domain: str = "") -> List[MonitorRecord]:
        """
        All records, or those of one root domain, sorted by expire_time descending.

        Entries that cannot be decoded are logged and left out.
        """
        records = []
        for entry in await self._entries(domain):
            try:
                records.append(MonitorRecord.from_dict(entry.value, entry.id))
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping unreadable record {entry.id}: {e}")
        return sorted(records, key=lambda r: r.expire_time or 0, reverse=True)

    async def update_one_domain_monitor(self, host: str) -> bool:
        """
        Re-check the monitored record of ``host`` (may include ``:port``).

        Returns:
            True if the host was monitored and re-checked, False if not monitored
        """
        root = registrable_domain(host.split(':')[0])
        data = await self.storage.get(build_key(root, host, self.key_prefix))
        if data is None:
            data = await self._find_by_uri(host)
        if data is None:
            logger.debug(f"{host} is not monitored")
            return False

        await self.add_monitor(MonitorRecord.from_dict(data), is_edit=True)
        return True

    async def refresh_all(self, domain: str = "") -> BatchResult:
        """Re-check the live certificate of every stored record."""
        records = await self.list_monitors(domain)
        return await self.batch_add_monitor(records, is_edit=True)

    async def remove_monitor(self, uri: str, domain: Optional[str] = None) -> bool:
        """
        Delete the record of ``uri``.

        Returns:
            True if a record was removed
        """
        target = parse_endpoint(EndpointDescriptor(uri=uri, domain=domain), self.key_prefix)
        key = target.key
        if await self.storage.get(key) is None:
            data = await self._find_by_uri(target.uri, with_key=True)
            if data is None:
                return False
            key = data['id']

        await self.storage.remove(key)
        logger.info(f"Removed monitor {key}")
        return True

    async def run_pass(
        self,
        config: Optional[MonitorConfig] = None,
        key: Optional[str] = None,
        now: Optional[int] = None,
        on_notification: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[RecordError], None]] = None
    ) -> MonitorPassResult:
        """
        Classify every stored record (or only ``key``) and notify.

        NOTICE and WARNING records are silenced for their tier's window once
        they notify, and skipped while that window is open. CRITICAL records
        notify on every pass, open silence window or not. An error on one record
        is reported and the pass moves on to the next one.

        Args:
            config: Thresholds, silence windows and channels (default: MonitorConfig())
            key: Restrict the pass to a single record key
            now: Current time in epoch ms (default: wall clock)
            on_notification: Called once after a digest was raised
            on_error: Called for every record that failed

        Returns:
            MonitorPassResult with the fired entries, errors and digest
        """
        config = config or MonitorConfig()
        classifier = ExpiryClassifier(config.thresholds, config.silence_days)
        now = now_ms() if now is None else now
        result = MonitorPassResult()

        if key:
            value = await self.storage.get(key)
            entries = [StorageEntry(id=key, value=value)] if value is not None else []
        else:
            entries = await self._entries()

        logger.debug(f"Monitoring pass over {len(entries)} record(s)")

        for entry in entries:
            result.checked += 1
            try:
                entry_result = await self._process_record(entry, classifier, now)
            except Exception as e:
                uri = entry.value.get('uri') if isinstance(entry.value, dict) else None
                logger.error(f"Monitoring {uri or entry.id} failed: {e}", exc_info=True)
                error = RecordError(key=entry.id, uri=uri, error=e)
                result.errors.append(error)
                await self._report_error(error, on_error)
                continue

            if entry_result is None:
                result.skipped += 1
            else:
                result.notified.append(entry_result)

        if result.notified:
            result.digest = await self.aggregator.notify(result.notified, config.enabled_channels())
            if on_notification:
                on_notification()

        logger.info(
            f"Monitoring pass done: {result.checked} checked, {len(result.notified)} notified, "
            f"{result.skipped} skipped, {len(result.errors)} error(s)"
        )
        return result

    async def _process_record(self, entry: StorageEntry, classifier: ExpiryClassifier, now: int) -> Optional[NotifyEntry]:
        record = MonitorRecord.from_dict(entry.value, entry.id)
        days = remaining_days(record.expire_time, now)
        tier = classifier.classify(days)

        if tier == Tier.NONE:
            return None
        if tier != Tier.CRITICAL and is_silenced(record, now):
            logger.debug(f"{record.uri} silenced until {record.silence_time}")
            return None

        if tier != Tier.CRITICAL:
            record.silence_time = classifier.silence_until(tier, now)
            await self.storage.set(entry.id, record.to_dict())

        logger.debug(f"{record.uri}: {days} day(s) left, tier {tier}")
        return NotifyEntry(title=record.uri, content=f"cert has {days} days left", level=tier)

    async def _report_error(self, error: RecordError, on_error: Optional[Callable[[RecordError], None]]) -> None:
        try:
            await self.aggregator.notification_log.add(
                "SSL certificate monitoring error",
                f"Error while monitoring {error.uri or error.key}: {error.error}"
            )
        except StorageError as e:
            logger.error(f"Failed to record monitoring error in notification log: {e}")
        if on_error:
            on_error(error)

    async def _entries(self, domain: str = "") -> List[StorageEntry]:
        prefix = f"{self.key_prefix}/{domain}/" if domain else f"{self.key_prefix}/"
        return await self.storage.list_by_prefix(prefix)

    async def _find_by_uri(self, uri: str, with_key: bool = False) -> Optional[dict]:
        for entry in await self._entries():
            if isinstance(entry.value, dict) and entry.value.get('uri') == uri:
                return {**entry.value, 'id': entry.id} if with_key else entry.value
        return None

    @staticmethod
    def _submitted_uri(endpoint: Any) -> str:
        if isinstance(endpoint, str):
            return endpoint
        if isinstance(endpoint, dict):
            return str(endpoint.get('uri'))
        return str(getattr(endpoint, 'uri', endpoint))

"""
Notification aggregation for monitoring passes.

All records that fire in one pass are folded into a single digest, which is
stored in the in-app notification log, raised once as a system notification,
and fanned out to every configured external channel.
"""

import asyncio
import html
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Mapping, Optional

from .channels import send_notification
from .models import Digest, NotifyEntry, Tier, now_ms
from .storage import Storage

if TYPE_CHECKING:
    from .console.output import ConsoleManager

logger = logging.getLogger(__name__)

LEVEL_COLORS = {
    Tier.CRITICAL: 'red',
    Tier.WARNING: 'orange',
    Tier.NOTICE: '#1e90ff',
}

NOTIFICATION_PREFIX = 'notification'

ChannelSender = Callable[[str, Any, Mapping[str, str]], Awaitable[None]]


def build_digest(entries: List[NotifyEntry]) -> Digest:
    """
    Fold the fired records of one pass into a digest.

    ``content`` is HTML colored by level for the notification log, ``text`` is
    the plain-text form used for system and channel notifications.

    Raises:
        ValueError: If ``entries`` is empty
    """
    if not entries:
        raise ValueError("Cannot build a digest without entries")

    title = f"about {entries[0].title} and {len(entries) - 1} other domain certificates expiring soon"

    blocks = []
    for entry in entries:
        color = LEVEL_COLORS.get(entry.level, LEVEL_COLORS[Tier.NOTICE])
        blocks.append(
            "<div>"
            f'<span style="color: {color}">{html.escape(entry.title)}</span><br/>'
            f"<span>{html.escape(entry.content)}</span><br/><br/>"
            "</div>"
        )

    text = "\n".join(f"{entry.title}: {entry.content}" for entry in entries)
    return Digest(title=title, content="".join(blocks), text=text)


@dataclass
class NotificationEntry:
    """One entry of the in-app notification log."""
    id: str
    title: str
    content: str
    created_at: int
    read: bool = False


class NotificationLog:
    """In-app notification log kept in the record store under its own prefix."""

    def __init__(self, storage: Storage, prefix: str = NOTIFICATION_PREFIX):
        self.storage = storage
        self.prefix = prefix
        self._seq = itertools.count()

    async def add(self, title: str, content: str) -> NotificationEntry:
        created_at = now_ms()
        key = f"{self.prefix}/{created_at:013d}-{next(self._seq):04d}"
        entry = NotificationEntry(id=key, title=title, content=content, created_at=created_at)
        await self.storage.set(key, {
            'title': title,
            'content': content,
            'created_at': created_at,
            'read': False,
        })
        return entry

    async def list_entries(self) -> List[NotificationEntry]:
        """All entries, newest first."""
        entries = [
            NotificationEntry(
                id=item.id,
                title=item.value.get('title', ''),
                content=item.value.get('content', ''),
                created_at=item.value.get('created_at', 0),
                read=bool(item.value.get('read')),
            )
            for item in await self.storage.list_by_prefix(f"{self.prefix}/")
        ]
        return sorted(entries, key=lambda e: e.id, reverse=True)

    async def unread_count(self) -> int:
        return sum(1 for entry in await self.list_entries() if not entry.read)

    async def mark_all_read(self) -> int:
        count = 0
        for item in await self.storage.list_by_prefix(f"{self.prefix}/"):
            if not item.value.get('read'):
                item.value['read'] = True
                await self.storage.set(item.id, item.value)
                count += 1
        return count

    async def clear(self) -> int:
        items = await self.storage.list_by_prefix(f"{self.prefix}/")
        for item in items:
            await self.storage.remove(item.id)
        return len(items)


class SystemNotifier(ABC):
    """Surface for the single user-facing notification raised per pass."""

    @abstractmethod
    def show(self, title: str, text: str) -> None:
        pass


class ConsoleNotifier(SystemNotifier):
    """Raises notifications as rich panels on the terminal."""

    def __init__(self, console_manager: 'ConsoleManager'):
        self.console_manager = console_manager

    def show(self, title: str, text: str) -> None:
        self.console_manager.print_notification(title, text)


class NotificationAggregator:
    """Builds the per-pass digest and delivers it."""

    def __init__(
        self,
        notification_log: NotificationLog,
        system_notifier: SystemNotifier,
        sender: Optional[ChannelSender] = None
    ):
        self.notification_log = notification_log
        self.system_notifier = system_notifier
        self.sender = sender or send_notification

    async def notify(self, entries: List[NotifyEntry], channels: Optional[Mapping[str, Any]] = None) -> Optional[Digest]:
        """
        Deliver the digest for ``entries``.

        Channel failures are logged and never raised; once the digest is stored
        and the system notification raised, delivery counts as done.

        Returns:
            The digest, or None when there was nothing to notify
        """
        if not entries:
            return None

        digest = build_digest(entries)
        await self.notification_log.add(digest.title, digest.content)
        self.system_notifier.show(digest.title, digest.text)
        logger.info(f"Raised expiry notification for {len(entries)} record(s)")

        if channels:
            await self.dispatch(digest, channels)

        return digest

    async def dispatch(self, digest: Digest, channels: Mapping[str, Any]) -> None:
        """Send the plain-text digest to every enabled channel concurrently."""
        enabled = [(name, config) for name, config in channels.items() if config]
        if not enabled:
            return

        message = {'title': digest.title, 'content': digest.text}
        results = await asyncio.gather(
            *(self.sender(name, config, message) for name, config in enabled),
            return_exceptions=True
        )

        for (name, _), result in zip(enabled, results):
            if isinstance(result, Exception):
                logger.warning(f"Notification channel '{name}' failed: {result}")

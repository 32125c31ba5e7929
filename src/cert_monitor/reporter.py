"""
Reporter layer for certificate monitoring.

Renders monitored records, batch registration outcomes, monitoring passes and
the notification log on the terminal.
"""

import html
import logging
import re
from typing import List, Optional

from rich.markup import escape
from rich.table import Table
from rich.text import Text

from .classifier import ExpiryClassifier, is_silenced
from .console.output import ConsoleManager
from .console.themes import ICONS, TIER_COLORS
from .models import BatchResult, MonitorPassResult, MonitorRecord, from_epoch_ms, now_ms
from .notifier import NotificationEntry

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r'<[^>]+>')


class Reporter:
    """
    Reporter for formatting monitor state on the console.
    """

    def __init__(self, console_manager: Optional[ConsoleManager] = None, classifier: Optional[ExpiryClassifier] = None):
        """
        Args:
            console_manager: ConsoleManager instance for Rich output
            classifier: Classifier used to color remaining days (default thresholds if omitted)
        """
        self.console_manager = console_manager or ConsoleManager()
        self.console = self.console_manager.console
        self.classifier = classifier or ExpiryClassifier()

    def display_records(self, records: List[MonitorRecord], now: Optional[int] = None) -> None:
        """
        Display monitored records as a table, in the order given.

        Remaining days are colored by tier; silenced records show when their
        silence window ends.
        """
        now = now_ms() if now is None else now

        if not records:
            self.console_manager.print_warning("No endpoints are being monitored")
            return

        table = Table(
            title=f"[bold magenta]{ICONS['lock']} Monitored Certificates[/bold magenta]",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Endpoint", style="domain", no_wrap=True)
        table.add_column("Domain")
        table.add_column("Sub")
        table.add_column("Record", style="dim")
        table.add_column("Expires", no_wrap=True)
        table.add_column("Days Left", justify="right")
        table.add_column("Wildcard", justify="center")
        table.add_column("Silenced Until", style="timestamp")
        table.add_column("Remark", style="dim")

        for record in records:
            table.add_row(*self._format_record_row(record, now))

        self.console.print(table)
        self.console.print(f"[bold]Total:[/bold] {len(records)} endpoint(s)")

    def _format_record_row(self, record: MonitorRecord, now: int) -> List[Text]:
        days = record.remaining_days(now)
        tier = self.classifier.classify(days)

        record_info = f"{record.type} {record.address}" if record.type else "-"
        silenced = (
            from_epoch_ms(record.silence_time).strftime('%Y-%m-%d %H:%M')
            if is_silenced(record, now) else "-"
        )

        return [
            Text(record.uri),
            Text(record.domain),
            Text(record.sub),
            Text(record_info),
            Text(record.expire_date.strftime('%Y-%m-%d %H:%M')),
            Text(str(days), style=TIER_COLORS.get(tier, "white")),
            Text(ICONS['success'] if record.is_wildcard else ""),
            Text(silenced),
            Text(record.remark or ""),
        ]

    def display_batch_result(self, result: BatchResult, action: str = "added") -> None:
        """
        Summarize a batch registration with a drill-down of the failed endpoints.
        """
        if result.success_count > 0:
            self.console_manager.print_success(f"Successfully {action} {result.success_count} endpoint monitor(s)")

        if result.error_count == 0:
            return

        self.console_manager.print_warning(
            f"{result.error_count} endpoint(s) failed"
            + (" (partial success)" if result.success_count > 0 else "")
        )

        table = Table(show_header=True, header_style="bold cyan", border_style="red")
        table.add_column("Endpoint", style="bold", no_wrap=True)
        table.add_column("Error", style="red")
        for failed in result.error_urls:
            table.add_row(Text(failed.uri), Text(failed.message))
        self.console.print(table)

    def display_pass_result(self, result: MonitorPassResult) -> None:
        """Summarize one monitoring pass."""
        self.console.print()
        self.console.print(f"[bold]Monitoring pass:[/bold] {result.checked} record(s) checked")
        self.console.print(f"  [yellow]{ICONS['bell']} Notified:[/yellow] {len(result.notified)}")
        self.console.print(f"  [dim]Skipped:[/dim] {result.skipped}")
        if result.errors:
            self.console.print(f"  [red]{ICONS['error']} Errors:[/red] {len(result.errors)}")
            for error in result.errors:
                line = Text("    ")
                line.append(error.uri or error.key, style="red")
                line.append(f": {error.error}")
                self.console.print(line)

        for entry in result.notified:
            color = TIER_COLORS.get(entry.level, "white")
            line = Text("  ")
            line.append(f"{entry.level:<8}", style=color)
            line.append(f" {entry.title}: {entry.content}")
            self.console.print(line)

    def display_notifications(self, entries: List[NotificationEntry]) -> None:
        """List the in-app notification log, newest first."""
        if not entries:
            self.console_manager.print_warning("No notifications")
            return

        unread = sum(1 for e in entries if not e.read)
        self.console.print(f"[bold]Notifications:[/bold] {len(entries)} ({unread} unread)")
        self.console.print()

        for entry in entries:
            marker = "[bold yellow]●[/bold yellow]" if not entry.read else "[dim]○[/dim]"
            stamp = from_epoch_ms(entry.created_at).strftime('%Y-%m-%d %H:%M:%S')
            self.console.print(f"{marker} [timestamp]{stamp}[/timestamp] [bold]{escape(entry.title)}[/bold]")
            for line in self._html_to_lines(entry.content):
                self.console.print(Text(f"    {line}"))

    @staticmethod
    def _html_to_lines(content: str) -> List[str]:
        text = re.sub(r'<br\s*/?>', '\n', content)
        text = html.unescape(_TAG_RE.sub('', text))
        return [line.strip() for line in text.splitlines() if line.strip()]

"""
CLI entry point for the certificate expiry monitor.

Provides commands to register endpoints, list and remove them, re-check their
certificates, and run monitoring passes once or on an interval.
"""

import asyncio
import logging
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import click

from . import __version__
from .classifier import ExpiryClassifier
from .config import MonitorConfig, get_default_config_path, load_config, load_endpoints_file
from .console.output import ConsoleManager
from .errors import CertMonitorError
from .models import EndpointDescriptor
from .monitor import SSLMonitor
from .notifier import ConsoleNotifier, NotificationAggregator, NotificationLog
from .reporter import Reporter
from .storage import JsonFileStorage


logger = logging.getLogger(__name__)

LOG_FILE = 'cert-monitor.log'


def setup_logging(log_level: str, debug_mode: bool = False) -> None:
    """
    Configure logging with specified level and debug mode.

    The log file always receives records at ``log_level``; the console only
    shows them in debug mode.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        debug_mode: If True, also display logs on the console
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(LOG_FILE, encoding='utf-8')
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    if debug_mode:
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
    else:
        console_handler.setLevel(logging.CRITICAL + 1)  # Suppress all logs

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logger.info(f"Logging initialized at {log_level} level (debug_mode={debug_mode})")


def resolve_config(file_path: Optional[str]) -> MonitorConfig:
    """
    Load the config file given, else the default one if present, else defaults.

    Raises:
        click.ClickException: If the config file cannot be loaded
    """
    path = file_path or get_default_config_path()
    if path is None:
        logger.info("No config file found, using defaults")
        return MonitorConfig()

    try:
        logger.info(f"Loading config from: {path}")
        return load_config(path)
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(f"Config error: {e}")


def build_monitor(config: MonitorConfig, console_manager: ConsoleManager) -> SSLMonitor:
    """Wire the JSON-file store, notification surfaces and probes together."""
    storage = JsonFileStorage(config.storage_path)
    aggregator = NotificationAggregator(
        NotificationLog(storage),
        ConsoleNotifier(console_manager)
    )
    return SSLMonitor.from_config(config, storage, aggregator)


@dataclass
class AppContext:
    """Objects shared by every command of one invocation."""
    config: MonitorConfig
    console_manager: ConsoleManager
    monitor: SSLMonitor
    reporter: Reporter


@contextmanager
def command_errors(console_manager: ConsoleManager) -> Iterator[None]:
    """Render monitor errors as a panel and exit with status 1."""
    try:
        yield
    except click.ClickException:
        raise
    except CertMonitorError as e:
        logger.error(f"{type(e).__name__}: {e}")
        console_manager.print_error(str(e), details={'error_type': type(e).__name__}, exception=e)
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"{type(e).__name__}: {e}", exc_info=True)
        console_manager.print_error(str(e), details={'error_type': type(e).__name__}, exception=e)
        sys.exit(1)
    except Exception as e:
        error_msg = str(e) if str(e) else f"{type(e).__name__} occurred"
        logger.error(f"Unexpected error: {error_msg}", exc_info=True)
        console_manager.print_error(
            error_msg,
            details={'error_type': type(e).__name__, 'log_file': LOG_FILE},
            exception=e
        )
        sys.exit(1)


@click.group()
@click.version_option(__version__, prog_name='cert-monitor')
@click.option(
    '-c', '--config', 'config_path',
    type=click.Path(exists=True),
    help='Path to config file (YAML/JSON, default: ./sslmonitor.yaml)'
)
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    default='INFO',
    help='Logging level (default: INFO)'
)
@click.option(
    '--debug',
    is_flag=True,
    default=False,
    help='Enable debug mode with verbose console output'
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: str, debug: bool) -> None:
    """
    TLS Certificate Expiry Monitor

    Track certificate expiry of your endpoints and get throttled notifications
    as expiry nears.
    """
    setup_logging(log_level, debug_mode=debug)
    config = resolve_config(config_path)
    console_manager = ConsoleManager(debug_mode=debug)
    ctx.obj = AppContext(
        config=config,
        console_manager=console_manager,
        monitor=build_monitor(config, console_manager),
        reporter=Reporter(console_manager, ExpiryClassifier(config.thresholds, config.silence_days))
    )


@cli.command(name='add')
@click.argument('uri')
@click.option('--type', 'record_type', type=click.Choice(['A', 'AAAA', 'CNAME'], case_sensitive=False),
              help='DNS record type (resolved automatically when omitted)')
@click.option('--address', help='Resolved address shown next to the record type')
@click.option('--domain', help='Root domain (default: registrable domain of the host)')
@click.option('--remark', help='Free-form note')
@click.option('--cloud', help='Cloud provider the record belongs to')
@click.option('--account-key', help='Account the record belongs to')
@click.pass_obj
def add_command(
    app: AppContext,
    uri: str,
    record_type: Optional[str],
    address: Optional[str],
    domain: Optional[str],
    remark: Optional[str],
    cloud: Optional[str],
    account_key: Optional[str]
) -> None:
    """
    Start monitoring URI (scheme optional, non-443 ports allowed).

    Examples:

        cert-monitor add example.com

        cert-monitor add https://api.example.com:8443 --remark "public API"
    """
    descriptor = EndpointDescriptor(
        uri=uri,
        type=record_type.upper() if record_type else None,
        address=address,
        domain=domain,
        remark=remark,
        cloud=cloud,
        account_key=account_key
    )
    with command_errors(app.console_manager):
        record = asyncio.run(app.monitor.add_monitor(descriptor, config=app.config))
        app.console_manager.print_success(
            f"Monitoring {record.uri}: certificate expires {record.expire_date.strftime('%Y-%m-%d %H:%M')} UTC"
            f"{' (wildcard)' if record.is_wildcard else ''}"
        )


@cli.command(name='batch-add')
@click.option('-f', '--file', 'file_path', type=click.Path(exists=True), required=True,
              help='Endpoints file (YAML/JSON)')
@click.option('--edit', is_flag=True, default=False, help='Re-check existing entries instead of registering')
@click.pass_obj
def batch_add_command(app: AppContext, file_path: str, edit: bool) -> None:
    """Register every endpoint listed in an endpoints file."""
    with command_errors(app.console_manager):
        endpoints = load_endpoints_file(file_path)
        action = "updated" if edit else "added"
        with app.console_manager.console.status(f"[cyan]Processing {len(endpoints)} endpoint(s)...", spinner="dots"):
            result = asyncio.run(app.monitor.batch_add_monitor(endpoints, is_edit=edit, config=app.config))
        app.reporter.display_batch_result(result, action=action)
        if result.success_count == 0 and result.error_count > 0:
            sys.exit(1)


@cli.command(name='list')
@click.option('--domain', default='', help='Only show endpoints of this root domain')
@click.pass_obj
def list_command(app: AppContext, domain: str) -> None:
    """List monitored endpoints, latest expiry first."""
    with command_errors(app.console_manager):
        records = asyncio.run(app.monitor.list_monitors(domain))
        app.reporter.display_records(records)


@cli.command(name='refresh')
@click.argument('host')
@click.pass_obj
def refresh_command(app: AppContext, host: str) -> None:
    """Re-check the certificate of a monitored HOST (host or host:port)."""
    with command_errors(app.console_manager):
        if asyncio.run(app.monitor.update_one_domain_monitor(host)):
            app.console_manager.print_success(f"Re-checked {host}")
        else:
            app.console_manager.print_warning(f"{host} is not monitored")
            sys.exit(1)


@cli.command(name='remove')
@click.argument('uri')
@click.option('--domain', help='Root domain the endpoint was registered under')
@click.pass_obj
def remove_command(app: AppContext, uri: str, domain: Optional[str]) -> None:
    """Stop monitoring URI."""
    with command_errors(app.console_manager):
        if asyncio.run(app.monitor.remove_monitor(uri, domain=domain)):
            app.console_manager.print_success(f"Removed {uri}")
        else:
            app.console_manager.print_warning(f"{uri} is not monitored")
            sys.exit(1)


@cli.command(name='check')
@click.option('--key', help='Only evaluate the record stored under this key')
@click.option('--refresh', is_flag=True, default=False, help='Re-check live certificates before evaluating')
@click.pass_obj
def check_command(app: AppContext, key: Optional[str], refresh: bool) -> None:
    """Run one monitoring pass and send notifications for expiring certificates."""
    with command_errors(app.console_manager):
        result = asyncio.run(_monitoring_cycle(app, key=key, refresh=refresh))
        app.reporter.display_pass_result(result)


@cli.command(name='watch')
@click.option('--interval', type=float, default=3600.0, help='Seconds between passes (default: 3600)')
@click.option('--refresh', is_flag=True, default=False, help='Re-check live certificates before every pass')
@click.pass_obj
def watch_command(app: AppContext, interval: float, refresh: bool) -> None:
    """
    Run monitoring passes on an interval until interrupted.

    Press CTRL+C to stop.
    """
    if interval <= 0:
        raise click.ClickException(f"Invalid interval: {interval}. Interval must be greater than 0.")

    click.echo(f"Running a monitoring pass every {interval:g}s, press CTRL+C to stop")
    with command_errors(app.console_manager):
        try:
            while True:
                result = asyncio.run(_monitoring_cycle(app, refresh=refresh))
                app.reporter.display_pass_result(result)
                time.sleep(interval)
        except KeyboardInterrupt:
            click.echo("\nMonitoring stopped.")


async def _monitoring_cycle(app: AppContext, key: Optional[str] = None, refresh: bool = False):
    if refresh:
        batch = await app.monitor.refresh_all()
        app.reporter.display_batch_result(batch, action="re-checked")
    return await app.monitor.run_pass(app.config, key=key)


@cli.command(name='notifications')
@click.option('--mark-read', is_flag=True, default=False, help='Mark every notification as read')
@click.option('--clear', is_flag=True, default=False, help='Delete every notification')
@click.pass_obj
def notifications_command(app: AppContext, mark_read: bool, clear: bool) -> None:
    """Show the notification log."""
    log = app.monitor.aggregator.notification_log
    with command_errors(app.console_manager):
        if clear:
            count = asyncio.run(log.clear())
            app.console_manager.print_success(f"Deleted {count} notification(s)")
            return
        entries = asyncio.run(log.list_entries())
        app.reporter.display_notifications(entries)
        if mark_read:
            count = asyncio.run(log.mark_all_read())
            app.console_manager.print_success(f"Marked {count} notification(s) as read")


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == '__main__':
    main()

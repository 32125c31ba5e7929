"""
Tests for the command-line interface.

The live certificate fetcher and DNS resolver are replaced with scripted
stand-ins; everything else (JSON store, notification log, console output)
is real.
"""

import json

import pytest
import yaml
from click.testing import CliRunner

from cert_monitor import main as main_module
from cert_monitor.main import cli
from cert_monitor.monitor import SSLMonitor
from cert_monitor.notifier import ConsoleNotifier, NotificationAggregator, NotificationLog
from cert_monitor.storage import JsonFileStorage


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch, fetcher, resolver):
    """Run every command in an empty directory with scripted network probes."""
    monkeypatch.chdir(tmp_path)

    def build_monitor(config, console_manager):
        storage = JsonFileStorage(config.storage_path)
        aggregator = NotificationAggregator(NotificationLog(storage), ConsoleNotifier(console_manager))
        return SSLMonitor(storage, aggregator, fetcher=fetcher, resolver=resolver, key_prefix=config.key_prefix)

    monkeypatch.setattr(main_module, 'build_monitor', build_monitor)
    return tmp_path


def stored(workspace):
    return json.loads((workspace / 'sslmonitor-data.json').read_text(encoding='utf-8'))


class TestCLI:

    def test_help(self, runner):
        result = runner.invoke(cli, ['--help'])

        assert result.exit_code == 0
        for command in ('add', 'batch-add', 'list', 'refresh', 'remove', 'check', 'watch', 'notifications'):
            assert command in result.output

    def test_add(self, runner, workspace, fetcher):
        fetcher.serve("www.example.com", days=90)

        result = runner.invoke(cli, ['add', 'www.example.com', '--remark', 'homepage'])

        assert result.exit_code == 0, result.output
        assert "Monitoring www.example.com" in result.output
        record = stored(workspace)["sslmonitor/example.com/www.example.com"]
        assert record['remark'] == 'homepage'
        assert record['type'] == 'A'

    def test_add_failure_exits_nonzero(self, runner, workspace):
        result = runner.invoke(cli, ['add', 'down.example.com'])

        assert result.exit_code == 1
        assert "unable to resolve" in result.output
        assert not (workspace / 'sslmonitor-data.json').exists() or stored(workspace) == {}

    def test_add_expiring_raises_notification(self, runner, workspace, fetcher):
        fetcher.serve("soon.example.com", days=3)

        result = runner.invoke(cli, ['add', 'soon.example.com'])

        assert result.exit_code == 0, result.output
        assert "cert has" in result.output

    def test_batch_add(self, runner, workspace, fetcher):
        fetcher.serve("a.example.com")
        (workspace / 'endpoints.yaml').write_text(yaml.dump({'endpoints': ['a.example.com', 'down.example.com']}))

        result = runner.invoke(cli, ['batch-add', '-f', 'endpoints.yaml'])

        assert result.exit_code == 0, result.output
        assert "Successfully added 1" in result.output
        assert "1 endpoint(s) failed" in result.output

    def test_batch_add_all_failed(self, runner, workspace):
        (workspace / 'endpoints.yaml').write_text(yaml.dump({'endpoints': ['down.example.com']}))

        result = runner.invoke(cli, ['batch-add', '-f', 'endpoints.yaml'])

        assert result.exit_code == 1

    def test_list_empty(self, runner, workspace):
        result = runner.invoke(cli, ['list'])

        assert result.exit_code == 0
        assert "No endpoints are being monitored" in result.output

    def test_list(self, runner, workspace, fetcher):
        fetcher.serve("www.example.com")
        runner.invoke(cli, ['add', 'www.example.com'])

        result = runner.invoke(cli, ['list'])

        assert result.exit_code == 0, result.output
        assert "Total: 1 endpoint(s)" in result.output

    def test_refresh(self, runner, workspace, fetcher):
        fetcher.serve("www.example.com", days=30)
        runner.invoke(cli, ['add', 'www.example.com'])
        fetcher.serve("www.example.com", days=300)

        result = runner.invoke(cli, ['refresh', 'www.example.com'])

        assert result.exit_code == 0, result.output
        assert "Re-checked www.example.com" in result.output

    def test_refresh_unknown(self, runner, workspace):
        result = runner.invoke(cli, ['refresh', 'unknown.example.com'])

        assert result.exit_code == 1
        assert "not monitored" in result.output

    def test_remove(self, runner, workspace, fetcher):
        fetcher.serve("www.example.com")
        runner.invoke(cli, ['add', 'www.example.com'])

        result = runner.invoke(cli, ['remove', 'www.example.com'])

        assert result.exit_code == 0, result.output
        assert stored(workspace) == {}

    def test_remove_unknown(self, runner, workspace):
        result = runner.invoke(cli, ['remove', 'www.example.com'])

        assert result.exit_code == 1

    def test_check_and_notifications(self, runner, workspace, fetcher):
        fetcher.serve("soon.example.com", days=3)
        fetcher.serve("far.example.com", days=200)
        (workspace / 'endpoints.json').write_text(json.dumps(['soon.example.com', 'far.example.com']))
        assert runner.invoke(cli, ['batch-add', '-f', 'endpoints.json']).exit_code == 0

        result = runner.invoke(cli, ['check'])

        assert result.exit_code == 0, result.output
        assert "2 record(s) checked" in result.output
        assert "Notified: 1" in result.output

        result = runner.invoke(cli, ['notifications', '--mark-read'])
        assert result.exit_code == 0, result.output
        assert "2 unread" in result.output
        assert "Marked 2 notification(s) as read" in result.output

        result = runner.invoke(cli, ['notifications', '--clear'])
        assert "Deleted 2 notification(s)" in result.output

    def test_config_file(self, runner, workspace, fetcher):
        (workspace / 'custom.yaml').write_text(yaml.dump({'storage_path': 'records.json', 'key_prefix': 'certs'}))
        fetcher.serve("www.example.com")

        result = runner.invoke(cli, ['-c', 'custom.yaml', 'add', 'www.example.com'])

        assert result.exit_code == 0, result.output
        data = json.loads((workspace / 'records.json').read_text(encoding='utf-8'))
        assert "certs/example.com/www.example.com" in data

    def test_invalid_config_file(self, runner, workspace):
        (workspace / 'bad.yaml').write_text(yaml.dump({'thresholds': {'notice': 1, 'warning': 5, 'critical': 2}}))

        result = runner.invoke(cli, ['-c', 'bad.yaml', 'list'])

        assert result.exit_code != 0
        assert "Config error" in result.output

    def test_watch_rejects_non_positive_interval(self, runner, workspace):
        result = runner.invoke(cli, ['watch', '--interval', '0'])

        assert result.exit_code != 0
        assert "Invalid interval" in result.output

    def test_watch_runs_passes_on_one_store(self, runner, workspace, fetcher, monkeypatch):
        fetcher.serve("a.example.com", days=3)
        fetcher.serve("b.example.com", days=200)
        (workspace / 'endpoints.json').write_text(json.dumps(['a.example.com', 'b.example.com']))
        assert runner.invoke(cli, ['batch-add', '-f', 'endpoints.json']).exit_code == 0
        sleeps = []

        def fake_sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) == 2:
                raise KeyboardInterrupt

        monkeypatch.setattr(main_module.time, 'sleep', fake_sleep)

        result = runner.invoke(cli, ['watch', '--interval', '5', '--refresh'])

        assert result.exit_code == 0, result.output
        assert result.output.count("2 record(s) checked") == 2
        assert "Monitoring stopped." in result.output
        assert sleeps == [5.0, 5.0]
        assert len([k for k in stored(workspace) if k.startswith("sslmonitor/")]) == 2

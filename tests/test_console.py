"""
Tests for the console output manager.
"""

from rich.console import Console

from cert_monitor.console.output import ConsoleManager
from cert_monitor.console.themes import get_theme
from cert_monitor.errors import CoverageError


def make_manager(debug_mode=False):
    console = Console(record=True, width=200, color_system=None, theme=get_theme())
    return ConsoleManager(debug_mode=debug_mode, console=console), console


def raised(error):
    try:
        raise error
    except Exception as e:
        return e


class TestConsoleManager:

    def test_error_panel_with_context_and_suggestion(self):
        manager, console = make_manager()
        error = CoverageError("shop.example.com", ["example.com"])

        manager.print_error(str(error), details={'error_type': 'CoverageError'}, exception=raised(error))

        output = console.export_text()
        assert "SAN mismatch: certificate covers [example.com], not shop.example.com" in output
        assert "Error Type: CoverageError" in output
        assert "virtual host or SNI" in output
        assert "Stack Trace" not in output

    def test_traceback_only_in_debug_mode(self):
        manager, console = make_manager(debug_mode=True)

        manager.print_error("boom", exception=raised(ValueError("boom")))

        output = console.export_text()
        assert "Stack Trace" in output
        assert "ValueError: boom" in output

    def test_messages_are_printed_literally(self):
        manager, console = make_manager()

        manager.print_success("Removed [bold]www.example.com")
        manager.print_warning("[www.example.com] is not monitored")
        manager.print_notification("[red]expiring", "a.example.com [3 days]")

        output = console.export_text()
        assert "Removed [bold]www.example.com" in output
        assert "[www.example.com] is not monitored" in output
        assert "[red]expiring" in output
        assert "a.example.com [3 days]" in output

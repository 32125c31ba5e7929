"""Central console output manager for Rich-formatted output.

This module provides the ConsoleManager class that coordinates all Rich console
output throughout the application, ensuring consistent formatting and handling
debug mode appropriately.
"""

from typing import Optional, Dict, Any
import traceback
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text
from .themes import get_theme, ICONS


class ConsoleManager:
    """Central console output manager.

    Attributes:
        console: Rich Console instance
        debug_mode: Whether debug mode is enabled
        theme: Rich Theme for consistent styling
    """

    def __init__(self, debug_mode: bool = False, console: Optional[Console] = None):
        """Initialize the ConsoleManager.

        Args:
            debug_mode: If True, display stack traces under error panels
            console: Optional pre-built Console (tests pass one that records output)
        """
        self.debug_mode = debug_mode
        self.theme = get_theme()
        self.console = console or Console(theme=self.theme)

    def print_error(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        exception: Optional[Exception] = None
    ) -> None:
        """Display error message in Rich Panel format.

        Shows error message with optional context details and, in debug mode,
        the stack trace of ``exception``.

        Args:
            message: Error message to display
            details: Optional dictionary with additional context (uri, error_type, etc.)
            exception: Optional exception object for extracting traceback
        """
        error_text = Text()
        error_text.append(f"{ICONS['error']} ", style="error")
        error_text.append(message, style="error")

        if details:
            error_text.append("\n\n", style="white")
            error_text.append("Context:\n", style="bold dim")
            for key, value in details.items():
                error_text.append(f"  {key.replace('_', ' ').title()}: ", style="dim")
                error_text.append(f"{value}\n", style="white")

        suggestion = self._get_error_suggestion(message)
        if suggestion:
            error_text.append("\n", style="white")
            error_text.append(f"{ICONS['info']} Suggestion: ", style="info")
            error_text.append(suggestion, style="cyan")

        self.console.print(Panel(
            error_text,
            title="[bold red]Error[/bold red]",
            border_style="red",
            padding=(1, 2)
        ))

        if self.debug_mode and exception:
            self._print_traceback(exception)

    def _get_error_suggestion(self, message: str) -> Optional[str]:
        """Get actionable suggestion for common errors.

        Args:
            message: Error message

        Returns:
            Suggestion string or None if no suggestion available
        """
        message_lower = message.lower()

        if 'file not found' in message_lower or 'no such file' in message_lower:
            return "Check that the file path is correct and the file exists. Use absolute paths if needed."

        if 'timed out' in message_lower or 'timeout' in message_lower:
            return "Check your network connection and firewall settings. The endpoint may be unreachable or slow to respond."

        if 'unable to resolve' in message_lower or 'no dns record' in message_lower:
            return "Verify the hostname is correct and has valid DNS records."

        if 'connection refused' in message_lower:
            return "The server is not accepting connections on this port. Verify the service is running and the port is correct."

        if 'san mismatch' in message_lower:
            return "The endpoint serves a certificate for other names. Check the virtual host or SNI configuration."

        if 'already expired' in message_lower:
            return "Renew the certificate before adding it to monitoring."

        if 'permission denied' in message_lower:
            return "Check file/directory permissions of the record store and log file."

        return None

    def _print_traceback(self, exception: Exception) -> None:
        """Print exception traceback with syntax highlighting."""
        tb_text = ''.join(traceback.format_exception(
            type(exception),
            exception,
            exception.__traceback__
        ))

        self.console.print()
        self.console.print(Panel(
            Syntax(tb_text, "python", theme="monokai", word_wrap=True),
            title="[bold red]Stack Trace[/bold red]",
            border_style="red",
            padding=(1, 2)
        ))

    def print_notification(self, title: str, text: str) -> None:
        """Display a user-facing notification as a highlighted panel.

        Args:
            title: Notification title
            text: Plain-text notification body
        """
        self.console.print(Panel(
            Text(text),
            title=Text(f"{ICONS['bell']} {title}", style="bold yellow"),
            border_style="yellow",
            padding=(1, 2)
        ))

    def print_success(self, message: str) -> None:
        """Display success message.

        Args:
            message: Success message to display
        """
        self.console.print(Text(f"{ICONS['success']} {message}", style="success"))

    def print_warning(self, message: str) -> None:
        """Display warning message.

        Args:
            message: Warning message to display
        """
        self.console.print(Text(f"{ICONS['warning']} {message}", style="warning"))

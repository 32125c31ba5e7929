"""Theme configuration for Rich console output.

This module defines color schemes, icons, and Rich themes for consistent
visual presentation throughout the application.
"""

from rich.theme import Theme

# Tier color mappings
TIER_COLORS = {
    'NONE': 'green',
    'NOTICE': 'dodger_blue1',
    'WARNING': 'dark_orange',
    'CRITICAL': 'bold red'
}

# Unicode icons for various status indicators
ICONS = {
    'success': '✓',
    'error': '✗',
    'warning': '⚠',
    'info': 'ℹ',
    'bell': '🔔',
    'lock': '🔒',
}


def get_theme() -> Theme:
    """Get the Rich theme with custom styles.

    Returns:
        Theme: Rich Theme object with custom style definitions
    """
    return Theme({
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "domain": "bold cyan",
        "timestamp": "dim"
    })

"""
Rich console output package for the certificate monitor.

This package provides consistent, themed terminal output using the Rich library.
"""

from .output import ConsoleManager
from .themes import get_theme, TIER_COLORS, ICONS

__all__ = [
    'ConsoleManager',
    'get_theme',
    'TIER_COLORS',
    'ICONS',
]

"""
Progress reporting utilities for compver.

Provides consistent status reporting on stderr so stdout stays clean for
command output that may be piped (JSON, JSONL, YAML).
"""

import sys
import os
from typing import Optional
from enum import Enum


class LogLevel(Enum):
    """Log levels for progress messages."""
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    SUCCESS = 4


class ProgressReporter:
    """Handles progress reporting to stderr while keeping stdout clean for data."""

    def __init__(self, enabled: Optional[bool] = None, use_colors: Optional[bool] = None):
        """
        Initialize progress reporter.

        Args:
            enabled: Explicitly enable/disable progress. None = auto-detect
            use_colors: Use ANSI colors in output
        """
        if enabled is None:
            # Auto-detect: show progress if stderr is a terminal
            self.enabled = sys.stderr.isatty()
        else:
            self.enabled = enabled

        if use_colors is None:
            self.use_colors = sys.stderr.isatty() and os.environ.get('NO_COLOR') is None
        else:
            self.use_colors = use_colors

        self.colors = {
            'reset': '\033[0m',
            'dim': '\033[2m',
            'red': '\033[31m',
            'green': '\033[32m',
            'yellow': '\033[33m',
            'cyan': '\033[36m',
        }

    def _colorize(self, text: str, color: str) -> str:
        """Add color to text if colors are enabled."""
        if self.use_colors and color in self.colors:
            return f"{self.colors[color]}{text}{self.colors['reset']}"
        return text

    def __call__(self, message: str, force: bool = False, level: LogLevel = LogLevel.INFO):
        """
        Output progress message to stderr if enabled.

        Args:
            message: Progress message to display
            force: Force output even if disabled
            level: Log level for the message
        """
        if not (force or self.enabled):
            return
        if level == LogLevel.WARNING:
            message = self._colorize(message, 'yellow')
        elif level == LogLevel.SUCCESS:
            message = self._colorize(message, 'green')
        elif level == LogLevel.DEBUG:
            message = self._colorize(f"  {message}", 'dim')
        print(message, file=sys.stderr, flush=True)

    def error(self, message: str):
        """Always output errors to stderr, as a single line."""
        first_line = message.strip().splitlines()[0] if message.strip() else "unknown error"
        print(self._colorize(f"Error: {first_line}", 'red'), file=sys.stderr, flush=True)

    def hint(self, message: str):
        """Always output an actionable suggestion to stderr."""
        print(self._colorize(f"Hint: {message}", 'cyan'), file=sys.stderr, flush=True)

    def warning(self, message: str):
        """Output warnings to stderr if enabled."""
        if self.enabled:
            print(self._colorize(f"Warning: {message}", 'yellow'), file=sys.stderr, flush=True)

    def success(self, message: str):
        """Output success message if enabled."""
        self(message, level=LogLevel.SUCCESS)


def get_progress(enabled: Optional[bool] = None) -> ProgressReporter:
    """
    Create a progress reporter.

    Args:
        enabled: Override auto-detection of progress display

    Returns:
        ProgressReporter instance
    """
    if enabled is None:
        setting = os.environ.get('COMPVER_PROGRESS')
        if setting == '0':
            enabled = False
        elif setting == '1':
            enabled = True
    return ProgressReporter(enabled)

"""Terminal colouring for diagnostic messages.

ANSI codes are emitted only when stdout is a TTY, unless overridden:

- ``NO_COLOR`` (https://no-color.org/) disables colours
- ``FORCE_COLOR`` enables them and wins over ``NO_COLOR``

The decision is taken once at import time.
"""

from __future__ import annotations

import os
import sys
from typing import Literal

_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "cyan": "\033[36m",
    "yellow": "\033[33m",
    "green": "\033[32m",
    "bright_red": "\033[91m",
    "bright_green": "\033[92m",
}

ColorName = Literal[
    "reset", "bold", "dim", "cyan", "yellow", "green", "bright_red", "bright_green"
]


def _should_use_colors() -> bool:
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


_USE_COLORS = _should_use_colors()


def colorize(text: str, *colors: ColorName) -> str:
    """Wrap ``text`` in the given ANSI colours when colours are enabled.

    Example:
        >>> colorize("Error", "bright_red", "bold")
        'Error'  # when stdout is not a TTY
    """
    if not _USE_COLORS or not colors:
        return text
    prefix = "".join(_COLORS.get(color, "") for color in colors)
    if not prefix:
        return text
    return f"{prefix}{text}{_COLORS['reset']}"


def error_code(text: str) -> str:
    return colorize(text, "bright_red", "bold")


def location(text: str) -> str:
    return colorize(text, "cyan")


def line_number(text: str) -> str:
    return colorize(text, "yellow")


def error_line(text: str) -> str:
    return colorize(text, "bright_red")


def hint(text: str) -> str:
    return colorize(text, "green")


def suggestion(text: str) -> str:
    return colorize(text, "bright_green", "bold")


def dim_text(text: str) -> str:
    return colorize(text, "dim")


def format_error_header(code: str | None, message: str) -> str:
    """Prefix ``message`` with a coloured error code, if any."""
    if code:
        return f"{error_code(code)}: {message}"
    return message


def format_source_line(lineno: int, content: str, is_error: bool = False) -> str:
    """Format one numbered source line; the error line gets a ``>`` marker.

    Example:
        >>> format_source_line(42, "{{ user }}", is_error=True)
        '> 42 | {{ user }}'
    """
    marker = ">" if is_error else " "
    num = line_number(f"{marker}{lineno:>3}")
    body = error_line(content) if is_error else dim_text(content)
    return f"{num} | {body}"

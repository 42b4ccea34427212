"""Terminal helpers shared by the command-line clients."""

import os
import sys
from enum import Enum
from typing import (
    Any,
    TextIO,
)


class AnsiColors(Enum):
    """
    ANSI color codes for terminal output.
    """

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"
    GREY = "\033[90m"


def supports_color(stream: TextIO | None = None) -> bool:
    """Colors only on interactive terminals, and never when ``NO_COLOR`` is set."""
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def shorten(text: str, width: int = 160) -> str:
    """Cut *text* to *width* characters for one-line display."""
    return text if len(text) <= width else text[: width - 1] + "…"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """
    Print text in color when the target stream is a terminal.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        args: Additional positional arguments for print
        kwargs: Additional keyword arguments for print
    """
    if supports_color(kwargs.get("file")):
        text = f"{color.value}{text}\033[0m"  # ANSI reset at the end
    print(text, *args, **kwargs)

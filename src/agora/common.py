"""Terminal output helpers shared by the server banner and the CLI client."""

import os
import sys
from enum import Enum
from typing import (
    Any,
    TextIO,
)

RESET = "\033[0m"


class AnsiColors(Enum):
    """Roles of CLI output, mapped to ANSI color codes."""

    RED = "\033[91m"  # errors
    GREEN = "\033[92m"  # banners
    YELLOW = "\033[33m"  # agent replies
    BLUE = "\033[94m"  # prompts
    GREY = "\033[90m"  # tool calls


def use_color(stream: TextIO) -> bool:
    """Color only interactive terminals, and never when ``NO_COLOR`` is set."""
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def paint(text: str, color: AnsiColors, stream: TextIO | None = None) -> str:
    if not use_color(stream or sys.stdout):
        return text
    return f"{color.value}{text}{RESET}"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """``print`` *text* in *color*; extra arguments are passed through to ``print``."""
    stream = kwargs.get("file") or sys.stdout
    print(paint(text, color, stream), *args, **kwargs)

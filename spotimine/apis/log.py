"""
Console logging for spotimine.

Every module logs through `logging.getLogger(__name__)`; nothing is printed
until `setup_logging` installs the colored console handler, so the library
code stays silent when imported by tests or other programs.
"""

import logging
import sys
from typing import Optional, TextIO

import colorama
from colorama import Fore, Style


class ColoredFormatter(logging.Formatter):
    """Prefix each message with its severity, colored by level."""

    PREFIXES = {
        "DEBUG": ("[DEBUG]", Fore.CYAN),
        "INFO": ("[INFO]", Style.BRIGHT),
        "WARNING": ("Warning:", Fore.YELLOW + Style.BRIGHT),
        "ERROR": ("Error:", Fore.RED + Style.BRIGHT),
        "CRITICAL": ("FATAL:", Fore.RED + Style.BRIGHT),
    }

    def __init__(self, use_colors: bool = True):
        super().__init__("%(message)s")
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        prefix, color = self.PREFIXES.get(record.levelname, (record.levelname + ":", ""))
        if not self.use_colors:
            return f"{prefix} {message}"
        if record.levelno >= logging.WARNING:
            # Body is tinted too so failures stand out in a long copy run.
            body_color = Fore.RED if record.levelno >= logging.ERROR else Fore.YELLOW
            return f"{color}{prefix}{Style.RESET_ALL} {body_color}{message}{Style.RESET_ALL}"
        return f"{color}{prefix}{Style.RESET_ALL} {message}"


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None, use_colors: Optional[bool] = None) -> logging.Logger:
    stream = stream or sys.stdout
    if use_colors is None:
        use_colors = hasattr(stream, "isatty") and stream.isatty()
    if use_colors:
        colorama.init()

    root = logging.getLogger("spotimine")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(ColoredFormatter(use_colors=use_colors))
    root.addHandler(handler)
    root.propagate = False

    # requests/urllib3 are chatty at DEBUG.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return root

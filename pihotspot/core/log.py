import logging
import os
import sys
from typing import Optional

from colorama import Fore, Style, just_fix_windows_console

_TAG_COLORS = {
    logging.DEBUG: Fore.CYAN,
    logging.INFO: Fore.GREEN,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED,
}


class TagFormatter(logging.Formatter):
    """One line per record: ``[LEVEL] message`` with the tag colored."""

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        tag = f"[{record.levelname}]"
        if self.color:
            tag = f"{_TAG_COLORS.get(record.levelno, '')}{tag}{Style.RESET_ALL}"
        line = f"{tag} {record.getMessage()}"
        if record.exc_info and record.levelno <= logging.DEBUG:
            line += "\n" + self.formatException(record.exc_info)
        return line


def header(text: str, color: Optional[bool] = None) -> str:
    if color is None:
        color = sys.stdout.isatty()
    return f"{Fore.BLUE}{text}{Style.RESET_ALL}" if color else text


def setup_logging(level: Optional[str] = None, color: Optional[bool] = None) -> None:
    lvl = (level or os.environ.get("PIHOTSPOT_LOG_LEVEL") or "INFO").upper()
    if color is None:
        color = sys.stdout.isatty()
    just_fix_windows_console()

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, lvl, logging.INFO))

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(TagFormatter(color=color))
    root.addHandler(handler)

"""Lightweight logging setup for the TUI."""

import logging
import sys


def configure_logging(level: int = logging.INFO, log_file=None) -> None:
    # Configure root logger once; a running Textual app owns the terminal,
    # so pass log_file to keep log lines off the screen.
    handler = logging.FileHandler(log_file, encoding="utf-8") if log_file else logging.StreamHandler(sys.stderr)
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[handler],
    )

"""Convenience entry point to run the SubCircle TUI app.

Allows starting the application with `python main.py` from the project root.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the src/ directory is on sys.path so `import subcircle` works
ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from subcircle.core.config import Settings
from subcircle.frontend.cli.app import SubCircleApp
from subcircle.frontend.cli.context import build_context
from subcircle.frontend.cli.logging_config import configure_logging


def main() -> None:
    """Run the SubCircle Textual CLI application."""
    settings = Settings.from_env()
    configure_logging(settings.log_level, log_file="subcircle.log")
    SubCircleApp(build_context(settings=settings)).run()


if __name__ == "__main__":
    main()

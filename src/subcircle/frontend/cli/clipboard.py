"""Clipboard utilities for the CLI frontend.

Uses pyperclip for cross-platform clipboard access.
"""

from __future__ import annotations

import pyperclip


def copy_to_clipboard(text: str) -> bool:
    """Copy text to the system clipboard.

    Returns False instead of raising when no clipboard mechanism is
    available, so callers can show a notification.
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException:
        return False
    return True

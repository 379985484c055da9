"""Map operation results to what the user sees.

Business code hands back :class:`OperationResult`; only this module decides
titles, wording and severity for Textual notifications.
"""

from __future__ import annotations

from typing import NamedTuple

from subcircle.core.models import ErrorKind, OperationResult


class Feedback(NamedTuple):
    title: str
    message: str
    severity: str  # "information" | "warning" | "error"


_ERROR_TITLES = {
    ErrorKind.VALIDATION: "Missing information",
    ErrorKind.FORMAT: "Decryption Failed",
    ErrorKind.AUTHENTICATION: "Decryption Failed",
    ErrorKind.NOT_FOUND: "Not found",
    ErrorKind.ACCESS_DENIED: "Access denied",
    ErrorKind.STORAGE: "Error",
}


def describe(result: OperationResult, action: str) -> Feedback:
    """Build the notification for ``result`` of ``action`` (e.g. "Save credentials")."""
    if result.success:
        return Feedback(action, result.message or f"{action} succeeded", "information")
    title = _ERROR_TITLES.get(result.error_kind, "Error")
    severity = "warning" if result.error_kind is ErrorKind.VALIDATION else "error"
    return Feedback(title, result.message or f"{action} failed", severity)

"""
Identity of the acting user.

Login itself belongs to the external identity provider; the rest of the
system only needs a stable user id for the session.
"""

from .exceptions import ValidationError


class Identity:
    """Fixed identity for one session."""

    __slots__ = ("_user_id",)

    def __init__(self, user_id):
        if not user_id:
            raise ValidationError("A user id is required")
        self._user_id = str(user_id)

    def current_user_id(self):
        return self._user_id

    def __repr__(self):
        return f"Identity(user_id={self._user_id!r})"

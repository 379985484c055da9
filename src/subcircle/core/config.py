"""Runtime settings read from the environment."""

from __future__ import annotations

from dataclasses import dataclass
import getpass
import logging
import os


@dataclass(frozen=True)
class Settings:
    """Values the TUI and context builder need at startup."""

    db_path: str = "./subcircle.db"
    user_id: str = ""
    log_level: int = logging.INFO

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from ``SUBCIRCLE_*`` environment variables.

        - ``SUBCIRCLE_DB_PATH``: SQLite file (default ``./subcircle.db``)
        - ``SUBCIRCLE_USER``: acting user id (default: OS login name)
        - ``SUBCIRCLE_LOG_LEVEL``: logging level name (default ``INFO``)

        Key derivation parameters are deliberately not configurable here;
        changing them would make every stored record undecryptable.
        """
        level_name = os.getenv("SUBCIRCLE_LOG_LEVEL", "INFO").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            level = logging.INFO
        return cls(
            db_path=os.getenv("SUBCIRCLE_DB_PATH", "./subcircle.db"),
            user_id=os.getenv("SUBCIRCLE_USER") or getpass.getuser(),
            log_level=level,
        )

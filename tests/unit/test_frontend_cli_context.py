"""Unit tests for the CLI AppContext builder."""

import pytest

from subcircle.core.config import Settings
from subcircle.core.exceptions import InitializationError
from subcircle.database.connection import DatabaseConnection
from subcircle.frontend.cli.context import DEFAULT_CATALOG, build_context, seed_catalog


def test_build_context_first_run(tmp_path):
    """A missing database is created, seeded, and the user registered."""
    ctx = build_context(db_path=tmp_path / "new.db", user_id="alice")

    assert ctx.first_run is True
    assert ctx.user_id == "alice"
    assert ctx.users.get("alice") is not None
    assert len(ctx.services.list_all()) == len(DEFAULT_CATALOG)
    assert ctx.services.get_by_name("Netflix").monthly_price == "15.99"


def test_build_context_existing_db(tmp_path):
    db_path = tmp_path / "exists.db"
    build_context(db_path=db_path, user_id="alice")

    ctx = build_context(db_path=db_path, user_id="bob")

    assert ctx.first_run is False
    assert len(ctx.services.list_all()) == len(DEFAULT_CATALOG)
    assert ctx.users.get("alice") is not None
    assert ctx.users.get("bob") is not None


def test_build_context_wires_services(tmp_path):
    ctx = build_context(db_path=tmp_path / "x.db", user_id="alice")

    assert ctx.manager.store is ctx.credentials
    assert ctx.manager.subscriptions is ctx.subscriptions
    assert ctx.partner_access.manager is ctx.manager
    assert ctx.sharing.notifications is ctx.notifications


def test_build_context_uses_settings(tmp_path):
    settings = Settings(db_path=str(tmp_path / "from_settings.db"), user_id="carol")
    ctx = build_context(settings=settings)

    assert ctx.user_id == "carol"
    assert (tmp_path / "from_settings.db").exists()


def test_build_context_rejects_unknown_schema(tmp_path, monkeypatch):
    monkeypatch.setattr(DatabaseConnection, "get_version", lambda self: 99)
    with pytest.raises(InitializationError):
        build_context(db_path=tmp_path / "x.db", user_id="alice")


def test_seed_catalog_only_when_empty(tmp_path):
    ctx = build_context(db_path=tmp_path / "x.db", user_id="alice")
    assert seed_catalog(ctx.services) == 0

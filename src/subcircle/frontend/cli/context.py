"""Small helper to build a SubCircle app context for the TUI."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from subcircle.core.config import Settings
from subcircle.core.exceptions import InitializationError
from subcircle.core.identity import Identity
from subcircle.core.models import StreamingService
from subcircle.credentials.manager import CredentialManager
from subcircle.database.connection import DatabaseConnection
from subcircle.database.schema import SCHEMA_VERSION
from subcircle.database.models import (
    CredentialModel,
    NotificationModel,
    PartnerConnectionModel,
    ServiceModel,
    SubscriptionModel,
    UserModel,
)
from subcircle.sharing.partner_access import PartnerAccess
from subcircle.sharing.service import SharingService

# Seed catalog for a fresh database
DEFAULT_CATALOG = [
    ("Netflix", "streaming", "15.99"),
    ("Spotify", "music", "9.99"),
    ("Disney+", "streaming", "7.99"),
    ("Hulu", "streaming", "5.99"),
    ("Amazon Prime Video", "streaming", "8.99"),
    ("HBO Max", "streaming", "14.99"),
    ("Apple Music", "music", "9.99"),
    ("YouTube Premium", "streaming", "11.99"),
]


@dataclass
class AppContext:
    """Container for runtime objects the UI needs."""

    db: DatabaseConnection
    identity: Identity
    users: UserModel
    services: ServiceModel
    subscriptions: SubscriptionModel
    partners: PartnerConnectionModel
    credentials: CredentialModel
    notifications: NotificationModel
    sharing: SharingService
    manager: CredentialManager
    partner_access: PartnerAccess
    first_run: bool = False

    @property
    def user_id(self) -> str:
        return self.identity.current_user_id()


def seed_catalog(services: ServiceModel) -> int:
    """Insert the default catalog when it is empty; return rows added."""
    if services.list_all():
        return 0
    for name, category, price in DEFAULT_CATALOG:
        services.create(StreamingService(name=name, category=category, monthly_price=price))
    return len(DEFAULT_CATALOG)


def build_context(
    db_path: Optional[str | Path] = None,
    user_id: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> AppContext:
    """
    Initialize the database, wire the services and ensure the user exists.

    Explicit arguments win over ``settings``; ``settings`` defaults to
    :meth:`Settings.from_env`. A missing database file counts as first run,
    in which case the streaming catalog is seeded.
    """
    settings = settings or Settings.from_env()
    db_path = Path(db_path or settings.db_path)
    first_run = not db_path.exists()

    db = DatabaseConnection(str(db_path))
    db.initialize()
    if db.get_version() != SCHEMA_VERSION:
        raise InitializationError(
            f"Database {db_path} has schema version {db.get_version()}, expected {SCHEMA_VERSION}"
        )

    identity = Identity(user_id or settings.user_id)

    users = UserModel(db)
    services = ServiceModel(db)
    subscriptions = SubscriptionModel(db)
    partners = PartnerConnectionModel(db)
    credentials = CredentialModel(db)
    notifications = NotificationModel(db)

    users.ensure(identity.current_user_id())
    if first_run:
        seed_catalog(services)

    sharing = SharingService(subscriptions, credentials, partners=partners, notifications=notifications)
    manager = CredentialManager(credentials, subscriptions, identity)
    partner_access = PartnerAccess(subscriptions, partners, manager)

    return AppContext(
        db=db,
        identity=identity,
        users=users,
        services=services,
        subscriptions=subscriptions,
        partners=partners,
        credentials=credentials,
        notifications=notifications,
        sharing=sharing,
        manager=manager,
        partner_access=partner_access,
        first_run=first_run,
    )

"""ORM-style helpers for database operations."""

import json
import uuid

from .connection import DatabaseConnection
from ..core.models import (
    ConnectionStatus,
    CredentialRecord,
    Notification,
    NotificationCategory,
    PartnerConnection,
    ShareSettings,
    StreamingService,
    Subscription,
    parse_timestamp,
    utcnow,
)
from ..core.exceptions import NotFoundError, StorageError, ValidationError


class BaseModel:
    """Base class for DB models."""

    __slots__ = ("db",)

    def __init__(self, db: DatabaseConnection):
        """Initialize with a DatabaseConnection."""
        self.db = db

    def _serialize_json(self, data):
        """Serialize Python data to JSON string."""
        return json.dumps(data) if data else None

    def _deserialize_json(self, data):
        """Deserialize JSON string to Python data."""
        return json.loads(data) if data else None


class UserModel(BaseModel):
    """DB model for users."""

    def create(self, user_id, email=None, display_name=None):
        """Create a user and return it."""
        query = """
            INSERT INTO users (user_id, email, display_name)
            VALUES (?, ?, ?)
        """

        self.db.execute(query, (user_id, email, display_name))
        return self.get(user_id)

    def ensure(self, user_id, email=None, display_name=None):
        """Return the user row, creating it on first sight."""
        existing = self.get(user_id)
        if existing:
            return existing
        return self.create(user_id, email=email, display_name=display_name)

    def get(self, user_id):
        """Get user by ID."""
        query = "SELECT * FROM users WHERE user_id = ?"
        return self.db.fetch_one(query, (user_id,))

    def get_by_email(self, email):
        """Get user by email."""
        query = "SELECT * FROM users WHERE email = ?"
        return self.db.fetch_one(query, (email,))

    def search(self, term, exclude_user_id=None, limit=20):
        """Find users by email or display name, for partner requests."""
        like = f"%{term}%"
        query = """
            SELECT * FROM users
            WHERE (email LIKE ? OR display_name LIKE ?)
            AND user_id != ?
            ORDER BY display_name LIMIT ?
        """
        return self.db.fetch_all(query, (like, like, exclude_user_id or "", limit))

    def delete(self, user_id):
        """Delete user by ID."""
        query = "DELETE FROM users WHERE user_id = ?"
        self.db.execute(query, (user_id,))
        return True


class ServiceModel(BaseModel):
    """DB model for the streaming service catalog."""

    def create(self, service):
        """Create a catalog entry and return it."""
        query = """
            INSERT INTO streaming_services (service_id, name, category, monthly_price, website_url, logo_url, description)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """

        params = (
            service.service_id,
            service.name,
            service.category,
            None if service.monthly_price is None else str(service.monthly_price),
            service.website_url,
            service.logo_url,
            service.description,
        )

        self.db.execute(query, params)
        return self.get(service.service_id)

    def get(self, service_id):
        """Get a service by ID."""
        row = self.db.fetch_one("SELECT * FROM streaming_services WHERE service_id = ?", (service_id,))
        return StreamingService.from_row(row) if row else None

    def get_by_name(self, name):
        """Get a service by its unique name."""
        row = self.db.fetch_one("SELECT * FROM streaming_services WHERE name = ?", (name,))
        return StreamingService.from_row(row) if row else None

    def list_all(self, category=None):
        """List the catalog, optionally filtered by category."""
        if category:
            rows = self.db.fetch_all(
                "SELECT * FROM streaming_services WHERE category = ? ORDER BY name", (category,)
            )
        else:
            rows = self.db.fetch_all("SELECT * FROM streaming_services ORDER BY name")
        return [StreamingService.from_row(row) for row in rows]

    def delete(self, service_id):
        """Delete service by ID."""
        self.db.execute("DELETE FROM streaming_services WHERE service_id = ?", (service_id,))
        return True


class SubscriptionModel(BaseModel):
    """DB model for user subscriptions and their share settings."""

    _SELECT = """
        SELECT s.*, svc.name AS service_name
        FROM user_subscriptions s
        LEFT JOIN streaming_services svc ON svc.service_id = s.service_id
    """

    def create(self, subscription):
        """Create a subscription and return it."""
        query = """
            INSERT INTO user_subscriptions (subscription_id, user_id, service_id, is_active)
            VALUES (?, ?, ?, ?)
        """

        self.db.execute(
            query,
            (subscription.subscription_id, subscription.user_id, subscription.service_id, subscription.is_active),
        )
        return self.get(subscription.subscription_id)

    def get(self, subscription_id):
        """Get subscription by ID."""
        row = self.db.fetch_one(self._SELECT + " WHERE s.subscription_id = ?", (subscription_id,))
        return Subscription.from_row(row) if row else None

    def list_by_user(self, user_id, active_only=False):
        """List all subscriptions for a user."""
        query = self._SELECT + " WHERE s.user_id = ?"
        if active_only:
            query += " AND s.is_active = 1"
        query += " ORDER BY s.created_at DESC"
        return [Subscription.from_row(row) for row in self.db.fetch_all(query, (user_id,))]

    def list_shared_by_user(self, user_id):
        """List a user's subscriptions visible to partners."""
        query = self._SELECT + " WHERE s.user_id = ? AND s.shared_with_partners = 1 ORDER BY svc.name"
        return [Subscription.from_row(row) for row in self.db.fetch_all(query, (user_id,))]

    def set_active(self, subscription_id, is_active):
        """Toggle whether a subscription is currently paid for."""
        self.db.execute(
            "UPDATE user_subscriptions SET is_active = ? WHERE subscription_id = ?",
            (bool(is_active), subscription_id),
        )
        return True

    def get_share_settings(self, subscription_id):
        """Return the ShareSettings for a subscription or None."""
        row = self.db.fetch_one(
            "SELECT shared_with_partners, share_credentials FROM user_subscriptions WHERE subscription_id = ?",
            (subscription_id,),
        )
        if not row:
            return None
        return ShareSettings(row["shared_with_partners"], row["share_credentials"])

    def write_share_settings(self, subscription_id, settings):
        """
        Persist both share flags in one statement.

        The cascade is enforced here as well as in the sharing policy: a row
        can never end up with ``share_credentials`` set while
        ``shared_with_partners`` is cleared.
        """
        query = """
            UPDATE user_subscriptions SET
                shared_with_partners = ?,
                share_credentials = ? AND ?
            WHERE subscription_id = ?
        """
        count = self.db.execute(
            query,
            (
                settings.shared_with_partners,
                settings.share_credentials,
                settings.shared_with_partners,
                subscription_id,
            ),
        )
        if count == 0:
            raise NotFoundError(f"Subscription {subscription_id} not found")
        return self.get_share_settings(subscription_id)

    def clear_share_credentials(self, subscription_id):
        """Turn credential sharing off without touching metadata sharing."""
        self.db.execute(
            "UPDATE user_subscriptions SET share_credentials = 0 WHERE subscription_id = ?",
            (subscription_id,),
        )
        return True

    def delete(self, subscription_id):
        """Delete subscription by ID (cascades to its credential record)."""
        self.db.execute("DELETE FROM user_subscriptions WHERE subscription_id = ?", (subscription_id,))
        return True


class PartnerConnectionModel(BaseModel):
    """DB model for partner connections."""

    def request(self, user_id, partner_id):
        """Create a pending connection from ``user_id`` to ``partner_id``."""
        if user_id == partner_id:
            raise ValidationError("Cannot partner with yourself")
        if self.get_between(user_id, partner_id):
            raise ValidationError("A partner connection already exists between these users")

        connection = PartnerConnection(user_id=user_id, partner_id=partner_id)
        query = """
            INSERT INTO partner_connections (connection_id, user_id, partner_id, status)
            VALUES (?, ?, ?, ?)
        """
        self.db.execute(
            query,
            (connection.connection_id, user_id, partner_id, connection.status.value),
        )
        return self.get(connection.connection_id)

    def get(self, connection_id):
        """Get connection by ID."""
        row = self.db.fetch_one("SELECT * FROM partner_connections WHERE connection_id = ?", (connection_id,))
        return PartnerConnection.from_row(row) if row else None

    def get_between(self, user_a, user_b):
        """Get the connection between two users regardless of direction."""
        query = """
            SELECT * FROM partner_connections
            WHERE (user_id = ? AND partner_id = ?) OR (user_id = ? AND partner_id = ?)
        """
        row = self.db.fetch_one(query, (user_a, user_b, user_b, user_a))
        return PartnerConnection.from_row(row) if row else None

    def set_status(self, connection_id, status, acting_user_id=None):
        """
        Accept or reject a pending connection.

        Only the invited side may answer when ``acting_user_id`` is given.
        """
        connection = self.get(connection_id)
        if connection is None:
            raise NotFoundError(f"Partner connection {connection_id} not found")
        if acting_user_id is not None and acting_user_id != connection.partner_id:
            raise ValidationError("Only the invited partner can answer a request")

        status = status if isinstance(status, ConnectionStatus) else ConnectionStatus(status)
        self.db.execute(
            "UPDATE partner_connections SET status = ? WHERE connection_id = ?",
            (status.value, connection_id),
        )
        return self.get(connection_id)

    def list_by_user(self, user_id, status=None):
        """List connections (either direction) for a user."""
        query = "SELECT * FROM partner_connections WHERE (user_id = ? OR partner_id = ?)"
        params = [user_id, user_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value if isinstance(status, ConnectionStatus) else status)
        query += " ORDER BY created_at DESC"
        return [PartnerConnection.from_row(row) for row in self.db.fetch_all(query, tuple(params))]

    def list_partner_ids(self, user_id):
        """Return the ids of every accepted partner of ``user_id``."""
        return [c.other(user_id) for c in self.list_by_user(user_id, ConnectionStatus.ACCEPTED)]

    def are_partners(self, user_a, user_b):
        """Return True if the two users have an accepted connection."""
        connection = self.get_between(user_a, user_b)
        return connection is not None and connection.status is ConnectionStatus.ACCEPTED

    def delete(self, connection_id):
        """Delete connection by ID."""
        self.db.execute("DELETE FROM partner_connections WHERE connection_id = ?", (connection_id,))
        return True


class CredentialModel(BaseModel):
    """
    DB model for encrypted credential records.

    This is the data-access interface the credential manager consumes; it
    only ever sees opaque base64 strings and the plaintext hint.
    """

    def upsert(self, record):
        """
        Insert or replace the record for ``record.subscription_id``.

        All fields are written in a single statement; ``id`` and
        ``created_at`` of an existing row are preserved.
        """
        if not record.encrypted_username or not record.encrypted_password:
            raise ValidationError("Encrypted username and password are required")

        now = utcnow().isoformat()
        query = """
            INSERT INTO subscription_credentials (
                id, subscription_id, owner_user_id, encrypted_username,
                encrypted_password, encrypted_notes, encryption_key_hint,
                created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(subscription_id) DO UPDATE SET
                owner_user_id = excluded.owner_user_id,
                encrypted_username = excluded.encrypted_username,
                encrypted_password = excluded.encrypted_password,
                encrypted_notes = excluded.encrypted_notes,
                encryption_key_hint = excluded.encryption_key_hint,
                updated_at = excluded.updated_at
        """

        params = (
            record.record_id or str(uuid.uuid4()),
            record.subscription_id,
            record.owner_user_id,
            record.encrypted_username,
            record.encrypted_password,
            record.encrypted_notes,
            record.encryption_key_hint,
            now,
            now,
        )

        self.db.execute(query, params)
        stored = self.get(record.subscription_id)
        if stored is None:
            raise StorageError(f"Credential upsert for {record.subscription_id} was not persisted")
        return stored

    def get(self, subscription_id):
        """Get the CredentialRecord for a subscription or None."""
        row = self.db.fetch_one(
            "SELECT * FROM subscription_credentials WHERE subscription_id = ?", (subscription_id,)
        )
        return CredentialRecord.from_row(row) if row else None

    def exists(self, subscription_id):
        """Return True if a record is stored for the subscription."""
        row = self.db.fetch_one(
            "SELECT COUNT(*) AS count FROM subscription_credentials WHERE subscription_id = ?",
            (subscription_id,),
        )
        return row["count"] > 0

    def count(self, subscription_id=None):
        """Count stored records, optionally for one subscription."""
        if subscription_id is None:
            row = self.db.fetch_one("SELECT COUNT(*) AS count FROM subscription_credentials")
        else:
            row = self.db.fetch_one(
                "SELECT COUNT(*) AS count FROM subscription_credentials WHERE subscription_id = ?",
                (subscription_id,),
            )
        return row["count"]

    def delete(self, subscription_id):
        """Delete the record; deleting a missing record is not an error."""
        self.db.execute("DELETE FROM subscription_credentials WHERE subscription_id = ?", (subscription_id,))
        return True


class NotificationModel(BaseModel):
    """DB model for in-app notifications."""

    def create(self, notification):
        """Store a notification and return it."""
        query = """
            INSERT INTO notifications (notification_id, user_id, type, title, message, data,
                                       read, priority, category, action_url, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """

        params = (
            notification.notification_id,
            notification.user_id,
            notification.type,
            notification.title,
            notification.message,
            self._serialize_json(notification.data),
            notification.read,
            notification.priority,
            notification.category.value,
            notification.action_url,
            notification.created_at.isoformat(),
        )

        self.db.execute(query, params)
        return self.get(notification.notification_id)

    def get(self, notification_id):
        """Get notification by ID."""
        row = self.db.fetch_one("SELECT * FROM notifications WHERE notification_id = ?", (notification_id,))
        return self._row_to_notification(row) if row else None

    def list_by_user(self, user_id, unread_only=False, category=None, limit=50):
        """List a user's notifications, newest first."""
        query = "SELECT * FROM notifications WHERE user_id = ?"
        params = [user_id]

        if unread_only:
            query += " AND read = 0"
        if category is not None:
            query += " AND category = ?"
            params.append(category.value if isinstance(category, NotificationCategory) else category)

        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)

        return [self._row_to_notification(row) for row in self.db.fetch_all(query, tuple(params))]

    def unread_count(self, user_id):
        """Number of unread notifications for a user."""
        row = self.db.fetch_one(
            "SELECT COUNT(*) AS count FROM notifications WHERE user_id = ? AND read = 0", (user_id,)
        )
        return row["count"]

    def mark_read(self, notification_id, user_id):
        """Mark one notification read; False if it does not belong to the user."""
        count = self.db.execute(
            "UPDATE notifications SET read = 1 WHERE notification_id = ? AND user_id = ?",
            (notification_id, user_id),
        )
        return count > 0

    def mark_all_read(self, user_id):
        """Mark every notification of the user read and return how many changed."""
        return self.db.execute(
            "UPDATE notifications SET read = 1 WHERE user_id = ? AND read = 0", (user_id,)
        )

    def delete(self, notification_id, user_id):
        """Delete one of the user's notifications."""
        self.db.execute(
            "DELETE FROM notifications WHERE notification_id = ? AND user_id = ?",
            (notification_id, user_id),
        )
        return True

    def _row_to_notification(self, row):
        return Notification(
            notification_id=row["notification_id"],
            user_id=row["user_id"],
            type=row["type"],
            title=row["title"],
            message=row["message"],
            data=self._deserialize_json(row.get("data")),
            read=row["read"],
            priority=row.get("priority") or "low",
            category=row.get("category") or NotificationCategory.PARTNER.value,
            action_url=row.get("action_url"),
            created_at=parse_timestamp(row.get("created_at")),
        )


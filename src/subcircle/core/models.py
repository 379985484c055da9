"""
Base data models for credentials, sharing and the supporting CRUD entities
"""

from datetime import datetime, timezone
from enum import Enum
import uuid

from .exceptions import (
    AccessDeniedError,
    AuthenticationError,
    FormatError,
    NotFoundError,
    StorageError,
    ValidationError,
)


def utcnow():
    return datetime.now(timezone.utc)


def parse_timestamp(value):
    # SQLite hands timestamps back as text
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class ErrorKind(Enum):
    # Failure categories surfaced to the presentation layer
    VALIDATION = "validation"
    FORMAT = "format"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    STORAGE = "storage"


_ERROR_KINDS = (
    (ValidationError, ErrorKind.VALIDATION),
    (FormatError, ErrorKind.FORMAT),
    (AuthenticationError, ErrorKind.AUTHENTICATION),
    (NotFoundError, ErrorKind.NOT_FOUND),
    (AccessDeniedError, ErrorKind.ACCESS_DENIED),
    (StorageError, ErrorKind.STORAGE),
)


class CredentialState(Enum):
    # Lifecycle of a subscription's credential record
    NO_CREDENTIALS = "no_credentials"
    SAVED = "saved"


class ConnectionStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class NotificationCategory(Enum):
    PARTNER = "partner"
    SUBSCRIPTION = "subscription"
    SECURITY = "security"
    SYSTEM = "system"


class OperationResult:
    """
        Explicit success/failure value returned across the sharing/UI boundary

        Managers never raise to their callers; they hand back one of these so
        the presentation layer can pick a message without unwinding state.
    """

    __slots__ = ("success", "data", "error_kind", "message")

    def __init__(self, success, data=None, error_kind=None, message=None):
        self.success = success
        self.data = data
        self.error_kind = error_kind
        self.message = message

    @classmethod
    def ok(cls, data=None, message=None):
        return cls(True, data=data, message=message)

    @classmethod
    def fail(cls, error_kind, message):
        return cls(False, error_kind=error_kind, message=message)

    @classmethod
    def from_error(cls, error, message=None):
        """Build a failed result from a SubCircleError subclass."""
        for exc_type, kind in _ERROR_KINDS:
            if isinstance(error, exc_type):
                return cls.fail(kind, message or str(error))
        return cls.fail(ErrorKind.STORAGE, message or str(error))

    def __bool__(self):
        return self.success

    def __repr__(self):
        if self.success:
            return f"OperationResult(success=True, data={self.data!r})"
        return f"OperationResult(success=False, error_kind={self.error_kind}, message={self.message!r})"


class CredentialData:
    """
        Plaintext credentials as entered by the owner or recovered by decrypt
    """

    __slots__ = ("username", "password", "notes", "key_hint")

    def __init__(self, username, password, notes=None, key_hint=None):
        self.username = username
        self.password = password
        self.notes = notes
        self.key_hint = key_hint

    def __eq__(self, other):
        if not isinstance(other, CredentialData):
            return NotImplemented
        return (
            self.username == other.username
            and self.password == other.password
            and self.notes == other.notes
        )

    def __repr__(self):
        # plaintext secrets stay out of logs and tracebacks
        return f"CredentialData(username=<hidden>, password=<hidden>, has_notes={bool(self.notes)})"


class CredentialRecord:
    """
        Stored, encrypted credentials for one subscription

        Each ``encrypted_*`` field is base64(nonce || ciphertext) and opaque to
        everything except :mod:`subcircle.security`.
    """

    __slots__ = (
        "record_id",
        "subscription_id",
        "owner_user_id",
        "encrypted_username",
        "encrypted_password",
        "encrypted_notes",
        "encryption_key_hint",
        "created_at",
        "updated_at",
    )

    def __init__(
        self,
        subscription_id,
        owner_user_id,
        encrypted_username,
        encrypted_password,
        encrypted_notes=None,
        encryption_key_hint=None,
        record_id=None,
        created_at=None,
        updated_at=None,
    ):
        self.record_id = record_id if record_id is not None else str(uuid.uuid4())
        self.subscription_id = subscription_id
        self.owner_user_id = owner_user_id
        self.encrypted_username = encrypted_username
        self.encrypted_password = encrypted_password
        self.encrypted_notes = encrypted_notes
        self.encryption_key_hint = encryption_key_hint
        self.created_at = created_at if created_at is not None else utcnow()
        self.updated_at = updated_at if updated_at is not None else self.created_at

    def encrypted_fields(self):
        """Return the present encrypted fields keyed by plaintext field name."""
        fields = {
            "username": self.encrypted_username,
            "password": self.encrypted_password,
        }
        if self.encrypted_notes:
            fields["notes"] = self.encrypted_notes
        return fields

    def to_dict(self):
        return {
            "id": self.record_id,
            "subscription_id": self.subscription_id,
            "owner_user_id": self.owner_user_id,
            "encrypted_username": self.encrypted_username,
            "encrypted_password": self.encrypted_password,
            "encrypted_notes": self.encrypted_notes,
            "encryption_key_hint": self.encryption_key_hint,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row):
        """Rehydrate a record from a ``subscription_credentials`` row."""
        return cls(
            record_id=row["id"],
            subscription_id=row["subscription_id"],
            owner_user_id=row["owner_user_id"],
            encrypted_username=row["encrypted_username"],
            encrypted_password=row["encrypted_password"],
            encrypted_notes=row.get("encrypted_notes"),
            encryption_key_hint=row.get("encryption_key_hint"),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )

    def __repr__(self):
        return f"CredentialRecord(subscription_id={self.subscription_id!r}, owner_user_id={self.owner_user_id!r})"


class ShareSettings:
    """Per-subscription sharing flags."""

    __slots__ = ("shared_with_partners", "share_credentials")

    def __init__(self, shared_with_partners=False, share_credentials=False):
        self.shared_with_partners = bool(shared_with_partners)
        self.share_credentials = bool(share_credentials)

    def to_dict(self):
        return {
            "shared_with_partners": self.shared_with_partners,
            "share_credentials": self.share_credentials,
        }

    def __eq__(self, other):
        if not isinstance(other, ShareSettings):
            return NotImplemented
        return (
            self.shared_with_partners == other.shared_with_partners
            and self.share_credentials == other.share_credentials
        )

    def __repr__(self):
        return (
            f"ShareSettings(shared_with_partners={self.shared_with_partners}, "
            f"share_credentials={self.share_credentials})"
        )


class StreamingService:
    """
        Catalog entry for a streaming service
    """

    __slots__ = ("service_id", "name", "category", "monthly_price", "website_url", "logo_url", "description")

    def __init__(self, name, category=None, monthly_price=None, website_url=None, logo_url=None, description=None, service_id=None):
        self.service_id = service_id if service_id is not None else str(uuid.uuid4())
        self.name = name
        self.category = category
        self.monthly_price = monthly_price
        self.website_url = website_url
        self.logo_url = logo_url
        self.description = description

    @classmethod
    def from_row(cls, row):
        return cls(
            service_id=row["service_id"],
            name=row["name"],
            category=row.get("category"),
            monthly_price=row.get("monthly_price"),
            website_url=row.get("website_url"),
            logo_url=row.get("logo_url"),
            description=row.get("description"),
        )

    def __repr__(self):
        return f"StreamingService(name={self.name!r})"


class Subscription:
    """
        A user's subscription to a streaming service, with its share flags
    """

    __slots__ = ("subscription_id", "user_id", "service_id", "service_name", "is_active", "settings", "created_at")

    def __init__(self, user_id, service_id, subscription_id=None, service_name=None, is_active=True, settings=None, created_at=None):
        self.subscription_id = subscription_id if subscription_id is not None else str(uuid.uuid4())
        self.user_id = user_id
        self.service_id = service_id
        self.service_name = service_name
        self.is_active = bool(is_active)
        self.settings = settings if settings is not None else ShareSettings()
        self.created_at = created_at if created_at is not None else utcnow()

    @classmethod
    def from_row(cls, row):
        return cls(
            subscription_id=row["subscription_id"],
            user_id=row["user_id"],
            service_id=row["service_id"],
            service_name=row.get("service_name"),
            is_active=row.get("is_active", True),
            settings=ShareSettings(
                shared_with_partners=row.get("shared_with_partners", False),
                share_credentials=row.get("share_credentials", False),
            ),
            created_at=parse_timestamp(row.get("created_at")),
        )

    def __repr__(self):
        return f"Subscription(subscription_id={self.subscription_id!r}, service={self.service_name or self.service_id!r})"


class PartnerConnection:
    """
        A (possibly pending) partner link between two users
    """

    __slots__ = ("connection_id", "user_id", "partner_id", "status", "created_at")

    def __init__(self, user_id, partner_id, status=ConnectionStatus.PENDING, connection_id=None, created_at=None):
        self.connection_id = connection_id if connection_id is not None else str(uuid.uuid4())
        self.user_id = user_id
        self.partner_id = partner_id
        self.status = status if isinstance(status, ConnectionStatus) else ConnectionStatus(status)
        self.created_at = created_at if created_at is not None else utcnow()

    def other(self, user_id):
        """Return the id on the other side of the connection."""
        return self.partner_id if user_id == self.user_id else self.user_id

    @classmethod
    def from_row(cls, row):
        return cls(
            connection_id=row["connection_id"],
            user_id=row["user_id"],
            partner_id=row["partner_id"],
            status=row["status"],
            created_at=parse_timestamp(row.get("created_at")),
        )

    def __repr__(self):
        return f"PartnerConnection(user_id={self.user_id!r}, partner_id={self.partner_id!r}, status={self.status.value})"


class Notification:
    """
        In-app notification shown in a user's notification list
    """

    __slots__ = ("notification_id", "user_id", "type", "title", "message", "data", "read", "priority", "category", "action_url", "created_at")

    def __init__(
        self,
        user_id,
        type,
        title,
        message,
        data=None,
        read=False,
        priority="low",
        category=NotificationCategory.PARTNER,
        action_url=None,
        notification_id=None,
        created_at=None,
    ):
        self.notification_id = notification_id if notification_id is not None else str(uuid.uuid4())
        self.user_id = user_id
        self.type = type
        self.title = title
        self.message = message
        self.data = data if data is not None else {}
        self.read = bool(read)
        self.priority = priority
        self.category = category if isinstance(category, NotificationCategory) else NotificationCategory(category)
        self.action_url = action_url
        self.created_at = created_at if created_at is not None else utcnow()

    def __repr__(self):
        return f"Notification(user_id={self.user_id!r}, type={self.type!r}, read={self.read})"

"""
Credential record manager.

Orchestrates the encryption scheme in :mod:`subcircle.security` around a
credential store:

- ``save``: derive the key once, seal username / password / notes
  independently, upsert one whole record
- ``get``: read-through, no password needed, hint and opaque fields only
- ``decrypt``: re-derive with the record owner's id, all fields or nothing
- ``delete``: idempotent removal that also switches credential sharing off

Every operation is a coroutine that returns an :class:`OperationResult`
instead of raising. PBKDF2 and SQLite work is pushed to a worker thread so
the event loop stays responsive, and operations on the same subscription
are serialized with a per-subscription lock.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Optional, Union

from ..core.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    FormatError,
    NotFoundError,
    SubCircleError,
    ValidationError,
)
from ..core.models import (
    CredentialData,
    CredentialRecord,
    CredentialState,
    ErrorKind,
    OperationResult,
)
from ..security.codec import open_sealed, seal
from ..security.kdf import derive_key

logger = logging.getLogger(__name__)

DECRYPT_FAILED_MESSAGE = "Invalid master password or corrupted data"


class CredentialManager:
    """Save, read, decrypt and delete encrypted credentials per subscription."""

    def __init__(self, store, subscriptions, identity):
        """
        Args:
            store: credential data-access object (``upsert``, ``get``,
                ``delete``), e.g. :class:`subcircle.database.models.CredentialModel`
            subscriptions: subscription data-access object (``get``,
                ``clear_share_credentials``) on the same database, used for
                the owner check and to switch credential sharing off on delete
            identity: object exposing ``current_user_id()``
        """
        self.store = store
        self.subscriptions = subscriptions
        self.identity = identity
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def _lock_for(self, subscription_id: str) -> asyncio.Lock:
        lock = self._locks.get(subscription_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[subscription_id] = lock
        return lock

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def save(
        self,
        subscription_id: str,
        credentials: CredentialData,
        master_password: str,
    ) -> OperationResult:
        """Encrypt ``credentials`` and upsert the record for ``subscription_id``."""
        try:
            self._validate_save(subscription_id, credentials, master_password)
            owner_user_id = self.identity.current_user_id()

            async with self._lock_for(subscription_id):
                subscription = await asyncio.to_thread(self.subscriptions.get, subscription_id)
                if subscription is None:
                    raise NotFoundError(f"Subscription {subscription_id} not found")
                if subscription.user_id != owner_user_id:
                    raise AccessDeniedError("Only the owner can change these credentials")

                # Nothing is written until every field is sealed, so an
                # abandoned save leaves the previous record untouched.
                record = await asyncio.to_thread(
                    self._seal_record,
                    subscription_id,
                    owner_user_id,
                    credentials,
                    master_password,
                )
                stored = await asyncio.to_thread(self.store.upsert, record)
        except SubCircleError as e:
            logger.warning("Saving credentials for %s failed: %s", subscription_id, e)
            return OperationResult.from_error(e)

        logger.info("Saved credentials for subscription %s", subscription_id)
        return OperationResult.ok(stored, message="Credentials saved")

    async def get(self, subscription_id: str) -> OperationResult:
        """Return the stored record (or ``None``) without decrypting it."""
        try:
            async with self._lock_for(subscription_id):
                record = await asyncio.to_thread(self.store.get, subscription_id)
        except SubCircleError as e:
            logger.warning("Loading credentials for %s failed: %s", subscription_id, e)
            return OperationResult.from_error(e)
        return OperationResult.ok(record)

    async def decrypt(
        self,
        record: Union[CredentialRecord, str, None],
        master_password: str,
    ) -> OperationResult:
        """
        Decrypt every present field of ``record`` with ``master_password``.

        ``record`` may also be a subscription id, in which case it is loaded
        first. Any single field failing its tag check aborts the whole call
        with one generic message; partial plaintext is never returned.
        """
        if record is None:
            return OperationResult.fail(ErrorKind.NOT_FOUND, "No credentials stored for this subscription")
        if not master_password:
            return OperationResult.fail(ErrorKind.VALIDATION, "Master password is required")

        subscription_id = record if isinstance(record, str) else record.subscription_id

        try:
            async with self._lock_for(subscription_id):
                if isinstance(record, str):
                    record = await asyncio.to_thread(self.store.get, subscription_id)
                    if record is None:
                        raise NotFoundError(f"No credentials stored for subscription {subscription_id}")
                data = await asyncio.to_thread(self._open_record, record, master_password)
        except (AuthenticationError, FormatError) as e:
            logger.warning(
                "Decrypting credentials for %s failed (%s)", subscription_id, type(e).__name__
            )
            return OperationResult.from_error(e, message=DECRYPT_FAILED_MESSAGE)
        except SubCircleError as e:
            logger.warning("Decrypting credentials for %s failed: %s", subscription_id, e)
            return OperationResult.from_error(e)

        logger.info("Decrypted credentials for subscription %s", subscription_id)
        return OperationResult.ok(data)

    async def delete(self, subscription_id: str) -> OperationResult:
        """Remove the record; a missing record is not an error."""
        try:
            async with self._lock_for(subscription_id):
                await asyncio.to_thread(
                    self._delete_record, subscription_id, self.identity.current_user_id()
                )
        except SubCircleError as e:
            logger.warning("Deleting credentials for %s failed: %s", subscription_id, e)
            return OperationResult.from_error(e)

        logger.info("Deleted credentials for subscription %s", subscription_id)
        return OperationResult.ok(message="Credentials deleted")

    async def state(self, subscription_id: str) -> CredentialState:
        """Return where the subscription is in the credential lifecycle."""
        result = await self.get(subscription_id)
        if not result.success:
            return CredentialState.NO_CREDENTIALS
        return describe_state(result.data)

    # ------------------------------------------------------------------
    # Blocking helpers, run in a worker thread
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_save(subscription_id, credentials, master_password) -> None:
        if not subscription_id:
            raise ValidationError("Subscription id is required")
        if credentials is None or not credentials.username:
            raise ValidationError("Username is required")
        if not credentials.password:
            raise ValidationError("Password is required")
        if not master_password:
            raise ValidationError("Master password is required")
        hint = (credentials.key_hint or "").strip()
        if hint and hint.lower() == master_password.strip().lower():
            raise ValidationError("The password hint must not be the master password itself")

    def _delete_record(self, subscription_id: str, user_id: str) -> None:
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None:
            # the record went with its subscription
            return
        if subscription.user_id != user_id:
            raise AccessDeniedError("Only the owner can delete these credentials")

        with self.store.db.get_transaction_context():
            self.store.delete(subscription_id)
            self.subscriptions.clear_share_credentials(subscription_id)

    @staticmethod
    def _seal_record(
        subscription_id: str,
        owner_user_id: str,
        credentials: CredentialData,
        master_password: str,
    ) -> CredentialRecord:
        key = derive_key(master_password, owner_user_id)
        return CredentialRecord(
            subscription_id=subscription_id,
            owner_user_id=owner_user_id,
            encrypted_username=seal(credentials.username, key),
            encrypted_password=seal(credentials.password, key),
            encrypted_notes=seal(credentials.notes, key) if credentials.notes else None,
            encryption_key_hint=credentials.key_hint or None,
        )

    @staticmethod
    def _open_record(record: CredentialRecord, master_password: str) -> CredentialData:
        if not record.encrypted_username or not record.encrypted_password:
            raise FormatError("Credential record is missing mandatory fields")

        key = derive_key(master_password, record.owner_user_id)
        plain = {name: open_sealed(blob, key) for name, blob in record.encrypted_fields().items()}
        return CredentialData(
            username=plain["username"],
            password=plain["password"],
            notes=plain.get("notes"),
            key_hint=record.encryption_key_hint,
        )


def describe_state(record: Optional[CredentialRecord]) -> CredentialState:
    """Lifecycle state for an already-loaded record."""
    return CredentialState.SAVED if record is not None else CredentialState.NO_CREDENTIALS

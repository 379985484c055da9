"""
Unit tests for the CredentialManager (save / get / decrypt / delete).
"""

import asyncio
import base64
from unittest.mock import patch

import pytest

from subcircle.core.exceptions import StorageError
from subcircle.core.identity import Identity
from subcircle.core.models import (
    CredentialData,
    CredentialRecord,
    CredentialState,
    ErrorKind,
    ShareSettings,
    StreamingService,
    Subscription,
)
from subcircle.credentials.manager import DECRYPT_FAILED_MESSAGE, CredentialManager, describe_state
from subcircle.database.connection import DatabaseConnection
from subcircle.database.models import CredentialModel, ServiceModel, SubscriptionModel, UserModel
from subcircle.sharing.service import SharingService

MASTER = "correcthorse"


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def db(tmp_path):
    conn = DatabaseConnection(str(tmp_path / "subcircle.db"))
    conn.initialize()
    UserModel(conn).create("alice", email="alice@x.com")
    service = ServiceModel(conn).create(StreamingService(name="Netflix", category="streaming"))
    SubscriptionModel(conn).create(
        Subscription(user_id="alice", service_id=service.service_id, subscription_id="sub-1")
    )
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def store(db):
    return CredentialModel(db)


@pytest.fixture
def subscriptions(db):
    return SubscriptionModel(db)


@pytest.fixture
def sharing(subscriptions, store):
    return SharingService(subscriptions, store)


@pytest.fixture
def manager(store, subscriptions):
    return CredentialManager(store, subscriptions, Identity("alice"))


@pytest.fixture
def creds():
    return CredentialData("alice@x.com", "s3cr3t", notes="shared")


def _flip_byte(blob, index=-1):
    raw = bytearray(base64.b64decode(blob))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


# ==============================================================================
# Tests: save / get
# ==============================================================================

@pytest.mark.asyncio
async def test_save_returns_stored_record(manager, creds):
    result = await manager.save("sub-1", creds, MASTER)

    assert result.success
    record = result.data
    assert isinstance(record, CredentialRecord)
    assert record.owner_user_id == "alice"
    assert record.encrypted_username and record.encrypted_password and record.encrypted_notes
    assert record.encryption_key_hint is None


@pytest.mark.asyncio
async def test_saved_fields_contain_no_plaintext_or_master(manager, creds):
    result = await manager.save("sub-1", creds, MASTER)
    values = [str(v) for v in result.data.to_dict().values()]
    for secret in (MASTER, "s3cr3t", "alice@x.com"):
        assert not any(secret in v for v in values)


@pytest.mark.asyncio
async def test_save_without_notes_leaves_notes_empty(manager):
    result = await manager.save("sub-1", CredentialData("u", "p", notes=""), MASTER)
    assert result.data.encrypted_notes is None


@pytest.mark.asyncio
async def test_save_uses_fresh_nonces(manager, creds):
    first = (await manager.save("sub-1", creds, MASTER)).data
    second = (await manager.save("sub-1", creds, MASTER)).data

    assert first.encrypted_username != second.encrypted_username
    assert first.encrypted_password != second.encrypted_password
    # username and password never share a nonce within one save
    assert base64.b64decode(second.encrypted_username)[:12] != base64.b64decode(second.encrypted_password)[:12]


@pytest.mark.asyncio
async def test_resave_replaces_single_record(manager, store, creds):
    first = (await manager.save("sub-1", creds, MASTER)).data
    second = (await manager.save("sub-1", CredentialData("new@x.com", "n3w"), MASTER)).data

    assert store.count() == 1
    assert second.record_id == first.record_id
    decrypted = await manager.decrypt("sub-1", MASTER)
    assert decrypted.data == CredentialData("new@x.com", "n3w")


@pytest.mark.asyncio
async def test_save_keeps_hint(manager):
    result = await manager.save("sub-1", CredentialData("u", "p", key_hint="first pet"), MASTER)
    assert result.data.encryption_key_hint == "first pet"

    decrypted = await manager.decrypt(result.data, MASTER)
    assert decrypted.data.key_hint == "first pet"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "sid, data, master",
    [
        ("", CredentialData("u", "p"), MASTER),
        ("sub-1", CredentialData("", "p"), MASTER),
        ("sub-1", CredentialData("u", ""), MASTER),
        ("sub-1", CredentialData("u", "p"), ""),
        ("sub-1", None, MASTER),
        ("sub-1", CredentialData("u", "p", key_hint=" CorrectHorse "), MASTER),
    ],
)
async def test_save_validation_writes_nothing(manager, store, sid, data, master):
    result = await manager.save(sid, data, master)
    assert not result.success
    assert result.error_kind is ErrorKind.VALIDATION
    assert store.count() == 0


@pytest.mark.asyncio
async def test_save_by_other_user_is_denied(manager, store, subscriptions, creds):
    await manager.save("sub-1", creds, MASTER)
    intruder = CredentialManager(store, subscriptions, Identity("mallory"))

    result = await intruder.save("sub-1", CredentialData("x", "y"), "other")

    assert result.error_kind is ErrorKind.ACCESS_DENIED
    assert (await manager.decrypt("sub-1", MASTER)).data == creds


@pytest.mark.asyncio
async def test_other_user_cannot_claim_subscription_without_record(manager, store, subscriptions, creds):
    intruder = CredentialManager(store, subscriptions, Identity("mallory"))

    claimed = await intruder.save("sub-1", CredentialData("x", "y"), "other")
    assert claimed.error_kind is ErrorKind.ACCESS_DENIED
    assert store.count() == 0
    assert (await intruder.delete("sub-1")).error_kind is ErrorKind.ACCESS_DENIED

    # the subscription owner is not locked out
    assert (await manager.save("sub-1", creds, MASTER)).success
    assert (await manager.delete("sub-1")).success


@pytest.mark.asyncio
async def test_save_for_unknown_subscription_is_not_found(manager, store, creds):
    result = await manager.save("ghost", creds, MASTER)
    assert result.error_kind is ErrorKind.NOT_FOUND
    assert store.count() == 0


@pytest.mark.asyncio
async def test_get_is_read_through(manager, creds):
    assert (await manager.get("sub-1")).data is None
    await manager.save("sub-1", creds, MASTER)
    assert (await manager.get("sub-1")).data.subscription_id == "sub-1"


# ==============================================================================
# Tests: decrypt
# ==============================================================================

@pytest.mark.asyncio
async def test_round_trip(manager, creds):
    record = (await manager.save("sub-1", creds, MASTER)).data
    result = await manager.decrypt(record, MASTER)

    assert result.success
    assert result.data == creds
    assert result.data.notes == "shared"


@pytest.mark.asyncio
async def test_decrypt_wrong_password_fails_closed(manager, creds):
    record = (await manager.save("sub-1", creds, MASTER)).data
    result = await manager.decrypt(record, "wrong")

    assert not result.success
    assert result.data is None
    assert result.error_kind is ErrorKind.AUTHENTICATION
    assert result.message == DECRYPT_FAILED_MESSAGE


@pytest.mark.asyncio
async def test_decrypt_with_other_owner_id_fails(manager, creds):
    record = (await manager.save("sub-1", creds, MASTER)).data
    record.owner_user_id = "bob"
    result = await manager.decrypt(record, MASTER)
    assert result.error_kind is ErrorKind.AUTHENTICATION


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["encrypted_username", "encrypted_password", "encrypted_notes"])
async def test_single_corrupt_field_fails_whole_record(manager, creds, field):
    record = (await manager.save("sub-1", creds, MASTER)).data
    setattr(record, field, _flip_byte(getattr(record, field), index=20))

    result = await manager.decrypt(record, MASTER)

    assert result.data is None
    assert result.error_kind in (ErrorKind.AUTHENTICATION, ErrorKind.FORMAT)
    assert result.message == DECRYPT_FAILED_MESSAGE


@pytest.mark.asyncio
async def test_decrypt_garbage_field_is_format_error(manager, creds):
    record = (await manager.save("sub-1", creds, MASTER)).data
    record.encrypted_password = "not base64!!"
    result = await manager.decrypt(record, MASTER)
    assert result.error_kind is ErrorKind.FORMAT
    assert result.message == DECRYPT_FAILED_MESSAGE


@pytest.mark.asyncio
async def test_decrypt_record_missing_mandatory_field(manager):
    record = CredentialRecord("sub-1", "alice", None, "cGFzcw==")
    result = await manager.decrypt(record, MASTER)
    assert result.error_kind is ErrorKind.FORMAT


@pytest.mark.asyncio
async def test_decrypt_missing_record(manager):
    assert (await manager.decrypt(None, MASTER)).error_kind is ErrorKind.NOT_FOUND
    assert (await manager.decrypt("sub-1", MASTER)).error_kind is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_decrypt_requires_master_password(manager, creds):
    record = (await manager.save("sub-1", creds, MASTER)).data
    result = await manager.decrypt(record, "")
    assert result.error_kind is ErrorKind.VALIDATION


# ==============================================================================
# Tests: delete / state
# ==============================================================================

@pytest.mark.asyncio
async def test_delete_is_idempotent(manager, creds):
    await manager.save("sub-1", creds, MASTER)

    assert (await manager.delete("sub-1")).success
    assert (await manager.get("sub-1")).data is None
    assert (await manager.delete("sub-1")).success


@pytest.mark.asyncio
async def test_delete_clears_credential_sharing(manager, sharing, db, creds):
    await manager.save("sub-1", creds, MASTER)
    updated = await sharing.update_settings("sub-1", "alice", ShareSettings(True, True))
    assert updated.data == ShareSettings(True, True)

    await manager.delete("sub-1")

    assert SubscriptionModel(db).get_share_settings("sub-1") == ShareSettings(True, False)


@pytest.mark.asyncio
async def test_delete_rolls_back_when_sharing_cannot_be_cleared(manager, sharing, store, subscriptions, creds):
    await manager.save("sub-1", creds, MASTER)
    await sharing.update_settings("sub-1", "alice", ShareSettings(True, True))

    with patch.object(SubscriptionModel, "clear_share_credentials", side_effect=StorageError("disk full")):
        result = await manager.delete("sub-1")

    assert result.error_kind is ErrorKind.STORAGE
    assert store.exists("sub-1")
    assert subscriptions.get_share_settings("sub-1") == ShareSettings(True, True)


@pytest.mark.asyncio
async def test_delete_by_other_user_is_denied(manager, store, subscriptions, creds):
    await manager.save("sub-1", creds, MASTER)
    result = await CredentialManager(store, subscriptions, Identity("mallory")).delete("sub-1")
    assert result.error_kind is ErrorKind.ACCESS_DENIED
    assert store.exists("sub-1")


@pytest.mark.asyncio
async def test_state_transitions(manager, creds):
    assert await manager.state("sub-1") is CredentialState.NO_CREDENTIALS
    await manager.save("sub-1", creds, MASTER)
    assert await manager.state("sub-1") is CredentialState.SAVED
    await manager.delete("sub-1")
    assert await manager.state("sub-1") is CredentialState.NO_CREDENTIALS


def test_describe_state():
    assert describe_state(None) is CredentialState.NO_CREDENTIALS
    assert describe_state(CredentialRecord("s", "o", "a", "b")) is CredentialState.SAVED


# ==============================================================================
# Tests: concurrency
# ==============================================================================

@pytest.mark.asyncio
async def test_concurrent_saves_leave_one_whole_record(manager, store):
    first = CredentialData("one@x.com", "pw-one", notes="one")
    second = CredentialData("two@x.com", "pw-two", notes="two")

    results = await asyncio.gather(
        manager.save("sub-1", first, MASTER),
        manager.save("sub-1", second, MASTER),
    )

    assert all(r.success for r in results)
    assert store.count() == 1
    decrypted = (await manager.decrypt("sub-1", MASTER)).data
    # last write wins for the whole record, never a mix of both
    assert decrypted in (first, second)


@pytest.mark.asyncio
async def test_lock_is_per_subscription(manager):
    assert manager._lock_for("sub-1") is manager._lock_for("sub-1")
    assert manager._lock_for("sub-1") is not manager._lock_for("sub-2")

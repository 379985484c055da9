"""End-to-end credential sharing flow on a real SQLite database."""

import pytest

from subcircle.core.identity import Identity
from subcircle.core.models import (
    ConnectionStatus,
    CredentialData,
    CredentialState,
    ErrorKind,
    ShareSettings,
    Subscription,
)
from subcircle.credentials.manager import CredentialManager
from subcircle.frontend.cli.context import build_context


@pytest.fixture
def ctx(tmp_path):
    context = build_context(db_path=tmp_path / "flow.db", user_id="alice")
    netflix = context.services.get_by_name("Netflix")
    context.subscriptions.create(
        Subscription(user_id="alice", service_id=netflix.service_id, subscription_id="sub-1")
    )
    try:
        yield context
    finally:
        context.db.close()


@pytest.mark.asyncio
async def test_owner_save_get_decrypt_scenario(ctx):
    """alice@x.com / s3cr3t / shared sealed with "correcthorse" for sub-1."""
    manager = ctx.manager
    original = CredentialData(username="alice@x.com", password="s3cr3t", notes="shared")

    saved = await manager.save("sub-1", original, "correcthorse")
    assert saved.success

    record = (await manager.get("sub-1")).data
    assert record.encrypted_username is not None
    assert record.encrypted_password is not None
    assert record.encryption_key_hint is None

    decrypted = await manager.decrypt(record, "correcthorse")
    assert decrypted.success
    assert (decrypted.data.username, decrypted.data.password, decrypted.data.notes) == (
        "alice@x.com",
        "s3cr3t",
        "shared",
    )

    wrong = await manager.decrypt(record, "wrong")
    assert not wrong.success
    assert wrong.data is None


@pytest.mark.asyncio
async def test_partner_sharing_lifecycle(ctx):
    # bob becomes alice's partner
    ctx.users.ensure("bob", email="bob@x.com")
    request = ctx.partners.request("alice", "bob")
    ctx.partners.set_status(request.connection_id, ConnectionStatus.ACCEPTED, acting_user_id="bob")

    # alice saves credentials and shares them
    await ctx.manager.save(
        "sub-1",
        CredentialData("alice@x.com", "s3cr3t", key_hint="where we met"),
        "correcthorse",
    )
    assert await ctx.manager.state("sub-1") is CredentialState.SAVED
    shared = await ctx.sharing.update_settings("sub-1", "alice", ShareSettings(True, True))
    assert shared.data == ShareSettings(True, True)
    assert ctx.notifications.unread_count("bob") == 2

    # bob sees it, reads the hint, and decrypts with the password alice told him
    listing = await ctx.partner_access.list_shared_subscriptions("bob", "alice")
    [item] = listing.data
    assert item.credentials_available

    record = (await ctx.partner_access.get_credential_record("bob", "sub-1")).data
    assert record.encryption_key_hint == "where we met"

    bob_manager = CredentialManager(ctx.credentials, ctx.subscriptions, Identity("bob"))
    opened = await bob_manager.decrypt(record, "correcthorse")
    assert opened.data.password == "s3cr3t"

    # alice stops sharing the subscription: credentials go dark immediately
    await ctx.sharing.update_settings("sub-1", "alice", ShareSettings(False, True))
    denied = await ctx.partner_access.decrypt("bob", "sub-1", "correcthorse")
    assert denied.error_kind is ErrorKind.ACCESS_DENIED

    # re-sharing the subscription does not silently re-expose credentials
    await ctx.sharing.update_settings("sub-1", "alice", ShareSettings(True, False))
    still_denied = await ctx.partner_access.get_credential_record("bob", "sub-1")
    assert still_denied.error_kind is ErrorKind.ACCESS_DENIED

    # deleting the record turns credential sharing off for good
    await ctx.sharing.update_settings("sub-1", "alice", ShareSettings(True, True))
    await ctx.manager.delete("sub-1")
    assert (await ctx.sharing.get_settings("sub-1")).data == ShareSettings(True, False)
    assert await ctx.manager.state("sub-1") is CredentialState.NO_CREDENTIALS

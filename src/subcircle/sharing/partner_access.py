"""
Partner-facing access to shared credentials.

A partner sees the hint and the opaque fields of a record, and may attempt a
decrypt with the owner's master password learned out-of-band. Both paths go
through :func:`subcircle.sharing.policy.can_expose_credentials` first.
"""

from __future__ import annotations

import asyncio
import logging

from ..core.exceptions import AccessDeniedError, NotFoundError, SubCircleError
from ..core.models import ErrorKind, OperationResult
from .policy import can_expose_credentials

logger = logging.getLogger(__name__)


class SharedSubscription:
    """A subscription as seen by a partner."""

    __slots__ = ("subscription", "credentials_available")

    def __init__(self, subscription, credentials_available):
        self.subscription = subscription
        self.credentials_available = credentials_available

    def __repr__(self):
        return (
            f"SharedSubscription(subscription_id={self.subscription.subscription_id!r}, "
            f"credentials_available={self.credentials_available})"
        )


class PartnerAccess:
    """Gatekeeper between partners and an owner's credential records."""

    def __init__(self, subscriptions, partners, manager):
        self.subscriptions = subscriptions
        self.partners = partners
        self.manager = manager

    async def list_shared_subscriptions(self, partner_user_id: str, owner_user_id: str) -> OperationResult:
        """List what ``owner_user_id`` shares with ``partner_user_id``."""
        try:
            shared = await asyncio.to_thread(self._list_shared, partner_user_id, owner_user_id)
        except SubCircleError as e:
            return OperationResult.from_error(e)
        return OperationResult.ok(shared)

    async def get_credential_record(self, partner_user_id: str, subscription_id: str) -> OperationResult:
        """Return the hint and opaque fields, if the owner shares them."""
        try:
            subscription = await asyncio.to_thread(self._authorize, partner_user_id, subscription_id)
        except SubCircleError as e:
            logger.info("Partner %s denied record for %s: %s", partner_user_id, subscription_id, e)
            return OperationResult.from_error(e)

        result = await self.manager.get(subscription_id)
        if not result.success or subscription.user_id == partner_user_id:
            return result
        if not can_expose_credentials(subscription.settings, result.data is not None):
            logger.info("Partner %s denied record for %s: not shared", partner_user_id, subscription_id)
            return OperationResult.fail(ErrorKind.ACCESS_DENIED, "Credentials are not shared for this subscription")
        return result

    async def decrypt(self, partner_user_id: str, subscription_id: str, master_password: str) -> OperationResult:
        """Decrypt shared credentials with the owner's master password."""
        result = await self.get_credential_record(partner_user_id, subscription_id)
        if not result.success:
            return result
        return await self.manager.decrypt(result.data, master_password)

    # ------------------------------------------------------------------
    # Blocking helpers
    # ------------------------------------------------------------------

    def _authorize(self, partner_user_id, subscription_id):
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None:
            raise NotFoundError(f"Subscription {subscription_id} not found")
        if subscription.user_id == partner_user_id:
            return subscription
        if not self.partners.are_partners(subscription.user_id, partner_user_id):
            raise AccessDeniedError("You are not a partner of this subscription's owner")
        if not subscription.settings.shared_with_partners:
            raise AccessDeniedError("This subscription is not shared with partners")
        return subscription

    def _list_shared(self, partner_user_id, owner_user_id):
        if not self.partners.are_partners(owner_user_id, partner_user_id):
            raise AccessDeniedError("You are not a partner of this user")
        shared = []
        for subscription in self.subscriptions.list_shared_by_user(owner_user_id):
            record_exists = self.manager.store.exists(subscription.subscription_id)
            shared.append(
                SharedSubscription(subscription, can_expose_credentials(subscription.settings, record_exists))
            )
        return shared

"""
Share settings for subscriptions.

This is the single writer of the ``(shared_with_partners, share_credentials)``
pair, so the cascade from :mod:`subcircle.sharing.policy` is applied here
before anything reaches the database.
"""

from __future__ import annotations

import asyncio
import logging

from ..core.exceptions import AccessDeniedError, NotFoundError, SubCircleError
from ..core.models import Notification, NotificationCategory, OperationResult, ShareSettings
from .policy import normalize_settings

logger = logging.getLogger(__name__)


class SharingService:
    """Read and write per-subscription share settings."""

    def __init__(self, subscriptions, credentials, partners=None, notifications=None):
        self.subscriptions = subscriptions
        self.credentials = credentials
        self.partners = partners
        self.notifications = notifications

    async def get_settings(self, subscription_id: str) -> OperationResult:
        try:
            settings = await asyncio.to_thread(self.subscriptions.get_share_settings, subscription_id)
            if settings is None:
                raise NotFoundError(f"Subscription {subscription_id} not found")
        except SubCircleError as e:
            return OperationResult.from_error(e)
        return OperationResult.ok(settings)

    async def update_settings(
        self,
        subscription_id: str,
        owner_user_id: str,
        requested: ShareSettings,
    ) -> OperationResult:
        """
        Normalize and persist ``requested`` for a subscription the caller owns.

        ``data`` holds the settings as actually stored, which may differ from
        the request when the cascade or the missing-record rule applied.
        """
        try:
            stored = await asyncio.to_thread(self._apply, subscription_id, owner_user_id, requested)
        except SubCircleError as e:
            logger.warning("Updating share settings for %s failed: %s", subscription_id, e)
            return OperationResult.from_error(e)

        if not stored.shared_with_partners:
            message = "Subscription sharing disabled"
        elif requested.share_credentials and not stored.share_credentials:
            message = "Sharing updated; credentials can only be shared once they are saved"
        else:
            message = "Subscription is now shared with partners"
        logger.info("Share settings for %s set to %r", subscription_id, stored)
        return OperationResult.ok(stored, message=message)

    async def clear_credential_sharing(self, subscription_id: str) -> None:
        """Switch ``share_credentials`` off, e.g. after the record was deleted."""
        await asyncio.to_thread(self.subscriptions.clear_share_credentials, subscription_id)

    # ------------------------------------------------------------------
    # Blocking helpers
    # ------------------------------------------------------------------

    def _apply(self, subscription_id, owner_user_id, requested):
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None:
            raise NotFoundError(f"Subscription {subscription_id} not found")
        if subscription.user_id != owner_user_id:
            raise AccessDeniedError("Only the owner can change sharing for this subscription")

        previous = subscription.settings
        normalized = normalize_settings(requested, self.credentials.exists(subscription_id))

        # settings and partner notifications land together or not at all
        with self.subscriptions.db.get_transaction_context():
            stored = self.subscriptions.write_share_settings(subscription_id, normalized)
            self._announce(subscription, previous, stored)
        return stored

    def _announce(self, subscription, previous, stored):
        if stored.shared_with_partners and not previous.shared_with_partners:
            self._notify_partners(subscription, "subscription_shared", "Subscription shared",
                                  f"{subscription.service_name or 'A subscription'} is now shared with you")
        if stored.share_credentials and not previous.share_credentials:
            self._notify_partners(subscription, "credentials_shared", "Credentials shared",
                                  f"Login details for {subscription.service_name or 'a subscription'} are now shared with you")

    def _notify_partners(self, subscription, kind, title, message):
        if self.partners is None or self.notifications is None:
            return
        for partner_id in self.partners.list_partner_ids(subscription.user_id):
            self.notifications.create(
                Notification(
                    user_id=partner_id,
                    type=kind,
                    title=title,
                    message=message,
                    data={"subscription_id": subscription.subscription_id, "owner_user_id": subscription.user_id},
                    priority="medium",
                    category=NotificationCategory.PARTNER,
                )
            )

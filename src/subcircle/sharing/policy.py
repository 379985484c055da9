"""Pure rules deciding when a subscription's credentials may reach a partner."""

from __future__ import annotations

from ..core.models import ShareSettings


def can_expose_credentials(settings: ShareSettings | None, record_exists: bool) -> bool:
    """
    Return True only when the owner shares the subscription, explicitly shares
    its credentials, and a credential record is actually stored.
    """
    if settings is None:
        return False
    return bool(settings.shared_with_partners and settings.share_credentials and record_exists)


def normalize_settings(requested: ShareSettings, record_exists: bool) -> ShareSettings:
    """
    Apply the cascade to a requested settings pair before it is written.

    - ``shared_with_partners = False`` forces ``share_credentials = False``
    - ``share_credentials`` cannot be on without a stored credential record
    """
    shared = requested.shared_with_partners
    share_credentials = requested.share_credentials and shared and record_exists
    return ShareSettings(shared_with_partners=shared, share_credentials=share_credentials)

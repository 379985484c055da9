"""Unit tests for the credential exposure rules."""

import itertools

import pytest

from subcircle.core.models import ShareSettings
from subcircle.sharing.policy import can_expose_credentials, normalize_settings


@pytest.mark.parametrize(
    "shared, share_creds, exists",
    list(itertools.product([False, True], repeat=3)),
)
def test_can_expose_only_when_all_three_hold(shared, share_creds, exists):
    expected = shared and share_creds and exists
    assert can_expose_credentials(ShareSettings(shared, share_creds), exists) is expected


def test_can_expose_without_settings():
    assert can_expose_credentials(None, True) is False


@pytest.mark.parametrize(
    "shared, share_creds, exists",
    list(itertools.product([False, True], repeat=3)),
)
def test_normalized_settings_never_violate_cascade(shared, share_creds, exists):
    result = normalize_settings(ShareSettings(shared, share_creds), exists)
    assert result.shared_with_partners is shared
    if result.share_credentials:
        assert result.shared_with_partners
        assert exists


def test_normalize_turning_sharing_off_clears_credentials():
    result = normalize_settings(ShareSettings(False, True), record_exists=True)
    assert result == ShareSettings(False, False)


def test_normalize_keeps_valid_request():
    assert normalize_settings(ShareSettings(True, True), True) == ShareSettings(True, True)
    assert normalize_settings(ShareSettings(True, False), True) == ShareSettings(True, False)

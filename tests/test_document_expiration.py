"""Tests for document expiration bands."""

from datetime import date, datetime, timedelta, timezone

import pytest

from credentialing.db.enums import ExpirationStatus
from credentialing.services.document_service import (
    compute_expiration_status,
    days_until_expiration,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def test_no_expiration_date_is_none():
    assert compute_expiration_status(None, NOW) == ExpirationStatus.NONE


@pytest.mark.parametrize(
    "days_ahead,expected",
    [
        (-1, ExpirationStatus.EXPIRED),
        (1, ExpirationStatus.CRITICAL),
        (5, ExpirationStatus.CRITICAL),
        (8, ExpirationStatus.CRITICAL),
        (9, ExpirationStatus.WARNING),
        (31, ExpirationStatus.WARNING),
        (32, ExpirationStatus.NOTICE),
        (61, ExpirationStatus.NOTICE),
        (62, ExpirationStatus.NONE),
        (365, ExpirationStatus.NONE),
    ],
)
def test_expiration_bands(days_ahead, expected):
    # Expiration is midnight UTC, so at noon "8 days ahead" has 7 whole days left
    expiration = NOW.date() + timedelta(days=days_ahead)
    assert compute_expiration_status(expiration, NOW) == expected


def test_expiring_today_is_expired_once_midnight_passed():
    assert compute_expiration_status(NOW.date(), NOW) == ExpirationStatus.EXPIRED


def test_days_until_expiration_floors_partial_days():
    expiration = date(2026, 3, 7)
    assert days_until_expiration(expiration, NOW) == 4
    assert days_until_expiration(expiration, datetime(2026, 3, 2, 0, 0, tzinfo=timezone.utc)) == 5


def test_band_boundaries_at_midnight():
    midnight = datetime(2026, 3, 2, 0, 0, tzinfo=timezone.utc)
    assert compute_expiration_status(date(2026, 3, 9), midnight) == ExpirationStatus.CRITICAL
    assert compute_expiration_status(date(2026, 3, 10), midnight) == ExpirationStatus.WARNING
    assert compute_expiration_status(date(2026, 4, 1), midnight) == ExpirationStatus.WARNING
    assert compute_expiration_status(date(2026, 4, 2), midnight) == ExpirationStatus.NOTICE

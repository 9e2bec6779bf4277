"""Utility modules."""

from credentialing.utils.dates import as_utc, start_of_day_utc, utc_now
from credentialing.utils.normalization import normalize_identifier, normalize_name, normalize_state

__all__ = [
    "as_utc",
    "normalize_identifier",
    "normalize_name",
    "normalize_state",
    "start_of_day_utc",
    "utc_now",
]

"""Normalization helpers for registry matching."""

import re
import unicodedata

US_STATE_CODES = {
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "DC", "FL", "GA", "HI", "ID",
    "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD", "MA", "MI", "MN", "MS", "MO",
    "MT", "NE", "NV", "NH", "NJ", "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA",
    "RI", "SC", "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
    "PR", "GU", "VI", "AS", "MP",
}


def normalize_name(name: str | None) -> str:
    """
    Normalize a person name for exclusion-list matching.

    Strips accents and punctuation, collapses whitespace, upper-cases
    (the OIG list is published in upper case).
    """
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFKD", name)
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    cleaned = re.sub(r"[^A-Za-z\s'-]", "", ascii_only)
    return re.sub(r"\s+", " ", cleaned).strip().upper()


def normalize_identifier(value: str | None) -> str:
    """Strip whitespace and dashes from registry identifiers (NPI, DEA)."""
    if not value:
        return ""
    return re.sub(r"[\s-]", "", value).upper()


def normalize_state(value: str | None) -> str | None:
    """Return a two-letter US state/territory code or None."""
    if not value:
        return None
    code = value.strip().upper()
    return code if code in US_STATE_CODES else None

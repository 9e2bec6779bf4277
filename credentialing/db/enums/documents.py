"""Credentialing document enums."""

from enum import Enum


class DocumentType(str, Enum):
    """Credentialing artifacts a provider can upload."""

    LICENSE = "license"
    TRANSCRIPT = "transcript"
    DIPLOMA = "diploma"
    GOVERNMENT_ID = "government_id"
    LIABILITY_INSURANCE = "liability_insurance"
    DEA_CERTIFICATE = "dea_certificate"  # Controlled-substance registration certificate
    BOARD_CERTIFICATION = "board_certification"


# Uploads of these types must declare a future expiration date
EXPIRATION_BEARING_TYPES = frozenset(
    {
        DocumentType.LICENSE,
        DocumentType.GOVERNMENT_ID,
        DocumentType.LIABILITY_INSURANCE,
        DocumentType.DEA_CERTIFICATE,
        DocumentType.BOARD_CERTIFICATION,
    }
)

# Shown on the provider checklist; DEA and board certification are optional
REQUIRED_DOCUMENT_TYPES = (
    DocumentType.LICENSE,
    DocumentType.TRANSCRIPT,
    DocumentType.DIPLOMA,
    DocumentType.GOVERNMENT_ID,
    DocumentType.LIABILITY_INSURANCE,
)


class ExpirationStatus(str, Enum):
    """Expiration band of a document relative to now."""

    EXPIRED = "expired"
    CRITICAL = "critical"  # <= 7 days
    WARNING = "warning"  # <= 30 days
    NOTICE = "notice"  # <= 60 days
    NONE = "none"

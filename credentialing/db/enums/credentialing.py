"""Credentialing workflow enums."""

from enum import Enum


class CredentialingStatus(str, Enum):
    """Overall status of a provider's credentialing record (derived)."""

    NOT_STARTED = "not_started"
    PENDING = "pending"  # Provider has submitted material, no phase started yet
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"


TERMINAL_CREDENTIALING_STATUSES = frozenset(
    {CredentialingStatus.APPROVED, CredentialingStatus.REJECTED}
)


class CredentialingPhase(str, Enum):
    """
    The eight credentialing phases, declared in canonical order.

    document_review → identity_verification → license_verification
    → education_verification → background_check → insurance_verification
    → exclusion_check → final_review
    """

    DOCUMENT_REVIEW = "document_review"
    IDENTITY_VERIFICATION = "identity_verification"
    LICENSE_VERIFICATION = "license_verification"
    EDUCATION_VERIFICATION = "education_verification"
    BACKGROUND_CHECK = "background_check"
    INSURANCE_VERIFICATION = "insurance_verification"
    EXCLUSION_CHECK = "exclusion_check"
    FINAL_REVIEW = "final_review"


PHASE_ORDER: tuple[CredentialingPhase, ...] = tuple(CredentialingPhase)


class PhaseStatus(str, Enum):
    """Status of a single phase entry."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class VerificationType(str, Enum):
    """Automated registry checks."""

    IDENTITY_NUMBER = "identity_number"  # NPI registry
    CONTROLLED_SUBSTANCE_REGISTRATION = "controlled_substance_registration"  # DEA
    EXCLUSION_REGISTRY_PRIMARY = "exclusion_registry_primary"  # OIG LEIE
    EXCLUSION_REGISTRY_SECONDARY = "exclusion_registry_secondary"  # SAM.gov


EXCLUSION_VERIFICATION_TYPES = frozenset(
    {
        VerificationType.EXCLUSION_REGISTRY_PRIMARY,
        VerificationType.EXCLUSION_REGISTRY_SECONDARY,
    }
)

# Phases whose completion is gated on automated verification outcomes.
# No manual override exists for these.
PHASE_VERIFICATION_PREREQUISITES: dict[CredentialingPhase, tuple[VerificationType, ...]] = {
    CredentialingPhase.IDENTITY_VERIFICATION: (VerificationType.IDENTITY_NUMBER,),
    CredentialingPhase.EXCLUSION_CHECK: (
        VerificationType.EXCLUSION_REGISTRY_PRIMARY,
        VerificationType.EXCLUSION_REGISTRY_SECONDARY,
    ),
}


class VerificationStatus(str, Enum):
    """Outcome of an automated verification."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    VERIFIED = "verified"
    FAILED = "failed"
    REQUIRES_REVIEW = "requires_review"


class NoteCategory(str, Enum):
    """Category of a credentialing note."""

    GENERAL = "general"
    CONCERN = "concern"
    FOLLOW_UP = "follow_up"
    DECISION = "decision"

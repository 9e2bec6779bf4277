"""Credentialing error taxonomy.

Every error the core raises is a ``CredentialingError`` carrying a stable
``code`` and a ``retryable`` flag, so the HTTP layer can keep "your input was
invalid" apart from "a dependency had a problem".
"""


class CredentialingError(Exception):
    """Base exception for credentialing errors."""

    code = "credentialing_error"
    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(CredentialingError):
    """Bad input: file type/size, missing or malformed field."""

    code = "validation_error"


class NotFoundError(CredentialingError):
    """Unknown provider, document, alert or record."""

    code = "not_found"


class ConflictError(CredentialingError):
    """Action conflicts with current state (verified document, terminal record, stale write)."""

    code = "conflict"


class PhaseTransitionError(ConflictError):
    """Phase sequencing rule broken; the record is unchanged."""

    code = "phase_transition_error"

    def __init__(self, message: str, phase: str):
        self.phase = phase
        super().__init__(message)


class OrderViolationError(PhaseTransitionError):
    """An earlier phase is not completed yet."""

    code = "order_violation"

    def __init__(self, phase: str, blocking_phases: list[str]):
        self.blocking_phases = blocking_phases
        super().__init__(
            f"Cannot complete {phase}: earlier phases not completed ({', '.join(blocking_phases)})",
            phase,
        )


class UnverifiedPrerequisiteError(PhaseTransitionError):
    """An automatable phase's backing verification is not verified."""

    code = "unverified_prerequisite"

    def __init__(self, phase: str, unverified: dict[str, str]):
        self.unverified = unverified
        detail = ", ".join(f"{vtype}={status}" for vtype, status in unverified.items())
        super().__init__(
            f"Cannot complete {phase}: automated verification not verified ({detail})",
            phase,
        )


class StorageError(CredentialingError):
    """Document store failure. Safe to retry."""

    code = "storage_error"
    retryable = True


class RegistryLookupError(CredentialingError):
    """External registry failure. Safe to retry."""

    code = "registry_lookup_error"
    retryable = True

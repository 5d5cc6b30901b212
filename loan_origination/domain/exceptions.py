"""Domain-specific exceptions"""

from typing import List, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Entity does not exist or is not owned by the caller"""

    pass


class InvalidStateTransitionError(DomainException):
    """Operation attempted against the wrong lifecycle state"""

    pass


class AlreadySignedError(InvalidStateTransitionError):
    """Contract (or its signing credential) has already been signed"""

    pass


class ValidationFailedError(DomainException):
    """One or more required fields are missing or out of range.

    All violations are collected so a channel can show them at once.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class ComplianceViolationError(ValidationFailedError):
    """Proposed loan terms breach a regulatory ceiling"""

    def __init__(self, result):
        self.result = result
        super().__init__(result.errors or [result.error_message or "Compliance check failed"])


class ConflictError(DomainException):
    """Application was modified concurrently; reload and retry"""

    pass


class CredentialExpiredError(DomainException):
    """Signing PIN (or the contract it signs) has expired"""

    pass


class AttemptsExceededError(DomainException):
    """Too many failed verifications against the current signing PIN"""

    pass


class InvalidCredentialError(DomainException):
    """Supplied signing PIN does not match"""

    def __init__(self, remaining_attempts: int):
        self.remaining_attempts = remaining_attempts
        super().__init__(f"Invalid PIN. {remaining_attempts} attempt(s) remaining.")


class CoolingOffExpiredError(DomainException):
    """Cancellation requested outside the cooling-off window"""

    pass


class ExternalDeliveryFailedError(DomainException):
    """Messaging gateway rejected or failed to deliver a message"""

    def __init__(self, message: str, destination: Optional[str] = None):
        self.destination = destination
        super().__init__(message)

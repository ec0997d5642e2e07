"""Custom domain exceptions for the application."""

# Stable, machine-readable error codes for API consumers.
NOT_FOUND = "NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
UNAUTHORIZED = "UNAUTHORIZED"
FORBIDDEN = "FORBIDDEN"
CONFLICT = "CONFLICT"
INVALID_STATE = "INVALID_STATE"
OWNER_SETUP_REQUIRED = "OWNER_SETUP_REQUIRED"
PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
PAYMENT_REFERENCE_NOT_FOUND = "PAYMENT_REFERENCE_NOT_FOUND"
INVALID_WEBHOOK_SIGNATURE = "INVALID_WEBHOOK_SIGNATURE"


class DomainError(Exception):
    """Base exception for domain/business logic errors."""

    code = "DOMAIN_ERROR"


class NotFoundError(DomainError):
    """Raised when a requested resource does not exist."""

    code = NOT_FOUND


class DomainValidationError(DomainError):
    """Raised when business rules or domain validation fail (e.g. invalid dates, missing required fields)."""

    code = VALIDATION_ERROR


class UnauthorizedError(DomainError):
    """Raised when the caller is not authenticated or credentials are wrong."""

    code = UNAUTHORIZED


class ForbiddenError(DomainError):
    """Raised when the caller is authenticated but not allowed to perform the action.

    ``reason`` carries the access gate's reason code when there is one.
    """

    code = FORBIDDEN

    def __init__(self, message: str = "Not enough permissions", reason: str | None = None):
        super().__init__(message)
        self.reason = reason


class ConflictError(DomainError):
    """Raised on duplicates: second signature by the same party, second subscription or deposit."""

    code = CONFLICT


class InvalidStateError(DomainError):
    """Raised when an operation is not permitted from the contract's or record's current state."""

    code = INVALID_STATE


class OwnerSetupRequiredError(DomainError):
    """Raised when payment linkage is blocked because the owner has not finished payout onboarding."""

    code = OWNER_SETUP_REQUIRED


class PaymentProviderError(DomainError):
    """Base class for failures reported by the external payment processor."""


class ProviderUnavailableError(PaymentProviderError):
    """Transient processor failure (timeout, network, 429/5xx). Retryable by the caller."""

    code = PROVIDER_UNAVAILABLE


class PaymentReferenceNotFoundError(PaymentProviderError):
    """The processor (or the local store) does not know the given payment reference."""

    code = PAYMENT_REFERENCE_NOT_FOUND


class WebhookSignatureError(DomainError):
    """Raised when a processor callback fails signature verification."""

    code = INVALID_WEBHOOK_SIGNATURE

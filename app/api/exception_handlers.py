"""Global exception handlers that map domain exceptions to HTTP responses."""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from app.errors import (
    ConflictError,
    DomainError,
    DomainValidationError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    OwnerSetupRequiredError,
    PaymentReferenceNotFoundError,
    ProviderUnavailableError,
    UnauthorizedError,
    WebhookSignatureError,
)
from app.schemas.error import ErrorResponse

logger = logging.getLogger(__name__)

_STATUS_CODES: dict[type[DomainError], int] = {
    DomainValidationError: status.HTTP_400_BAD_REQUEST,
    WebhookSignatureError: status.HTTP_400_BAD_REQUEST,
    UnauthorizedError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PaymentReferenceNotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    InvalidStateError: status.HTTP_409_CONFLICT,
    OwnerSetupRequiredError: status.HTTP_409_CONFLICT,
    ProviderUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _error_response(status_code: int, detail: str, code: str) -> JSONResponse:
    """Return a standardized error response with detail and machine-readable code."""
    body = ErrorResponse(detail=detail, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def domain_error_handler(_request: Request, exc: DomainError) -> JSONResponse:
    status_code = _STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return _error_response(status_code, str(exc), exc.code)


def forbidden_error_handler(_request: Request, exc: ForbiddenError) -> JSONResponse:
    return _error_response(
        status.HTTP_403_FORBIDDEN,
        str(exc),
        exc.reason or exc.code,
    )


def unauthorized_error_handler(_request: Request, exc: UnauthorizedError) -> JSONResponse:
    response = _error_response(
        status.HTTP_401_UNAUTHORIZED,
        str(exc),
        exc.code,
    )
    response.headers["WWW-Authenticate"] = "Bearer"
    return response


def provider_unavailable_error_handler(
    _request: Request, exc: ProviderUnavailableError
) -> JSONResponse:
    logger.warning("Payment provider unavailable: %s", exc)
    response = _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        str(exc),
        exc.code,
    )
    response.headers["Retry-After"] = "30"
    return response


def register_exception_handlers(app):
    """Register domain exception handlers on the FastAPI app."""
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(ForbiddenError, forbidden_error_handler)
    app.add_exception_handler(UnauthorizedError, unauthorized_error_handler)
    app.add_exception_handler(ProviderUnavailableError, provider_unavailable_error_handler)

"""
Centralized exceptions for consistent error handling.

HTTP-facing errors subclass FastAPI's HTTPException so routers can let them
propagate untouched. Store-level failures use TransientStoreError, which is
never shown to clients.

Usage:
    from shared.utils.exceptions import NotFoundError, ClientInputError

    raise NotFoundError("Product", product_id)
    raise ClientInputError("minPrice cannot exceed maxPrice")
"""

from typing import Any

import httpx
from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom HTTP exceptions inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400). Never retried.

    Usage:
        raise ValidationError("minPrice must be >= 0", field="minPrice")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


# Name used by callers that think in terms of client vs upstream failures
ClientInputError = ValidationError


class InvalidCursorError(ValidationError):
    """A pagination cursor was supplied but could not be decoded."""

    def __init__(self, reason: str, **log_context: Any):
        super().__init__(f"Invalid pagination cursor: {reason}", reason=reason, **log_context)


# =============================================================================
# 401 Unauthorized Errors
# =============================================================================


class AuthorizationError(AppException):
    """
    Credential acquisition failed (401).

    Callers should read this as "cannot proceed with authenticated calls right now".
    """

    def __init__(self, detail: str = "Failed to obtain access token", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            log_level="error",
            **log_context,
        )


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Product", "3f0c...")
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with ID {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


# =============================================================================
# 429 Rate Limiting Errors
# =============================================================================


class RateLimitError(AppException):
    """Rate limit exceeded (429)."""

    def __init__(self, retry_after: int, context: str | None = None, **log_context: Any):
        detail = f"Too many requests. Try again in {retry_after} seconds."
        if context:
            detail = f"{context}: {detail}"

        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            log_level="warning",
            headers={"Retry-After": str(retry_after)},
            retry_after=retry_after,
            **log_context,
        )


# =============================================================================
# 5xx Upstream Errors
# =============================================================================


class ExternalServiceError(AppException):
    """External service error (502 or 503)."""

    def __init__(
        self,
        service: str,
        is_unavailable: bool = False,
        retry_after: int | None = None,
        detail: str | None = None,
        **log_context: Any,
    ):
        if is_unavailable:
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            detail = detail or f"Service {service} temporarily unavailable"
        else:
            status_code = status.HTTP_502_BAD_GATEWAY
            detail = detail or f"Error communicating with {service}"

        headers = None
        if retry_after:
            headers = {"Retry-After": str(retry_after)}

        self.service = service
        super().__init__(
            status_code=status_code,
            detail=detail,
            log_level="error",
            headers=headers,
            service=service,
            **log_context,
        )


class UpstreamUnavailableError(ExternalServiceError):
    """
    An external dependency cannot be reached right now (503).

    Raised when retries are exhausted or the circuit is open.
    The underlying error, if any, is kept in `last_error`, and the number of
    calls actually made in `attempts`.
    """

    def __init__(
        self,
        service: str,
        last_error: BaseException | None = None,
        attempts: int = 0,
        retry_after: int | None = None,
        detail: str | None = None,
        **log_context: Any,
    ):
        self.last_error = last_error
        self.attempts = attempts
        if last_error is not None:
            log_context.setdefault("error", str(last_error))
        super().__init__(
            service,
            is_unavailable=True,
            retry_after=retry_after,
            detail=detail,
            attempts=attempts,
            **log_context,
        )


class CircuitOpenError(UpstreamUnavailableError):
    """Circuit breaker is open; the call was rejected without being attempted."""

    def __init__(self, breaker_name: str, retry_after: float):
        self.breaker_name = breaker_name
        self.retry_after = retry_after
        super().__init__(
            breaker_name,
            retry_after=max(1, int(retry_after + 0.999)),
            detail=f"Circuit breaker '{breaker_name}' is open. Retry after {retry_after:.1f}s",
            retry_after_seconds=round(retry_after, 2),
        )


# =============================================================================
# Internal (non-HTTP) Errors
# =============================================================================


class TransientStoreError(Exception):
    """
    The shared key-value store could not be reached.

    Cache paths degrade to a miss; lock paths surface it to their caller.
    """

    def __init__(self, operation: str, key: str, cause: BaseException | None = None):
        self.operation = operation
        self.key = key
        self.cause = cause
        super().__init__(f"Key-value store {operation} failed for '{key}': {cause}")


def is_client_error(error: BaseException) -> bool:
    """
    True for errors caused by the request rather than the dependency.

    Covers our own 4xx exceptions and 4xx answers from httpx. Retrying
    these cannot help, and they say nothing about the dependency's health.
    """
    if isinstance(error, httpx.HTTPStatusError):
        return 400 <= error.response.status_code < 500
    if isinstance(error, HTTPException):
        return 400 <= error.status_code < 500
    return False

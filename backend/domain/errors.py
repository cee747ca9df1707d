"""
Custom domain exceptions for consistent error handling.

These exceptions are mapped to HTTP status codes by the global exception handler
in main.py. Policy functions raise them directly, so a bad amount or timestamp
surfaces as a 400 whether it came from a route or from a service call.
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class for all domain-specific errors."""
    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, details: dict | None = None):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class NotFoundError(DomainError):
    """Resource not found (404)."""
    def __init__(self, resource_type: str, identifier: str, details: dict | None = None):
        message = f"{resource_type} not found: {identifier}"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class ValidationError(DomainError):
    """Validation error (400)."""
    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        if field:
            message = f"Validation error on {field}: {message}"
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class InvalidAmountError(ValidationError):
    """Order amount or bonus that is negative, non-finite or not a number (400)."""
    def __init__(self, value, field: str = "orderAmount", reason: str = "must be a non-negative number"):
        super().__init__(
            f"{reason} (got {value!r})",
            field=field,
            details={"field": field, "value": str(value)},
        )


class InvalidTimestampError(ValidationError):
    """Missing or unparseable order/delivery timestamp (400)."""
    def __init__(self, value, field: str = "placedAt"):
        super().__init__(
            f"missing or invalid timestamp (got {value!r})",
            field=field,
            details={"field": field, "value": None if value is None else str(value)},
        )


class ConflictError(DomainError):
    """Resource conflict (409)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, details=details)


class PaymentFailedError(DomainError):
    """Payment declined or dismissed by the customer (402)."""
    def __init__(self, message: str = "Payment failed", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_402_PAYMENT_REQUIRED, details=details)


class PaymentGatewayError(DomainError):
    """Payment gateway unreachable or misconfigured (502)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_502_BAD_GATEWAY, details=details)


class PaymentTimeoutError(DomainError):
    """Gateway never reported an outcome (504)."""
    def __init__(self, message: str = "Payment timed out", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_504_GATEWAY_TIMEOUT, details=details)

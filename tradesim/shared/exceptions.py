"""
Custom exception classes for the application.

All custom exceptions inherit from base AppException for consistent error handling.
"""


class AppException(Exception):
    """
    Base application exception.

    All custom exceptions should inherit from this class.

    Attributes:
        message: Error message
        code: Error code
        status_code: HTTP status code
    """

    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        status_code: int = 500
    ):
        """
        Initialize AppException.

        Args:
            message: Error message
            code: Error code
            status_code: HTTP status code
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(self.message)


# Validation Exceptions

class ValidationError(AppException):
    """Missing or invalid request fields, unknown symbol, non-positive amount."""

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message=message, code="VALIDATION_ERROR", status_code=400)


class InsufficientBalanceError(AppException):
    """Not enough cash (long) or asset quantity (short) to open a trade."""

    def __init__(self, message: str = "Insufficient balance"):
        super().__init__(message=message, code="INSUFFICIENT_BALANCE", status_code=400)


# Position Exceptions

class PositionNotFoundError(AppException):
    """Position is unknown or already closed."""

    def __init__(self, message: str = "Trade not found or already closed"):
        super().__init__(message=message, code="POSITION_NOT_FOUND", status_code=404)


class DuplicatePositionError(AppException):
    """Position id already present in the book."""

    def __init__(self, message: str = "Position already exists"):
        super().__init__(message=message, code="DUPLICATE_POSITION", status_code=409)


# External Service Exceptions

class OracleUnavailableError(AppException):
    """Prediction oracle failed, timed out, or returned an unusable answer."""

    def __init__(self, message: str = "Prediction oracle unavailable"):
        super().__init__(message=message, code="ORACLE_UNAVAILABLE", status_code=503)


class PriceUnavailableError(AppException):
    """No market price for the requested symbol."""

    def __init__(self, message: str = "Price unavailable"):
        super().__init__(message=message, code="PRICE_UNAVAILABLE", status_code=400)


# General Exceptions

class InternalServerError(AppException):
    """Internal server error."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message=message, code="INTERNAL_SERVER_ERROR", status_code=500)

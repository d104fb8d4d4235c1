"""Custom exceptions for the application."""


class BaseAPIException(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = None,
        details: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    @property
    def status(self) -> str:
        """Response status discriminator: client faults fail, server faults error."""
        return "fail" if 400 <= self.status_code < 500 else "error"


class BadRequestError(BaseAPIException):
    """Missing or malformed input."""

    def __init__(self, message: str = "Bad request", details: dict = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="BAD_REQUEST",
            details=details
        )


class AuthenticationError(BaseAPIException):
    """Authentication error."""

    def __init__(
        self,
        message: str = "Authentication failed",
        details: dict = None,
        error_code: str = "AUTHENTICATION_ERROR"
    ):
        super().__init__(
            message=message,
            status_code=401,
            error_code=error_code,
            details=details
        )


class InvalidTokenError(AuthenticationError):
    """Session token signature or structure is invalid."""

    def __init__(self, message: str = "Invalid token. Please log in again."):
        super().__init__(message=message, error_code="INVALID_TOKEN")


class ExpiredTokenError(AuthenticationError):
    """Session token is past its expiry horizon."""

    def __init__(self, message: str = "Your token has expired. Please log in again."):
        super().__init__(message=message, error_code="EXPIRED_TOKEN")


class AuthorizationError(BaseAPIException):
    """Authorization error."""

    def __init__(
        self,
        message: str = "You do not have permission to perform this action.",
        details: dict = None
    ):
        super().__init__(
            message=message,
            status_code=403,
            error_code="AUTHORIZATION_ERROR",
            details=details
        )


class NotFoundError(BaseAPIException):
    """Resource not found error."""

    def __init__(self, message: str = "Resource not found", details: dict = None):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND_ERROR",
            details=details
        )


class ConflictError(BaseAPIException):
    """Resource conflict error."""

    def __init__(self, message: str = "Resource conflict", details: dict = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT_ERROR",
            details=details
        )


class InternalServerError(BaseAPIException):
    """Expected server-side failure with a safe, generic message."""

    def __init__(
        self,
        message: str = "Something went wrong.",
        details: dict = None,
        error_code: str = "INTERNAL_ERROR"
    ):
        super().__init__(
            message=message,
            status_code=500,
            error_code=error_code,
            details=details
        )


class EmailDeliveryError(InternalServerError):
    """Outbound mail could not be delivered."""

    def __init__(self, message: str = "Email delivery failed", details: dict = None):
        super().__init__(
            message=message,
            details=details,
            error_code="EMAIL_DELIVERY_ERROR"
        )

"""Logging configuration and utilities."""
import logging
import sys
from typing import Any, Dict

import structlog
from structlog.stdlib import LoggerFactory

from ..config import settings


def configure_logging():
    """Configure structured logging."""

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure standard logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.monitoring.log_level.upper()),
    )

    # Set third-party log levels
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if not email or "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class RequestLogger:
    """Request logging utility."""

    @staticmethod
    def log_request(
        method: str,
        path: str,
        request_id: str = None,
        extra_data: Dict[str, Any] = None
    ):
        """Log incoming request."""
        logger = structlog.get_logger("api.request")
        logger.info(
            "Request started",
            method=method,
            path=path,
            request_id=request_id,
            **(extra_data or {})
        )

    @staticmethod
    def log_response(
        method: str,
        path: str,
        status_code: int,
        response_time_ms: float,
        user_id: str = None,
        request_id: str = None,
        extra_data: Dict[str, Any] = None
    ):
        """Log response."""
        logger = structlog.get_logger("api.response")
        logger.info(
            "Request completed",
            method=method,
            path=path,
            status_code=status_code,
            response_time_ms=response_time_ms,
            user_id=user_id,
            request_id=request_id,
            **(extra_data or {})
        )

    @staticmethod
    def log_unhandled_error(
        method: str,
        path: str,
        error: Exception,
        request_id: str = None
    ):
        """Log an exception that escaped every handler."""
        logger = structlog.get_logger("api.error")
        logger.error(
            "Unhandled exception",
            method=method,
            path=path,
            request_id=request_id,
            error_type=type(error).__name__,
            exc_info=error
        )


class AccountLogger:
    """Account lifecycle event logging utility."""

    @staticmethod
    def log_user_signed_up(user_id: str, email: str):
        """Log a new account."""
        logger = structlog.get_logger("business.account")
        logger.info(
            "User signed up",
            event_type="user_signed_up",
            user_id=user_id,
            email=redact_email(email)
        )

    @staticmethod
    def log_password_changed(user_id: str, via: str):
        """Log a password change, either direct or through a reset token."""
        logger = structlog.get_logger("business.account")
        logger.info(
            "Password changed",
            event_type="password_changed",
            user_id=user_id,
            via=via
        )

    @staticmethod
    def log_profile_updated(user_id: str, fields: list[str], actor_id: str = None):
        """Log a profile update."""
        logger = structlog.get_logger("business.account")
        logger.info(
            "Profile updated",
            event_type="profile_updated",
            user_id=user_id,
            fields=fields,
            actor_id=actor_id or user_id
        )

    @staticmethod
    def log_account_deactivated(user_id: str):
        """Log a self-service soft delete."""
        logger = structlog.get_logger("business.account")
        logger.info(
            "Account deactivated",
            event_type="account_deactivated",
            user_id=user_id
        )

    @staticmethod
    def log_account_deleted(user_id: str, actor_id: str):
        """Log an admin hard delete."""
        logger = structlog.get_logger("business.account")
        logger.warning(
            "Account deleted",
            event_type="account_deleted",
            user_id=user_id,
            actor_id=actor_id
        )


class SecurityLogger:
    """Security event logging utility."""

    @staticmethod
    def log_login_attempt(
        email: str,
        success: bool,
        ip_address: str = None,
        user_agent: str = None,
        failure_reason: str = None
    ):
        """Log login attempt."""
        logger = structlog.get_logger("security.auth")
        logger.info(
            "Login attempt",
            event_type="login_attempt",
            email=redact_email(email),
            success=success,
            ip_address=ip_address,
            user_agent=user_agent,
            failure_reason=failure_reason
        )

    @staticmethod
    def log_unauthorized_access(
        path: str,
        method: str,
        ip_address: str = None,
        user_agent: str = None,
        reason: str = None
    ):
        """Log unauthorized access attempt."""
        logger = structlog.get_logger("security.access")
        logger.warning(
            "Unauthorized access attempt",
            event_type="unauthorized_access",
            path=path,
            method=method,
            ip_address=ip_address,
            user_agent=user_agent,
            reason=reason
        )

    @staticmethod
    def log_forbidden_access(
        user_id: str,
        role: str,
        allowed_roles: list[str],
        path: str = None
    ):
        """Log an authenticated request denied by role."""
        logger = structlog.get_logger("security.access")
        logger.warning(
            "Forbidden access attempt",
            event_type="forbidden_access",
            user_id=user_id,
            role=role,
            allowed_roles=allowed_roles,
            path=path
        )

    @staticmethod
    def log_password_reset_requested(user_id: str, delivered: bool):
        """Log a forgot-password request and whether the mail went out."""
        logger = structlog.get_logger("security.reset")
        log = logger.info if delivered else logger.error
        log(
            "Password reset requested",
            event_type="password_reset_requested",
            user_id=user_id,
            delivered=delivered
        )

    @staticmethod
    def log_password_reset_rejected(reason: str):
        """Log a reset attempt with an unusable token."""
        logger = structlog.get_logger("security.reset")
        logger.warning(
            "Password reset rejected",
            event_type="password_reset_rejected",
            reason=reason
        )

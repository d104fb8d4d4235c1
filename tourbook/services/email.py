"""Outbound email delivery."""
import asyncio
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional

import structlog

from ..config import settings
from ..core.exceptions import EmailDeliveryError
from ..core.logging import redact_email

logger = structlog.get_logger("services.email")


class EmailService:
    """SMTP mail notifier.

    Sends plain-text mail in a worker thread, bounded by ``timeout``. When no
    SMTP host is configured (local development) the recipient and subject
    are logged instead; the body is not.
    """

    def __init__(
        self,
        *,
        host: Optional[str] = None,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        from_address: Optional[str] = None,
        from_name: str = "Tourbook",
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address or username
        self.from_name = from_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "EmailService":
        """Build the notifier from application settings."""
        cfg = settings.email
        return cls(
            host=cfg.host,
            port=cfg.port,
            username=cfg.username,
            password=cfg.password,
            use_tls=cfg.use_tls,
            from_address=cfg.from_address,
            from_name=cfg.from_name,
            timeout=cfg.timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        """Check if email sending is properly configured."""
        return bool(self.host and self.from_address)

    def _build_message(self, recipient: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = f"{self.from_name} <{self.from_address}>"
        message["To"] = recipient
        message.set_content(body)
        return message

    def _deliver(self, message: EmailMessage) -> None:
        context = ssl.create_default_context()
        if self.use_tls:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls(context=context)
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(message)
        else:
            with smtplib.SMTP_SSL(
                self.host, self.port, context=context, timeout=self.timeout
            ) as server:
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(message)

    async def send(self, recipient: str, subject: str, body: str) -> None:
        """Send one message; raises EmailDeliveryError on any failure."""
        if not self.is_configured:
            if settings.environment != "development":
                logger.error("email_not_configured", to=redact_email(recipient))
                raise EmailDeliveryError("Email delivery is not configured")
            # Dev mode: nothing is sent; the body may carry a reset link and is not logged
            logger.info(
                "email_dev_mode",
                to=redact_email(recipient),
                subject=subject,
                body_length=len(body),
            )
            return

        message = self._build_message(recipient, subject, body)
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._deliver, message), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            logger.error("email_timeout", to=redact_email(recipient), timeout=self.timeout)
            raise EmailDeliveryError("Email delivery timed out") from exc
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "email_send_failed",
                to=redact_email(recipient),
                error_type=type(exc).__name__,
            )
            raise EmailDeliveryError() from exc

        logger.info("email_sent", to=redact_email(recipient), subject=subject)


# Global email service instance
email_service = EmailService.from_settings()


def get_email_service() -> EmailService:
    """Email service dependency for FastAPI."""
    return email_service

# email_service.py — Outbound email with provider abstraction
# Providers: smtp (aiosmtplib) and log (development; writes to the log only).
# Delivery is best-effort: every send reports success as a bool and never
# raises into the caller.

import os
import ssl
import logging
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from functools import lru_cache
from typing import Optional

import aiosmtplib

import email_templates

logger = logging.getLogger("icons-herald.email")

EMAIL_PROVIDER = os.getenv("EMAIL_PROVIDER", "log")
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "noreply@iconsherald.com")
EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "Icons Herald")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000")


class BaseEmailProvider(ABC):
    """Abstract base class for email delivery providers."""

    name = "base"

    @abstractmethod
    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        """Send an email. Returns True on success."""
        ...


class SMTPProvider(BaseEmailProvider):
    """Send emails via SMTP using aiosmtplib."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            tls_context = ssl.create_default_context() if self.use_tls else None
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                tls_context=tls_context,
            )
            logger.info(f"Email sent to {to_email} via smtp: {subject}")
            return True
        except Exception:
            logger.exception(f"Email to {to_email} via smtp failed")
            return False


class LogProvider(BaseEmailProvider):
    """Development provider: records the message in the log instead of sending it."""

    name = "log"

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        logger.info(f"[email:log] to={to_email} subject={subject!r} ({len(text_body)} chars)")
        return True


def _create_provider() -> BaseEmailProvider:
    provider_name = EMAIL_PROVIDER.lower()
    if provider_name == "smtp":
        if not SMTP_HOST:
            logger.warning("EMAIL_PROVIDER=smtp but SMTP_HOST is not set; falling back to log provider")
            return LogProvider()
        return SMTPProvider(
            host=SMTP_HOST,
            port=SMTP_PORT,
            username=SMTP_USERNAME,
            password=SMTP_PASSWORD,
            from_address=EMAIL_FROM_ADDRESS,
            from_name=EMAIL_FROM_NAME,
            use_tls=SMTP_USE_TLS,
        )
    if provider_name != "log":
        logger.warning(f"Unknown EMAIL_PROVIDER '{EMAIL_PROVIDER}'; using log provider")
    return LogProvider()


class EmailService:
    """High-level email operations used by the routers."""

    def __init__(self, provider: Optional[BaseEmailProvider] = None) -> None:
        self.provider = provider or _create_provider()

    async def _deliver(self, to_email: str, rendered: tuple) -> bool:
        subject, html_body, text_body = rendered
        try:
            return await self.provider.send(to_email, subject, html_body, text_body)
        except Exception:
            logger.exception(f"Email provider {self.provider.name} raised for {to_email}")
            return False

    async def send_invitation(self, to_email: str, name: str, tier: str, temp_password: Optional[str]) -> bool:
        rendered = email_templates.invitation_email(
            name=name,
            email=to_email,
            tier=tier,
            temp_password=temp_password,
            login_url=f"{PUBLIC_BASE_URL}/login",
        )
        return await self._deliver(to_email, rendered)

    async def send_nomination_received(self, to_email: str, nominator_name: str, nominee_name: str) -> bool:
        rendered = email_templates.nomination_received_email(nominator_name, nominee_name)
        return await self._deliver(to_email, rendered)

    async def send_profile_published(self, to_email: str, name: str, slug: str) -> bool:
        rendered = email_templates.profile_published_email(
            name=name,
            profile_url=f"{PUBLIC_BASE_URL}/profile/{slug}",
        )
        return await self._deliver(to_email, rendered)


@lru_cache()
def get_email_service() -> EmailService:
    return EmailService()

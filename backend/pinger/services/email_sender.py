"""Email sender service - sends HTML alerts via SMTP."""
import asyncio
import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List, Optional
from dataclasses import dataclass

from ..config import settings

logger = logging.getLogger(__name__)

# Port that speaks TLS from the first byte (SMTPS)
IMPLICIT_TLS_PORT = 465


@dataclass
class EmailConfig:
    """SMTP configuration for sending emails."""
    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None
    starttls: bool = False
    from_address: str = ""

    @classmethod
    def from_settings(cls) -> "EmailConfig":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_pass,
            starttls=settings.smtp_starttls,
            from_address=settings.from_email,
        )


def parse_recipients(to_address: str) -> List[str]:
    """Parse comma-separated email addresses into a list."""
    if not to_address:
        return []
    return [addr.strip() for addr in to_address.split(",") if addr.strip()]


class EmailSenderService:
    """Service for sending email alerts via SMTP.

    Alert relays are usually internal, so certificates are not verified.
    """

    def __init__(self, config: Optional[EmailConfig] = None):
        self._config = config

    @property
    def config(self) -> EmailConfig:
        return self._config or EmailConfig.from_settings()

    async def send_email(self, to_address: str, subject: str, html: str) -> bool:
        """Send an HTML email; returns True on success, False on failure.

        smtplib blocks, so the exchange runs in the default thread pool.
        """
        recipients = parse_recipients(to_address)
        if not recipients:
            logger.warning("No valid recipients found in to_address")
            return False

        config = self.config
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._deliver, config, recipients, subject, html)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for user '{config.username}': {e}")
            return False
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"Recipients refused by server: {e}")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {type(e).__name__}: {e}")
            return False
        except OSError as e:
            logger.error(f"Failed to connect to SMTP server {config.host}:{config.port}: {e}")
            return False

        logger.info(f"Alert sent to {', '.join(recipients)}: {subject}")
        return True

    def _deliver(self, config: EmailConfig, recipients: List[str], subject: str, html: str):
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = config.from_address
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(html, "html"))

        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

        if config.port == IMPLICIT_TLS_PORT:
            server = smtplib.SMTP_SSL(config.host, config.port, timeout=30, context=context)
        else:
            server = smtplib.SMTP(config.host, config.port, timeout=30)

        with server:
            if config.starttls and config.port != IMPLICIT_TLS_PORT:
                server.starttls(context=context)
            if config.username:
                server.login(config.username, config.password or "")
            server.sendmail(config.from_address, recipients, msg.as_string())


# Global instance
email_sender_service = EmailSenderService()

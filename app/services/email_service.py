"""
Outgoing account email (password reset links) over SMTP.
Configured entirely from the environment; unconfigured means "don't send".
"""
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional
import logging
import os
import smtplib

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

RESET_EMAIL_SUBJECT = "Reset your CineScope password"
RESET_EMAIL_BODY = """Hello,

Someone asked to reset the password on your CineScope account.
Use the link below within the next hour to pick a new one:

{link}

If this wasn't you, no action is needed.

CineScope
"""


@dataclass(frozen=True)
class SMTPSettings:
    host: str
    sender: str
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    starttls: bool = True

    @classmethod
    def from_env(cls) -> Optional["SMTPSettings"]:
        host, sender = os.getenv("SMTP_HOST"), os.getenv("EMAIL_FROM")
        if not (host and sender):
            return None
        return cls(
            host=host,
            sender=sender,
            port=int(os.getenv("SMTP_PORT", "587")),
            username=os.getenv("SMTP_USERNAME"),
            password=os.getenv("SMTP_PASSWORD"),
            starttls=os.getenv("SMTP_USE_TLS", "true").lower() == "true",
        )


class EmailService:
    @staticmethod
    def is_configured() -> bool:
        return SMTPSettings.from_env() is not None

    @classmethod
    def send_password_reset_email(cls, recipient: str, reset_link: str) -> None:
        cls._deliver(recipient, RESET_EMAIL_SUBJECT, RESET_EMAIL_BODY.format(link=reset_link))

    @staticmethod
    def _deliver(recipient: str, subject: str, body: str) -> None:
        settings = SMTPSettings.from_env()
        if settings is None:
            logger.error("Cannot send email: SMTP_HOST/EMAIL_FROM not set")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                                detail="Email service is not configured")

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = settings.sender
        message["To"] = recipient
        message.set_content(body)

        try:
            with smtplib.SMTP(settings.host, settings.port, timeout=30) as smtp:
                if settings.starttls:
                    smtp.starttls()
                if settings.username and settings.password:
                    smtp.login(settings.username, settings.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.exception(f"SMTP delivery to {recipient} failed: {exc}")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                                detail="Unable to send email at this time")
        logger.info(f"Sent '{subject}' to {recipient}")

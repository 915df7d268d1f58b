"""
Mail Service

Sends account credentials to users over SMTP.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional
from evoting.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class MailConfigurationError(RuntimeError):
    """Raised when no sender address is configured"""


class MailService:
    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    def build_credentials_message(self, user, password: str) -> MIMEMultipart:
        """
        Build the credentials email for a user.

        The body names both login identifiers because voters sign in
        with their nim and administrators with their email.
        """
        subject = "Your voting account credentials"
        body = f"""Hello {user.name},

An account has been prepared for you on the voting platform.

NIM: {user.nim or "-"}
Email: {user.email}
Password: {password}

Sign in at {self.config.LOGIN_URL}

---
This is an automated message. Please do not reply to this email.
"""
        message = MIMEMultipart()
        message["From"] = self.config.MAIL_SENDER
        message["To"] = user.email
        message["Subject"] = subject
        message.attach(MIMEText(body, "plain"))
        return message

    def send_credentials(self, user, password: str) -> None:
        """Email a freshly issued plaintext password to the user"""
        if not self.config.MAIL_SENDER:
            logger.error("Mail sender not configured. Set MAIL_SENDER to send credentials.")
            raise MailConfigurationError("MAIL_SENDER is not configured")

        message = self.build_credentials_message(user, password)

        try:
            with smtplib.SMTP(self.config.SMTP_HOST, self.config.SMTP_PORT) as server:
                if self.config.SMTP_USE_TLS:
                    server.starttls()
                if self.config.SMTP_USERNAME and self.config.SMTP_PASSWORD:
                    server.login(self.config.SMTP_USERNAME, self.config.SMTP_PASSWORD)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error sending credentials to {user.email}: {e}")
            raise

        logger.info(f"Credentials sent to {user.email}")


mail_service = MailService()

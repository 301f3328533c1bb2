"""
SMTP email delivery for worker tasks.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional

from ..core.config import config

logger = logging.getLogger(__name__)


class EmailService:
    """Ticket and payment emails over SMTP (STARTTLS or implicit TLS)."""

    def __init__(self):
        self.config: Optional[Dict[str, Any]] = None

    def _load_config(self):
        if self.config is None:
            self.config = asyncio.run(config.get_email_config())

    def _connect(self) -> smtplib.SMTP:
        if self.config["smtp_use_tls"]:
            server = smtplib.SMTP(self.config["smtp_host"], self.config["smtp_port"])
            server.starttls()
        else:
            server = smtplib.SMTP_SSL(self.config["smtp_host"], self.config["smtp_port"])

        if self.config["smtp_username"] and self.config["smtp_password"]:
            server.login(self.config["smtp_username"], self.config["smtp_password"])

        return server

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email.

        Returns:
            True if the email was handed to the SMTP server, False otherwise
        """
        try:
            self._load_config()

            msg = MIMEMultipart("alternative")
            msg["From"] = f"{self.config['from_name']} <{self.config['from_email']}>"
            msg["To"] = to_email
            msg["Subject"] = subject

            if text_content:
                msg.attach(MIMEText(text_content, "plain"))
            msg.attach(MIMEText(html_content, "html"))

            with self._connect() as server:
                server.send_message(msg)

            logger.info(f"Delivered \"{subject}\" to {to_email}")
            return True

        except Exception as e:
            logger.error(f"SMTP delivery of \"{subject}\" to {to_email} failed: {e}")
            return False


# Shared by all worker tasks
email_service = EmailService()

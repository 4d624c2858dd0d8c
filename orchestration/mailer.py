"""
📧 RESEND EMAIL DELIVERY
========================
Outgoing operator e-mail through the Resend HTTP API.
Failures are logged and reported as False, never raised.
"""

from typing import Optional

import requests
from loguru import logger

from config.settings import settings


RESEND_URL = "https://api.resend.com/emails"


class ResendMailer:
    """
    Usage:
        mailer = ResendMailer()
        ok = mailer.send("manager@stable.ae", "Visit in March", "<p>Hello</p>")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        sender_email: Optional[str] = None,
        sender_name: Optional[str] = None,
        timeout: int = 30
    ):
        self.api_key = api_key if api_key is not None else settings.api.resend_api_key
        self.sender_email = sender_email or settings.api.sender_email
        self.sender_name = sender_name or settings.identity.full_name
        self.timeout = timeout

    def send(self, to: str, subject: str, html: str) -> bool:
        """
        Send one HTML e-mail.

        Returns:
            True when Resend accepted the message
        """
        if not self.api_key:
            logger.warning("⚠️ RESEND_API_KEY not set - email not sent")
            return False

        payload = {
            "from": f"{self.sender_name} <{self.sender_email}>",
            "to": [to],
            "subject": subject,
            "html": html,
        }

        try:
            response = requests.post(
                RESEND_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.error(f"Resend request timed out sending to {to}")
            return False
        except requests.exceptions.RequestException as e:
            logger.error(f"Resend connection failed: {e}")
            return False

        if not response.ok:
            try:
                detail = response.json()
            except ValueError:
                detail = response.text
            logger.error(f"Resend API failure ({response.status_code}): {detail}")
            return False

        logger.info(f"📧 Email sent to {to}")
        return True

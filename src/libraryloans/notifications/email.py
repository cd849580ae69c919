"""Reminder delivery by email.

The overdue scanner hands one message and a list of addresses to a
``ReminderSender``. ``HttpEmailSender`` delivers that batch as a single
message through an email provider's HTTP API.
"""

import logging
from typing import Optional, Protocol, Sequence

import requests

from ..config import Config

logger = logging.getLogger(__name__)

REMINDER_SUBJECT = "Loan Late Book"


class NotificationError(Exception):
    """Base exception for reminder delivery errors."""

    pass


class NotificationConfigError(NotificationError):
    """Raised when the email provider is not configured."""

    pass


class ReminderSender(Protocol):
    """Anything that can deliver one reminder message to many recipients."""

    def send_reminder(self, message: str, recipients: Sequence[str]) -> None:
        ...


class HttpEmailSender:
    """Sends reminders through an email provider's JSON API."""

    def __init__(
        self,
        api_url: Optional[str],
        api_key: Optional[str],
        sender: str,
        subject: str = REMINDER_SUBJECT,
        timeout: float = 10.0,
    ):
        """Initialize sender.

        Args:
            api_url: Provider endpoint accepting a JSON mail payload
            api_key: Bearer token for the provider
            sender: From address
            subject: Subject line of reminder mails
            timeout: Request timeout in seconds
        """
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.subject = subject
        self.timeout = timeout
        self._session = requests.Session()

    @classmethod
    def from_config(cls, config: Config) -> "HttpEmailSender":
        return cls(
            api_url=config.email_api_url,
            api_key=config.email_api_key,
            sender=config.email_from,
            timeout=config.email_timeout,
        )

    def build_payload(self, message: str, recipients: Sequence[str]) -> dict:
        """Shape one mail with every recipient on it."""
        return {
            "from": {"email": self.sender},
            "personalizations": [
                {"to": [{"email": r} for r in recipients], "subject": self.subject}
            ],
            "content": [{"type": "text/plain", "value": message}],
        }

    def send_reminder(self, message: str, recipients: Sequence[str]) -> None:
        """Send ``message`` to all ``recipients`` in one request.

        Raises:
            NotificationConfigError: If no provider URL or key is set
            NotificationError: If the request fails or is rejected
        """
        if not self.api_url or not self.api_key:
            raise NotificationConfigError("Email provider not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._session.post(
                self.api_url,
                json=self.build_payload(message, recipients),
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout:
            raise NotificationError("Email provider timed out")
        except requests.exceptions.HTTPError as e:
            raise NotificationError(
                f"Email provider rejected the batch: {e.response.status_code}"
            )
        except requests.exceptions.RequestException as e:
            raise NotificationError(f"Email request failed: {e}")

        logger.info("Sent reminder to %d recipients", len(recipients))

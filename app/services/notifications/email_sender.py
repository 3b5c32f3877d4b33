import logging
from html import escape
from typing import Tuple

import requests
from fastapi.concurrency import run_in_threadpool

from app.models.notifications import NotificationKind, OutboxMessage

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class EmailSendError(Exception):
    """Raised when the email API refuses or cannot take a message."""


class ResendEmailSender:
    """Sends transactional email through the Resend HTTP API."""

    BASE_URL = "https://api.resend.com"
    TIMEOUT = 10  # seconds

    def __init__(self, api_key: str, sender: str):
        self.api_key = api_key
        self.sender = sender

    async def send(self, to: str, subject: str, html: str) -> str:
        """
        Send one email.

        Returns:
            str: Provider message ID

        Raises:
            EmailSendError: If the request fails or is rejected
        """
        try:
            response = await run_in_threadpool(
                requests.post,
                f"{self.BASE_URL}/emails",
                json={"from": self.sender, "to": [to], "subject": subject, "html": html},
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.TIMEOUT,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise EmailSendError(str(e)) from e

        return response.json().get("id", "")


def render_notification(message: OutboxMessage) -> Tuple[str, str]:
    """Build the subject and HTML body for an outbox message."""
    if message.kind == NotificationKind.LICENSE_DELIVERY.value:
        french = str(message.payload.get("locale", "en")).lower().startswith("fr")
        subject = "Vos clés de licence" if french else "Your licence keys"
        lines = []
        for product in message.payload.get("products", []):
            keys = "".join(
                f"<li><code>{escape(key)}</code></li>" for key in product.get("keys", [])
            )
            lines.append(f"<h3>{escape(product.get('product_name') or '')}</h3><ul>{keys}</ul>")
        order_ref = escape(str(message.payload.get("order_id", "")))
        intro = (
            f"<p>Commande {order_ref}</p>" if french else f"<p>Order {order_ref}</p>"
        )
        return subject, intro + "".join(lines)

    raise ValueError(f"Unknown notification kind: {message.kind}")

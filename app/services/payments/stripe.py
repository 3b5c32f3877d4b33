import logging
from typing import Any, Dict, List, Optional

import stripe

from app.models.checkout import PaymentSession

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class StripeGateway:
    """
    Thin handle over the Stripe Checkout API.

    The API key is passed on every call instead of being set globally, so
    each gateway instance is self-contained.
    """

    def __init__(self, api_key: str, webhook_secret: str):
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    async def retrieve_session(self, session_id: str) -> PaymentSession:
        """
        Fetch the current state of a Checkout session.

        Args:
            session_id: Stripe Checkout session ID

        Returns:
            PaymentSession: Status, payment status, hosted URL and creation time

        Raises:
            stripe.StripeError: If Stripe cannot be reached or rejects the call
        """
        session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        return PaymentSession(
            id=session.id,
            status=session.status,
            payment_status=session.payment_status,
            url=session.url,
            created=session.created,
        )

    async def create_session(
        self,
        line_items: List[Dict[str, Any]],
        customer_email: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        expires_at: int,
    ) -> PaymentSession:
        """
        Create a one-time card payment Checkout session.

        Args:
            line_items: Stripe line items with inline price_data
            customer_email: Email prefilled on the hosted page
            success_url: Redirect after payment
            cancel_url: Redirect when the customer backs out
            metadata: Order and user references echoed back in webhooks
            expires_at: Unix timestamp after which Stripe expires the session

        Raises:
            stripe.StripeError: If Stripe rejects the session
        """
        session = stripe.checkout.Session.create(
            api_key=self.api_key,
            mode="payment",
            payment_method_types=["card"],
            line_items=line_items,
            customer_email=customer_email,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            expires_at=expires_at,
        )
        logger.info(f"Created checkout session {session.id}")
        return PaymentSession(
            id=session.id,
            status=session.status,
            payment_status=session.payment_status,
            url=session.url,
            created=session.created,
        )

    def construct_event(self, payload: bytes, signature: Optional[str]):
        """
        Verify a webhook payload and parse it into an event.

        Raises:
            ValueError: If the payload is not valid JSON
            stripe.SignatureVerificationError: If the signature does not match
        """
        return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)

"""
Payment Reconciliation

This module applies Stripe webhook events to the order ledger: confirming
payment exactly once, then handling refunds and disputes. Every handled event
is recorded by its Stripe event ID so that redelivered events are skipped.
"""

import logging
from datetime import datetime, timezone
from traceback import format_exc
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from app.models.firestore import WEBHOOK_EVENTS
from app.models.shared import OrderStatus
from app.services.checkout.order_ledger import OrderLedger
from app.services.firestore_service import FirestoreService
from app.services.fulfillment.license_store import LicenseStore
from app.services.fulfillment.trigger import FulfillmentItemResult, FulfillmentTrigger

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class WebhookOutcome(BaseModel):
    """Body returned to Stripe; always sent with a 2xx status."""

    received: bool = True
    cached: Optional[bool] = None
    status: Optional[str] = None
    warning: Optional[str] = None
    error: Optional[str] = None
    order_id: Optional[str] = None
    licenses_assigned: Optional[int] = None
    details: Optional[List[FulfillmentItemResult]] = None


def _metadata_value(metadata: Dict[str, Any], snake: str, camel: str) -> Optional[str]:
    # Sessions created by older storefront builds used camelCase keys
    return metadata.get(snake) or metadata.get(camel)


class PaymentReconciler:
    """Keeps orders in step with what Stripe reports."""

    def __init__(
        self,
        firestore_service: FirestoreService,
        ledger: OrderLedger,
        fulfillment: FulfillmentTrigger,
        license_store: LicenseStore,
    ):
        self.firestore_service = firestore_service
        self.ledger = ledger
        self.fulfillment = fulfillment
        self.license_store = license_store

    async def is_event_processed(self, event_id: str) -> bool:
        record = await self.firestore_service.get_document(
            collection_name=WEBHOOK_EVENTS, document_id=event_id
        )
        return record is not None

    async def record_event(
        self, event_id: str, event_type: str, order_id: Optional[str]
    ) -> None:
        await self.firestore_service.create_document_if_absent(
            collection_name=WEBHOOK_EVENTS,
            document_id=event_id,
            document_data={
                "event_type": event_type,
                "order_id": order_id,
                "processed_at": datetime.now(timezone.utc),
            },
        )

    async def handle_checkout_completed(
        self, event_id: str, event_type: str, session: Dict[str, Any]
    ) -> WebhookOutcome:
        """
        Confirm payment of the order referenced by a completed Checkout session.

        The order is moved to paid in a transaction; only the request that
        performs the move runs fulfillment.
        """
        stripe_session_id = session.get("id")
        metadata = session.get("metadata") or {}
        order_id = _metadata_value(metadata, "order_id", "orderId")
        user_id = _metadata_value(metadata, "user_id", "userId")
        payment_intent = session.get("payment_intent")
        locale = session.get("locale") or "en"

        if not order_id:
            logger.error(f"Checkout session {stripe_session_id} has no order_id")
            return WebhookOutcome(warning="Missing order_id")

        order = await self.ledger.get_order(order_id)
        if order is None:
            await self.record_event(event_id, event_type, None)
            return WebhookOutcome(warning="Order not found")

        if order.stripe_session_id and order.stripe_session_id != stripe_session_id:
            logger.warning(f"Session mismatch on order {order.id}")
            await self.record_event(event_id, event_type, order.id)
            return WebhookOutcome(warning="Session ID mismatch", order_id=order.id)

        if order.user_id is None:
            if user_id:
                await self.ledger.assign_user(order.id, user_id)
                order.user_id = user_id
        elif order.user_id != user_id:
            logger.warning(f"User mismatch on order {order.id}")
            await self.record_event(event_id, event_type, order.id)
            return WebhookOutcome(warning="User ID mismatch", order_id=order.id)

        if order.status == OrderStatus.PAID.value:
            await self.record_event(event_id, event_type, order.id)
            return WebhookOutcome(status="already_paid", order_id=order.id)

        transitioned = await self.ledger.mark_paid(
            order.id, stripe_session_id, payment_intent
        )
        if not transitioned:
            # Another delivery of the same payment won the transition
            await self.record_event(event_id, event_type, order.id)
            return WebhookOutcome(status="already_paid", order_id=order.id)

        logger.info(f"Order {order.id} marked paid")

        try:
            report = await self.fulfillment.fulfill(order, locale=locale)
        except Exception as e:
            logger.error(f"Fulfillment of order {order.id} failed: {str(e)}\n{format_exc()}")
            await self.record_event(event_id, event_type, order.id)
            return WebhookOutcome(
                status="paid", error="Fulfillment failed", order_id=order.id
            )

        await self.record_event(event_id, event_type, order.id)
        return WebhookOutcome(
            status="processed",
            order_id=order.id,
            licenses_assigned=report.licenses_assigned,
            details=report.details,
        )

    async def handle_charge_refunded(
        self, event_id: str, event_type: str, charge: Dict[str, Any]
    ) -> WebhookOutcome:
        return await self._revoke(
            event_id, event_type, charge.get("payment_intent"), OrderStatus.REFUNDED
        )

    async def handle_dispute_created(
        self, event_id: str, event_type: str, dispute: Dict[str, Any]
    ) -> WebhookOutcome:
        return await self._revoke(
            event_id, event_type, dispute.get("payment_intent"), OrderStatus.DISPUTED
        )

    async def handle_dispute_closed(
        self, event_id: str, event_type: str, dispute: Dict[str, Any]
    ) -> WebhookOutcome:
        """Restore a disputed order to paid when the merchant wins."""
        payment_intent = dispute.get("payment_intent")
        if not payment_intent:
            return WebhookOutcome()

        order = await self.ledger.get_order_by_payment_intent(payment_intent)
        if order is None:
            return WebhookOutcome()

        if dispute.get("status") == "won":
            await self.ledger.set_status(
                order.id, OrderStatus.PAID, from_statuses=[OrderStatus.DISPUTED]
            )

        await self.record_event(event_id, event_type, order.id)
        return WebhookOutcome(order_id=order.id)

    async def _revoke(
        self,
        event_id: str,
        event_type: str,
        payment_intent: Optional[str],
        new_status: OrderStatus,
    ) -> WebhookOutcome:
        if not payment_intent:
            return WebhookOutcome()

        order = await self.ledger.get_order_by_payment_intent(payment_intent)
        if order is None:
            return WebhookOutcome()

        if order.status == new_status.value:
            return WebhookOutcome(order_id=order.id, status=new_status.value)

        await self.ledger.set_status(
            order.id,
            new_status,
            from_statuses=[OrderStatus.PAID, OrderStatus.DISPUTED],
        )
        await self.license_store.revoke_for_order(order.id)
        await self.record_event(event_id, event_type, order.id)

        logger.info(f"Order {order.id} is now {new_status.value}, licences revoked")
        return WebhookOutcome(order_id=order.id, status=new_status.value)

"""
Order Ledger

This module reads and writes checkout attempts (orders and their line items)
in Firestore. Orders are keyed by user and cart fingerprint so that a cart
submitted twice can be matched back to its pending payment session.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from app.models.firestore import ORDER_ITEMS, ORDERS
from app.models.orders import Order, OrderItem
from app.models.shared import OrderStatus
from app.services.firestore_service import FirestoreService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class OrderLedger:
    """Persisted record of attempted and completed purchases."""

    def __init__(self, firestore_service: FirestoreService):
        self.firestore_service = firestore_service

    async def find_resumable_order(
        self, user_id: str, cart_hash: str, created_since: datetime
    ) -> Optional[Order]:
        """
        Get the most recent pending order for this user and cart.

        Args:
            user_id: Owning user ID
            cart_hash: Fingerprint of the submitted cart
            created_since: Oldest creation time still eligible

        Returns:
            The newest matching order, or None
        """
        orders = await self.firestore_service.query_collection(
            collection_name=ORDERS,
            filters=[
                ("user_id", "==", user_id),
                ("cart_hash", "==", cart_hash),
                ("status", "==", OrderStatus.PENDING.value),
                ("created_at", ">=", created_since),
            ],
            order_by="created_at",
            descending=True,
            limit=1,
            model_class=Order,
        )
        return orders[0] if orders else None

    async def count_recent_pending(self, user_id: str, created_after: datetime) -> int:
        """Count the user's pending orders created after the given time."""
        return await self.firestore_service.count_documents(
            collection_name=ORDERS,
            filters=[
                ("user_id", "==", user_id),
                ("status", "==", OrderStatus.PENDING.value),
                ("created_at", ">", created_after),
            ],
        )

    async def get_order(self, order_id: str) -> Optional[Order]:
        return await self.firestore_service.get_document(
            collection_name=ORDERS, document_id=order_id, model_class=Order
        )

    async def get_order_by_session(self, stripe_session_id: str) -> Optional[Order]:
        orders = await self.firestore_service.query_collection(
            collection_name=ORDERS,
            filters=[("stripe_session_id", "==", stripe_session_id)],
            limit=1,
            model_class=Order,
        )
        return orders[0] if orders else None

    async def get_order_by_payment_intent(self, payment_intent: str) -> Optional[Order]:
        orders = await self.firestore_service.query_collection(
            collection_name=ORDERS,
            filters=[("stripe_payment_intent", "==", payment_intent)],
            limit=1,
            model_class=Order,
        )
        return orders[0] if orders else None

    async def list_items(self, order_id: str) -> List[OrderItem]:
        return await self.firestore_service.query_collection(
            collection_name=ORDER_ITEMS,
            filters=[("order_id", "==", order_id)],
            model_class=OrderItem,
        )

    async def create_order(
        self,
        user_id: Optional[str],
        email: str,
        cart_hash: str,
        total_amount: int,
        currency: str = "eur",
    ) -> Order:
        """
        Create a new pending order without a payment session.

        Returns:
            The created order
        """
        order_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        order_data = {
            "user_id": user_id,
            "email_client": email.lower().strip(),
            "cart_hash": cart_hash,
            "status": OrderStatus.PENDING.value,
            "stripe_session_id": None,
            "stripe_payment_intent": None,
            "total_amount": total_amount,
            "currency": currency,
            "created_at": now,
            "updated_at": now,
            "paid_at": None,
        }

        await self.firestore_service.create_document(
            collection_name=ORDERS,
            document_data=order_data,
            document_id=order_id,
        )
        logger.info(f"Created pending order {order_id} for user {user_id}")
        return Order(id=order_id, **order_data)

    async def add_items(self, order_id: str, items: List[Dict]) -> None:
        """
        Insert the order's line items. On failure the partially written lines
        are left for delete_order to clean up.
        """
        for item in items:
            await self.firestore_service.create_document(
                collection_name=ORDER_ITEMS,
                document_data={"order_id": order_id, **item},
            )

    async def delete_order(self, order_id: str) -> None:
        """Delete an order and all of its line items."""
        for item in await self.list_items(order_id):
            await self.firestore_service.delete_document(ORDER_ITEMS, item.id)
        await self.firestore_service.delete_document(ORDERS, order_id)
        logger.info(f"Deleted order {order_id}")

    async def attach_session(self, order_id: str, stripe_session_id: str) -> None:
        await self.firestore_service.update_document(
            collection_name=ORDERS,
            document_id=order_id,
            update_data={"stripe_session_id": stripe_session_id},
        )

    async def assign_user(self, order_id: str, user_id: str) -> None:
        await self.firestore_service.update_document(
            collection_name=ORDERS,
            document_id=order_id,
            update_data={"user_id": user_id},
        )

    async def mark_paid(
        self,
        order_id: str,
        stripe_session_id: str,
        payment_intent: Optional[str],
        paid_at: Optional[datetime] = None,
    ) -> bool:
        """
        Move a pending order to paid.

        Returns:
            True for the single caller that performed the transition, False if
            the order was missing or no longer pending
        """
        before = await self.firestore_service.transition_document(
            collection_name=ORDERS,
            document_id=order_id,
            expected={"status": [OrderStatus.PENDING.value]},
            update_data={
                "status": OrderStatus.PAID.value,
                "stripe_session_id": stripe_session_id,
                "stripe_payment_intent": payment_intent,
                "paid_at": paid_at or datetime.now(timezone.utc),
            },
        )
        return before is not None

    async def set_status(
        self, order_id: str, status: OrderStatus, from_statuses: List[OrderStatus]
    ) -> bool:
        """Change the order status if it is currently one of `from_statuses`."""
        before = await self.firestore_service.transition_document(
            collection_name=ORDERS,
            document_id=order_id,
            expected={"status": [s.value for s in from_statuses]},
            update_data={"status": status.value},
        )
        if before is not None:
            logger.info(f"Order {order_id} moved from {before['status']} to {status.value}")
        return before is not None

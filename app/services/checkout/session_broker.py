"""
Payment Session Broker

This module decides whether a cart can go back to an existing Stripe Checkout
session, and creates a new order plus session when it cannot.

Resume is read-only: it looks up the newest recent pending order for the
user and cart fingerprint, then asks Stripe whether that order's session can
still be paid. Anything stale, missing or unverifiable ends in the same retry
signal so the caller starts a fresh session.
"""

import logging
from datetime import datetime, timedelta, timezone
from traceback import format_exc
from typing import Callable, Dict, List, Optional

import stripe
from fastapi import HTTPException, status

from app.models.checkout import CheckoutItem, PaymentSession, ResumeResult
from app.models.firestore import PRODUCTS
from app.models.products import Product
from app.models.shared import SessionPaymentStatus, SessionStatus
from app.services.checkout.cart_hash import generate_cart_hash
from app.services.checkout.order_ledger import OrderLedger
from app.services.firestore_service import FirestoreService
from app.services.payments.pricing import CURRENCY, euros_to_cents, unit_price_euros
from app.services.payments.stripe import StripeGateway
from config import (
    ORDER_RESUME_WINDOW_MINUTES,
    PENDING_ORDER_RATE_LIMIT,
    PENDING_ORDER_RATE_WINDOW_MINUTES,
    SESSION_EXPIRES_AFTER_MINUTES,
    SESSION_MAX_AGE_MINUTES,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

RESTART_CHECKOUT_MESSAGE = "No reusable payment session, please restart checkout"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_session_reusable(session: PaymentSession, now: datetime) -> bool:
    """
    Check whether a Checkout session can still be handed back to the customer.

    A session is reusable when it has a hosted URL, is open, is unpaid and
    was created less than SESSION_MAX_AGE_MINUTES ago.
    """
    if not session.url:
        return False
    if session.status != SessionStatus.OPEN.value:
        return False
    if session.payment_status != SessionPaymentStatus.UNPAID.value:
        return False

    session_age = now - session.created_at
    return session_age < timedelta(minutes=SESSION_MAX_AGE_MINUTES)


def _retry() -> ResumeResult:
    return ResumeResult(success=False, should_retry=True, error=RESTART_CHECKOUT_MESSAGE)


class PaymentSessionBroker:
    """Creates, inspects and reuses Stripe Checkout sessions for carts."""

    def __init__(
        self,
        ledger: OrderLedger,
        gateway: StripeGateway,
        firestore_service: FirestoreService,
        success_url: str,
        cancel_url: str,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ledger = ledger
        self.gateway = gateway
        self.firestore_service = firestore_service
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.clock = clock

    async def resume(self, user_id: str, items: List[CheckoutItem]) -> ResumeResult:
        """
        Hand back the payment URL of a still-usable session for this cart.

        Never writes to the ledger or to Stripe, so concurrent calls for the
        same cart all observe the same outcome.

        Args:
            user_id: Authenticated user ID
            items: Non-empty cart lines

        Returns:
            ResumeResult: success with the session URL, or should_retry=True
        """
        cart_hash = generate_cart_hash(items)
        now = self.clock()

        try:
            order = await self.ledger.find_resumable_order(
                user_id=user_id,
                cart_hash=cart_hash,
                created_since=now - timedelta(minutes=ORDER_RESUME_WINDOW_MINUTES),
            )
        except Exception as e:
            logger.error(f"Order lookup failed for user {user_id}: {str(e)}\n{format_exc()}")
            return _retry()

        if order is None:
            logger.info(f"No recent pending order for user {user_id}")
            return _retry()

        if not order.stripe_session_id:
            logger.info(f"Order {order.id} has no checkout session attached")
            return _retry()

        try:
            session = await self.gateway.retrieve_session(order.stripe_session_id)
        except Exception as e:
            logger.error(
                f"Failed to retrieve session for order {order.id}: {str(e)}\n{format_exc()}"
            )
            return _retry()

        if not is_session_reusable(session, self.clock()):
            logger.info(
                f"Session {session.id} not reusable (status={session.status}, "
                f"payment_status={session.payment_status})"
            )
            return _retry()

        logger.info(f"Resuming session {session.id} for order {order.id}")
        return ResumeResult(success=True, session_url=session.url, session_id=session.id)

    async def create(
        self, user_id: str, items: List[CheckoutItem], email: str
    ) -> PaymentSession:
        """
        Start a payment for the cart, reusing a live session when one exists.

        Prices are recomputed from the catalogue; the client only supplies
        product slugs, variants and quantities.

        Returns:
            PaymentSession: The reused or newly created session

        Raises:
            HTTPException: 429 when too many pending orders were opened
                recently, 400 when a product is unknown, 502 when the order
                or the Stripe session could not be created
        """
        now = self.clock()

        recent_pending = await self.ledger.count_recent_pending(
            user_id, now - timedelta(minutes=PENDING_ORDER_RATE_WINDOW_MINUTES)
        )
        if recent_pending >= PENDING_ORDER_RATE_LIMIT:
            logger.warning(f"Checkout rate limit hit for user {user_id}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many payment attempts, try again in a few minutes",
            )

        resumed = await self.resume(user_id, items)
        if resumed.success:
            return PaymentSession(
                id=resumed.session_id,
                status=SessionStatus.OPEN.value,
                payment_status=SessionPaymentStatus.UNPAID.value,
                url=resumed.session_url,
                created=int(now.timestamp()),
            )

        products = await self._load_products(items)
        order_lines = self._price_lines(items, products)
        total_amount = sum(line["unit_price"] * line["quantity"] for line in order_lines)
        cart_hash = generate_cart_hash(items)

        order = await self.ledger.create_order(
            user_id=user_id,
            email=email,
            cart_hash=cart_hash,
            total_amount=total_amount,
            currency=CURRENCY,
        )

        try:
            await self.ledger.add_items(order.id, order_lines)
        except Exception as e:
            logger.error(
                f"Failed to write items for order {order.id}, rolling back: {str(e)}\n{format_exc()}"
            )
            await self.ledger.delete_order(order.id)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Unable to create the order",
            )

        try:
            session = await self.gateway.create_session(
                line_items=[
                    {
                        "price_data": {
                            "currency": CURRENCY,
                            "product_data": {
                                "name": f"{line['product_name']} ({line['variant'].upper()})",
                                "description": f"Software licence: {line['product_name']}",
                            },
                            "unit_amount": line["unit_price"],
                        },
                        "quantity": line["quantity"],
                    }
                    for line in order_lines
                ],
                customer_email=email.lower().strip(),
                success_url=self.success_url,
                cancel_url=self.cancel_url,
                metadata={"order_id": order.id, "user_id": user_id},
                expires_at=int(
                    (now + timedelta(minutes=SESSION_EXPIRES_AFTER_MINUTES)).timestamp()
                ),
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error for order {order.id}: {str(e)}\n{format_exc()}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Payment processing error",
            )

        await self.ledger.attach_session(order.id, session.id)
        logger.info(f"Order {order.id} attached to session {session.id}")
        return session

    async def _load_products(self, items: List[CheckoutItem]) -> Dict[str, Product]:
        products = {}
        for slug in dict.fromkeys(item.product_id for item in items):
            product = await self.firestore_service.get_document(
                collection_name=PRODUCTS, document_id=slug, model_class=Product
            )
            if product is None:
                logger.warning(f"Checkout requested unknown product {slug}")
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Some products could not be found",
                )
            products[slug] = product
        return products

    @staticmethod
    def _price_lines(
        items: List[CheckoutItem], products: Dict[str, Product]
    ) -> List[Dict]:
        lines = []
        for item in items:
            product = products[item.product_id]
            lines.append(
                {
                    "product_id": item.product_id,
                    "product_name": product.name,
                    "variant": item.variant.value,
                    "unit_price": euros_to_cents(unit_price_euros(product)),
                    "quantity": item.quantity,
                }
            )
        return lines

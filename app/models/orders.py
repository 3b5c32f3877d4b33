"""
Order Data Models

This module contains models for the order ledger: orders, their line items
and the processed webhook event records used for idempotency.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.shared import FirestoreBaseModel, OrderStatus


class BaseOrder(BaseModel):
    """Base order model shared between Firestore and API."""

    id: str = Field(..., description="Unique order identifier")
    user_id: Optional[str] = Field(None, description="Owning user, null for guests")
    email_client: Optional[str] = Field(None, description="Customer email")
    cart_hash: str = Field(..., description="Fingerprint of the cart contents")
    status: OrderStatus = Field(OrderStatus.PENDING, description="Order status")
    stripe_session_id: Optional[str] = Field(
        None, description="Stripe Checkout session ID"
    )
    stripe_payment_intent: Optional[str] = Field(
        None, description="Stripe payment intent ID"
    )
    total_amount: int = Field(..., ge=0, description="Order total in cents")
    currency: str = Field("eur", description="Order currency code")
    created_at: datetime = Field(..., description="Order creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")
    paid_at: Optional[datetime] = Field(None, description="Payment confirmation time")


class Order(BaseOrder, FirestoreBaseModel):
    """Order document model for orders collection."""

    pass


class OrderItem(FirestoreBaseModel):
    """Order line document model for order_items collection."""

    id: Optional[str] = None
    order_id: str = Field(..., description="Parent order ID")
    product_id: str = Field(..., description="Product slug")
    product_name: str = Field(..., description="Product name at purchase time")
    variant: str = Field(..., description="Purchased edition")
    unit_price: int = Field(..., ge=0, description="Unit price in cents")
    quantity: int = Field(..., gt=0, description="Quantity purchased")


class WebhookEventRecord(FirestoreBaseModel):
    """Processed Stripe event document model for stripe_webhook_events collection."""

    id: str = Field(..., description="Stripe event ID")
    event_type: str
    order_id: Optional[str] = None
    processed_at: datetime


class OrderStatusResponse(BaseModel):
    order_id: str
    status: OrderStatus


class OrderDetailResponse(BaseModel):
    order: Order
    items: List[OrderItem]

"""
Checkout Data Models

This module contains the request and response payloads of the checkout
endpoints, plus the provider-side payment session view used by the broker.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.shared import ApiModel, ProductVariant

MAX_CART_ITEMS = 50
MAX_ITEM_QUANTITY = 100
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class CheckoutItem(ApiModel):
    """One cart line as submitted by the storefront."""

    product_id: str = Field(..., alias="productId", min_length=1)
    variant: ProductVariant
    quantity: int = Field(..., strict=True, ge=1, le=MAX_ITEM_QUANTITY)


class CartRequest(ApiModel):
    """Cart payload shared by the checkout endpoints."""

    items: List[CheckoutItem] = Field(..., min_length=1, max_length=MAX_CART_ITEMS)

    @field_validator("items")
    @classmethod
    def reject_duplicate_lines(cls, items: List[CheckoutItem]) -> List[CheckoutItem]:
        # One line per (product, variant); quantities are not merged
        seen = set()
        for item in items:
            line = (item.product_id, item.variant)
            if line in seen:
                raise ValueError(
                    f"Duplicate cart line for {item.product_id} ({item.variant.value})"
                )
            seen.add(line)
        return items


class ResumeCheckoutRequest(CartRequest):
    """Request body of POST /checkout/resume."""


class CreateCheckoutRequest(CartRequest):
    """Request body of POST /checkout/session."""

    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)


class ResumeCheckoutResponse(ApiModel):
    success: bool = True
    session_url: str = Field(..., alias="sessionUrl")
    session_id: str = Field(..., alias="sessionId")


class CreateCheckoutResponse(ApiModel):
    success: bool = True
    session_url: str = Field(..., alias="sessionUrl")


class CheckoutFailureResponse(ApiModel):
    success: bool = False
    error: str
    should_retry: bool = Field(True, alias="shouldRetry")


class ResumeResult(BaseModel):
    """Outcome of a resume attempt; a failure always asks for a fresh session."""

    success: bool
    session_url: Optional[str] = None
    session_id: Optional[str] = None
    should_retry: bool = False
    error: Optional[str] = None


class PaymentSession(BaseModel):
    """Provider-owned checkout session, as far as the broker needs it."""

    id: str
    status: Optional[str] = None
    payment_status: Optional[str] = None
    url: Optional[str] = None
    created: int = Field(..., description="Creation time as a unix timestamp")

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.created, tz=timezone.utc)

"""
Shared Data Models

This module contains shared Pydantic base classes and enumerations
that are used across multiple Firestore collections and API responses.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class FirestoreBaseModel(BaseModel):
    """Base model for all Firestore documents with common configuration."""

    model_config = ConfigDict(
        # Allow population by field name or alias
        populate_by_name=True,
        # Validate assignments
        validate_assignment=True,
        # Use enum values instead of names
        use_enum_values=True,
        # Firestore documents carry bookkeeping fields we do not model
        extra="ignore",
    )


class ApiModel(BaseModel):
    """Base model for camelCase API payloads consumed by the storefront."""

    model_config = ConfigDict(populate_by_name=True)


# Enums
class OrderStatus(str, Enum):
    """Order status enumeration."""

    PENDING = "pending"
    PAID = "paid"
    CANCELED = "canceled"
    REFUNDED = "refunded"
    DISPUTED = "disputed"


class ProductVariant(str, Enum):
    """Product edition enumeration."""

    DIGITAL = "digital"
    DVD = "dvd"
    USB = "usb"


class SessionStatus(str, Enum):
    """Stripe Checkout session status enumeration."""

    OPEN = "open"
    COMPLETE = "complete"
    EXPIRED = "expired"


class SessionPaymentStatus(str, Enum):
    """Stripe Checkout session payment status enumeration."""

    UNPAID = "unpaid"
    PAID = "paid"
    NO_PAYMENT_REQUIRED = "no_payment_required"


class UserRole(str, Enum):
    """User role enumeration."""

    USER = "user"
    ADMIN = "admin"

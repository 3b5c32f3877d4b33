"""
Models Package

This package contains database schema and API models organized by domain:
- checkout.py: Cart, checkout request/response and payment session models
- orders.py: Order ledger and webhook event models
- products.py: Catalogue, licence key and admin inventory models
- notifications.py: Notification outbox models
- shared.py: Common base models and enumerations
- firestore.py: Collection names and their document models
"""

# Import all models for easy access
from app.models.checkout import (
    CartRequest,
    CheckoutFailureResponse,
    CheckoutItem,
    CreateCheckoutRequest,
    CreateCheckoutResponse,
    PaymentSession,
    ResumeCheckoutRequest,
    ResumeCheckoutResponse,
    ResumeResult,
)
from app.models.firestore import COLLECTION_MODELS, UserRoleRecord
from app.models.notifications import (
    NotificationKind,
    OutboxMessage,
    OutboxProcessingReport,
    OutboxStatus,
)
from app.models.orders import (
    BaseOrder,
    Order,
    OrderDetailResponse,
    OrderItem,
    OrderStatusResponse,
    WebhookEventRecord,
)
from app.models.products import (
    InventoryUpdate,
    InventoryUpdateRequest,
    InventoryUpdateResult,
    License,
    MarkOutOfStock,
    Product,
    Restock,
    SetInventory,
)
from app.models.shared import (
    ApiModel,
    FirestoreBaseModel,
    OrderStatus,
    ProductVariant,
    SessionPaymentStatus,
    SessionStatus,
    UserRole,
)

__all__ = [
    # Base models
    "ApiModel",
    "FirestoreBaseModel",
    # Enums
    "OrderStatus",
    "ProductVariant",
    "SessionPaymentStatus",
    "SessionStatus",
    "UserRole",
    "NotificationKind",
    "OutboxStatus",
    # Checkout models
    "CartRequest",
    "CheckoutItem",
    "CheckoutFailureResponse",
    "CreateCheckoutRequest",
    "CreateCheckoutResponse",
    "PaymentSession",
    "ResumeCheckoutRequest",
    "ResumeCheckoutResponse",
    "ResumeResult",
    # Order models
    "BaseOrder",
    "Order",
    "OrderItem",
    "OrderDetailResponse",
    "OrderStatusResponse",
    "WebhookEventRecord",
    # Product models
    "License",
    "Product",
    "InventoryUpdate",
    "InventoryUpdateRequest",
    "InventoryUpdateResult",
    "MarkOutOfStock",
    "Restock",
    "SetInventory",
    # Notification models
    "OutboxMessage",
    "OutboxProcessingReport",
    # User models
    "UserRoleRecord",
    # Collection mappings
    "COLLECTION_MODELS",
]

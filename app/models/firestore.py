"""
Firestore Collection Mapping

This module names the Firestore collections used by the server and maps
each of them to the Pydantic model that validates its documents.

Collection Mapping:
- orders -> Order
- order_items -> OrderItem
- products -> Product (document ID is the product slug)
- licenses -> License
- stripe_webhook_events -> WebhookEventRecord (document ID is the Stripe event ID)
- notifications_outbox -> OutboxMessage (document ID is the dedupe key)
- user_roles -> UserRoleRecord (document ID is the user ID)
"""

from pydantic import Field

from app.models.notifications import OutboxMessage
from app.models.orders import Order, OrderItem, WebhookEventRecord
from app.models.products import License, Product
from app.models.shared import FirestoreBaseModel, UserRole

ORDERS = "orders"
ORDER_ITEMS = "order_items"
PRODUCTS = "products"
LICENSES = "licenses"
WEBHOOK_EVENTS = "stripe_webhook_events"
NOTIFICATIONS_OUTBOX = "notifications_outbox"
USER_ROLES = "user_roles"


class UserRoleRecord(FirestoreBaseModel):
    """User role document model for user_roles collection."""

    id: str = Field(..., description="User ID")
    role: UserRole = UserRole.USER


# Model mappings for easy reference
COLLECTION_MODELS = {
    ORDERS: Order,
    ORDER_ITEMS: OrderItem,
    PRODUCTS: Product,
    LICENSES: License,
    WEBHOOK_EVENTS: WebhookEventRecord,
    NOTIFICATIONS_OUTBOX: OutboxMessage,
    USER_ROLES: UserRoleRecord,
}

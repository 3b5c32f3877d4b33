"""
Fulfillment Trigger

Runs once per order, right after the order has been moved to paid: takes the
purchased units out of inventory, hands out licence keys and queues the
delivery email. Keys are tracked per order line, so a rerun only tops up
lines that are still short. A failed stock decrement blocks key assignment
for that line, and stock taken for a line whose keys could not be assigned
is put back.
"""

import logging
from traceback import format_exc
from typing import List, Optional

from pydantic import BaseModel

from app.models.notifications import NotificationKind
from app.models.orders import Order
from app.services.checkout.order_ledger import OrderLedger
from app.services.fulfillment.license_store import (
    InsufficientLicensesError,
    LicenseStore,
)
from app.services.inventory.reconciler import InventoryReconciler
from app.services.notifications.outbox import NotificationOutbox

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class FulfillmentItemResult(BaseModel):
    product_id: str
    product_name: Optional[str] = None
    assigned: int
    status: str  # success, already_assigned, insufficient_stock, error
    error: Optional[str] = None


class FulfillmentReport(BaseModel):
    order_id: str
    licenses_assigned: int = 0
    details: List[FulfillmentItemResult] = []
    notification_enqueued: bool = False


def license_delivery_key(order_id: str) -> str:
    return f"license-delivery:{order_id}"


class FulfillmentTrigger:
    """Turns a paid order into delivered licence keys."""

    def __init__(
        self,
        ledger: OrderLedger,
        reconciler: InventoryReconciler,
        license_store: LicenseStore,
        outbox: NotificationOutbox,
    ):
        self.ledger = ledger
        self.reconciler = reconciler
        self.license_store = license_store
        self.outbox = outbox

    async def fulfill(self, order: Order, locale: str = "en") -> FulfillmentReport:
        """
        Assign licences for every line of a paid order.

        Args:
            order: Order that has just been marked paid
            locale: Customer locale reported by Stripe, used for the email

        Returns:
            FulfillmentReport: Per-line outcome and total keys assigned
        """
        report = FulfillmentReport(order_id=order.id)
        delivered = []

        for item in await self.ledger.list_items(order.id):
            already = await self.license_store.assigned_keys(
                order.id, item.product_id, order_item_id=item.id
            )

            if len(already) >= item.quantity:
                report.licenses_assigned += len(already)
                delivered.append((item.product_name, already))
                report.details.append(
                    FulfillmentItemResult(
                        product_id=item.product_id,
                        product_name=item.product_name,
                        assigned=len(already),
                        status="already_assigned",
                    )
                )
                continue

            remaining = item.quantity - len(already)

            stock = await self.reconciler.decrement(item.product_id, remaining)
            if not stock.success:
                logger.error(
                    f"Skipping licences of {item.product_id} for order {order.id}: {stock.message}"
                )
                report.details.append(
                    FulfillmentItemResult(
                        product_id=item.product_id,
                        product_name=item.product_name,
                        assigned=len(already),
                        status="error",
                        error=stock.message,
                    )
                )
                continue

            try:
                keys = await self.license_store.assign(
                    order.id, item.product_id, remaining, order_item_id=item.id
                )
            except InsufficientLicensesError as e:
                await self.reconciler.restore(item.product_id, remaining)
                report.details.append(
                    FulfillmentItemResult(
                        product_id=item.product_id,
                        product_name=item.product_name,
                        assigned=len(already),
                        status="insufficient_stock",
                        error=str(e),
                    )
                )
                continue
            except Exception as e:
                logger.error(
                    f"Licence assignment failed for order {order.id}: {str(e)}\n{format_exc()}"
                )
                await self.reconciler.restore(item.product_id, remaining)
                report.details.append(
                    FulfillmentItemResult(
                        product_id=item.product_id,
                        product_name=item.product_name,
                        assigned=len(already),
                        status="error",
                        error="Licence assignment failed",
                    )
                )
                continue

            report.licenses_assigned += len(already) + len(keys)
            delivered.append((item.product_name, already + keys))
            report.details.append(
                FulfillmentItemResult(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    assigned=len(already) + len(keys),
                    status="success",
                )
            )

        if delivered and order.email_client:
            report.notification_enqueued = await self.outbox.enqueue(
                dedupe_key=license_delivery_key(order.id),
                kind=NotificationKind.LICENSE_DELIVERY,
                recipient=order.email_client,
                payload={
                    "order_id": order.id,
                    "locale": locale,
                    "products": [
                        {"product_name": name, "keys": keys} for name, keys in delivered
                    ],
                },
            )

        logger.info(
            f"Fulfilled order {order.id}: {report.licenses_assigned} licences assigned"
        )
        return report

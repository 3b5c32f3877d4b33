import logging
from datetime import datetime, timezone
from typing import List, Optional

from app.models.firestore import LICENSES
from app.services.firestore_service import FirestoreService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class InsufficientLicensesError(Exception):
    """Raised when the pool holds fewer unused keys than requested."""

    def __init__(self, product_id: str, requested: int):
        self.product_id = product_id
        self.requested = requested
        super().__init__(f"Not enough licence keys for {product_id} (requested {requested})")


class LicenseStore:
    """Pre-loaded licence keys; each key is handed out at most once."""

    def __init__(self, firestore_service: FirestoreService):
        self.firestore_service = firestore_service

    async def assigned_keys(
        self, order_id: str, product_id: str, order_item_id: Optional[str] = None
    ) -> List[str]:
        """
        Key codes already assigned to this order for this product.

        When `order_item_id` is given only keys claimed for that order line
        are returned, so two lines of the same product are counted apart.
        """
        filters = [("order_id", "==", order_id), ("product_id", "==", product_id)]
        if order_item_id:
            filters.append(("order_item_id", "==", order_item_id))
        licenses = await self.firestore_service.query_collection(
            collection_name=LICENSES,
            filters=filters,
        )
        return [license.key_code for license in licenses]

    async def assign(
        self,
        order_id: str,
        product_id: str,
        quantity: int,
        order_item_id: Optional[str] = None,
    ) -> List[str]:
        """
        Claim `quantity` unused keys for an order in one transaction.

        Returns:
            The claimed key codes

        Raises:
            InsufficientLicensesError: If fewer than `quantity` keys are free;
                no key is claimed in that case
        """
        claimed = await self.firestore_service.claim_documents(
            collection_name=LICENSES,
            filters=[("product_id", "==", product_id), ("is_used", "==", False)],
            count=quantity,
            update_data={
                "is_used": True,
                "order_id": order_id,
                "order_item_id": order_item_id,
                "assigned_at": datetime.now(timezone.utc),
            },
        )
        if len(claimed) < quantity:
            logger.warning(f"Licence pool exhausted for {product_id} (order {order_id})")
            raise InsufficientLicensesError(product_id, quantity)

        logger.info(f"Assigned {len(claimed)} licences of {product_id} to order {order_id}")
        return [data["key_code"] for data in claimed]

    async def revoke_for_order(self, order_id: str) -> int:
        """Flag every key of an order as revoked (refunds and disputes)."""
        revoked = await self.firestore_service.update_documents(
            collection_name=LICENSES,
            filters=[("order_id", "==", order_id)],
            update_data={"revoked": True},
        )
        logger.info(f"Revoked {revoked} licences of order {order_id}")
        return revoked

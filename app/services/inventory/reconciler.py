"""
Inventory Reconciler

This module keeps product stock in line with fulfilled orders and admin
corrections. Variants of one product (digital key, DVD, USB) share a group_id
and one underlying licence pool; their stored counts are kept in step by the
database, so a change here only needs the siblings' pages re-rendered.
"""

import logging
from traceback import format_exc
from typing import List, Optional

from app.models.firestore import PRODUCTS
from app.models.products import (
    InventoryUpdate,
    InventoryUpdateResult,
    MarkOutOfStock,
    Product,
    Restock,
    SetInventory,
)
from app.services.firestore_service import FirestoreService
from app.services.inventory.revalidation import RevalidationClient

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CATALOGUE_PATH = "/logiciels"
ADMIN_INVENTORY_PATH = "/admin/inventory"


def product_path(slug: str) -> str:
    return f"/produit/{slug}"


class InventoryReconciler:
    """Applies stock changes and refreshes every page showing the affected pool."""

    def __init__(
        self,
        firestore_service: FirestoreService,
        revalidation_client: RevalidationClient,
    ):
        self.firestore_service = firestore_service
        self.revalidation_client = revalidation_client

    async def decrement(self, product_id: str, quantity: int) -> InventoryUpdateResult:
        """
        Remove purchased units from a product's stock.

        The decrement is a single atomic update. Flooring at zero is enforced
        by the database, not here. Page refresh failures after a successful
        decrement are logged and do not fail the call.

        Args:
            product_id: Product slug
            quantity: Units purchased

        Returns:
            InventoryUpdateResult: success=False means nothing was changed and
            fulfilment must not proceed
        """
        if quantity < 1:
            return InventoryUpdateResult(
                success=False, message=f"Invalid quantity {quantity}"
            )

        try:
            await self.firestore_service.increment_field(
                collection_name=PRODUCTS,
                document_id=product_id,
                field="inventory",
                amount=-quantity,
            )
        except Exception as e:
            logger.error(
                f"Failed to decrement inventory of {product_id}: {str(e)}\n{format_exc()}"
            )
            return InventoryUpdateResult(
                success=False, message="Inventory decrement failed"
            )

        product = await self._get_product(product_id)
        revalidated = await self._revalidate_product_pages(product_id, product)

        return InventoryUpdateResult(
            success=True,
            message="Inventory decremented",
            new_stock=product.inventory if product else None,
            revalidated_paths=revalidated,
        )

    async def restore(self, product_id: str, quantity: int) -> InventoryUpdateResult:
        """Put back units taken by decrement when no licence could be handed out."""
        try:
            await self.firestore_service.increment_field(
                collection_name=PRODUCTS,
                document_id=product_id,
                field="inventory",
                amount=quantity,
            )
        except Exception as e:
            logger.error(
                f"Failed to restore inventory of {product_id}: {str(e)}\n{format_exc()}"
            )
            return InventoryUpdateResult(success=False, message="Inventory restore failed")

        product = await self._get_product(product_id)
        revalidated = await self._revalidate_product_pages(product_id, product)
        return InventoryUpdateResult(
            success=True,
            message="Inventory restored",
            new_stock=product.inventory if product else None,
            revalidated_paths=revalidated,
        )

    async def apply_admin_update(
        self, product_id: str, update: InventoryUpdate
    ) -> InventoryUpdateResult:
        """
        Apply an admin stock correction.

        Args:
            product_id: Product slug
            update: One of SetInventory, MarkOutOfStock or Restock

        Returns:
            InventoryUpdateResult
        """
        product = await self._get_product(product_id)
        if product is None:
            return InventoryUpdateResult(success=False, message="Product not found")

        try:
            if isinstance(update, Restock):
                await self.firestore_service.increment_field(
                    collection_name=PRODUCTS,
                    document_id=product_id,
                    field="inventory",
                    amount=update.amount,
                )
            else:
                new_inventory = (
                    update.inventory if isinstance(update, SetInventory) else 0
                )
                await self.firestore_service.update_document(
                    collection_name=PRODUCTS,
                    document_id=product_id,
                    update_data={"inventory": new_inventory},
                )
        except Exception as e:
            logger.error(
                f"Failed to update inventory of {product_id}: {str(e)}\n{format_exc()}"
            )
            return InventoryUpdateResult(success=False, message="Inventory update failed")

        logger.info(f"Applied {update.action} inventory update to {product_id}")

        refreshed = await self._get_product(product_id)
        revalidated = await self._revalidate_product_pages(
            product_id, refreshed or product, extra_paths=[ADMIN_INVENTORY_PATH]
        )

        message = "Inventory updated"
        if product.group_id:
            message = "Inventory updated (all variants synchronised)"
        if isinstance(update, MarkOutOfStock):
            message = "Product marked out of stock"

        return InventoryUpdateResult(
            success=True,
            message=message,
            new_stock=refreshed.inventory if refreshed else None,
            revalidated_paths=revalidated,
        )

    async def _get_product(self, product_id: str) -> Optional[Product]:
        try:
            return await self.firestore_service.get_document(
                collection_name=PRODUCTS, document_id=product_id, model_class=Product
            )
        except Exception as e:
            logger.error(f"Failed to read product {product_id}: {str(e)}")
            return None

    async def sibling_products(self, product: Product) -> List[Product]:
        """Other products sharing this product's variant group."""
        if not product.group_id:
            return []
        group = await self.firestore_service.query_collection(
            collection_name=PRODUCTS,
            filters=[("group_id", "==", product.group_id)],
            model_class=Product,
        )
        return [p for p in group if p.id != product.id]

    async def _revalidate_product_pages(
        self,
        product_id: str,
        product: Optional[Product],
        extra_paths: Optional[List[str]] = None,
    ) -> List[str]:
        if product is None:
            logger.warning(f"Product {product_id} could not be read, pages not refreshed")
            return []

        paths = list(extra_paths or []) + [CATALOGUE_PATH, product_path(product.slug)]
        try:
            paths.extend(product_path(s.slug) for s in await self.sibling_products(product))
        except Exception as e:
            logger.warning(f"Failed to list variants of {product_id}: {str(e)}")

        revalidated = []
        for path in paths:
            if await self.revalidation_client.revalidate_path(path):
                revalidated.append(path)
        return revalidated

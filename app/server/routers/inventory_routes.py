import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from app.models.products import InventoryUpdateRequest, InventoryUpdateResult
from app.server.dependencies import get_inventory_reconciler
from app.server.routers.auth_routes import User, get_admin_user
from app.services.inventory.reconciler import InventoryReconciler

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create inventory router
inventory_router = APIRouter()


@inventory_router.post("/{product_id}", response_model=InventoryUpdateResult)
async def update_inventory(
    product_id: str,
    request: InventoryUpdateRequest,
    admin_user: Annotated[User, Depends(get_admin_user)],
    reconciler: Annotated[InventoryReconciler, Depends(get_inventory_reconciler)],
) -> InventoryUpdateResult:
    """
    Apply an admin stock correction to a product.

    The body carries one tagged update: {"action": "set", "inventory": n},
    {"action": "out_of_stock"} or {"action": "restock", "amount": n}.
    """
    result = await reconciler.apply_admin_update(product_id, request.update)

    if not result.success:
        if result.message == "Product not found":
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.message
        )

    logger.info(
        f"Admin {admin_user.user_id} updated inventory of {product_id}: {result.message}"
    )
    return result

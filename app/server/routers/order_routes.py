import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from app.models.orders import OrderDetailResponse, OrderStatusResponse
from app.server.dependencies import get_firestore_service, get_order_ledger
from app.server.routers.auth_routes import User, get_current_user, has_admin_role
from app.services.checkout.order_ledger import OrderLedger
from app.services.firestore_service import FirestoreService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create order router
order_router = APIRouter()


@order_router.get("/status", response_model=OrderStatusResponse)
async def get_order_status(
    ledger: Annotated[OrderLedger, Depends(get_order_ledger)],
    session_id: Optional[str] = None,
) -> OrderStatusResponse:
    """Look up an order by its Stripe Checkout session (success page polling)."""
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing session_id"
        )

    order = await ledger.get_order_by_session(session_id)
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

    return OrderStatusResponse(order_id=order.id, status=order.status)


@order_router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    ledger: Annotated[OrderLedger, Depends(get_order_ledger)],
    firestore_service: Annotated[FirestoreService, Depends(get_firestore_service)],
) -> OrderDetailResponse:
    """Get an order and its lines. Visible to its owner and to admins only."""
    order = await ledger.get_order(order_id)

    # Orders of other users are reported as missing
    if order is None or (
        order.user_id != current_user.user_id
        and not await has_admin_role(firestore_service, current_user.user_id)
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

    items = await ledger.list_items(order.id)
    return OrderDetailResponse(order=order, items=items)

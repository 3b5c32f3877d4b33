"""
Product Data Models

This module contains models for the catalogue, the licence key pool and the
tagged admin inventory updates.
"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from app.models.shared import FirestoreBaseModel


class Product(FirestoreBaseModel):
    """Product document model for products collection (document ID is the slug)."""

    id: str = Field(..., description="Product slug")
    slug: str = Field(..., description="Public URL slug")
    name: str = Field(..., description="Display name")
    base_price: float = Field(..., ge=0, description="List price in euros")
    price: Optional[float] = Field(None, ge=0, description="Promotional price in euros")
    inventory: int = Field(0, description="Units in stock")
    group_id: Optional[str] = Field(
        None, description="Variant group sharing one inventory pool"
    )


class License(FirestoreBaseModel):
    """Licence key document model for licenses collection."""

    id: Optional[str] = None
    product_id: str = Field(..., description="Product slug the key unlocks")
    key_code: str = Field(..., description="Activation key")
    is_used: bool = Field(False, description="Whether the key has been assigned")
    order_id: Optional[str] = Field(None, description="Order the key was assigned to")
    order_item_id: Optional[str] = Field(
        None, description="Order line the key was assigned to"
    )
    assigned_at: Optional[datetime] = None
    revoked: bool = False


# Admin inventory updates
class SetInventory(BaseModel):
    action: Literal["set"] = "set"
    inventory: int = Field(..., ge=0)


class MarkOutOfStock(BaseModel):
    action: Literal["out_of_stock"] = "out_of_stock"


class Restock(BaseModel):
    action: Literal["restock"] = "restock"
    amount: int = Field(..., gt=0)


InventoryUpdate = Annotated[
    Union[SetInventory, MarkOutOfStock, Restock], Field(discriminator="action")
]


class InventoryUpdateRequest(BaseModel):
    """Request body of POST /admin/inventory/{product_id}."""

    update: InventoryUpdate


class InventoryUpdateResult(BaseModel):
    success: bool
    message: str
    new_stock: Optional[int] = None
    revalidated_paths: List[str] = Field(default_factory=list)

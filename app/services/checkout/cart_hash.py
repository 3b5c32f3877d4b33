import hashlib
from typing import Iterable

from app.models.checkout import CheckoutItem


def _variant_value(item: CheckoutItem) -> str:
    variant = item.variant
    return variant.value if hasattr(variant, "value") else str(variant)


def generate_cart_hash(items: Iterable[CheckoutItem]) -> str:
    """
    Compute the fingerprint of a cart's contents.

    Items are sorted by "productId-variant", rendered as
    "productId:variant:quantity", joined with "|" and hashed with SHA-256.
    The same items in any order give the same digest. Callers reject empty
    carts and merge duplicate lines before hashing.

    Args:
        items: Cart lines

    Returns:
        64-character lowercase hex digest
    """
    sorted_items = sorted(
        items, key=lambda item: f"{item.product_id}-{_variant_value(item)}"
    )
    cart_string = "|".join(
        f"{item.product_id}:{_variant_value(item)}:{item.quantity}"
        for item in sorted_items
    )
    return hashlib.sha256(cart_string.encode("utf-8")).hexdigest()

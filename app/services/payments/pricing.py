from decimal import ROUND_HALF_UP, Decimal

from app.models.products import Product

CURRENCY = "eur"


def euros_to_cents(euros: float) -> int:
    """Convert a euro amount to integer cents, rounding half up."""
    return int((Decimal(str(euros)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_euros(cents: int) -> float:
    return cents / 100


def unit_price_euros(product: Product) -> float:
    """
    Price charged for one unit: the promotional price when it is set, non-zero
    and lower than the list price, otherwise the list price.
    """
    if product.price and product.price < product.base_price:
        return product.price
    return product.base_price

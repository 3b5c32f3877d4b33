"""
Tests for catalogue pricing.
"""

import pytest

from app.models.products import Product
from app.services.payments.pricing import euros_to_cents, unit_price_euros


def product(base_price, price=None):
    return Product(
        id="office-2021-pro",
        slug="office-2021-pro",
        name="Office 2021 Pro",
        base_price=base_price,
        price=price,
    )


@pytest.mark.parametrize(
    "price, expected",
    [
        (None, 49.99),
        (29.99, 29.99),
        (49.99, 49.99),
        (59.99, 49.99),
        # A zero promotional price counts as unset
        (0, 49.99),
        (0.0, 49.99),
    ],
)
def test_unit_price(price, expected):
    assert unit_price_euros(product(49.99, price)) == expected


@pytest.mark.parametrize(
    "euros, cents",
    [(49.99, 4999), (29.995, 3000), (19.9, 1990), (0.005, 1), (10, 1000)],
)
def test_euros_to_cents(euros, cents):
    assert euros_to_cents(euros) == cents

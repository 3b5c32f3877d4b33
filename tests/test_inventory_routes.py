"""
HTTP tests for /admin/inventory.
"""

import pytest

from app.models.firestore import PRODUCTS
from tests.conftest import USER_ID, bearer, seed_product


@pytest.fixture
def products(firestore):
    seed_product(firestore, "office-2021-digital", inventory=4, group_id="office-2021")
    seed_product(firestore, "office-2021-usb", inventory=4, group_id="office-2021")


def test_admin_restock(client, firestore, revalidation, admin, products):
    response = client.post(
        "/admin/inventory/office-2021-digital",
        json={"update": {"action": "restock", "amount": 6}},
        headers=admin,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["new_stock"] == 10
    assert body["message"] == "Inventory updated (all variants synchronised)"
    assert "/produit/office-2021-usb" in body["revalidated_paths"]
    assert firestore.docs(PRODUCTS)["office-2021-digital"]["inventory"] == 10


def test_admin_out_of_stock(client, firestore, admin, products):
    response = client.post(
        "/admin/inventory/office-2021-usb",
        json={"update": {"action": "out_of_stock"}},
        headers=admin,
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Product marked out of stock"
    assert firestore.docs(PRODUCTS)["office-2021-usb"]["inventory"] == 0


@pytest.mark.parametrize(
    "update",
    [
        {"action": "set", "inventory": -1},
        {"action": "restock", "amount": 0},
        {"action": "restock"},
        {"action": "delete"},
        {"inventory": 3},
    ],
)
def test_invalid_updates_are_rejected(client, firestore, admin, products, update):
    response = client.post(
        "/admin/inventory/office-2021-usb", json={"update": update}, headers=admin
    )

    assert response.status_code == 400
    assert firestore.docs(PRODUCTS)["office-2021-usb"]["inventory"] == 4


def test_unknown_product(client, admin, products):
    response = client.post(
        "/admin/inventory/nope",
        json={"update": {"action": "set", "inventory": 1}},
        headers=admin,
    )

    assert response.status_code == 404


def test_non_admin_is_forbidden(client, firestore, products):
    response = client.post(
        "/admin/inventory/office-2021-usb",
        json={"update": {"action": "set", "inventory": 1}},
        headers=bearer(USER_ID),
    )

    assert response.status_code == 403
    assert firestore.docs(PRODUCTS)["office-2021-usb"]["inventory"] == 4

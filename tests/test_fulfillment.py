"""
Tests for turning a paid order into assigned licence keys.
"""

import asyncio

import pytest

from app.models.firestore import LICENSES, NOTIFICATIONS_OUTBOX, PRODUCTS
from app.services.checkout.order_ledger import OrderLedger
from app.services.fulfillment.license_store import LicenseStore
from app.services.fulfillment.trigger import FulfillmentTrigger, license_delivery_key
from app.services.inventory.reconciler import InventoryReconciler
from app.services.notifications.outbox import NotificationOutbox
from tests.conftest import seed_licenses, seed_order, seed_product


@pytest.fixture
def ledger(firestore):
    return OrderLedger(firestore)


@pytest.fixture
def trigger(firestore, revalidation, ledger):
    return FulfillmentTrigger(
        ledger=ledger,
        reconciler=InventoryReconciler(firestore, revalidation),
        license_store=LicenseStore(firestore),
        outbox=NotificationOutbox(firestore, email_sender=None),
    )


def fulfill(trigger, ledger, order_id, locale="en"):
    order = asyncio.run(ledger.get_order(order_id))
    return asyncio.run(trigger.fulfill(order, locale=locale))


def used_keys(firestore, order_id):
    return sorted(
        data["key_code"]
        for data in firestore.docs(LICENSES).values()
        if data["order_id"] == order_id and data["is_used"]
    )


def test_assigns_keys_and_enqueues_delivery(trigger, ledger, firestore):
    seed_product(firestore, "office-2021-pro", inventory=10)
    seed_licenses(firestore, "office-2021-pro", 3)
    seed_order(firestore, "order-1", status="paid", items=[("office-2021-pro", 2)])

    report = fulfill(trigger, ledger, "order-1", locale="fr")

    assert report.licenses_assigned == 2
    assert [d.status for d in report.details] == ["success"]
    assert len(used_keys(firestore, "order-1")) == 2
    assert firestore.docs(PRODUCTS)["office-2021-pro"]["inventory"] == 8

    message = firestore.docs(NOTIFICATIONS_OUTBOX)[license_delivery_key("order-1")]
    assert message["recipient"] == "buyer@example.com"
    assert message["payload"]["locale"] == "fr"
    assert sorted(message["payload"]["products"][0]["keys"]) == used_keys(firestore, "order-1")
    assert report.notification_enqueued


def test_second_run_reuses_assigned_keys(trigger, ledger, firestore):
    seed_product(firestore, "office-2021-pro", inventory=10)
    seed_licenses(firestore, "office-2021-pro", 5)
    seed_order(firestore, "order-1", status="paid", items=[("office-2021-pro", 2)])

    fulfill(trigger, ledger, "order-1")
    keys = used_keys(firestore, "order-1")
    report = fulfill(trigger, ledger, "order-1")

    assert [d.status for d in report.details] == ["already_assigned"]
    assert used_keys(firestore, "order-1") == keys
    assert firestore.docs(PRODUCTS)["office-2021-pro"]["inventory"] == 8
    assert len(firestore.docs(NOTIFICATIONS_OUTBOX)) == 1
    assert not report.notification_enqueued


def test_short_pool_assigns_nothing_and_restores_stock(trigger, ledger, firestore):
    seed_product(firestore, "office-2021-pro", inventory=10)
    seed_licenses(firestore, "office-2021-pro", 1)
    seed_order(firestore, "order-1", status="paid", items=[("office-2021-pro", 2)])

    report = fulfill(trigger, ledger, "order-1")

    assert [d.status for d in report.details] == ["insufficient_stock"]
    assert report.licenses_assigned == 0
    assert used_keys(firestore, "order-1") == []
    assert firestore.docs(PRODUCTS)["office-2021-pro"]["inventory"] == 10
    assert firestore.docs(NOTIFICATIONS_OUTBOX) == {}


def test_failed_decrement_blocks_assignment(trigger, ledger, firestore):
    seed_licenses(firestore, "retired-product", 2)
    seed_order(firestore, "order-1", status="paid", items=[("retired-product", 1)])

    report = fulfill(trigger, ledger, "order-1")

    assert report.details[0].status == "error"
    assert used_keys(firestore, "order-1") == []


def test_lines_are_fulfilled_independently(trigger, ledger, firestore):
    seed_product(firestore, "office-2021-pro", inventory=10)
    seed_product(firestore, "windows-11-pro", inventory=10)
    seed_licenses(firestore, "office-2021-pro", 1)
    seed_order(
        firestore,
        "order-1",
        status="paid",
        items=[("office-2021-pro", 1), ("windows-11-pro", 1)],
    )

    report = fulfill(trigger, ledger, "order-1")

    statuses = {d.product_id: d.status for d in report.details}
    assert statuses == {
        "office-2021-pro": "success",
        "windows-11-pro": "insufficient_stock",
    }
    products = firestore.docs(NOTIFICATIONS_OUTBOX)[license_delivery_key("order-1")]["payload"]["products"]
    assert len(products) == 1


def test_keys_never_go_to_two_orders(trigger, ledger, firestore):
    seed_product(firestore, "office-2021-pro", inventory=10)
    seed_licenses(firestore, "office-2021-pro", 3)
    seed_order(firestore, "order-1", status="paid", items=[("office-2021-pro", 2)])
    seed_order(firestore, "order-2", status="paid", items=[("office-2021-pro", 2)])

    fulfill(trigger, ledger, "order-1")
    report = fulfill(trigger, ledger, "order-2")

    assert report.details[0].status == "insufficient_stock"
    assert len(used_keys(firestore, "order-1")) == 2
    assert used_keys(firestore, "order-2") == []


def test_order_without_email_is_not_notified(trigger, ledger, firestore):
    seed_product(firestore, "office-2021-pro", inventory=10)
    seed_licenses(firestore, "office-2021-pro", 1)
    seed_order(
        firestore, "order-1", status="paid", email=None, items=[("office-2021-pro", 1)]
    )

    report = fulfill(trigger, ledger, "order-1")

    assert report.licenses_assigned == 1
    assert not report.notification_enqueued


def test_lines_of_the_same_product_are_counted_apart(trigger, ledger, firestore):
    seed_product(firestore, "office-2021-pro", inventory=10)
    seed_licenses(firestore, "office-2021-pro", 5)
    seed_order(
        firestore,
        "order-1",
        status="paid",
        items=[("office-2021-pro", 1, "digital"), ("office-2021-pro", 1, "dvd")],
    )

    report = fulfill(trigger, ledger, "order-1")

    assert [d.status for d in report.details] == ["success", "success"]
    assert report.licenses_assigned == 2
    assert len(used_keys(firestore, "order-1")) == 2
    assert firestore.docs(PRODUCTS)["office-2021-pro"]["inventory"] == 8
    line_of_key = {
        data["key_code"]: data["order_item_id"]
        for data in firestore.docs(LICENSES).values()
        if data["is_used"]
    }
    assert sorted(line_of_key.values()) == ["order-1-item-0", "order-1-item-1"]

    rerun = fulfill(trigger, ledger, "order-1")

    assert [d.status for d in rerun.details] == ["already_assigned", "already_assigned"]
    assert rerun.licenses_assigned == 2
    assert firestore.docs(PRODUCTS)["office-2021-pro"]["inventory"] == 8

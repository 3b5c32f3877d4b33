import os
import sys
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.models.firestore import LICENSES, ORDER_ITEMS, ORDERS, PRODUCTS, USER_ROLES
from app.server.main import create_app
from config import Config
from tests.fakes import (
    FakeEmailSender,
    FakeFirestoreService,
    FakeRevalidationClient,
    FakeStripeGateway,
)

JWT_SECRET = "test-jwt-secret"
USER_ID = "user-123"
OTHER_USER_ID = "user-456"
ADMIN_ID = "admin-1"


def make_token(user_id: str, email: str = "buyer@example.com", **claims) -> str:
    payload = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        **claims,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def bearer(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def seed_product(
    firestore,
    slug: str,
    name: str = "Office 2021 Pro",
    base_price: float = 49.99,
    price=None,
    inventory: int = 10,
    group_id=None,
):
    firestore.seed(
        PRODUCTS,
        slug,
        {
            "slug": slug,
            "name": name,
            "base_price": base_price,
            "price": price,
            "inventory": inventory,
            "group_id": group_id,
        },
    )


def seed_licenses(firestore, product_id: str, count: int, prefix: str = "KEY"):
    for i in range(count):
        firestore.seed(
            LICENSES,
            f"{product_id}-lic-{i}",
            {
                "product_id": product_id,
                "key_code": f"{prefix}-{product_id}-{i}",
                "is_used": False,
                "order_id": None,
                "assigned_at": None,
                "revoked": False,
            },
        )


def seed_order(
    firestore,
    order_id: str,
    user_id=USER_ID,
    cart_hash: str = "hash",
    status: str = "pending",
    created_at=None,
    stripe_session_id=None,
    stripe_payment_intent=None,
    email: str = "buyer@example.com",
    items=(),
):
    firestore.seed(
        ORDERS,
        order_id,
        {
            "user_id": user_id,
            "email_client": email,
            "cart_hash": cart_hash,
            "status": status,
            "stripe_session_id": stripe_session_id,
            "stripe_payment_intent": stripe_payment_intent,
            "total_amount": 4999,
            "currency": "eur",
            "created_at": created_at or datetime.now(timezone.utc),
            "updated_at": None,
            "paid_at": None,
        },
    )
    for i, (product_id, quantity, *variant) in enumerate(items):
        firestore.seed(
            ORDER_ITEMS,
            f"{order_id}-item-{i}",
            {
                "order_id": order_id,
                "product_id": product_id,
                "product_name": product_id.replace("-", " ").title(),
                "variant": variant[0] if variant else "digital",
                "unit_price": 4999,
                "quantity": quantity,
            },
        )


@pytest.fixture
def config():
    return Config(
        env="d",
        auth_jwt_key=JWT_SECRET,
        stripe_secret_key="sk_test_fake",
        stripe_webhook_secret="whsec_fake",
        site_url="https://shop.test",
        cron_secret="cron-secret",
    )


@pytest.fixture
def firestore():
    return FakeFirestoreService()


@pytest.fixture
def gateway():
    return FakeStripeGateway()


@pytest.fixture
def revalidation():
    return FakeRevalidationClient()


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def client(config, firestore, gateway, revalidation, email_sender):
    app = create_app(
        config,
        firestore_service=firestore,
        stripe_gateway=gateway,
        revalidation_client=revalidation,
        email_sender=email_sender,
    )
    return TestClient(app)


@pytest.fixture
def admin(firestore):
    firestore.seed(USER_ROLES, ADMIN_ID, {"role": "admin"})
    return bearer(ADMIN_ID)

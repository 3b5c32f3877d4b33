"""
Request Dependencies

The long-lived clients (Firestore, Stripe, storefront revalidation, email) are
built once by create_app and stored on app.state. The getters below hand them
to route handlers, and the factories assemble the per-request services on
top of them. Tests replace the clients by passing fakes to create_app.
"""

from typing import Annotated, Optional

from fastapi import Depends, Request

from app.services.checkout.order_ledger import OrderLedger
from app.services.checkout.session_broker import PaymentSessionBroker
from app.services.firestore_service import FirestoreService
from app.services.fulfillment.license_store import LicenseStore
from app.services.fulfillment.trigger import FulfillmentTrigger
from app.services.inventory.reconciler import InventoryReconciler
from app.services.inventory.revalidation import RevalidationClient
from app.services.notifications.email_sender import ResendEmailSender
from app.services.notifications.outbox import NotificationOutbox
from app.services.payments.reconciliation import PaymentReconciler
from app.services.payments.stripe import StripeGateway
from config import Config


# Shared clients
def get_config(request: Request) -> Config:
    return request.app.state.config


def get_firestore_service(request: Request) -> FirestoreService:
    return request.app.state.firestore_service


def get_stripe_gateway(request: Request) -> StripeGateway:
    return request.app.state.stripe_gateway


def get_revalidation_client(request: Request) -> RevalidationClient:
    return request.app.state.revalidation_client


def get_email_sender(request: Request) -> Optional[ResendEmailSender]:
    return request.app.state.email_sender


# Services
def get_order_ledger(
    firestore_service: Annotated[FirestoreService, Depends(get_firestore_service)],
) -> OrderLedger:
    return OrderLedger(firestore_service)


def get_session_broker(
    ledger: Annotated[OrderLedger, Depends(get_order_ledger)],
    gateway: Annotated[StripeGateway, Depends(get_stripe_gateway)],
    firestore_service: Annotated[FirestoreService, Depends(get_firestore_service)],
    config: Annotated[Config, Depends(get_config)],
) -> PaymentSessionBroker:
    return PaymentSessionBroker(
        ledger=ledger,
        gateway=gateway,
        firestore_service=firestore_service,
        success_url=config.success_url,
        cancel_url=config.cancel_url,
    )


def get_inventory_reconciler(
    firestore_service: Annotated[FirestoreService, Depends(get_firestore_service)],
    revalidation_client: Annotated[
        RevalidationClient, Depends(get_revalidation_client)
    ],
) -> InventoryReconciler:
    return InventoryReconciler(firestore_service, revalidation_client)


def get_license_store(
    firestore_service: Annotated[FirestoreService, Depends(get_firestore_service)],
) -> LicenseStore:
    return LicenseStore(firestore_service)


def get_notification_outbox(
    firestore_service: Annotated[FirestoreService, Depends(get_firestore_service)],
    email_sender: Annotated[Optional[ResendEmailSender], Depends(get_email_sender)],
) -> NotificationOutbox:
    return NotificationOutbox(firestore_service, email_sender)


def get_fulfillment_trigger(
    ledger: Annotated[OrderLedger, Depends(get_order_ledger)],
    reconciler: Annotated[InventoryReconciler, Depends(get_inventory_reconciler)],
    license_store: Annotated[LicenseStore, Depends(get_license_store)],
    outbox: Annotated[NotificationOutbox, Depends(get_notification_outbox)],
) -> FulfillmentTrigger:
    return FulfillmentTrigger(ledger, reconciler, license_store, outbox)


def get_payment_reconciler(
    firestore_service: Annotated[FirestoreService, Depends(get_firestore_service)],
    ledger: Annotated[OrderLedger, Depends(get_order_ledger)],
    fulfillment: Annotated[FulfillmentTrigger, Depends(get_fulfillment_trigger)],
    license_store: Annotated[LicenseStore, Depends(get_license_store)],
) -> PaymentReconciler:
    return PaymentReconciler(firestore_service, ledger, fulfillment, license_store)

import logging
from traceback import format_exc
from typing import Annotated

import stripe
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status

from app.server.dependencies import (
    get_notification_outbox,
    get_payment_reconciler,
    get_stripe_gateway,
)
from app.services.notifications.outbox import NotificationOutbox
from app.services.payments.reconciliation import PaymentReconciler, WebhookOutcome
from app.services.payments.stripe import StripeGateway

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create payment router
payment_router = APIRouter()

MAX_WEBHOOK_BODY_BYTES = 1024 * 1024


@payment_router.post(
    "/stripe", response_model=WebhookOutcome, response_model_exclude_none=True
)
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    gateway: Annotated[StripeGateway, Depends(get_stripe_gateway)],
    reconciler: Annotated[PaymentReconciler, Depends(get_payment_reconciler)],
    outbox: Annotated[NotificationOutbox, Depends(get_notification_outbox)],
) -> WebhookOutcome:
    """
    Handle Stripe webhook events.

    Once the signature has been verified this endpoint always answers 2xx,
    so Stripe does not keep redelivering an event we have already seen.
    """
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > MAX_WEBHOOK_BODY_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Payload too large",
        )

    payload = await request.body()
    if len(payload) > MAX_WEBHOOK_BODY_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Payload too large",
        )

    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing signature"
        )

    try:
        event = gateway.construct_event(payload, sig_header)
    except ValueError:
        logger.error("Invalid webhook payload")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        logger.error("Invalid webhook signature")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature"
        )

    event_id = event["id"]
    event_type = event["type"]
    data_object = event["data"]["object"]

    try:
        if await reconciler.is_event_processed(event_id):
            logger.info(f"Event {event_id} already processed")
            return WebhookOutcome(cached=True)

        if event_type == "checkout.session.completed":
            outcome = await reconciler.handle_checkout_completed(
                event_id, event_type, data_object
            )
            if outcome.status == "processed":
                background_tasks.add_task(outbox.process_due)
            return outcome

        if event_type == "charge.refunded":
            return await reconciler.handle_charge_refunded(
                event_id, event_type, data_object
            )

        if event_type == "charge.dispute.created":
            return await reconciler.handle_dispute_created(
                event_id, event_type, data_object
            )

        if event_type == "charge.dispute.closed":
            return await reconciler.handle_dispute_closed(
                event_id, event_type, data_object
            )

        logger.info(f"Unhandled event type {event_type}")
        return WebhookOutcome()

    except Exception as e:
        logger.error(f"Error processing webhook {event_id}: {str(e)}\n{format_exc()}")
        return WebhookOutcome(error="Processing failed")

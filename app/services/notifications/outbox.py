"""
Notification Outbox

Customer notifications are written here as intents in the same request that
changes the order, then delivered by process_due. The dedupe key is the
document ID, so an intent can be enqueued any number of times and is stored
once. Failed deliveries are retried with exponential backoff until
MAX_ATTEMPTS is reached. A message is moved to sending before delivery so
that only one processing pass sends it.
"""

import logging
from datetime import datetime, timedelta, timezone
from traceback import format_exc
from typing import Any, Callable, Dict, Optional

from app.models.firestore import NOTIFICATIONS_OUTBOX
from app.models.notifications import (
    NotificationKind,
    OutboxMessage,
    OutboxProcessingReport,
    OutboxStatus,
)
from app.services.firestore_service import FirestoreService
from app.services.notifications.email_sender import (
    ResendEmailSender,
    render_notification,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NotificationOutbox:
    """Durable queue of notification intents."""

    MAX_ATTEMPTS = 5
    BASE_BACKOFF_SECONDS = 60

    def __init__(
        self,
        firestore_service: FirestoreService,
        email_sender: Optional[ResendEmailSender],
        clock: Callable[[], datetime] = utc_now,
    ):
        self.firestore_service = firestore_service
        self.email_sender = email_sender
        self.clock = clock

    async def enqueue(
        self,
        dedupe_key: str,
        kind: NotificationKind,
        recipient: str,
        payload: Dict[str, Any],
    ) -> bool:
        """
        Record a notification intent.

        Returns:
            bool: True if stored, False if an intent with this key already exists
        """
        created = await self.firestore_service.create_document_if_absent(
            collection_name=NOTIFICATIONS_OUTBOX,
            document_id=dedupe_key,
            document_data={
                "kind": kind.value,
                "recipient": recipient,
                "payload": payload,
                "status": OutboxStatus.PENDING.value,
                "attempts": 0,
                "last_error": None,
                "next_attempt_at": self.clock(),
                "sent_at": None,
            },
        )
        if created:
            logger.info(f"Enqueued {kind.value} notification {dedupe_key}")
        return created

    def backoff(self, attempts: int) -> timedelta:
        """Delay before the next try after `attempts` failures."""
        return timedelta(seconds=self.BASE_BACKOFF_SECONDS * 2 ** (attempts - 1))

    async def process_due(self, limit: int = 20) -> OutboxProcessingReport:
        """
        Deliver pending messages whose next attempt time has come.

        Args:
            limit: Maximum number of messages handled in this pass

        Returns:
            OutboxProcessingReport: Counts of sent, rescheduled and failed messages
        """
        report = OutboxProcessingReport()
        if self.email_sender is None:
            logger.warning("Email sender not configured, outbox left pending")
            return report

        now = self.clock()
        messages = await self.firestore_service.query_collection(
            collection_name=NOTIFICATIONS_OUTBOX,
            filters=[
                ("status", "==", OutboxStatus.PENDING.value),
                ("next_attempt_at", "<=", now),
            ],
            order_by="next_attempt_at",
            limit=limit,
            model_class=OutboxMessage,
        )

        for message in messages:
            # Claim before sending; a concurrent pass that read the same
            # message loses the transition and skips it
            claimed = await self.firestore_service.transition_document(
                NOTIFICATIONS_OUTBOX,
                message.id,
                expected={
                    "status": [OutboxStatus.PENDING.value],
                    "attempts": [message.attempts],
                },
                update_data={"status": OutboxStatus.SENDING.value},
            )
            if claimed is None:
                logger.info(f"Notification {message.id} already taken by another pass")
                continue

            try:
                subject, html = render_notification(message)
                await self.email_sender.send(message.recipient, subject, html)
            except Exception as e:
                attempts = message.attempts + 1
                logger.error(
                    f"Delivery of {message.id} failed (attempt {attempts}): {str(e)}\n{format_exc()}"
                )
                update_data = {"attempts": attempts, "last_error": str(e)}
                if attempts >= self.MAX_ATTEMPTS:
                    update_data["status"] = OutboxStatus.FAILED.value
                    report.failed += 1
                else:
                    update_data["status"] = OutboxStatus.PENDING.value
                    update_data["next_attempt_at"] = now + self.backoff(attempts)
                    report.retried += 1
                await self.firestore_service.update_document(
                    NOTIFICATIONS_OUTBOX, message.id, update_data
                )
                continue

            await self.firestore_service.update_document(
                NOTIFICATIONS_OUTBOX,
                message.id,
                {
                    "status": OutboxStatus.SENT.value,
                    "attempts": message.attempts + 1,
                    "sent_at": self.clock(),
                },
            )
            report.sent += 1
            logger.info(f"Delivered notification {message.id}")

        return report

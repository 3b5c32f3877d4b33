import hmac
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from app.models.notifications import OutboxProcessingReport
from app.server.dependencies import get_config, get_notification_outbox
from app.services.notifications.outbox import NotificationOutbox
from config import Config

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create notification router
notification_router = APIRouter()


def verify_cron_secret(
    config: Annotated[Config, Depends(get_config)],
    x_cron_secret: Annotated[Optional[str], Header()] = None,
) -> None:
    """Only the scheduler, which knows the shared cron secret, may drain the outbox."""
    if not config.cron_secret or not x_cron_secret:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if not hmac.compare_digest(x_cron_secret.encode(), config.cron_secret.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@notification_router.post(
    "/process",
    response_model=OutboxProcessingReport,
    dependencies=[Depends(verify_cron_secret)],
)
async def process_notifications(
    outbox: Annotated[NotificationOutbox, Depends(get_notification_outbox)],
    limit: int = 20,
) -> OutboxProcessingReport:
    """Deliver due outbox messages."""
    report = await outbox.process_due(limit=limit)
    logger.info(
        f"Outbox pass: {report.sent} sent, {report.retried} retried, {report.failed} failed"
    )
    return report

"""
Notification Data Models

This module contains the outbox message model used to deliver customer
notifications after the order state change has been committed.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.models.shared import FirestoreBaseModel


class OutboxStatus(str, Enum):
    """Outbox message status enumeration."""

    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


class NotificationKind(str, Enum):
    """Notification kind enumeration."""

    LICENSE_DELIVERY = "license_delivery"


class OutboxMessage(FirestoreBaseModel):
    """Outbox document model for notifications_outbox collection (ID is the dedupe key)."""

    id: str = Field(..., description="Dedupe key")
    kind: NotificationKind
    recipient: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: OutboxStatus = OutboxStatus.PENDING
    attempts: int = Field(0, ge=0)
    last_error: Optional[str] = None
    next_attempt_at: datetime
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class OutboxProcessingReport(BaseModel):
    sent: int = 0
    retried: int = 0
    failed: int = 0

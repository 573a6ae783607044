"""
Notification Service Models
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models import ActionKind, NotificationRecord
from shared.pagination import Pagination


class NotificationPage(BaseModel):
    """One page of GET /notifications."""
    notifications: List[NotificationRecord] = Field(default_factory=list)
    pagination: Pagination
    unread_count: Optional[int] = None


class BookingRequestState(str, Enum):
    """Vendor-side lifecycle of a review-required booking request."""
    RECEIVED = "received"
    REVIEWING = "reviewing"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


class PendingOperation(BaseModel):
    """An in-flight action on a notification. At most one per notification."""
    model_config = ConfigDict(frozen=True)

    notification_id: str
    kind: ActionKind
    booking_id: Optional[str] = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ActionResult(BaseModel):
    """Outcome of a committed action."""
    notification_id: str
    kind: ActionKind
    response: Any = None


class NotificationTap(BaseModel):
    """User tapped a delivered push notification."""
    notification_id: Optional[str] = None
    type: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

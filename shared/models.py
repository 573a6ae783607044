"""
Shared domain models for the GameZone client core.
Wire format is the remote service's camelCase JSON; attributes are snake_case.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


class UserRole(str, Enum):
    """Role of the signed-in user."""
    CUSTOMER = "customer"
    VENDOR = "vendor"

    @classmethod
    def parse(cls, value: Any) -> "UserRole":
        """Accept the server's role spellings ('user' and 'gamer' are customers)."""
        if isinstance(value, UserRole):
            return value
        raw = str(value or "").strip().lower()
        if raw in ("vendor", "business"):
            return cls.VENDOR
        if raw in ("customer", "user", "gamer", ""):
            return cls.CUSTOMER
        raise ValueError(f"Unknown user role: {value}")

    @property
    def audience(self) -> "Audience":
        return Audience.VENDOR if self is UserRole.VENDOR else Audience.CUSTOMER


class Audience(str, Enum):
    """Who a notification is meant for, assigned once at ingestion."""
    VENDOR = "vendor"
    CUSTOMER = "customer"
    BROADCAST = "broadcast"


class NotificationType(str, Enum):
    """Notification types known to the client. Records keep unknown types as plain strings."""
    BOOKING_CREATED = "booking_created"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_UPDATED = "booking_updated"
    BOOKING_REMINDER = "booking_reminder"
    BOOKING_REQUEST_RECEIVED = "booking_request_received"
    BOOKING_SUBMITTED = "booking_submitted"
    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_FAILED = "payment_failed"
    ZONE_UPDATE = "zone_update"
    ZONE_APPROVED = "zone_approved"
    ZONE_REJECTED = "zone_rejected"
    SYSTEM_ANNOUNCEMENT = "system_announcement"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Category(str, Enum):
    BOOKING = "booking"
    PAYMENT = "payment"
    ZONE = "zone"
    SYSTEM = "system"


class ActionKind(str, Enum):
    """Kind of action a user can take on a notification."""
    CONFIRM = "confirm"
    DECLINE = "decline"
    VIEW = "view"
    UPDATE = "update"
    GENERIC = "generic"

    @classmethod
    def from_raw(cls, value: Any) -> "ActionKind":
        """Normalize the server's action spellings."""
        if isinstance(value, ActionKind):
            return value
        raw = str(value or "").strip().lower()
        aliases = {
            "confirm": cls.CONFIRM,
            "accept": cls.CONFIRM,
            "decline": cls.DECLINE,
            "cancel": cls.DECLINE,
            "reject": cls.DECLINE,
            "view": cls.VIEW,
            "update": cls.UPDATE,
        }
        return aliases.get(raw, cls.GENERIC)


# Payload keys the server uses to tag a notification's audience
VENDOR_USER_TYPES = {"vendor"}
CUSTOMER_USER_TYPES = {"gamer", "user", "customer"}
REVIEW_REQUIRED_ACTION = "review_required"


def audience_from_payload(payload: Optional[Dict[str, Any]]) -> Audience:
    """
    Collapse the server's loosely-typed audience tags into a single Audience.

    Tags inspected: explicit 'audience', 'userType', 'notificationFor',
    'isVendorNotification' and 'isCustomerNotification'. A record tagged for
    both roles, or not tagged at all, is a broadcast.
    """
    payload = payload or {}

    explicit = str(payload.get("audience") or "").strip().lower()
    if explicit in {a.value for a in Audience}:
        return Audience(explicit)

    user_type = str(payload.get("userType") or "").strip().lower()
    notification_for = str(payload.get("notificationFor") or "").strip().lower()

    for_vendor = (
        user_type in VENDOR_USER_TYPES
        or notification_for == "business"
        or payload.get("isVendorNotification") is True
    )
    for_customer = (
        user_type in CUSTOMER_USER_TYPES
        or notification_for == "customer"
        or payload.get("isCustomerNotification") is True
    )

    if for_vendor and not for_customer:
        return Audience.VENDOR
    if for_customer and not for_vendor:
        return Audience.CUSTOMER
    return Audience.BROADCAST


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UserProfile(BaseModel):
    """Cached profile of the signed-in user."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., validation_alias=AliasChoices("_id", "id"))
    name: str = ""
    email: str
    role: UserRole = UserRole.CUSTOMER
    phone: Optional[str] = None
    profile_image: Optional[str] = Field(None, validation_alias=AliasChoices("profileImage", "profile_image"))
    is_verified: bool = Field(False, validation_alias=AliasChoices("isVerified", "is_verified"))
    created_at: Optional[datetime] = Field(None, validation_alias=AliasChoices("createdAt", "created_at"))
    last_login: Optional[datetime] = Field(None, validation_alias=AliasChoices("lastLogin", "last_login"))

    @field_validator('id', mode='before')
    @classmethod
    def stringify_id(cls, v: Any) -> str:
        return str(v)

    @field_validator('role', mode='before')
    @classmethod
    def parse_role(cls, v: Any) -> UserRole:
        return UserRole.parse(v)

    @field_validator('is_verified', mode='before')
    @classmethod
    def default_verified(cls, v: Any) -> bool:
        return bool(v)


class NotificationAction(BaseModel):
    """Action metadata attached to a notification by the server."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kind: ActionKind = Field(ActionKind.GENERIC, validation_alias=AliasChoices("type", "kind"))
    raw_type: Optional[str] = None
    label: str = ""
    endpoint: Optional[str] = None
    method: str = "POST"

    @model_validator(mode='before')
    @classmethod
    def keep_raw_type(cls, data: Any) -> Any:
        """Keep the server's raw spelling for the generic action endpoint."""
        if isinstance(data, dict) and "raw_type" not in data:
            raw = data.get("type", data.get("kind"))
            data = {**data, "raw_type": None if raw is None else str(raw)}
        return data

    @field_validator('kind', mode='before')
    @classmethod
    def parse_kind(cls, v: Any) -> ActionKind:
        return ActionKind.from_raw(v)

    @field_validator('method', mode='before')
    @classmethod
    def normalize_method(cls, v: Any) -> str:
        method = str(v or "POST").upper()
        if method not in ("GET", "POST", "PUT", "DELETE"):
            raise ValueError(f"Unsupported action method: {v}")
        return method


class NotificationRecord(BaseModel):
    """A single role-filterable event surfaced to the user."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    type: str = NotificationType.SYSTEM_ANNOUNCEMENT.value
    title: str = "Notification"
    message: str = ""
    payload: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("data", "payload"))
    is_read: bool = Field(False, validation_alias=AliasChoices("isRead", "is_read"))
    priority: Priority = Priority.MEDIUM
    category: Category = Category.SYSTEM
    actions: List[NotificationAction] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow, validation_alias=AliasChoices("createdAt", "created_at"))
    audience: Audience = Audience.BROADCAST

    @field_validator('id', mode='before')
    @classmethod
    def stringify_id(cls, v: Any) -> str:
        if v is None or str(v).strip() == "":
            raise ValueError("Notification id is required")
        return str(v)

    @field_validator('payload', mode='before')
    @classmethod
    def default_payload(cls, v: Any) -> Dict[str, Any]:
        return v if isinstance(v, dict) else {}

    @field_validator('priority', mode='before')
    @classmethod
    def fallback_priority(cls, v: Any) -> Priority:
        try:
            return Priority(v)
        except ValueError:
            return Priority.MEDIUM

    @field_validator('category', mode='before')
    @classmethod
    def fallback_category(cls, v: Any) -> Category:
        try:
            return Category(v)
        except ValueError:
            return Category.SYSTEM

    @field_validator('actions', mode='before')
    @classmethod
    def default_actions(cls, v: Any) -> List[Any]:
        return v if isinstance(v, list) else []

    @field_validator('created_at', mode='after')
    @classmethod
    def aware_created_at(cls, v: datetime) -> datetime:
        return _ensure_aware(v)

    @model_validator(mode='after')
    def assign_audience(self) -> "NotificationRecord":
        """Derive the audience from payload tags unless it was given explicitly."""
        if "audience" not in self.model_fields_set:
            self.audience = audience_from_payload(self.payload)
        return self

    @property
    def booking_id(self) -> Optional[str]:
        booking_id = self.payload.get("bookingId")
        return str(booking_id) if booking_id else None

    @property
    def requires_review(self) -> bool:
        """True for a booking request awaiting a vendor confirm/decline decision."""
        return self.type == NotificationType.BOOKING_CREATED.value and (
            self.payload.get("bookingAction") == REVIEW_REQUIRED_ACTION
            or self.payload.get("requiresReview") is True
        )

    def find_action(self, kind: ActionKind) -> Optional[NotificationAction]:
        for action in self.actions:
            if action.kind == kind:
                return action
        return None


class PushEvent(BaseModel):
    """Inbound push payload: {type, title, body, data: {...}}."""
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=_utcnow)

    @field_validator('data', mode='before')
    @classmethod
    def default_data(cls, v: Any) -> Dict[str, Any]:
        return v if isinstance(v, dict) else {}

    def to_record(self, identifier: Optional[str] = None) -> NotificationRecord:
        """
        Convert to a NotificationRecord.
        The device identifier wins; otherwise the server's notification id, otherwise a fresh id.
        """
        record_id = identifier or self.data.get("notificationId") or self.data.get("id") or str(uuid.uuid4())
        return NotificationRecord(
            id=record_id,
            type=self.data.get("type") or self.type or NotificationType.SYSTEM_ANNOUNCEMENT.value,
            title=self.title or "Notification",
            message=self.body or "",
            payload=self.data,
            is_read=False,
            priority=self.data.get("priority") or Priority.MEDIUM.value,
            category=self.data.get("category") or Category.SYSTEM.value,
            actions=self.data.get("actions") or [],
            created_at=self.received_at,
        )


class NotificationSettings(BaseModel):
    """Notification preference flags, mirrored locally."""
    model_config = ConfigDict(extra="ignore")

    enabled: bool = True
    email: bool = True

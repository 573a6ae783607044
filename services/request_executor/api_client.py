"""
GameZone API client.
Typed wrappers over the remote endpoints; every call goes through the RequestExecutor.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from shared.config import health_url_for, settings
from shared.error_models import ApiError, ValidationError
from shared.models import NotificationRecord, NotificationSettings, UserProfile
from shared.pagination import Pagination
from services.notification_service.models import NotificationPage
from .executor import RequestExecutor
from .models import (
    BookingCreateRequest,
    BookingList,
    GameZoneList,
    GoogleAuthRequest,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
)

logger = logging.getLogger(__name__)


def _require_id(value: Optional[str], name: str = "id") -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return str(value).strip()


def _parse_unread_count(body: Any) -> int:
    """The server answers with a bare integer or {unreadCount} / {count}."""
    if isinstance(body, bool):
        return 0
    if isinstance(body, (int, float)):
        return max(int(body), 0)
    if isinstance(body, str) and body.strip().isdigit():
        return int(body.strip())
    if isinstance(body, dict):
        for key in ("unreadCount", "count"):
            value = body.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return max(int(value), 0)
    logger.warning(f"⚠️ Unexpected unread-count response: {body!r}")
    return 0


class ApiClient:
    """Client for the GameZone REST API."""

    def __init__(self, executor: RequestExecutor):
        self.executor = executor
        self.store = executor.store

    # ---------- Authentication ----------

    async def _authenticate(self, endpoint: str, body: Dict[str, Any]) -> LoginResponse:
        data = await self.executor.execute(endpoint, "POST", json=body, authenticated=False)
        response = LoginResponse.model_validate(data or {})
        if response.success and response.token and response.user:
            await self.store.save(response.token, response.user)
        return response

    async def google_auth(self, request: GoogleAuthRequest) -> LoginResponse:
        """Exchange a Google identity for a session credential."""
        response = await self._authenticate("/auth/google", request.to_wire())
        logger.info(f"✅ Google sign-in completed (new user: {response.is_new_user})")
        return response

    async def login(self, email: str, password: str) -> LoginResponse:
        request = LoginRequest(email=email, password=password)
        return await self._authenticate("/auth/login", request.model_dump(mode="json"))

    async def register(self, request: RegisterRequest) -> LoginResponse:
        return await self._authenticate("/auth/register", request.model_dump(mode="json", exclude_none=True))

    async def get_profile(self) -> UserProfile:
        data = await self.executor.execute("/auth/profile")
        return UserProfile.model_validate((data or {}).get("user", data))

    async def update_profile(self, name: Optional[str] = None, phone: Optional[str] = None) -> UserProfile:
        body = {k: v for k, v in {"name": name, "phone": phone}.items() if v is not None}
        data = await self.executor.execute("/auth/profile", "PUT", json=body)
        profile = UserProfile.model_validate((data or {}).get("user", data))
        await self.store.set_profile(profile)
        return profile

    async def logout(self) -> None:
        """Best-effort remote logout; the local credential is always cleared."""
        try:
            # Logout is idempotent on the server
            await self.executor.execute("/auth/logout", "POST", retry=True)
        except ApiError as e:
            logger.warning(f"⚠️ Logout API error: {e.message}")
        finally:
            await self.store.remove()
            logger.info("✅ Logged out successfully")

    async def is_authenticated(self) -> bool:
        return await self.store.is_authenticated()

    # ---------- Game zones ----------

    async def get_game_zones(self, **filters: Any) -> GameZoneList:
        """
        List game zones.
        Filters: page, limit, search, lat, lng, radius, minPrice, maxPrice, amenities, sort
        """
        data = await self.executor.execute("/gamezones", params=filters, authenticated=False) or {}
        zones = data.get("gameZones") if isinstance(data.get("gameZones"), list) else []
        pagination = data.get("pagination")
        if pagination:
            parsed = Pagination.model_validate(pagination)
        else:
            parsed = Pagination.fallback(
                filters.get("page") or 1,
                filters.get("limit") or 10,
                data.get("total") or len(zones),
            )
        return GameZoneList(game_zones=zones, pagination=parsed)

    async def get_game_zone(self, zone_id: str) -> Dict[str, Any]:
        return await self.executor.execute(f"/gamezones/{_require_id(zone_id, 'zone_id')}", authenticated=False)

    async def get_availability(self, zone_id: str, date: str) -> Dict[str, Any]:
        """Slot availability for a zone on a date (YYYY-MM-DD)."""
        data = await self.executor.execute(
            f"/gamezones/{_require_id(zone_id, 'zone_id')}/availability",
            params={"date": date},
            authenticated=False,
        )
        return {"success": True, **(data or {})}

    # ---------- Bookings ----------

    async def create_booking(
        self,
        request: BookingCreateRequest,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a booking.
        The idempotency key is generated once and reused by every retry,
        so a retried POST cannot create a duplicate booking.
        """
        key = idempotency_key or str(uuid.uuid4())
        logger.info(f"🔄 Creating booking for zone {request.zone_id} on {request.date} {request.time_slot}")
        data = await self.executor.execute("/bookings", "POST", json=request.to_wire(), idempotency_key=key)
        logger.info("✅ Booking created successfully")
        return data

    async def get_user_bookings(
        self,
        status: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> BookingList:
        data = await self.executor.execute(
            "/bookings", params={"status": status, "page": page, "limit": limit}
        ) or {}
        bookings = data.get("bookings") or []
        pagination = data.get("pagination")
        if pagination:
            parsed = Pagination.model_validate(pagination)
        else:
            parsed = Pagination(current_page=page or 1, total_pages=1, total_items=len(bookings))
        return BookingList(bookings=bookings, pagination=parsed)

    async def get_booking(self, booking_id: str) -> Dict[str, Any]:
        return await self.executor.execute(f"/bookings/{_require_id(booking_id, 'booking_id')}")

    async def cancel_booking(self, booking_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        data = await self.executor.execute(
            f"/bookings/{_require_id(booking_id, 'booking_id')}/cancel",
            "PUT",
            json={"cancellationReason": reason},
        )
        message = data.get("message") if isinstance(data, dict) else None
        return {"success": True, "message": message or ""}

    # ---------- Vendor decisions ----------

    async def confirm_booking(self, booking_id: str, message: Optional[str] = None) -> Any:
        body = {"message": message} if message else {}
        return await self.executor.execute(
            f"/vendor/bookings/{_require_id(booking_id, 'booking_id')}/confirm", "PUT", json=body
        )

    async def decline_booking(self, booking_id: str, reason: str) -> Any:
        booking_id = _require_id(booking_id, "booking_id")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required to decline a booking")
        return await self.executor.execute(
            f"/vendor/bookings/{booking_id}/decline", "PUT", json={"reason": reason}
        )

    # ---------- Notifications ----------

    async def get_notifications(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        unread_only: Optional[bool] = None,
        type: Optional[str] = None,
        category: Optional[str] = None,
    ) -> NotificationPage:
        limit = limit or settings.NOTIFICATION_PAGE_SIZE
        params = {
            "page": page,
            "limit": limit,
            "unreadOnly": None if unread_only is None else str(unread_only).lower(),
            "type": type,
            "category": category,
        }
        data = await self.executor.execute("/notifications", params=params) or {}
        raw_items = data.get("notifications") if isinstance(data, dict) else None

        records: List[NotificationRecord] = []
        for item in raw_items or []:
            try:
                records.append(NotificationRecord.model_validate(item))
            except PydanticValidationError as e:
                logger.warning(f"⚠️ Skipping malformed notification: {e.error_count()} error(s)")

        pagination = data.get("pagination")
        parsed = Pagination.model_validate(pagination) if pagination else Pagination.fallback(page, limit, len(records))
        unread = data.get("unreadCount")
        return NotificationPage(
            notifications=records,
            pagination=parsed,
            unread_count=_parse_unread_count(unread) if unread is not None else None,
        )

    async def get_unread_count(self) -> int:
        return _parse_unread_count(await self.executor.execute("/notifications/unread-count"))

    async def mark_notifications_read(self, ids: List[str]) -> Any:
        return await self.executor.execute("/notifications/read", "PUT", json={"ids": list(ids)})

    async def mark_all_notifications_read(self) -> Any:
        return await self.executor.execute("/notifications/read-all", "PUT")

    async def delete_notification(self, notification_id: str) -> Any:
        return await self.executor.execute(
            f"/notifications/{_require_id(notification_id, 'notification_id')}", "DELETE"
        )

    async def execute_notification_action(
        self,
        notification_id: str,
        action_type: str,
        payload: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        return await self.executor.execute(
            f"/notifications/{_require_id(notification_id, 'notification_id')}/actions/{action_type}",
            "POST",
            json=payload or {},
            idempotency_key=idempotency_key or str(uuid.uuid4()),
        )

    async def execute_custom_action(
        self,
        endpoint: str,
        method: str = "POST",
        payload: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """Call an endpoint supplied by a notification's action metadata."""
        method = method.upper()
        body = None if method in ("GET", "DELETE") else (payload or {})
        if method == "POST":
            idempotency_key = idempotency_key or str(uuid.uuid4())
        return await self.executor.execute(endpoint, method, json=body, idempotency_key=idempotency_key)

    async def get_notification_settings(self) -> NotificationSettings:
        data = await self.executor.execute("/notifications/settings") or {}
        return NotificationSettings.model_validate(data.get("settings", data))

    async def update_notification_settings(self, **fields: Any) -> Any:
        """Update preference flags; also carries the device push token (pushToken)."""
        body = {k: v for k, v in fields.items() if v is not None}
        return await self.executor.execute("/notifications/settings", "PUT", json=body)

    async def send_test_notification(self, title: str, message: str) -> Any:
        return await self.executor.execute(
            "/notifications/test", "POST", json={"title": title, "message": message}
        )

    # ---------- Utility ----------

    async def health_check(self) -> Any:
        return await self.executor.execute(health_url_for(self.executor.base_url), authenticated=False)

    async def close(self) -> None:
        await self.executor.close()


"""
Push Listener
Turns inbound device pushes into NotificationRecords and publishes them to subscribers.
Also delivers local (on-device) notifications, immediately or at a scheduled time.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Set

from pydantic import ValidationError as PydanticValidationError

from shared.error_models import ValidationError
from shared.models import NotificationRecord, NotificationType, PushEvent
from services.notification_service.models import NotificationTap
from .subscribers import SubscriberRegistry

logger = logging.getLogger(__name__)


def _parse_event(raw: Any) -> PushEvent:
    if isinstance(raw, PushEvent):
        return raw
    try:
        return PushEvent.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(f"Malformed push payload: {e.error_count()} error(s)")


class PushListener:
    """Single entry point for pushes received while the app is running."""

    def __init__(self, api=None):
        """
        Args:
            api: ApiClient used to register the device push token
        """
        self.api = api
        self._received = SubscriberRegistry("push-received")
        self._taps = SubscriberRegistry("push-tap")
        self._scheduled: Dict[str, asyncio.TimerHandle] = {}
        self._deliveries: Set[asyncio.Task] = set()

    def on_notification(self, callback: Callable) -> Callable[[], None]:
        """Callback receives each NotificationRecord."""
        return self._received.subscribe(callback)

    def on_tap(self, callback: Callable) -> Callable[[], None]:
        """Callback receives a NotificationTap."""
        return self._taps.subscribe(callback)

    async def receive(self, raw: Any, identifier: Optional[str] = None) -> NotificationRecord:
        """Convert a push payload to a record (audience assigned here) and publish it."""
        event = _parse_event(raw)
        try:
            record = event.to_record(identifier)
        except PydanticValidationError as e:
            raise ValidationError(f"Malformed push payload: {e.error_count()} error(s)")
        logger.info(f"🔔 Notification received: {record.type} ({record.id}) for {record.audience.value}")
        await self._received.publish(record)
        return record

    async def tap(self, raw: Any, identifier: Optional[str] = None) -> NotificationTap:
        event = _parse_event(raw)
        notification_tap = NotificationTap(
            notification_id=identifier or event.data.get("notificationId") or event.data.get("id"),
            type=event.data.get("type") or event.type,
            data=event.data,
        )
        logger.info(f"👆 Notification tapped: {notification_tap.type}")
        await self._taps.publish(notification_tap)
        return notification_tap

    async def register_device(self, push_token: str) -> None:
        """Send the device push token to the server. Failures propagate."""
        if not push_token:
            raise ValidationError("Push token is required")
        if self.api is None:
            raise ValidationError("No API client configured for device registration")
        await self.api.update_notification_settings(pushToken=push_token)
        logger.info("✅ Push token registered with backend")

    # ---------- Local notifications ----------

    @staticmethod
    def _local_payload(title: str, message: str, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        data = dict(data or {})
        data.setdefault("type", NotificationType.SYSTEM_ANNOUNCEMENT.value)
        return {"type": data["type"], "title": title, "body": message, "data": data}

    async def show_local(
        self,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> NotificationRecord:
        return await self.receive(self._local_payload(title, message, data), identifier=f"local-{uuid.uuid4()}")

    def schedule_local(
        self,
        title: str,
        message: str,
        at: datetime,
        data: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Deliver a local notification at a given time.
        Returns an identifier usable with cancel_scheduled().
        """
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        delay = max((at - datetime.now(timezone.utc)).total_seconds(), 0.0)
        local_id = f"local-{uuid.uuid4()}"
        payload = self._local_payload(title, message, data)

        loop = asyncio.get_running_loop()
        self._scheduled[local_id] = loop.call_later(delay, self._deliver, local_id, payload)
        logger.info(f"⏰ Local notification {local_id} scheduled in {delay:.0f}s")
        return local_id

    def _deliver(self, local_id: str, payload: Dict[str, Any]) -> None:
        self._scheduled.pop(local_id, None)
        task = asyncio.ensure_future(self.receive(payload, identifier=local_id))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    def cancel_scheduled(self, local_id: str) -> bool:
        handle = self._scheduled.pop(local_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    @property
    def scheduled_count(self) -> int:
        return len(self._scheduled)

    def dispose(self) -> None:
        """Cancel pending schedules and drop all subscribers."""
        for handle in self._scheduled.values():
            handle.cancel()
        self._scheduled.clear()
        for task in list(self._deliveries):
            task.cancel()
        self._received.clear()
        self._taps.clear()
        logger.info("ℹ️ Push listener disposed")

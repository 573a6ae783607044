"""
Action Executor
Runs user actions (confirm, decline, custom) on notifications with a
per-notification in-flight guard and the vendor booking-request state machine.
"""
import logging
from typing import Any, Dict, Optional

from shared.error_models import ApiError, OperationInProgress, ValidationError
from shared.models import ActionKind, NotificationAction, NotificationRecord
from .models import ActionResult, BookingRequestState, PendingOperation

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Validates, dispatches and settles notification actions."""

    def __init__(self, api, synchronizer):
        self.api = api
        self.synchronizer = synchronizer
        self._pending: Dict[str, PendingOperation] = {}
        self._states: Dict[str, BookingRequestState] = {}

    # ---------- State ----------

    def is_pending(self, notification_id: str) -> bool:
        return notification_id in self._pending

    def pending_operation(self, notification_id: str) -> Optional[PendingOperation]:
        return self._pending.get(notification_id)

    def state_of(self, notification_id: str) -> BookingRequestState:
        return self._states.get(notification_id, BookingRequestState.RECEIVED)

    def open(self, notification_id: str) -> BookingRequestState:
        """User opened a booking request."""
        state = self.state_of(notification_id)
        if state == BookingRequestState.RECEIVED:
            self._states[notification_id] = BookingRequestState.REVIEWING
        return self.state_of(notification_id)

    def tracked_states(self) -> Dict[str, BookingRequestState]:
        return dict(self._states)

    def forget(self) -> None:
        """Drop per-notification state (session end)."""
        self._states.clear()

    def _prune_states(self) -> None:
        """Drop state for requests no longer in the notification cache."""
        for notification_id in list(self._states):
            if notification_id not in self._pending and self.synchronizer.get(notification_id) is None:
                del self._states[notification_id]

    # ---------- Validation ----------

    def _lookup(self, notification_id: str) -> NotificationRecord:
        record = self.synchronizer.get(notification_id)
        if record is None:
            raise ValidationError(f"Notification {notification_id} not found")
        return record

    @staticmethod
    def _require_booking(record: NotificationRecord) -> str:
        booking_id = record.booking_id
        if not booking_id:
            raise ValidationError("This notification has no booking attached")
        return booking_id

    def _plan(
        self,
        record: NotificationRecord,
        kind: ActionKind,
        raw_kind: str,
        payload: Dict[str, Any],
    ):
        """Validate and return (booking_id, coroutine factory). No I/O happens here."""
        if kind == ActionKind.CONFIRM:
            booking_id = self._require_booking(record)
            message = payload.get("message")
            return booking_id, lambda: self.api.confirm_booking(booking_id, message)

        if kind == ActionKind.DECLINE:
            booking_id = self._require_booking(record)
            reason = str(payload.get("reason") or "").strip()
            if not reason:
                raise ValidationError("A reason is required to decline a booking")
            return booking_id, lambda: self.api.decline_booking(booking_id, reason)

        action: Optional[NotificationAction] = record.find_action(kind)
        if action is not None and action.endpoint:
            return record.booking_id, lambda: self.api.execute_custom_action(action.endpoint, action.method, payload)

        action_type = (action.raw_type if action and action.raw_type else raw_kind) or kind.value
        return record.booking_id, lambda: self.api.execute_notification_action(record.id, action_type, payload)

    # ---------- Execution ----------

    async def act(
        self,
        notification_id: str,
        action_kind: Any,
        payload: Optional[Dict[str, Any]] = None,
    ) -> ActionResult:
        """
        Perform an action on a notification.

        Raises:
            ValidationError: Missing record/data, blank decline reason or resolved request
            OperationInProgress: Another action on this notification is still running
            ApiError: The remote call failed (server message preserved)
        """
        payload = dict(payload or {})
        raw_kind = str(action_kind.value if isinstance(action_kind, ActionKind) else action_kind or "").strip()
        kind = ActionKind.from_raw(raw_kind)

        record = self._lookup(notification_id)
        if notification_id in self._pending:
            raise OperationInProgress()
        if self.state_of(notification_id) == BookingRequestState.RESOLVED:
            raise ValidationError("This booking request has already been handled")

        booking_id, call = self._plan(record, kind, raw_kind, payload)

        self._pending[notification_id] = PendingOperation(
            notification_id=notification_id, kind=kind, booking_id=booking_id
        )
        tracked = record.requires_review
        if tracked:
            self._states[notification_id] = BookingRequestState.RESOLVING
        try:
            try:
                response = await call()
            except BaseException as e:
                if tracked:
                    self._states[notification_id] = BookingRequestState.REVIEWING
                if isinstance(e, ApiError):
                    logger.error(f"❌ {kind.value} on notification {notification_id} failed: {e.message}")
                raise

            if tracked:
                self._states[notification_id] = BookingRequestState.RESOLVED
            logger.info(f"✅ {kind.value} on notification {notification_id} succeeded")
            await self._settle(notification_id)
            return ActionResult(notification_id=notification_id, kind=kind, response=response)
        finally:
            self._pending.pop(notification_id, None)
            self._prune_states()

    async def _settle(self, notification_id: str) -> None:
        """Mark read and refresh after a committed action; failures here do not undo it."""
        try:
            await self.synchronizer.mark_as_read([notification_id])
        except ApiError as e:
            logger.warning(f"⚠️ Could not mark notification {notification_id} read after action: {e.message}")
        try:
            await self.synchronizer.refresh()
        except ApiError as e:
            logger.warning(f"⚠️ Refresh after action failed: {e.message}")

    async def confirm(self, notification_id: str, message: Optional[str] = None) -> ActionResult:
        payload = {"message": message} if message else {}
        return await self.act(notification_id, ActionKind.CONFIRM, payload)

    async def decline(self, notification_id: str, reason: str) -> ActionResult:
        return await self.act(notification_id, ActionKind.DECLINE, {"reason": reason})

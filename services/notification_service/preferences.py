"""
Notification preference flags (enabled, email), mirrored in the Credential Store.
"""
import logging
from typing import Optional

from shared.error_models import ApiError
from shared.models import NotificationSettings

logger = logging.getLogger(__name__)


class NotificationPreferences:
    def __init__(self, api, store):
        self.api = api
        self.store = store

    async def load(self) -> NotificationSettings:
        """
        Fetch preferences from the server and persist them locally.
        On a transient failure the persisted copy (or defaults) is served instead.
        """
        try:
            remote = await self.api.get_notification_settings()
        except ApiError as e:
            if not e.transient:
                raise
            cached = await self.store.get_notification_settings()
            logger.warning(f"⚠️ Using cached notification settings: {e.message}")
            return cached or NotificationSettings()
        await self.store.set_notification_settings(remote)
        return remote

    async def update(self, enabled: Optional[bool] = None, email: Optional[bool] = None) -> NotificationSettings:
        """Write changed flags to the server first, then persist the merged result."""
        current = await self.store.get_notification_settings() or NotificationSettings()
        changes = {k: v for k, v in {"enabled": enabled, "email": email}.items() if v is not None}
        if not changes:
            return current
        await self.api.update_notification_settings(**changes)
        updated = current.model_copy(update=changes)
        await self.store.set_notification_settings(updated)
        logger.info(f"✅ Notification settings updated: {changes}")
        return updated

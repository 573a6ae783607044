"""
Credential Store
Durable persistence of the bearer token, the cached user profile and
notification preference flags. Sole source of authentication state.
"""
import json
import logging
from typing import Optional, Tuple

import redis

from shared.config import settings
from shared.models import NotificationSettings, UserProfile

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Async key-value store for the session credential.

    The token and profile are mirrored in memory after the first read, so
    clearing them locally never depends on the durable backend answering.
    """

    TOKEN_KEY = "authToken"
    USER_KEY = "user"
    NOTIFICATION_SETTINGS_KEY = "notificationSettings"

    def __init__(self, backend, key_prefix: Optional[str] = None):
        """
        Args:
            backend: redis.asyncio client (or any object with async get/set/delete)
            key_prefix: Namespace for stored keys
        """
        self._backend = backend
        self._prefix = settings.STORAGE_KEY_PREFIX if key_prefix is None else key_prefix
        self._loaded = False
        self._token: Optional[str] = None
        self._profile: Optional[UserProfile] = None

    def _key(self, name: str) -> str:
        return f"{self._prefix}{name}"

    async def _load(self) -> None:
        """Read token and profile from durable storage once."""
        if self._loaded:
            return
        token = await self._backend.get(self._key(self.TOKEN_KEY))
        raw_profile = await self._backend.get(self._key(self.USER_KEY))
        self._token = token or None
        self._profile = None
        if raw_profile:
            try:
                self._profile = UserProfile.model_validate_json(raw_profile)
            except ValueError as e:
                # Corrupt cache entry; the profile is refetched on next login
                logger.warning(f"⚠️ Ignoring unreadable cached profile: {e}")
        self._loaded = True

    async def get_token(self) -> Optional[str]:
        await self._load()
        return self._token

    async def set_token(self, token: str) -> None:
        if not token:
            raise ValueError("Refusing to store an empty token")
        await self._backend.set(self._key(self.TOKEN_KEY), token)
        self._token = token
        self._loaded = True
        logger.info("✅ Auth token stored successfully")

    async def get_profile(self) -> Optional[UserProfile]:
        await self._load()
        return self._profile

    async def set_profile(self, profile: UserProfile) -> None:
        await self._backend.set(self._key(self.USER_KEY), profile.model_dump_json())
        self._profile = profile
        logger.info("✅ User data stored successfully")

    async def save(self, token: str, profile: UserProfile) -> None:
        """Persist a fresh credential after login."""
        await self.set_token(token)
        await self.set_profile(profile)

    async def get_credential(self) -> Tuple[Optional[str], Optional[UserProfile]]:
        await self._load()
        return self._token, self._profile

    async def is_authenticated(self) -> bool:
        return bool(await self.get_token())

    async def remove(self) -> None:
        """
        Clear the credential.
        Memory is cleared first; a durable-storage failure is logged but never
        leaves this process authenticated.
        """
        self._token = None
        self._profile = None
        self._loaded = True
        try:
            await self._backend.delete(self._key(self.TOKEN_KEY))
            await self._backend.delete(self._key(self.USER_KEY))
            logger.info("✅ Auth token and user data removed")
        except redis.RedisError as e:
            logger.error(f"❌ Failed to remove stored credential: {e}", exc_info=True)

    async def get_notification_settings(self) -> Optional[NotificationSettings]:
        raw = await self._backend.get(self._key(self.NOTIFICATION_SETTINGS_KEY))
        if not raw:
            return None
        try:
            return NotificationSettings.model_validate(json.loads(raw))
        except ValueError as e:
            logger.warning(f"⚠️ Ignoring unreadable notification settings: {e}")
            return None

    async def set_notification_settings(self, notification_settings: NotificationSettings) -> None:
        await self._backend.set(
            self._key(self.NOTIFICATION_SETTINGS_KEY),
            notification_settings.model_dump_json(),
        )

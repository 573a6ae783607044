"""
GameZone application session.
Composition root: builds every client component explicitly and ties their
lifecycle to sign-in and sign-out.
"""
import logging
from typing import Any, Dict, List, Optional

from shared.config import settings
from shared.error_models import ApiError
from shared.models import NotificationRecord, UserProfile
from shared.redis_client import create_redis_client, ping_redis
from shared.sentry_init import init_sentry
from services.credential_store.store import CredentialStore
from services.request_executor.api_client import ApiClient
from services.request_executor.cancellation import CancellationScope
from services.request_executor.executor import RequestExecutor
from services.request_executor.models import GoogleAuthRequest, LoginResponse
from services.notification_service.action_executor import ActionExecutor
from services.notification_service.preferences import NotificationPreferences
from services.notification_service.synchronizer import NotificationSynchronizer
from realtime.push_listener import PushListener
from realtime.push_stream import PushStreamClient

logger = logging.getLogger(__name__)


class AppSession:
    """
    Owns the client components for one running app.

    Construct once at startup, call init() when the app is ready and
    dispose() on shutdown. Every component may be overridden for tests.
    """

    def __init__(
        self,
        redis=None,
        store: Optional[CredentialStore] = None,
        executor: Optional[RequestExecutor] = None,
        api: Optional[ApiClient] = None,
        listener: Optional[PushListener] = None,
        synchronizer: Optional[NotificationSynchronizer] = None,
        preferences: Optional[NotificationPreferences] = None,
        actions: Optional[ActionExecutor] = None,
        push_stream: Optional[PushStreamClient] = None,
        push_token: Optional[str] = None,
    ):
        self._owns_redis = redis is None and store is None
        self.redis = redis if redis is not None or store is not None else create_redis_client()
        self.store = store or CredentialStore(self.redis)
        self.executor = executor or RequestExecutor(self.store)
        self.api = api or ApiClient(self.executor)
        self.listener = listener or PushListener(self.api)
        self.synchronizer = synchronizer or NotificationSynchronizer(self.api, self.store)
        self.preferences = preferences or NotificationPreferences(self.api, self.store)
        self.actions = actions or ActionExecutor(self.api, self.synchronizer)
        self.push_stream = push_stream or PushStreamClient(self.listener, self.store.get_token)
        self.push_token = push_token
        self.profile: Optional[UserProfile] = None
        self._unsubscribers: List[Any] = []
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def init(self) -> None:
        """Start logging and error tracking, restore the session and load notifications."""
        if self._initialized:
            return
        logging.getLogger().setLevel(settings.LOG_LEVEL)
        init_sentry()
        if self._owns_redis:
            await ping_redis(self.redis)

        self._unsubscribers.append(self.listener.on_notification(self._on_push))
        self._unsubscribers.append(self.executor.on_auth_expired(self._on_auth_expired))
        self._initialized = True

        self.profile = await self.store.get_profile()
        if await self.store.is_authenticated():
            logger.info(f"✅ Session restored for {self.profile.role.value if self.profile else 'unknown role'}")
            await self._start_authenticated()
        else:
            logger.info("ℹ️ No stored credential, waiting for sign-in")

    async def _start_authenticated(self) -> None:
        if self.push_token:
            try:
                await self.listener.register_device(self.push_token)
            except ApiError as e:
                logger.warning(f"⚠️ Push token registration failed: {e.message}")
        await self.push_stream.start()
        try:
            await self.synchronizer.refresh()
        except ApiError as e:
            logger.warning(f"⚠️ Initial notification refresh failed: {e.message}")

    async def _on_push(self, record: NotificationRecord) -> None:
        await self.synchronizer.handle_push(record)

    async def _on_auth_expired(self, error: ApiError) -> None:
        logger.warning("⚠️ Credential expired, clearing session state")
        self.profile = None
        self.synchronizer.reset()
        self.actions.forget()
        await self.push_stream.stop()

    # ---------- Authentication ----------

    async def sign_in_with_google(
        self,
        google_id: str,
        email: str,
        name: str,
        role: str = "user",
        profile_image: Optional[str] = None,
        is_verified: bool = True,
    ) -> LoginResponse:
        request = GoogleAuthRequest(
            google_id=google_id,
            email=email,
            name=name,
            role=role,
            profile_image=profile_image,
            is_verified=is_verified,
        )
        response = await self.api.google_auth(request)
        if response.token and response.user:
            self.profile = response.user
            self.synchronizer.reset()
            self.actions.forget()
            await self._start_authenticated()
        return response

    async def logout(self) -> None:
        """Local logout always completes, whatever the network does."""
        await self.push_stream.stop()
        await self.api.logout()
        self.profile = None
        self.synchronizer.reset()
        self.actions.forget()

    def scope(self, name: str = "screen") -> CancellationScope:
        """New cancellation scope for a screen's requests."""
        return CancellationScope(name)

    def status(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "authenticated": self.profile is not None,
            "role": self.profile.role.value if self.profile else None,
            "notifications": len(self.synchronizer.notifications),
            "unread": self.synchronizer.unread_count,
            "push_stream_connected": self.push_stream.is_connected,
        }

    async def dispose(self) -> None:
        """Tear everything down; safe to call more than once."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        await self.push_stream.stop()
        self.listener.dispose()
        self.synchronizer.reset()
        self.synchronizer.clear_subscribers()
        await self.api.close()
        if self._owns_redis:
            await self.redis.aclose()
        self._initialized = False
        logger.info("✅ Session disposed")

"""
Notification Synchronizer
Owns the role-filtered notification cache and its derived unread counter.
The cache is only ever replaced wholesale; readers never see a half-updated list.
"""
import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from shared.config import settings
from shared.error_models import ValidationError
from shared.models import Category, NotificationRecord, UserRole
from realtime.subscribers import SubscriberRegistry
from .role_filter import apply_role_view, is_visible, suppress_processed

logger = logging.getLogger(__name__)


def _ordered(records: Iterable[NotificationRecord]) -> Tuple[NotificationRecord, ...]:
    """Newest first; stable for equal timestamps."""
    return tuple(sorted(records, key=lambda record: record.created_at, reverse=True))


class NotificationSynchronizer:
    """Keeps the local notification cache in step with the server and push events."""

    def __init__(self, api, store, page_size: Optional[int] = None):
        """
        Args:
            api: ApiClient used for all remote calls
            store: CredentialStore; the cached profile decides the active role
            page_size: Records fetched per refresh
        """
        self.api = api
        self.store = store
        self.page_size = page_size or settings.NOTIFICATION_PAGE_SIZE
        self._records: Tuple[NotificationRecord, ...] = ()
        self.server_unread_count: Optional[int] = None
        self._generation = 0
        self._refresh_task: Optional[asyncio.Task] = None
        self._refresh_generation = 0
        self._rerun = False
        self._pushed_during_fetch: Dict[str, NotificationRecord] = {}
        self._changes = SubscriberRegistry("notification-cache")

    # ---------- Read side ----------

    @property
    def notifications(self) -> Tuple[NotificationRecord, ...]:
        return self._records

    @property
    def unread_count(self) -> int:
        """Unread records in the role-filtered cache."""
        return sum(1 for record in self._records if not record.is_read)

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def get(self, notification_id: str) -> Optional[NotificationRecord]:
        for record in self._records:
            if record.id == notification_id:
                return record
        return None

    def select(self, view: str = "all") -> List[NotificationRecord]:
        """Filter-chip views: 'all', 'unread', or a category name."""
        view = (view or "all").strip().lower()
        if view == "all":
            return list(self._records)
        if view == "unread":
            return [record for record in self._records if not record.is_read]
        try:
            category = Category(view)
        except ValueError:
            raise ValidationError(f"Unknown notification view: {view}")
        return [record for record in self._records if record.category == category]

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        """Callback receives the new cache tuple after every change."""
        return self._changes.subscribe(callback)

    async def _current_role(self) -> Optional[UserRole]:
        profile = await self.store.get_profile()
        return profile.role if profile else None

    async def _replace(self, records: Tuple[NotificationRecord, ...]) -> None:
        self._records = records
        await self._changes.publish(records)

    # ---------- Refresh ----------

    async def refresh(self) -> Tuple[NotificationRecord, ...]:
        """
        Fetch the first page and unread count, then replace the cache.

        A call made while a refresh is running joins it and queues one more
        fetch, so the caller always observes a generation fetched after it asked.
        A refresh still running for a session that was reset is not joined.
        """
        if self.is_refreshing and self._refresh_generation == self._generation:
            self._rerun = True
            task = self._refresh_task
        else:
            self._refresh_generation = self._generation
            task = self._refresh_task = asyncio.ensure_future(self._refresh_loop())
        await asyncio.shield(task)
        return self._records

    async def _refresh_loop(self) -> None:
        generation = self._generation
        while True:
            self._rerun = False
            await self._fetch_once(generation)
            if not self._rerun or generation != self._generation:
                break

    async def _fetch_once(self, generation: int) -> None:
        self._pushed_during_fetch = {}
        role = await self._current_role()

        page, server_count = await asyncio.gather(
            self.api.get_notifications(page=1, limit=self.page_size),
            self.api.get_unread_count(),
        )

        if generation != self._generation:
            logger.info("ℹ️ Discarding notifications fetched for a previous session")
            return

        fetched_ids = {record.id for record in page.notifications}
        # Replace-wins: a pushed record survives only if this fetch did not return it
        survivors = [
            record for record_id, record in self._pushed_during_fetch.items()
            if record_id not in fetched_ids
        ]
        self._pushed_during_fetch = {}

        visible = apply_role_view(list(page.notifications) + survivors, role)
        unique: Dict[str, NotificationRecord] = {}
        for record in visible:
            unique.setdefault(record.id, record)

        self.server_unread_count = server_count
        await self._replace(_ordered(unique.values()))
        logger.info(
            f"✅ Notifications refreshed: {len(self._records)} visible for role "
            f"{role.value if role else 'none'}, {self.unread_count} unread"
        )

    # ---------- Push ----------

    async def handle_push(self, record: NotificationRecord) -> bool:
        """
        Merge a single pushed record.
        Returns True if it was added; invisible and duplicate records are dropped.
        """
        role = await self._current_role()
        if not is_visible(record, role):
            logger.debug(f"Push {record.id} not visible for role {role}")
            return False
        if self.get(record.id) is not None:
            logger.debug(f"Duplicate push {record.id} dropped")
            return False

        if self.is_refreshing:
            self._pushed_during_fetch[record.id] = record

        records = suppress_processed(_ordered((record,) + self._records), role)
        await self._replace(tuple(records))
        return True

    # ---------- Mutations (remote first) ----------

    async def mark_as_read(self, ids: Iterable[str]) -> None:
        ids = list(dict.fromkeys(i for i in ids if i))
        if not ids:
            return
        await self.api.mark_notifications_read(ids)

        targets = set(ids)
        changed = sum(1 for record in self._records if record.id in targets and not record.is_read)
        await self._replace(tuple(
            record.model_copy(update={"is_read": True}) if record.id in targets and not record.is_read else record
            for record in self._records
        ))
        if self.server_unread_count is not None:
            self.server_unread_count = max(self.server_unread_count - changed, 0)

    async def mark_all_as_read(self) -> None:
        await self.api.mark_all_notifications_read()
        await self._replace(tuple(
            record if record.is_read else record.model_copy(update={"is_read": True})
            for record in self._records
        ))
        self.server_unread_count = 0
        logger.info("✅ All notifications marked as read")

    async def delete(self, notification_id: str) -> None:
        await self.api.delete_notification(notification_id)
        removed = self.get(notification_id)
        if removed is None:
            return
        await self._replace(tuple(record for record in self._records if record.id != notification_id))
        if not removed.is_read and self.server_unread_count:
            self.server_unread_count -= 1

    # ---------- Lifecycle ----------

    def reset(self) -> None:
        """Drop all cached state; in-flight refreshes from before the reset are discarded."""
        self._generation += 1
        self._records = ()
        self.server_unread_count = None
        self._rerun = False
        self._pushed_during_fetch = {}
        logger.info("ℹ️ Notification cache cleared")

    def clear_subscribers(self) -> None:
        self._changes.clear()

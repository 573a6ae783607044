"""
Subscriber registry for push and session events.
"""
import asyncio
import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class SubscriberRegistry:
    """
    Ordered set of callbacks notified on publish.

    Subscribers are snapshotted before dispatch, so a callback may subscribe or
    unsubscribe (itself or others) while an event is being delivered.
    """

    def __init__(self, name: str = "events"):
        self.name = name
        self._subscribers: List[Callable] = []

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        """Register a sync or async callback. Returns an unsubscribe function."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: Callable) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def clear(self) -> None:
        self._subscribers.clear()

    def __len__(self) -> int:
        return len(self._subscribers)

    async def publish(self, *args: Any) -> int:
        """
        Deliver an event to every current subscriber.
        A failing subscriber is logged and does not stop delivery to the rest.

        Returns:
            Number of subscribers that handled the event without error
        """
        delivered = 0
        for callback in list(self._subscribers):
            try:
                result = callback(*args)
                if asyncio.iscoroutine(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(f"❌ Error in {self.name} subscriber callback: {e}", exc_info=True)
        return delivered

"""
Push Stream Client
Optional websocket feed from the push gateway with automatic reconnection.
Every JSON message is handed to the PushListener.
"""
import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from shared.config import settings
from shared.error_models import ValidationError

logger = logging.getLogger(__name__)


class PushStreamClient:
    """Keeps a websocket to the push gateway open while the session is active."""

    MAX_RECONNECT_ATTEMPTS = 20

    def __init__(
        self,
        listener,
        token_provider: Callable[[], Awaitable[Optional[str]]],
        url: Optional[str] = None,
        connect=None,
    ):
        """
        Args:
            listener: PushListener receiving each message
            token_provider: Async callable returning the current bearer token
            url: Gateway URL (defaults to PUSH_STREAM_URL)
            connect: websockets.connect replacement (tests)
        """
        self.listener = listener
        self.token_provider = token_provider
        self.url = url if url is not None else settings.PUSH_STREAM_URL
        self._connect = connect or websockets.connect
        self.reconnect_delay_initial = settings.PUSH_RECONNECT_DELAY_INITIAL
        self.reconnect_delay_max = settings.PUSH_RECONNECT_DELAY_MAX
        self.is_running = False
        self.is_connected = False
        self._task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def start(self) -> None:
        if not self.enabled:
            logger.info("ℹ️ Push stream URL not configured. Push stream disabled.")
            return
        if self.is_running:
            logger.warning("Push stream already running")
            return
        self.is_running = True
        self._task = asyncio.create_task(self._run())
        logger.info("Push stream started")

    async def stop(self) -> None:
        self.is_running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.is_connected = False
        logger.info("Push stream stopped")

    async def handle_message(self, message) -> None:
        """Feed one raw websocket message to the listener; bad messages are skipped."""
        try:
            payload = json.loads(message)
        except (TypeError, ValueError) as e:
            logger.debug(f"Failed to parse push message: {e}")
            return
        if not isinstance(payload, dict):
            logger.debug("Ignoring non-object push message")
            return
        try:
            await self.listener.receive(payload, identifier=payload.get("id"))
        except ValidationError as e:
            logger.warning(f"⚠️ Dropping push message: {e.message}")

    async def _run(self) -> None:
        try:
            await self._reconnect_loop()
        finally:
            self.is_running = False
            self.is_connected = False

    async def _reconnect_loop(self) -> None:
        delay = self.reconnect_delay_initial
        reconnect_count = 0

        while self.is_running:
            token = await self.token_provider()
            if not token:
                logger.warning("⚠️ No credential available, push stream stopping")
                break

            try:
                if reconnect_count:
                    logger.info(f"Reconnecting to push stream (attempt {reconnect_count})...")
                async with self._connect(
                    self.url,
                    additional_headers={"Authorization": f"Bearer {token}"},
                    ping_interval=30,
                    ping_timeout=15,
                    close_timeout=10,
                    max_size=2**20,
                ) as websocket:
                    self.is_connected = True
                    delay = self.reconnect_delay_initial
                    reconnect_count = 0
                    logger.info("✅ Connected to push stream")

                    async for message in websocket:
                        await self.handle_message(message)

                    logger.info("Push stream closed normally, reconnecting...")
            except InvalidStatus as e:
                status = getattr(e.response, "status_code", None)
                if status in (401, 403):
                    logger.warning(f"⚠️ Push stream rejected credential ({status}), stopping")
                    break
                logger.warning(f"Push stream handshake failed: {e}")
            except (ConnectionClosed, WebSocketException, OSError) as e:
                logger.warning(f"Push stream connection lost: {e}")
            except Exception as e:
                logger.error(f"❌ Push stream error: {e}", exc_info=True)
            finally:
                self.is_connected = False

            reconnect_count += 1
            if reconnect_count >= self.MAX_RECONNECT_ATTEMPTS:
                logger.error(f"❌ Max reconnect attempts ({self.MAX_RECONNECT_ATTEMPTS}) reached for push stream")
                break

            await asyncio.sleep(delay)
            delay = min(delay * 2, self.reconnect_delay_max)

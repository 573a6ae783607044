"""
Shared Redis client module for the GameZone client core.
Backs the durable key-value storage used by the Credential Store.
CRITICAL: Includes connection error handling; callers degrade gracefully when Redis is down.
"""
import logging
from typing import Optional

import redis
import redis.asyncio as aioredis

from .config import settings

logger = logging.getLogger(__name__)


def create_redis_client(
    host: Optional[str] = None,
    port: Optional[int] = None,
    db: Optional[int] = None,
    password: Optional[str] = None,
) -> aioredis.Redis:
    """
    Create an asyncio Redis client with a dedicated connection pool.
    No connection is opened until the first command.
    """
    pool = aioredis.ConnectionPool(
        host=host or settings.REDIS_HOST,
        port=port or settings.REDIS_PORT,
        db=settings.REDIS_DB if db is None else db,
        password=(password if password is not None else settings.REDIS_PASSWORD) or None,
        decode_responses=True,
        max_connections=10,
        retry_on_timeout=True,
        health_check_interval=30,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    return aioredis.Redis(connection_pool=pool)


async def ping_redis(client: aioredis.Redis) -> bool:
    """
    Check that Redis answers.
    Returns False instead of raising so startup can continue with a warning.
    """
    try:
        await client.ping()
        logger.info("✅ Redis connection established")
        return True
    except (redis.ConnectionError, redis.TimeoutError) as e:
        logger.warning(f"⚠️ Redis connection failed: {e}. Credentials will not survive a restart.")
        return False

"""
Shared modules for the GameZone client core.
"""
from .config import settings
from .redis_client import create_redis_client, ping_redis

__all__ = [
    "settings",
    "create_redis_client",
    "ping_redis",
]

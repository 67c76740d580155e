"""
MongoDB client factory for api-keeper.

Provides a shared, properly configured AsyncIOMotorClient.
"""

from typing import Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient

from config.settings import settings


def get_mongo_client() -> AsyncIOMotorClient:
    """
    Create a configured AsyncIOMotorClient.

    Centralizes timeouts, pool size and options so all callers share the same behavior.
    Datetimes come back timezone-aware (UTC) so due-time comparisons are safe.
    """
    client = AsyncIOMotorClient(
        settings.MONGODB_URI,
        uuidRepresentation="standard",
        tz_aware=True,
        maxPoolSize=settings.MONGODB_MAX_POOL_SIZE,
        serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
        connectTimeoutMS=settings.MONGODB_CONNECT_TIMEOUT_MS,
        socketTimeoutMS=settings.MONGODB_SOCKET_TIMEOUT_MS,
    )
    return client


def to_mongo_id(value: str) -> Any:
    """
    Strategies are created outside the keeper and may use ObjectId or string ids.
    from_mongo() stringifies both, so convert back before filtering on _id.
    """
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value

# bookstore_requests/core/db.py
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from bookstore_requests.core.config import settings
import certifi

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def get_client() -> AsyncIOMotorClient:
    """
    Single shared Motor client. With MONGO_TLS on, uses the certifi CA bundle
    (needed for Atlas / mongodb+srv).
    """
    global _client
    if _client is None:
        kwargs = {"serverSelectionTimeoutMS": int(settings.store_timeout_seconds * 1000)}
        if settings.mongo_tls:
            kwargs.update(tls=True, tlsCAFile=certifi.where())
        _client = AsyncIOMotorClient(settings.mongo_url, **kwargs)
    return _client


def get_db() -> AsyncIOMotorDatabase:
    global _db
    if _db is None:
        _db = get_client()[settings.db_name]
    return _db


async def close_db() -> None:
    """
    Closes the global client. Called from main.py on shutdown.
    """
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None

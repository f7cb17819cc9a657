# bookstore_requests/core/indexes.py
import logging

logger = logging.getLogger(__name__)


async def ensure_core_indexes(db):
    # requests
    await db.requests.create_index([("id", 1)], unique=True)
    await db.requests.create_index([("created_at", -1)])
    await db.requests.create_index([("status", 1)])
    await db.requests.create_index([("type", 1)])
    await db.requests.create_index([("priority", 1)])
    await db.requests.create_index([("id", 1), ("status", 1)])
    await db.requests.create_index([("customer_name", "text"), ("details", "text"), ("customer_contact", "text")])

    # events
    await db.events.create_index([("request_id", 1), ("timestamp", 1)])
    await db.events.create_index([("action", 1)])
    logger.info("ensure_core_indexes: requests/events indexes in place")

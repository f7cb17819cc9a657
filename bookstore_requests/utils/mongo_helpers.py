# bookstore_requests/utils/mongo_helpers.py
from datetime import datetime, timezone

from bson import ObjectId


def strip_mongo_id(doc):
    """
    Drops Mongo's internal ``_id`` so documents map straight onto our models.
    Nested ObjectIds are converted to str.
    """
    if not doc:
        return doc

    if isinstance(doc, list):
        return [strip_mongo_id(d) for d in doc]

    if isinstance(doc, dict):
        new_doc = {}
        for k, v in doc.items():
            if k == "_id":
                continue
            if isinstance(v, ObjectId):
                new_doc[k] = str(v)
            else:
                new_doc[k] = strip_mongo_id(v)
        return new_doc

    return doc


def as_utc(dt: datetime) -> datetime:
    """Mongo hands back naive datetimes (UTC); tag them so comparisons work."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt

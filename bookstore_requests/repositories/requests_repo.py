# bookstore_requests/repositories/requests_repo.py
from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from bookstore_requests.core.errors import StoreUnavailable
from bookstore_requests.models.request import RequestRecord
from bookstore_requests.utils.mongo_helpers import strip_mongo_id


class RequestStore:
    """Durable storage of request records.

    ``update_status_and_fields`` is a conditional write: it only applies when
    the stored status still equals ``expected_status``.
    """

    async def insert(self, record: RequestRecord) -> None:
        raise NotImplementedError

    async def find_by_id(self, request_id: str) -> Optional[RequestRecord]:
        raise NotImplementedError

    async def update_status_and_fields(
        self,
        request_id: str,
        expected_status: str,
        new_status: str,
        fields: Dict[str, Any],
        actor: str,
        updated_at: datetime,
    ) -> bool:
        raise NotImplementedError

    async def update_fields(self, request_id: str, fields: Dict[str, Any], actor: str, updated_at: datetime) -> bool:
        raise NotImplementedError

    async def search(
        self,
        q: Optional[str] = None,
        request_type: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[RequestRecord], int]:
        raise NotImplementedError

    async def list_all(self) -> List[RequestRecord]:
        raise NotImplementedError


class InMemoryRequestStore(RequestStore):
    def __init__(self):
        self._docs: Dict[str, dict] = {}

    async def insert(self, record: RequestRecord) -> None:
        if record.id in self._docs:
            raise ValueError(f"Duplicate request id {record.id}")
        self._docs[record.id] = record.model_dump()

    async def find_by_id(self, request_id: str) -> Optional[RequestRecord]:
        doc = self._docs.get(request_id)
        return RequestRecord(**copy.deepcopy(doc)) if doc else None

    async def update_status_and_fields(self, request_id, expected_status, new_status, fields, actor, updated_at) -> bool:
        doc = self._docs.get(request_id)
        if doc is None or doc["status"] != expected_status:
            return False
        doc["status"] = new_status
        doc["fields"].update(copy.deepcopy(fields))
        doc["updated_at"] = updated_at
        doc["updated_by"] = actor
        return True

    async def update_fields(self, request_id, fields, actor, updated_at) -> bool:
        doc = self._docs.get(request_id)
        if doc is None:
            return False
        doc["fields"].update(copy.deepcopy(fields))
        doc["updated_at"] = updated_at
        doc["updated_by"] = actor
        return True

    async def search(self, q=None, request_type=None, status=None, date_from=None, date_to=None, skip=0, limit=50):
        needle = (q or "").lower()
        hits = []
        for doc in self._docs.values():
            if request_type and doc["type"] != request_type:
                continue
            if status and doc["status"] != status:
                continue
            if date_from and doc["created_at"] < date_from:
                continue
            if date_to and doc["created_at"] > date_to:
                continue
            if needle:
                haystack = [doc["id"], doc["customer_name"], doc["customer_contact"], doc["details"]]
                haystack += [str(v) for v in doc["fields"].values()]
                if not any(needle in str(v).lower() for v in haystack):
                    continue
            hits.append(doc)
        hits.sort(key=lambda d: d["created_at"], reverse=True)
        page = hits[skip:skip + limit]
        return [RequestRecord(**copy.deepcopy(d)) for d in page], len(hits)

    async def list_all(self) -> List[RequestRecord]:
        return [RequestRecord(**copy.deepcopy(d)) for d in self._docs.values()]


class MongoRequestStore(RequestStore):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.requests

    async def insert(self, record: RequestRecord) -> None:
        try:
            await self.collection.insert_one(record.model_dump())
        except PyMongoError as e:
            raise StoreUnavailable(f"Request store unavailable: {e}") from e

    async def find_by_id(self, request_id: str) -> Optional[RequestRecord]:
        try:
            doc = await self.collection.find_one({"id": request_id})
        except PyMongoError as e:
            raise StoreUnavailable(f"Request store unavailable: {e}") from e
        return RequestRecord(**strip_mongo_id(doc)) if doc else None

    async def update_status_and_fields(self, request_id, expected_status, new_status, fields, actor, updated_at) -> bool:
        set_ops: Dict[str, Any] = {"status": new_status, "updated_at": updated_at, "updated_by": actor}
        set_ops.update({f"fields.{k}": v for k, v in fields.items()})
        try:
            res = await self.collection.update_one({"id": request_id, "status": expected_status}, {"$set": set_ops})
        except PyMongoError as e:
            raise StoreUnavailable(f"Request store unavailable: {e}") from e
        return res.matched_count == 1

    async def update_fields(self, request_id, fields, actor, updated_at) -> bool:
        set_ops: Dict[str, Any] = {"updated_at": updated_at, "updated_by": actor}
        set_ops.update({f"fields.{k}": v for k, v in fields.items()})
        try:
            res = await self.collection.update_one({"id": request_id}, {"$set": set_ops})
        except PyMongoError as e:
            raise StoreUnavailable(f"Request store unavailable: {e}") from e
        return res.matched_count == 1

    async def search(self, q=None, request_type=None, status=None, date_from=None, date_to=None, skip=0, limit=50):
        filt: Dict[str, Any] = {}
        if request_type: filt["type"] = request_type
        if status: filt["status"] = status
        if date_from or date_to:
            dr: Dict[str, Any] = {}
            if date_from: dr["$gte"] = date_from
            if date_to: dr["$lte"] = date_to
            filt["created_at"] = dr
        if q: filt["$text"] = {"$search": q}
        try:
            total = await self.collection.count_documents(filt)
            cur = self.collection.find(filt).sort("created_at", -1).skip(skip).limit(limit)
            docs = await cur.to_list(length=limit)
        except PyMongoError as e:
            raise StoreUnavailable(f"Request store unavailable: {e}") from e
        return [RequestRecord(**strip_mongo_id(d)) for d in docs], total

    async def list_all(self) -> List[RequestRecord]:
        try:
            docs = await self.collection.find({}).to_list(length=None)
        except PyMongoError as e:
            raise StoreUnavailable(f"Request store unavailable: {e}") from e
        return [RequestRecord(**strip_mongo_id(d)) for d in docs]

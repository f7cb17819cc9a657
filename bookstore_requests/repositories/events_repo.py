# bookstore_requests/repositories/events_repo.py
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from bookstore_requests.core.errors import StoreUnavailable
from bookstore_requests.models.request import Event
from bookstore_requests.utils.mongo_helpers import as_utc, strip_mongo_id

logger = logging.getLogger(__name__)


class EventLog:
    """Append-only audit trail. Events are never updated or deleted."""

    async def append(self, event: Event) -> None:
        raise NotImplementedError

    async def history(self, request_id: str) -> List[Event]:
        return []


def replay_status(events: Sequence[Event]) -> Optional[str]:
    """Fold events in timestamp order; the last status-bearing event wins."""
    status = None
    for ev in sorted(events, key=lambda e: e.timestamp):
        if ev.action in ("REQUEST_CREATED", "STATUS_CHANGE") and ev.new_status:
            status = ev.new_status
    return status


class InMemoryEventLog(EventLog):
    def __init__(self):
        self.events: List[Event] = []

    async def append(self, event: Event) -> None:
        self.events.append(event.model_copy(deep=True))

    async def history(self, request_id: str) -> List[Event]:
        found = [e for e in self.events if e.request_id == request_id]
        return sorted(found, key=lambda e: e.timestamp)


class MongoEventLog(EventLog):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.events

    async def append(self, event: Event) -> None:
        await self.collection.insert_one(event.model_dump())

    async def history(self, request_id: str) -> List[Event]:
        try:
            cur = self.collection.find({"request_id": request_id}).sort("timestamp", 1)
            docs = await cur.to_list(length=None)
        except PyMongoError as e:
            raise StoreUnavailable(f"Event log unavailable: {e}") from e
        events = []
        for d in docs:
            d = strip_mongo_id(d)
            d["timestamp"] = as_utc(d["timestamp"])
            events.append(Event(**d))
        return events


class FileAuditLog(EventLog):
    """Flat-file trail, one ``<request_type>_events.log`` per type."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, request_type: str) -> Path:
        return self.directory / f"{request_type}_events.log"

    @staticmethod
    def format_entry(event: Event) -> str:
        lines = [
            f"EVENT: {event.action}",
            "-----------------",
            f"REQUEST ID: {event.request_id}",
            f"REQUEST TYPE: {event.request_type}",
        ]
        if event.previous_status:
            lines.append(f"PREVIOUS STATUS: {event.previous_status}")
        if event.new_status:
            lines.append(f"NEW STATUS: {event.new_status}")
        lines += [
            f"USER: {event.actor}",
            f"TIMESTAMP: {event.timestamp.isoformat()}",
            f"METADATA: {json.dumps(event.metadata, indent=2, default=str)}",
            "-----------------",
        ]
        return "\n".join(lines) + "\n\n"

    def _write(self, event: Event) -> None:
        with self.path_for(event.request_type).open("a", encoding="utf-8") as fh:
            fh.write(self.format_entry(event))

    async def append(self, event: Event) -> None:
        await asyncio.to_thread(self._write, event)


class CompositeEventLog(EventLog):
    """Fans an event out to every sink; history comes from the first one.

    A failing sink is logged and skipped. Only when every sink fails is the
    error raised.
    """

    def __init__(self, *sinks: EventLog):
        if not sinks:
            raise ValueError("CompositeEventLog needs at least one sink")
        self.sinks = sinks

    async def append(self, event: Event) -> None:
        errors = []
        for sink in self.sinks:
            try:
                await sink.append(event)
            except Exception as e:
                logger.warning("Event sink %s failed for %s: %s", type(sink).__name__, event.request_id, e)
                errors.append(e)
        if len(errors) == len(self.sinks):
            raise errors[-1]

    async def history(self, request_id: str) -> List[Event]:
        return await self.sinks[0].history(request_id)

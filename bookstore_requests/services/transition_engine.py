# bookstore_requests/services/transition_engine.py
"""
Creation and status-change engine for special requests.

The engine is the only writer of ``status`` and ``updated_at``. Every
mutation goes through the same steps: legality check against the type
registry, required-field and format checks (all problems collected), a
conditional write in the store, then a best-effort audit event.
"""
from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from datetime import date, datetime
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple

from bookstore_requests.core.errors import (
    ConcurrentModification,
    InvalidFieldFormat,
    InvalidTransition,
    MissingRequiredField,
    RequestNotFound,
    RequestTypeMismatch,
    RequestValidationError,
    StoreUnavailable,
)
from bookstore_requests.models.common import PRIORITIES
from bookstore_requests.models.request import Event, NextStatus, RequestRecord, utcnow
from bookstore_requests.repositories.events_repo import EventLog, replay_status
from bookstore_requests.repositories.requests_repo import RequestStore
from bookstore_requests.services.type_registry import TypeRegistry
from bookstore_requests.services.validators import validate_field

logger = logging.getLogger(__name__)

RESERVED_FIELDS = {"id", "type", "status", "fields", "created_at", "updated_at", "created_by", "updated_by"}
_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _clean_bag(fields: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    # empty values count as absent; plain dates are stored as ISO strings
    out: Dict[str, Any] = {}
    for name, value in (fields or {}).items():
        if not _present(value):
            continue
        if isinstance(value, str):
            value = value.strip()
        elif isinstance(value, date) and not isinstance(value, datetime):
            value = value.isoformat()
        out[name] = value
    return out


class TransitionEngine:
    def __init__(
        self,
        store: RequestStore,
        event_log: EventLog,
        registry: Optional[TypeRegistry] = None,
        today_provider: Callable[[], date] = date.today,
        store_timeout: float = 10.0,
        strict_isbn: bool = True,
    ):
        self.store = store
        self.event_log = event_log
        self.registry = registry or TypeRegistry()
        self.today_provider = today_provider
        self.store_timeout = store_timeout
        self.strict_isbn = strict_isbn
        self._locks: Dict[str, Tuple[asyncio.Lock, int]] = {}
        self._pending: Set[asyncio.Future] = set()

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------
    @asynccontextmanager
    async def _request_lock(self, request_id: str):
        lock, users = self._locks.get(request_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[request_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[request_id]
            if users <= 1:
                del self._locks[request_id]
            else:
                self._locks[request_id] = (lock, users - 1)

    async def _read(self, awaitable: Awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.store_timeout)
        except asyncio.TimeoutError:
            logger.error("Request store timed out after %.1fs", self.store_timeout)
            raise StoreUnavailable(f"Request store did not answer within {self.store_timeout}s") from None

    def _track(self, coro: Awaitable) -> asyncio.Future:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _commit(self, write: Awaitable[bool], event: Event) -> bool:
        """Run a store write so the caller can give up waiting but never abort it halfway.

        Only the write counts against the store deadline. The audit event for
        an applied write is recorded afterwards, even when the caller has
        already gone.
        """
        task = self._track(write)
        try:
            applied = await asyncio.wait_for(asyncio.shield(task), timeout=self.store_timeout)
        except asyncio.TimeoutError:
            logger.error("Commit still running after %.1fs; reporting store as unavailable", self.store_timeout)
            task.add_done_callback(partial(self._finish_detached, event))
            raise StoreUnavailable(f"Request store did not confirm the write within {self.store_timeout}s") from None
        except asyncio.CancelledError:
            task.add_done_callback(partial(self._finish_detached, event))
            raise
        if applied:
            await self._append_event(event)
        return applied

    def _finish_detached(self, event: Event, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Detached commit failed: %s", exc)
            return
        logger.info("Detached commit finished")
        if task.result():
            self._track(self._write_event(event))

    async def _write_event(self, event: Event) -> None:
        try:
            await self.event_log.append(event)
        except Exception as e:
            logger.warning("Could not record %s for %s: %s", event.action, event.request_id, e)

    async def _append_event(self, event: Event) -> None:
        # the audit trail gets its own deadline; a slow sink keeps writing in the background
        task = self._track(self._write_event(event))
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self.store_timeout)
        except asyncio.TimeoutError:
            logger.warning("Event log still writing %s for %s after %.1fs", event.action, event.request_id, self.store_timeout)

    def _check_fields(self, bag: Dict[str, Any], required: Iterable[str]) -> Tuple[List[str], Dict[str, str]]:
        missing = [name for name in required if name not in bag]
        invalid: Dict[str, str] = {}
        today = self.today_provider()
        for name, value in bag.items():
            if not _FIELD_NAME.match(name):
                invalid[name] = "Field names may only contain letters, digits and underscores"
                continue
            if name in RESERVED_FIELDS:
                invalid[name] = "Field name is reserved"
                continue
            result = validate_field(name, value, today, self.strict_isbn)
            if not result.valid:
                invalid[name] = result.error
        return missing, invalid

    @staticmethod
    def _raise_if_problems(missing: List[str], invalid: Dict[str, str]) -> None:
        if missing and invalid:
            raise RequestValidationError(missing=missing, invalid=invalid)
        if missing:
            raise MissingRequiredField(missing)
        if invalid:
            raise InvalidFieldFormat(invalid)

    async def _load(self, request_id: str, request_type: str) -> RequestRecord:
        record = await self._read(self.store.find_by_id(request_id))
        if record is None:
            raise RequestNotFound(request_id)
        if record.type != request_type:
            raise RequestTypeMismatch(request_id, request_type, record.type)
        return record

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------
    async def create_request(self, request_type: str, fields: Dict[str, Any], actor: str = "system") -> RequestRecord:
        self.registry.get_config(request_type)
        bag = _clean_bag(fields)
        missing, invalid = self._check_fields(bag, self.registry.get_required_creation_fields(request_type))
        priority = bag.pop("priority", "standard")
        if priority not in PRIORITIES:
            invalid["priority"] = f"Priority must be one of: {', '.join(PRIORITIES)}"
        for name in ("customer_name", "customer_contact", "details"):
            if name not in bag and name not in missing:
                missing.append(name)
            elif name in bag and not isinstance(bag[name], str):
                invalid[name] = "Must be text"
        try:
            self._raise_if_problems(missing, invalid)
        except RequestValidationError as e:
            logger.info("Rejected %s intake: %s", request_type, e)
            raise

        record = RequestRecord(
            type=request_type,
            customer_name=bag.pop("customer_name"),
            customer_contact=bag.pop("customer_contact"),
            details=bag.pop("details"),
            priority=priority,
            fields=bag,
            created_by=actor,
            updated_by=actor,
        )
        event = Event(
            request_id=record.id,
            request_type=request_type,
            action="REQUEST_CREATED",
            new_status=record.status,
            timestamp=record.created_at,
            actor=actor,
            metadata={
                "customer_name": record.customer_name,
                "customer_contact": record.customer_contact,
                "priority": record.priority,
                **record.fields,
            },
        )

        async def insert() -> bool:
            await self.store.insert(record)
            return True

        await self._commit(insert(), event)
        logger.info("Request %s created (%s)", record.id, request_type)
        return record

    async def transition(
        self,
        request_id: str,
        request_type: str,
        current_status: str,
        target_status: str,
        fields: Optional[Dict[str, Any]] = None,
        actor: str = "system",
    ) -> RequestRecord:
        self.registry.get_config(request_type)
        bag = _clean_bag(fields)

        async with self._request_lock(request_id):
            record = await self._load(request_id, request_type)

            if not self.registry.is_transition_allowed(request_type, current_status, target_status):
                logger.info("Rejected %s: %s -> %s not allowed for %s", request_id, current_status, target_status, request_type)
                raise InvalidTransition(current_status, target_status, request_type)

            required = self.registry.get_required_fields_for_status(request_type, target_status)
            missing, invalid = self._check_fields(bag, required)
            try:
                self._raise_if_problems(missing, invalid)
            except RequestValidationError as e:
                logger.info("Rejected %s -> %s for %s: %s", current_status, target_status, request_id, e)
                raise

            if record.status != current_status:
                raise ConcurrentModification(request_id, current_status, record.status)

            now = utcnow()
            event = Event(
                request_id=request_id,
                request_type=request_type,
                action="STATUS_CHANGE",
                previous_status=current_status,
                new_status=target_status,
                timestamp=now,
                actor=actor,
                metadata=dict(bag),
            )

            write = self.store.update_status_and_fields(request_id, current_status, target_status, bag, actor, now)
            if not await self._commit(write, event):
                raise ConcurrentModification(request_id, current_status)

        record.status = target_status
        record.fields.update(bag)
        record.updated_at = now
        record.updated_by = actor
        logger.info("Request %s moved %s -> %s by %s", request_id, current_status, target_status, actor)
        return record

    async def add_fields(self, request_id: str, request_type: str, fields: Dict[str, Any], actor: str = "system") -> RequestRecord:
        """Attach extra information without changing status."""
        self.registry.get_config(request_type)
        bag = _clean_bag(fields)
        if not bag:
            raise MissingRequiredField(["fields"])

        async with self._request_lock(request_id):
            record = await self._load(request_id, request_type)
            if self.registry.is_terminal(request_type, record.status):
                raise InvalidFieldFormat({"status": f"Request {request_id} is {record.status} and can no longer be changed"})
            _, invalid = self._check_fields(bag, ())
            self._raise_if_problems([], invalid)

            now = utcnow()
            event = Event(
                request_id=request_id,
                request_type=request_type,
                action="FIELDS_ADDED",
                previous_status=record.status,
                new_status=record.status,
                timestamp=now,
                actor=actor,
                metadata=dict(bag),
            )

            if not await self._commit(self.store.update_fields(request_id, bag, actor, now), event):
                raise RequestNotFound(request_id)

        record.fields.update(bag)
        record.updated_at = now
        record.updated_by = actor
        return record

    def next_statuses(self, request_type: str, status: str) -> List[NextStatus]:
        allowed = self.registry.get_transitions(request_type, status)
        order = self.registry.get_possible_statuses(request_type)
        return [
            NextStatus(status=s, required_fields=list(self.registry.get_required_fields_for_status(request_type, s)))
            for s in order
            if s in allowed
        ]

    async def get_request(self, request_id: str) -> RequestRecord:
        record = await self._read(self.store.find_by_id(request_id))
        if record is None:
            raise RequestNotFound(request_id)
        return record

    async def search_requests(self, **filters) -> Tuple[List[RequestRecord], int]:
        return await self._read(self.store.search(**filters))

    async def list_requests(self) -> List[RequestRecord]:
        return await self._read(self.store.list_all())

    async def get_history(self, request_id: str) -> Tuple[List[Event], Optional[str]]:
        events = await self._read(self.event_log.history(request_id))
        return events, replay_status(events)

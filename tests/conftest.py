import asyncio
import os
from datetime import date, timedelta

import pytest

# Settings are read at import time; keep the suite off MongoDB.
os.environ.setdefault("STORE_BACKEND", "memory")

from bookstore_requests.core.rate_limit import limiter  # noqa: E402
from bookstore_requests.repositories.events_repo import InMemoryEventLog  # noqa: E402
from bookstore_requests.repositories.requests_repo import InMemoryRequestStore  # noqa: E402
from bookstore_requests.services.transition_engine import TransitionEngine  # noqa: E402

TODAY = date(2025, 3, 10)
TOMORROW = TODAY + timedelta(days=1)
NEXT_WEEK = TODAY + timedelta(days=7)

BOOK_HOLD_FIELDS = {
    "customer_name": "Ada Lovelace",
    "customer_contact": "ada@example.com",
    "isbn": "978-0-306-40615-7",
    "details": "Hold the hardcover edition",
}

SPECIAL_ORDER_FIELDS = {
    "customer_name": "Grace Hopper",
    "customer_contact": "(555) 123-4567",
    "vendor_publisher": "Penguin Random House",
    "details": "Two copies, signed if possible",
    "date_needed": NEXT_WEEK.isoformat(),
    "priority": "high",
}

ORDER_FLOW_FIELDS = {
    "ORDERED": {"ordered_by": "sam", "order_method": "phone", "estimated_arrival": NEXT_WEEK.isoformat()},
    "RECEIVED": {"arrival_date": TODAY.isoformat()},
    "NOTIFIED": {"notification_method": "email", "notification_date": TODAY.isoformat()},
    "PAID": {"payment_method": "card", "order_number": "12345"},
    "COMPLETED": {"completion_date": TODAY.isoformat()},
}


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
def store():
    return InMemoryRequestStore()


@pytest.fixture
def events():
    return InMemoryEventLog()


@pytest.fixture
def engine(store, events):
    return TransitionEngine(store, events, today_provider=lambda: TODAY)


@pytest.fixture
def advance():
    """Walks a special-order style request through the order flow up to ``target``."""

    async def _advance(engine, record, target):
        path = ["ORDERED", "RECEIVED", "NOTIFIED", "PAID", "COMPLETED"]
        current = record.status
        for status in path[: path.index(target) + 1]:
            record = await engine.transition(record.id, record.type, current, status, ORDER_FLOW_FIELDS[status])
            current = status
        return record

    return _advance


def run(coro):
    return asyncio.run(coro)

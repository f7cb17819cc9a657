import pytest
from fastapi.testclient import TestClient

from bookstore_requests.core.errors import StoreUnavailable
from bookstore_requests.core.security import create_access_token
from bookstore_requests.main import create_app
from bookstore_requests.repositories.requests_repo import InMemoryRequestStore
from bookstore_requests.services.transition_engine import TransitionEngine

from conftest import BOOK_HOLD_FIELDS, SPECIAL_ORDER_FIELDS, TODAY


class DownStore(InMemoryRequestStore):
    async def find_by_id(self, request_id):
        raise StoreUnavailable("Request store unavailable: no servers available")


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine=engine))


def _create(client, request_type="book_hold", fields=BOOK_HOLD_FIELDS, **kw):
    return client.post("/requests", json={"type": request_type, **fields}, **kw)


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_create_request(client):
    res = _create(client)
    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "NEW"
    assert body["type"] == "book_hold"
    assert body["fields"]["isbn"] == "978-0-306-40615-7"
    assert body["created_by"] == "system"


def test_create_with_extra_fields(client):
    payload = {"type": "special_order", **SPECIAL_ORDER_FIELDS, "extra": {"edition": "first"}}
    res = client.post("/requests", json=payload)
    assert res.status_code == 201
    assert res.json()["fields"]["edition"] == "first"


def test_create_unknown_type_is_422(client):
    res = _create(client, request_type="gift_wrap")
    assert res.status_code == 422
    assert res.json()["invalid"] == {"type": "Unknown request type: gift_wrap"}


def test_create_missing_fields_is_422(client):
    res = client.post("/requests", json={"type": "book_hold", "customer_name": "Ada Lovelace"})
    assert res.status_code == 422
    body = res.json()
    assert body["error"] == "MissingRequiredField"
    assert body["missing"] == ["customer_contact", "isbn", "details"]


def test_token_subject_becomes_the_actor(client):
    token = create_access_token("U0123")
    res = _create(client, headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 201
    assert res.json()["created_by"] == "U0123"


def test_bad_token_is_401(client):
    res = _create(client, headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_transition_flow_and_errors(client):
    request_id = _create(client).json()["id"]
    url = f"/requests/{request_id}/transition"

    res = client.post(url, json={"request_type": "book_hold", "current_status": "NEW", "target_status": "RECEIVED"})
    assert res.status_code == 409
    assert res.json()["message"] == "Invalid status transition from NEW to RECEIVED for book_hold"

    res = client.post(url, json={"request_type": "book_hold", "current_status": "NEW", "target_status": "PAID"})
    assert res.status_code == 422
    assert res.json()["missing"] == ["payment_method", "order_number"]

    paid = {
        "request_type": "book_hold",
        "current_status": "NEW",
        "target_status": "PAID",
        "fields": {"payment_method": "card", "order_number": "100001"},
    }
    res = client.post(url, json=paid)
    assert res.status_code == 200
    assert res.json()["status"] == "PAID"

    # same submission again: the request has moved on
    res = client.post(url, json=paid)
    assert res.status_code == 409
    assert res.json()["error"] == "ConcurrentModification"


def test_unknown_request_is_404(client):
    res = client.get("/requests/REQ-0-nothing")
    assert res.status_code == 404
    assert res.json()["message"] == "No request found with ID: REQ-0-nothing"


def test_store_outage_is_503(events):
    engine = TransitionEngine(DownStore(), events, today_provider=lambda: TODAY)
    res = TestClient(create_app(engine=engine)).get("/requests/REQ-1-abcdef")
    assert res.status_code == 503
    assert res.json()["retryable"] is True


def test_next_statuses_and_history(client):
    request_id = _create(client).json()["id"]

    res = client.get(f"/requests/{request_id}/next-statuses")
    assert res.json() == [
        {"status": "PAID", "required_fields": ["payment_method", "order_number"]},
        {"status": "CANCELLED", "required_fields": []},
    ]

    client.post(
        f"/requests/{request_id}/transition",
        json={"request_type": "book_hold", "current_status": "NEW", "target_status": "CANCELLED"},
    )
    history = client.get(f"/requests/{request_id}/history").json()
    assert [e["action"] for e in history["events"]] == ["REQUEST_CREATED", "STATUS_CHANGE"]
    assert history["replayed_status"] == "CANCELLED"


def test_add_fields(client):
    request_id = _create(client).json()["id"]
    res = client.post(f"/requests/{request_id}/fields", json={"fields": {"shelf": "B3"}})
    assert res.status_code == 200
    assert res.json()["fields"]["shelf"] == "B3"
    assert res.json()["status"] == "NEW"


def test_search_and_pagination(client):
    for _ in range(3):
        _create(client)
    _create(client, request_type="special_order", fields=SPECIAL_ORDER_FIELDS)

    res = client.get("/requests", params={"type": "book_hold", "page_size": 2})
    body = res.json()
    assert body["total"] == 3
    assert body["total_pages"] == 2
    assert len(body["items"]) == 2

    res = client.get("/requests", params={"q": "penguin"})
    assert [i["type"] for i in res.json()["items"]] == ["special_order"]


def test_request_types(client):
    body = client.get("/request-types").json()
    assert set(body) >= {"book_hold", "special_order", "personalization"}
    assert client.get("/request-types/book_hold").json()["possible_statuses"] == ["NEW", "PAID", "COMPLETED", "CANCELLED"]
    assert client.get("/request-types/gift_wrap").status_code == 422


def test_dashboard(client):
    _create(client)
    _create(client, request_type="special_order", fields=SPECIAL_ORDER_FIELDS)
    body = client.get("/reports/dashboard").json()
    assert body["total_requests"] == 2
    assert body["pending_requests"] == 2
    assert body["requests_by_priority"] == {"standard": 1, "high": 1}


def test_non_text_core_field_is_422(client):
    payload = {"type": "book_hold", **BOOK_HOLD_FIELDS, "extra": {"details": 42}}
    res = client.post("/requests", json=payload)
    assert res.status_code == 422
    assert res.json()["invalid"] == {"details": "Must be text"}

# bookstore_requests/models/request.py
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
import time
import uuid
from bookstore_requests.models.common import RequestType, RequestStatus, Priority, EventAction


def new_request_id() -> str:
    # REQ-<epoch ms>-<6 hex>
    return f"REQ-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequestRecord(BaseModel):
    id: str = Field(default_factory=new_request_id)
    type: RequestType
    status: RequestStatus = "NEW"
    customer_name: str
    customer_contact: str
    details: str
    priority: Priority = "standard"
    fields: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    created_by: str = "system"
    updated_by: str = "system"


class Event(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    request_id: str
    request_type: RequestType
    action: EventAction
    previous_status: Optional[RequestStatus] = None
    new_status: Optional[RequestStatus] = None
    timestamp: datetime = Field(default_factory=utcnow)
    actor: str = "system"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RequestCreate(BaseModel):
    type: str
    customer_name: Optional[str] = None
    customer_contact: Optional[str] = None
    details: Optional[str] = None
    priority: str = "standard"
    isbn: Optional[str] = None
    vendor_publisher: Optional[str] = None
    date_needed: Optional[str] = None
    condition: Optional[str] = None
    pickup_date: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    def field_bag(self) -> Dict[str, Any]:
        data = self.model_dump(exclude={"type", "extra"}, exclude_none=True)
        data.update({k: v for k, v in self.extra.items() if v is not None})
        return data


class TransitionPayload(BaseModel):
    request_type: str
    current_status: str
    target_status: str
    fields: Dict[str, Any] = Field(default_factory=dict)


class FieldsPayload(BaseModel):
    fields: Dict[str, Any]


class NextStatus(BaseModel):
    status: RequestStatus
    required_fields: List[str] = Field(default_factory=list)


class RequestHistory(BaseModel):
    request_id: str
    events: List[Event]
    replayed_status: Optional[RequestStatus] = None

# bookstore_requests/api/routes/requests.py
from fastapi import APIRouter, Depends, Query, Request
from datetime import datetime
from typing import List, Optional

from bookstore_requests.api.deps import get_current_actor, get_engine
from bookstore_requests.core.config import settings
from bookstore_requests.core.rate_limit import INTAKE_LIMIT, limiter
from bookstore_requests.models.request import (
    FieldsPayload,
    NextStatus,
    RequestCreate,
    RequestHistory,
    RequestRecord,
    TransitionPayload,
)
from bookstore_requests.services.transition_engine import TransitionEngine
from bookstore_requests.utils.mongo_helpers import as_utc
from bookstore_requests.utils.pagination import meta

router = APIRouter()


@router.post("", response_model=RequestRecord, status_code=201)
@limiter.limit(INTAKE_LIMIT)
async def create_request(
    request: Request,
    payload: RequestCreate,
    actor: str = Depends(get_current_actor),
    engine: TransitionEngine = Depends(get_engine),
):
    return await engine.create_request(payload.type, payload.field_bag(), actor=actor)


@router.get("")
async def search_requests(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=settings.max_page_size),
    q: Optional[str] = None,
    request_type: Optional[str] = Query(None, alias="type"),
    status: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    engine: TransitionEngine = Depends(get_engine),
):
    filters = dict(q=q, request_type=request_type, status=status, date_from=as_utc(date_from), date_to=as_utc(date_to))
    items, total = await engine.search_requests(skip=(page - 1) * page_size, limit=page_size, **filters)
    page_meta = meta(total, page, page_size)
    if page_meta.page < page:
        # asked past the last page: serve the last one
        items, total = await engine.search_requests(
            skip=(page_meta.page - 1) * page_size, limit=page_size, **filters
        )
    return {"items": items, **page_meta.model_dump()}


@router.get("/{request_id}", response_model=RequestRecord)
async def get_request(request_id: str, engine: TransitionEngine = Depends(get_engine)):
    return await engine.get_request(request_id)


@router.post("/{request_id}/transition", response_model=RequestRecord)
async def transition(
    request_id: str,
    payload: TransitionPayload,
    actor: str = Depends(get_current_actor),
    engine: TransitionEngine = Depends(get_engine),
):
    return await engine.transition(
        request_id,
        payload.request_type,
        payload.current_status,
        payload.target_status,
        payload.fields,
        actor=actor,
    )


@router.post("/{request_id}/fields", response_model=RequestRecord)
async def add_fields(
    request_id: str,
    payload: FieldsPayload,
    actor: str = Depends(get_current_actor),
    engine: TransitionEngine = Depends(get_engine),
):
    record = await engine.get_request(request_id)
    return await engine.add_fields(request_id, record.type, payload.fields, actor=actor)


@router.get("/{request_id}/next-statuses", response_model=List[NextStatus])
async def next_statuses(request_id: str, engine: TransitionEngine = Depends(get_engine)):
    record = await engine.get_request(request_id)
    return engine.next_statuses(record.type, record.status)


@router.get("/{request_id}/history", response_model=RequestHistory)
async def history(request_id: str, engine: TransitionEngine = Depends(get_engine)):
    await engine.get_request(request_id)
    events, replayed = await engine.get_history(request_id)
    return RequestHistory(request_id=request_id, events=events, replayed_status=replayed)

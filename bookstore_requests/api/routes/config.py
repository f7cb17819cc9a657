# bookstore_requests/api/routes/config.py
from fastapi import APIRouter, Depends

from bookstore_requests.api.deps import get_engine
from bookstore_requests.services.transition_engine import TransitionEngine

router = APIRouter(prefix="/request-types", tags=["config"])


@router.get("")
async def read_request_types(engine: TransitionEngine = Depends(get_engine)):
    return engine.registry.describe()


@router.get("/{request_type}")
async def read_request_type(request_type: str, engine: TransitionEngine = Depends(get_engine)):
    return engine.registry.describe_type(request_type)

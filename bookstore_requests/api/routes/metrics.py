# bookstore_requests/api/routes/metrics.py
from fastapi import APIRouter, Depends

from bookstore_requests.api.deps import get_engine
from bookstore_requests.services.metrics_service import calculate_metrics
from bookstore_requests.services.transition_engine import TransitionEngine

router = APIRouter()


@router.get("/reports/dashboard")
async def reports_dashboard(engine: TransitionEngine = Depends(get_engine)):
    return calculate_metrics(await engine.list_requests())

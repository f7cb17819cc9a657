# bookstore_requests/api/router.py
from fastapi import APIRouter
from bookstore_requests.api.routes import config, metrics, requests

api_router = APIRouter()
api_router.include_router(requests.router, prefix="/requests", tags=["requests"])
api_router.include_router(config.router)
api_router.include_router(metrics.router, tags=["metrics"])

# bookstore_requests/main.py
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

load_dotenv()

from bookstore_requests.api.router import api_router  # noqa: E402
from bookstore_requests.core.config import settings  # noqa: E402
from bookstore_requests.core.db import close_db, get_db  # noqa: E402
from bookstore_requests.core.errors import (  # noqa: E402
    ConcurrentModification,
    InvalidTransition,
    RequestError,
    RequestNotFound,
    RequestValidationError,
    StoreUnavailable,
)
from bookstore_requests.core.indexes import ensure_core_indexes  # noqa: E402
from bookstore_requests.core.rate_limit import limiter, rate_limit_handler  # noqa: E402
from bookstore_requests.repositories.events_repo import (  # noqa: E402
    CompositeEventLog,
    FileAuditLog,
    InMemoryEventLog,
    MongoEventLog,
)
from bookstore_requests.repositories.requests_repo import InMemoryRequestStore, MongoRequestStore  # noqa: E402
from bookstore_requests.services.transition_engine import TransitionEngine  # noqa: E402
from bookstore_requests.services.type_registry import TypeRegistry  # noqa: E402

APP_NAME = os.getenv("APP_NAME", "Bookstore Special Requests")
APP_VERSION = os.getenv("APP_VERSION", "0.1.0")

# ---- Logging ----
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

DEFAULT_CORS = {
    "http://localhost:3000",
    "http://127.0.0.1:3000",
}

ERROR_STATUS = (
    (RequestValidationError, 422),
    (InvalidTransition, 409),
    (ConcurrentModification, 409),
    (RequestNotFound, 404),
    (StoreUnavailable, 503),
)


def build_engine() -> TransitionEngine:
    """Wire store + event log adapters from settings."""
    audit = FileAuditLog(settings.audit_log_dir)
    if settings.store_backend == "memory":
        store = InMemoryRequestStore()
        events = CompositeEventLog(InMemoryEventLog(), audit)
    else:
        db = get_db()
        store = MongoRequestStore(db)
        events = CompositeEventLog(MongoEventLog(db), audit)
    return TransitionEngine(
        store,
        events,
        registry=TypeRegistry(),
        store_timeout=settings.store_timeout_seconds,
        strict_isbn=settings.isbn_policy == "strict",
    )


async def request_error_handler(request: Request, exc: RequestError):
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 400)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app(engine: Optional[TransitionEngine] = None) -> FastAPI:
    app = FastAPI(title=APP_NAME, version=APP_VERSION)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(set(settings.cors_origins or []) | DEFAULT_CORS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1024)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(RequestError, request_error_handler)

    app.include_router(api_router, prefix="")
    if engine is not None:
        app.state.engine = engine

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.on_event("startup")
    async def startup():
        if getattr(app.state, "engine", None) is None:
            app.state.engine = build_engine()
            if settings.store_backend == "mongo":
                try:
                    await ensure_core_indexes(get_db())
                except Exception as e:
                    logger.exception("ensure_core_indexes failed: %s", e)

    @app.on_event("shutdown")
    async def shutdown():
        if settings.store_backend == "mongo":
            await close_db()

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("bookstore_requests.main:app", reload=True, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))

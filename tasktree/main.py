from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from tasktree.config import settings
from tasktree.db import create_all
from tasktree.logging import configure_logging
from tasktree.routes.audit import router as audit_router
from tasktree.routes.auth import router as auth_router
from tasktree.routes.health import router as health_router
from tasktree.routes.orgs import router as orgs_router
from tasktree.routes.tasks import router as tasks_router

log = structlog.get_logger(__name__)

class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("x-request-id") or uuid4().hex
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()
        response.headers.setdefault("X-Request-ID", request_id)
        return response

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if settings.db_create_all:
        create_all()
    log.info("app.started", env=settings.app_env)
    yield

def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="tasktree-api", version="0.1.0", lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(orgs_router)
    app.include_router(tasks_router)
    app.include_router(audit_router)
    return app

app = create_app()

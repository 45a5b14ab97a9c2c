from collections.abc import Callable

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from tasktree.db import db_ping
from tasktree.redis_client import redis_ping

log = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])

# redis only backs rate limiting, but an unreachable redis still means degraded
PROBES: dict[str, Callable[[], bool]] = {
    "db": db_ping,
    "redis": redis_ping,
}

@router.get("/health")
def health() -> dict:
    return {"status": "ok", "service": "tasktree-api"}

@router.get("/ready")
def ready() -> JSONResponse:
    checks = {name: bool(probe()) for name, probe in PROBES.items()}
    ok = all(checks.values())
    if not ok:
        log.warning("health.unready", checks=checks)

    body = {"status": "ok" if ok else "unready", "checks": checks}
    return JSONResponse(status_code=200 if ok else 503, content=body)

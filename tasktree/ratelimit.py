from __future__ import annotations

import hashlib

import redis
import structlog
from fastapi import HTTPException, Request

from tasktree.config import settings
from tasktree.redis_client import get_redis

log = structlog.get_logger(__name__)

def _hash(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()[:24]

def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None

# fixed-window limiter using redis INCR + EXPIRE
def rate_limit(name: str, limit_per_window: int, window_seconds: int):
    def _dep(request: Request) -> None:
        if not settings.rate_limit_enabled:
            return

        ip = (client_ip(request) or "unknown").strip()
        key = f"rl:{name}:{_hash(ip)}"

        try:
            pipe = get_redis().pipeline()
            pipe.incr(key)
            pipe.expire(key, window_seconds, nx=True)
            count, _ = pipe.execute()
        except redis.RedisError as e:
            # fail-open if redis is down
            log.warning("ratelimit.redis_unavailable", limiter=name, error=str(e))
            return

        if int(count) > int(limit_per_window):
            log.info("ratelimit.blocked", limiter=name, count=int(count))
            raise HTTPException(status_code=429, detail="rate_limited")

    return _dep

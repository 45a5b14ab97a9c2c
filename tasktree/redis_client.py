from functools import lru_cache

import redis

from tasktree.config import settings

@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    # short timeouts: callers fail open when redis is unreachable
    return redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
    )

# redis connectivity check
def redis_ping() -> bool:
    try:
        return bool(get_redis().ping())
    except redis.RedisError:
        return False

"""
Fixed-window rate limits for booking and cancellation
Counters are shared through Redis; while Redis is unreachable each process counts on its own
"""

import logging
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import Depends, HTTPException

from .auth import Principal, get_principal
from .config import RATE_LIMIT_ENABLED, REDIS_URL

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None

# {key: (window_end, count)}
local_counts: dict[str, tuple[int, int]] = {}
local_lock = Lock()
LOCAL_PRUNE_THRESHOLD = 1024


def get_redis_client() -> redis.Redis:
    """Shared Redis connection, created on first use; raises if Redis is unreachable"""
    global redis_client

    if redis_client is None:
        client = redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )
        client.ping()
        redis_client = client
        logger.info("Redis connected successfully")
    return redis_client


def _count_in_redis(client: redis.Redis, key: str, window_seconds: int) -> tuple[int, int]:
    count = client.incr(key)
    if count == 1:
        client.expire(key, window_seconds)
    ttl = client.ttl(key)
    if ttl < 0:
        # Key lost its expiry (e.g. the EXPIRE after INCR failed)
        client.expire(key, window_seconds)
        ttl = window_seconds
    return int(count), int(ttl)


def _count_locally(key: str, window_seconds: int) -> tuple[int, int]:
    now = int(time.time())
    with local_lock:
        if len(local_counts) > LOCAL_PRUNE_THRESHOLD:
            for stale in [k for k, (end, _) in local_counts.items() if end <= now]:
                del local_counts[stale]
        window_end, count = local_counts.get(key, (0, 0))
        if now >= window_end:
            window_end, count = now + window_seconds, 0
        count += 1
        local_counts[key] = (window_end, count)
        return count, window_end - now


def hit(key: str, window_seconds: int, client: Optional[redis.Redis] = None) -> tuple[int, int]:
    """Count one request against ``key``.

    Returns:
        Tuple of (requests in the current window, seconds until it resets)
    """
    if client is not None:
        try:
            return _count_in_redis(client, key, window_seconds)
        except redis.RedisError as e:
            logger.warning(f"Rate limit counter unavailable in Redis, counting locally: {e}")
    return _count_locally(key, window_seconds)


def create_rate_limiter(limit: int, window_seconds: int, action: str):
    """Dependency allowing each caller ``limit`` requests of ``action`` per window"""

    def rate_limiter(principal: Principal = Depends(get_principal)):
        if not RATE_LIMIT_ENABLED:
            return

        try:
            client = get_redis_client()
        except (redis.RedisError, ValueError):
            client = None

        key = f"rate_limit:{action}:{principal.role}:{principal.id}"
        count, retry_after = hit(key, window_seconds, client)
        if count > limit:
            logger.warning(f"Rate limit exceeded for {key}: {count}/{limit} in {window_seconds}s")
            raise HTTPException(
                status_code=429,
                detail=f"Too many {action} requests. Try again in {retry_after} seconds.",
                headers={"Retry-After": str(retry_after)},
            )

    return rate_limiter

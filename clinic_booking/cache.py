"""
Redis caching utilities for resolved slot lists
Reduces database load on the patient booking page
"""
import json
import logging
from typing import Any, Optional

from .config import SLOT_CACHE_ENABLED, SLOT_CACHE_TTL
from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)


class Cache:
    """Redis cache wrapper with automatic serialization.

    Every failure is logged and treated as a miss; the cache never fails a request.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.redis_client = None

    def _get_client(self):
        """Lazy load Redis client"""
        if not self.enabled:
            return None
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.warning(f"Redis cache unavailable: {e}")
                return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"Cache MISS: {key}")
            return None
        except Exception as e:
            logger.error(f"Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, ttl, json.dumps(value))
            logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"Cache set error for {key}: {e}")
            return False

    def incr(self, key: str) -> Optional[int]:
        client = self._get_client()
        if not client:
            return None

        try:
            return client.incr(key)
        except Exception as e:
            logger.error(f"Cache incr error for {key}: {e}")
            return None


# Global cache instance
cache = Cache(enabled=SLOT_CACHE_ENABLED)


# Slot lists are keyed by a per-doctor generation. Readers fetch the
# generation before querying the database and writers bump it after
# committing, so a list built from pre-commit data lands under a
# generation that no later reader asks for.


def slot_generation_key(doctor_id: int) -> str:
    return f"slots:{doctor_id}:generation"


def slot_generation(doctor_id: int) -> int:
    return int(cache.get(slot_generation_key(doctor_id)) or 0)


def slot_cache_key(doctor_id: int, generation: int, day) -> str:
    return f"slots:{doctor_id}:{generation}:{day.isoformat()}"


def get_cached_slots(doctor_id: int, generation: int, day) -> Optional[list[dict]]:
    return cache.get(slot_cache_key(doctor_id, generation, day))


def set_cached_slots(doctor_id: int, generation: int, day, slots: list[dict]) -> None:
    cache.set(slot_cache_key(doctor_id, generation, day), slots, ttl=SLOT_CACHE_TTL)


def invalidate_doctor_slots(doctor_id: int) -> Optional[int]:
    """Retire every cached slot list of a doctor; call after the change is committed"""
    return cache.incr(slot_generation_key(doctor_id))

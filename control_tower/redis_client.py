from __future__ import annotations

from redis import Redis

from .settings import settings


def get_redis_client() -> Redis:
    timeout = max(0.1, settings.connector_lock_timeout_seconds)
    return Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )


def check_redis_health() -> bool:
    return bool(get_redis_client().ping())

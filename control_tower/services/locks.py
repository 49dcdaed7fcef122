from __future__ import annotations

import threading
import uuid
import weakref
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from redis.exceptions import LockError, RedisError

from ..errors import ConnectorBusyError, PersistenceError
from ..redis_client import get_redis_client
from ..settings import settings

logger = structlog.get_logger()

LOCK_PREFIX = "control_tower:connector_lock:"

_registry_guard = threading.Lock()
# Entries drop out once no command holds or waits on the lock.
_local_locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()


def lock_name(workspace_id: uuid.UUID, connector_key: str) -> str:
    return f"{LOCK_PREFIX}{workspace_id}:{connector_key}"


def _local_lock(name: str) -> threading.Lock:
    with _registry_guard:
        lock = _local_locks.get(name)
        if lock is None:
            lock = threading.Lock()
            _local_locks[name] = lock
        return lock


@contextmanager
def _redis_lock(name: str, connector_key: str, timeout: float) -> Iterator[None]:
    try:
        lock = get_redis_client().lock(
            name,
            timeout=settings.connector_lock_ttl_seconds,
            blocking_timeout=timeout,
        )
        acquired = lock.acquire(blocking=True)
    except RedisError as exc:
        logger.error("connector_lock_backend_unavailable", connector_key=connector_key, error=str(exc))
        raise PersistenceError("connector lock service unavailable; retry the command") from exc
    if not acquired:
        raise ConnectorBusyError(connector_key)
    try:
        yield
    finally:
        try:
            lock.release()
        except LockError:
            logger.warning("connector_lock_expired_before_release", connector_key=connector_key)


@contextmanager
def connector_lock(
    workspace_id: uuid.UUID,
    connector_key: str,
    timeout: float | None = None,
) -> Iterator[None]:
    wait = settings.connector_lock_timeout_seconds if timeout is None else timeout
    name = lock_name(workspace_id, connector_key)
    local = _local_lock(name)
    if not local.acquire(timeout=max(0.0, wait)):
        logger.warning("connector_lock_timeout", connector_key=connector_key, timeout=wait)
        raise ConnectorBusyError(connector_key)
    try:
        if settings.connector_lock_backend == "redis":
            with _redis_lock(name, connector_key, wait):
                yield
        else:
            yield
    finally:
        local.release()

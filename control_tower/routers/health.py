from __future__ import annotations

from fastapi import APIRouter, HTTPException

from ..db import check_db_health
from ..redis_client import check_redis_health
from ..settings import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready")
def ready() -> dict[str, object]:
    checks = {"db": "ok"}
    try:
        check_db_health()
    except Exception:
        checks["db"] = "down"
    if settings.connector_lock_backend == "redis":
        checks["redis"] = "ok"
        try:
            check_redis_health()
        except Exception:
            checks["redis"] = "down"
    if any(value != "ok" for value in checks.values()):
        raise HTTPException(status_code=503, detail={"status": "not_ready", "env": settings.app_env, "checks": checks})
    return {"status": "ready", "env": settings.app_env, "checks": checks}

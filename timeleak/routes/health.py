# timeleak/routes/health.py
"""Liveness and readiness checks."""

import time

from fastapi import APIRouter, Depends

from timeleak.config import settings
from timeleak.routes.dependencies import get_runtime
from timeleak.runtime import SyncRuntime

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "timeleak"}


@router.get("/readyz")
async def readyz(runtime: SyncRuntime = Depends(get_runtime)):
    """Readiness check: key-value store reachability and sync configuration."""
    checks = {}
    overall_ok = True

    # 1) Key-value store
    t0 = time.time()
    try:
        store_ok = await runtime.store.ping()
        checks["redis"] = {
            "ok": bool(store_ok),
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = overall_ok and bool(store_ok)
    except Exception as e:
        checks["redis"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = False

    # 2) Configuration
    config_issues = []
    if not settings.UPLOAD_BASE_URL:
        config_issues.append("UPLOAD_BASE_URL not set")
    if not settings.USAGE_EXPORT_PATH:
        config_issues.append("USAGE_EXPORT_PATH not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
        "timezone": settings.TIMEZONE,
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}

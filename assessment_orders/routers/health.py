"""
Health check endpoints.

- GET /api/health       cheap liveness: version, uptime
- GET /api/health/deep  bounded store ping plus order processor state
"""
import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from assessment_orders.core.async_utils import run_sync
from assessment_orders.core.database import ping_db
from assessment_orders.core.structured_logging import APP_VERSION, SERVICE_NAME, get_uptime_s
from assessment_orders.models.responses import HealthResponse
from assessment_orders.services.order_processor import get_order_processor

logger = logging.getLogger(__name__)

router = APIRouter()

COMPONENT_TIMEOUT = 2.0  # seconds


# ── Cheap health ─────────────────────────────────────────────────────
@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Cheap health check, no store calls."""
    return {
        "status": "ok",
        "version": APP_VERSION,
        "service": SERVICE_NAME,
        "uptime_s": round(get_uptime_s(), 1),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ── Deep health ──────────────────────────────────────────────────────
@router.get("/health/deep")
async def deep_health_check():
    """Store reachability and order processor state."""
    database = await _check_database()

    processor = get_order_processor().status()
    processor_state = "ok"
    if not processor["running"] or processor["last_error"]:
        processor_state = "degraded"
    components = {
        "database": database,
        "order_processor": {"status": processor_state, **processor},
    }

    statuses = [c["status"] for c in components.values()]
    if "down" in statuses:
        overall = "down"
    elif "degraded" in statuses:
        overall = "degraded"
    else:
        overall = "ok"

    return {
        "status": overall,
        "version": APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": components,
    }


async def _check_database() -> dict:
    start = asyncio.get_running_loop().time()
    try:
        await run_sync(ping_db, timeout=COMPONENT_TIMEOUT)
    except Exception as exc:
        logger.warning("Health check: database unreachable: %s", exc)
        return {"status": "down", "error": type(exc).__name__}
    latency_ms = (asyncio.get_running_loop().time() - start) * 1000
    return {"status": "ok", "latency_ms": round(latency_ms, 1)}

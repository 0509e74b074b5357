# backend/grosave/routes/system.py
"""
Liveness probe for the API process.

Each probe runs one cheap query and times it. The endpoint answers 503 as
soon as any probe fails so a load balancer can pull the instance.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Product, PickupSlot, SessionToken
from ..services import otp_service
from grosave.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def _timed(name: str, probe) -> dict:
    """Run a probe; failures are logged and reported, never raised."""
    started = time.perf_counter()
    try:
        details = probe()
        result = {"status": "healthy", "details": details}
    except Exception:
        current_app.logger.exception("Health probe %s failed", name)
        result = {"status": "unhealthy", "error": f"{name} unavailable"}
    result["latency_ms"] = round((time.perf_counter() - started) * 1000, 2)
    return result


def _catalog_probe() -> dict:
    listed = db.session.query(Product).filter(Product.is_active.is_(True)).count()
    full_slots = db.session.query(PickupSlot).filter(
        PickupSlot.date >= utcnow().date(),
        PickupSlot.reserved_count >= PickupSlot.capacity,
    ).count()
    return {"listed_products": listed, "full_upcoming_slots": full_slots}


def _session_probe() -> dict:
    live = db.session.query(SessionToken).filter(SessionToken.is_revoked.is_(False))
    return {
        "live_sessions": live.count(),
        "expired_pending_cleanup": live.filter(SessionToken.expires_at < utcnow()).count(),
        "outstanding_otps": len(otp_service.get_store()),
    }


@system_bp.get("/health")
def health():
    """200 when every probe passes, 503 otherwise."""
    started = time.perf_counter()
    checks = {
        "database": _timed("database", _catalog_probe),
        "sessions": _timed("sessions", _session_probe),
    }
    healthy = all(check["status"] == "healthy" for check in checks.values())

    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "checks": checks,
    }, 200 if healthy else 503

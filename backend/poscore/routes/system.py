# backend/poscore/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import OfflineQueueEntry, Product, Transaction
from ..services import sync_service
from poscore.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        transaction_count = db.session.query(Transaction).count()
        queued = db.session.query(OfflineQueueEntry).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "transactions": transaction_count,
                "offline_queue": queued,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Health check.

    Returns:
    - 200: database reachable (status 'degraded' while the till is offline)
    - 503: database unreachable
    """
    database_health = check_database_health()

    if database_health["status"] == "unhealthy":
        return {
            "status": "unhealthy",
            "timestamp": utcnow().isoformat() + "Z",
            "checks": {"database": database_health},
        }, 503

    online = sync_service.is_online()
    return {
        "status": "healthy" if online else "degraded",
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {
            "database": database_health,
            "sync": {"is_online": online},
        }
    }, 200

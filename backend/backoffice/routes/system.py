# backend/backoffice/routes/system.py
"""
System health endpoint.

Checks the database and the reference data the ledger depends on.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Item, InventoryLogEntry, Sale, ExpenseCategory
from backoffice.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        item_count = db.session.query(Item).count()
        entry_count = db.session.query(InventoryLogEntry).count()
        sale_count = db.session.query(Sale).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "items": item_count,
                "inventory_log_entries": entry_count,
                "sales": sale_count,
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


def check_reference_data_health() -> dict:
    """
    Expense categories are seeded by `flask system init`; without the
    "Stock Purchase" category stock receipts are booked without an expense.
    """
    start_time = time.time()
    try:
        category_count = db.session.query(ExpenseCategory).count()
        stock_category = (
            db.session.query(ExpenseCategory)
            .filter_by(name="Stock Purchase", type="STOCK")
            .first()
        )
        elapsed_ms = (time.time() - start_time) * 1000

        if stock_category is None:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "Expense categories not seeded; run 'flask system init'",
                "details": {"expense_categories": category_count},
            }

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"expense_categories": category_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Reference data health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Reference data error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    reference_health = check_reference_data_health()

    all_checks = [database_health, reference_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "reference_data": reference_health,
        }
    }

    return response, http_status

# Overview: Collaborator boundary; turns service results and errors into {"success": ...} dicts.

"""
Every function here returns a dict and never raises. Routes (and any other
caller such as a UI layer) inspect "success" and, on failure, "error":

    validation_error   -> 400
    not_found          -> 404
    conflict           -> 409
    insufficient_stock -> 409
    report_unavailable -> 503
    internal_error     -> 500
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable

from flask import current_app

from .services import (
    adjustment_service,
    expense_service,
    items_service,
    reporting_service,
    sales_service,
)
from .services.reporting_service import AggregationError
from .services.stock_service import InsufficientStockError
from .validation import ConflictError, NotFoundError, ValidationError


def _failure(message: str, error: str, details: dict | None = None) -> dict:
    return {"success": False, "message": message, "error": error, "details": details or {}}


def _guard(label: str, fn: Callable[[], dict]) -> dict:
    try:
        return fn()
    except InsufficientStockError as e:
        return _failure(str(e), "insufficient_stock", e.details)
    except ValidationError as e:
        return _failure(str(e), "validation_error")
    except NotFoundError as e:
        return _failure(str(e), "not_found")
    except ConflictError as e:
        return _failure(str(e), "conflict")
    except AggregationError as e:
        current_app.logger.exception("%s: report query failed", label)
        return _failure("Report is unavailable right now", "report_unavailable", {"reason": str(e)})
    except Exception:
        current_app.logger.exception("%s failed", label)
        return _failure(f"Failed to {label}", "internal_error")


# =============================================================================
# SALES
# =============================================================================

def create_sale(
    *,
    items: list[dict],
    payment_method: str,
    discount_amount_cents: int = 0,
    notes: str | None = None,
    sale_date: datetime | None = None,
    user_id: int | None = None,
) -> dict:
    def run():
        result = sales_service.create_sale(
            items=items,
            payment_method=payment_method,
            discount_amount_cents=discount_amount_cents,
            notes=notes,
            sale_date=sale_date,
            user_id=user_id,
        )
        return {
            "success": True,
            "message": f"Sale {result.sale.sale_number} recorded",
            "sale_id": result.sale.id,
            "sale_number": result.sale.sale_number,
            "final_amount_cents": result.final_amount_cents,
            "gross_profit_cents": result.gross_profit_cents,
            "items_sold": result.items_sold,
            "total_quantity": result.total_quantity,
        }

    return _guard("create sale", run)


def create_quick_sale(*, total_amount_cents: int, payment_method: str, notes: str | None = None,
                      user_id: int | None = None) -> dict:
    def run():
        sale = sales_service.create_quick_sale(
            total_amount_cents=total_amount_cents,
            payment_method=payment_method,
            notes=notes,
            user_id=user_id,
        )
        return {
            "success": True,
            "message": f"Quick sale {sale.sale_number} recorded",
            "sale_id": sale.id,
            "sale_number": sale.sale_number,
            "final_amount_cents": sale.final_amount_cents,
        }

    return _guard("create quick sale", run)


def refund_sale(*, sale_id: int, reason: str | None = None, user_id: int | None = None) -> dict:
    def run():
        sale = sales_service.refund_sale(sale_id=sale_id, reason=reason, user_id=user_id)
        return {"success": True, "message": f"Sale {sale.sale_number} refunded"}

    return _guard("refund sale", run)


def get_sale(sale_id: int) -> dict:
    return _guard("load sale", lambda: {"success": True, **sales_service.get_sale_detail(sale_id)})


def available_items() -> dict:
    return _guard("load available items", lambda: {
        "success": True,
        "items": sales_service.list_available_items(),
    })


# =============================================================================
# STOCK MOVEMENTS
# =============================================================================

def record_adjustment(*, item_id: int, delta: Any, reason: str, user_id: int | None = None) -> dict:
    def run():
        new_stock = adjustment_service.record_adjustment(
            item_id=item_id, delta=delta, reason=reason, user_id=user_id
        )
        return {"success": True, "new_stock": new_stock}

    return _guard("record adjustment", run)


def record_waste(*, item_id: int, quantity: Any, reason: str, user_id: int | None = None) -> dict:
    def run():
        new_stock = adjustment_service.record_waste(
            item_id=item_id, quantity=quantity, reason=reason, user_id=user_id
        )
        return {"success": True, "new_stock": new_stock}

    return _guard("record waste", run)


def record_usage(*, item_id: int, quantity: Any, usage_type: str, user_id: int | None = None) -> dict:
    def run():
        new_stock = adjustment_service.record_usage(
            item_id=item_id, quantity=quantity, usage_type=usage_type, user_id=user_id
        )
        return {"success": True, "new_stock": new_stock}

    return _guard("record usage", run)


def receive_stock(
    *,
    item_id: int,
    quantity: Any,
    unit_cost_cents: Any,
    supplier_invoice: str | None = None,
    received_on: datetime | None = None,
    user_id: int | None = None,
) -> dict:
    def run():
        result = adjustment_service.receive_stock(
            item_id=item_id,
            quantity=quantity,
            unit_cost_cents=unit_cost_cents,
            supplier_invoice=supplier_invoice,
            received_on=received_on,
            user_id=user_id,
        )
        return {"success": True, **result}

    return _guard("record stock receipt", run)


# =============================================================================
# ITEMS
# =============================================================================

def create_item(patch: dict, user_id: int | None = None) -> dict:
    def run():
        item = items_service.create_item(patch, user_id=user_id)
        return {
            "success": True,
            "message": f'Item "{item.name}" created with SKU {item.sku}',
            "item": item.to_dict(),
        }

    return _guard("create item", run)


def update_item(item_id: int, patch: dict, user_id: int | None = None) -> dict:
    return _guard("update item", lambda: {
        "success": True,
        "item": items_service.update_item(item_id, patch, user_id=user_id).to_dict(),
    })


def remove_item(item_id: int, user_id: int | None = None) -> dict:
    return _guard("remove item", lambda: {"success": True, **items_service.remove_item(item_id, user_id=user_id)})


def toggle_item_status(item_id: int, user_id: int | None = None) -> dict:
    def run():
        item = items_service.toggle_item_status(item_id, user_id=user_id)
        action = "activated" if item.is_active else "deactivated"
        return {"success": True, "message": f'"{item.name}" has been {action}', "is_active": item.is_active}

    return _guard("update item status", run)


# =============================================================================
# EXPENSES
# =============================================================================

def set_expense_status(expense_id: int, status: str) -> dict:
    return _guard("update expense status", lambda: {
        "success": True,
        "expense": expense_service.set_expense_status(expense_id, status).to_dict(),
    })


# =============================================================================
# REPORTS
# =============================================================================

def daily_sales_summary(day: date | None = None) -> dict:
    return _guard("load daily sales", lambda: {
        "success": True,
        "data": reporting_service.daily_sales_summary(day),
    })


def profit_analysis(period: str = "today") -> dict:
    return _guard("load profit analysis", lambda: {
        "success": True,
        "data": reporting_service.profit_analysis(period),
    })


def category_profit_analysis(period: str = "today") -> dict:
    return _guard("load category analysis", lambda: {
        "success": True,
        "data": reporting_service.category_profit_analysis(period),
    })


def comprehensive_analysis(period: str = "today") -> dict:
    return _guard("analyze comprehensive profits", lambda: {
        "success": True,
        "data": reporting_service.comprehensive_analysis(period),
    })


def monthly_profit_trends(months: int = 6) -> dict:
    return _guard("load profit trends", lambda: {
        "success": True,
        "data": reporting_service.monthly_profit_trends(months),
    })


def balance_sheet(as_of: date | datetime | None = None) -> dict:
    return _guard("generate balance sheet", lambda: {
        "success": True,
        "balance_sheet": reporting_service.balance_sheet(as_of),
    })

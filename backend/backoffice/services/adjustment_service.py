# Overview: Manual stock movements (adjustments, waste, receipts, usage); thin wrappers over the mutator.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Expense, ExpenseCategory
from ..validation import ValidationError, coerce_int, require_positive_int, require_text
from .concurrency import write_transaction
from .ledger_service import ADJUSTMENT, STOCK_IN, STOCK_OUT, WASTE
from .stock_service import apply_delta, load_item_for_update
from backoffice.time_utils import to_utc_naive, utcnow


STOCK_PURCHASE_CATEGORY = "Stock Purchase"

USAGE_TYPES = ("KITCHEN", "STAFF_MEAL", "SAMPLE", "TRANSFER", "OTHER")


def record_adjustment(*, item_id: int, delta, reason: str, user_id: int | None = None) -> int:
    """
    Signed correction (count mismatch, found stock, ...).

    Returns the new stock level.
    """
    delta = coerce_int(delta, "delta")
    if delta == 0:
        raise ValidationError("Adjustment delta cannot be zero")
    reason = require_text(reason, "reason")

    new_stock = apply_delta(
        item_id=item_id,
        delta=delta,
        entry_type=ADJUSTMENT,
        reason=reason,
        user_id=user_id,
    )
    current_app.logger.info("Adjustment on item %s: %+d -> %s", item_id, delta, new_stock)
    return new_stock


def record_waste(*, item_id: int, quantity, reason: str, user_id: int | None = None) -> int:
    """Spoilage/breakage. Quantity is positive; the ledger delta is negative."""
    quantity = require_positive_int(quantity, "quantity")
    reason = require_text(reason, "reason")

    new_stock = apply_delta(
        item_id=item_id,
        delta=-quantity,
        entry_type=WASTE,
        reason=reason,
        user_id=user_id,
    )
    current_app.logger.info("Waste on item %s: -%s -> %s", item_id, quantity, new_stock)
    return new_stock


def record_usage(*, item_id: int, quantity, usage_type: str, user_id: int | None = None) -> int:
    """
    Non-sale consumption (kitchen use, staff meals, ...).

    Recorded as STOCK_OUT whose reason does not carry the sale marker, so it
    never counts as cost of goods sold.
    """
    quantity = require_positive_int(quantity, "quantity")
    usage_type = require_text(usage_type, "usage_type").upper()
    if usage_type not in USAGE_TYPES:
        raise ValidationError(f"usage_type must be one of: {', '.join(USAGE_TYPES)}")

    return apply_delta(
        item_id=item_id,
        delta=-quantity,
        entry_type=STOCK_OUT,
        reason=f"Stock usage: {usage_type}",
        user_id=user_id,
    )


def _record_purchase_expense(*, item, quantity: int, unit_cost_cents: int,
                             supplier_invoice: str | None, received_on: datetime) -> Expense | None:
    category = (
        db.session.query(ExpenseCategory)
        .filter_by(type="STOCK", name=STOCK_PURCHASE_CATEGORY)
        .first()
    )
    if category is None:
        current_app.logger.warning(
            "No '%s' expense category; stock receipt for item %s has no expense row",
            STOCK_PURCHASE_CATEGORY, item.id,
        )
        return None

    expense = Expense(
        expense_category_id=category.id,
        description=f"Stock purchase: {item.name} - {quantity} {item.unit}",
        amount_cents=quantity * unit_cost_cents,
        tax_amount_cents=0,
        expense_date=received_on,
        status="PAID",
        supplier_info=supplier_invoice,
    )
    db.session.add(expense)
    db.session.flush()
    return expense


def receive_stock(
    *,
    item_id: int,
    quantity,
    unit_cost_cents,
    supplier_invoice: str | None = None,
    received_on: datetime | None = None,
    user_id: int | None = None,
) -> dict:
    """
    Goods received from a supplier.

    STOCK_IN + latest cost price commit together. The matching PAID expense is
    a best-effort side effect written in a savepoint: if it fails the receipt
    still stands and a warning is logged.
    """
    quantity = require_positive_int(quantity, "quantity")
    unit_cost_cents = require_positive_int(unit_cost_cents, "unit_cost_cents")
    received_on = to_utc_naive(received_on) if received_on else utcnow()
    reason = (
        f"Stock received - Invoice: {supplier_invoice}" if supplier_invoice else "Stock received"
    )

    expense = None
    with write_transaction():
        item = load_item_for_update(item_id)
        new_stock = apply_delta(
            item_id=item.id,
            delta=quantity,
            entry_type=STOCK_IN,
            reason=reason,
            user_id=user_id,
            reference=supplier_invoice,
            commit=False,
        )
        item.cost_price_cents = unit_cost_cents

        try:
            with db.session.begin_nested():
                expense = _record_purchase_expense(
                    item=item,
                    quantity=quantity,
                    unit_cost_cents=unit_cost_cents,
                    supplier_invoice=supplier_invoice,
                    received_on=received_on,
                )
        except Exception:
            current_app.logger.warning(
                "Failed to create expense record for stock receipt on item %s", item.id, exc_info=True
            )
            expense = None

    current_app.logger.info("Received %s %s of item %s", quantity, item.unit, item.id)
    return {
        "item_id": item.id,
        "new_stock": new_stock,
        "cost_price_cents": unit_cost_cents,
        "expense_cents": quantity * unit_cost_cents,
        "expense_id": expense.id if expense is not None else None,
    }

"""
Sale Transaction Processor

WHY: A sale is revenue plus stock consumption. Both must land together or not
at all, and the stock side goes through the same mutator as every other writer
so that Item.current_stock and the ledger never disagree.

DESIGN PRINCIPLES:
- All lines are validated before any side effect (one bad line aborts the sale)
- Stock checks are repeated under lock inside the write transaction
- The ledger is the only sale -> item link: STOCK_OUT entries with
  reference = str(sale.id) and reason "Sale - <sale number>"
- Refunds never edit history; they append compensating STOCK_IN entries
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Item, Sale
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_int,
    require_positive_int,
)
from .concurrency import lock_for_update, write_transaction
from .ledger_service import STOCK_IN, STOCK_OUT, entries_for_reference
from .pricing import effective_selling_price_cents, margin_pct
from .stock_service import InsufficientStockError, apply_delta
from backoffice.time_utils import to_utc_naive, utcnow


# =============================================================================
# CONSTANTS
# =============================================================================

SALE_STATUS_COMPLETED = "COMPLETED"
SALE_STATUS_REFUNDED = "REFUNDED"

PAYMENT_METHODS = ("CASH", "CARD", "DIGITAL_WALLET", "BANK_TRANSFER")


@dataclass
class PricedLine:
    item: Item
    quantity: int
    unit_price_cents: int
    line_revenue_cents: int
    line_cost_cents: int


@dataclass
class SaleResult:
    sale: Sale
    final_amount_cents: int
    gross_profit_cents: int
    items_sold: int
    total_quantity: int


def generate_sale_number(now: datetime | None = None, epoch_ms: int | None = None) -> str:
    """
    SALE-<yyyyMMdd>-<last 6 digits of epoch milliseconds>.

    Uniqueness is best effort (timestamp granularity); the unique constraint
    on sales.sale_number turns a collision into a ConflictError.
    """
    now = now or utcnow()
    if epoch_ms is None:
        epoch_ms = int(time.time() * 1000)
    return f"SALE-{now.strftime('%Y%m%d')}-{str(epoch_ms)[-6:]}"


# =============================================================================
# INPUT NORMALIZATION
# =============================================================================

def _normalize_lines(items) -> list[dict]:
    if not items:
        raise ValidationError("At least one item is required for the sale")

    lines = []
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError("Each sale line must be an object")
        item_id = raw.get("item_id")
        if item_id is None:
            raise ValidationError("item_id is required for every sale line")
        override = raw.get("selling_price_cents")
        lines.append({
            "item_id": coerce_int(item_id, "item_id"),
            "quantity": require_positive_int(raw.get("quantity"), "quantity"),
            "selling_price_cents": (
                require_positive_int(override, "selling_price_cents") if override is not None else None
            ),
        })
    return lines


def _check_payment_method(payment_method: str | None) -> str:
    if not payment_method:
        raise ValidationError("Payment method is required")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    return payment_method


def _check_sale_date(sale_date: datetime | None) -> datetime:
    if sale_date is None:
        return utcnow()
    if not isinstance(sale_date, datetime):
        raise ValidationError("sale_date must be a datetime")
    sale_dt = to_utc_naive(sale_date)
    if sale_dt > utcnow() + timedelta(minutes=2):
        raise ValidationError("sale_date cannot be in the future")
    return sale_dt


# =============================================================================
# VALIDATION + PRICING
# =============================================================================

def _load_items(item_ids: set[int], *, lock: bool) -> dict[int, Item]:
    query = db.session.query(Item).filter(Item.id.in_(item_ids), Item.is_active.is_(True))
    if lock:
        query = lock_for_update(query)
    items = {item.id: item for item in query.all()}
    if len(items) != len(item_ids):
        missing = sorted(item_ids - set(items))
        raise NotFoundError(f"One or more items not found or inactive: {missing}")
    return items


def _validate_stock(lines: list[dict], items: dict[int, Item]) -> None:
    requested: dict[int, int] = {}
    for line in lines:
        requested[line["item_id"]] = requested.get(line["item_id"], 0) + line["quantity"]

    for item_id, qty in requested.items():
        item = items[item_id]
        if qty > item.current_stock:
            raise InsufficientStockError(item.id, item.name, item.current_stock, qty)


def _price_lines(lines: list[dict], items: dict[int, Item]) -> list[PricedLine]:
    priced = []
    for line in lines:
        item = items[line["item_id"]]
        unit_price = effective_selling_price_cents(
            item.cost_price_cents,
            item.selling_price_cents,
            line["selling_price_cents"],
        )
        priced.append(PricedLine(
            item=item,
            quantity=line["quantity"],
            unit_price_cents=unit_price,
            line_revenue_cents=unit_price * line["quantity"],
            line_cost_cents=item.cost_price_cents * line["quantity"],
        ))
    return priced


def quote_sale(items, discount_amount_cents: int = 0) -> dict:
    """
    Price a cart without committing anything (read-only preview).
    """
    lines = _normalize_lines(items)
    discount = coerce_int(discount_amount_cents or 0, "discount_amount_cents")
    if discount < 0:
        raise ValidationError("discount_amount_cents cannot be negative")

    loaded = _load_items({line["item_id"] for line in lines}, lock=False)
    _validate_stock(lines, loaded)
    priced = _price_lines(lines, loaded)

    total = sum(p.line_revenue_cents for p in priced)
    cost = sum(p.line_cost_cents for p in priced)
    final = max(0, total - discount)
    return {
        "total_amount_cents": total,
        "discount_amount_cents": discount,
        "final_amount_cents": final,
        "total_cost_cents": cost,
        "gross_profit_cents": final - cost,
        "lines": [
            {
                "item_id": p.item.id,
                "quantity": p.quantity,
                "unit_price_cents": p.unit_price_cents,
                "line_revenue_cents": p.line_revenue_cents,
                "line_cost_cents": p.line_cost_cents,
            }
            for p in priced
        ],
    }


# =============================================================================
# SALE CREATION
# =============================================================================

def create_sale(
    *,
    items,
    payment_method: str,
    discount_amount_cents: int = 0,
    notes: str | None = None,
    sale_date: datetime | None = None,
    user_id: int | None = None,
) -> SaleResult:
    """
    Validate a cart and commit sale + stock decrements + ledger entries.

    Args:
        items: [{"item_id", "quantity", "selling_price_cents"?}, ...]
        payment_method: CASH, CARD, DIGITAL_WALLET or BANK_TRANSFER
        discount_amount_cents: subtracted from the total (final floors at 0)
        sale_date: business time of the sale (defaults to now, never future)

    Raises:
        ValidationError, NotFoundError, InsufficientStockError, ConflictError
    """
    lines = _normalize_lines(items)
    payment_method = _check_payment_method(payment_method)
    discount = coerce_int(discount_amount_cents or 0, "discount_amount_cents")
    if discount < 0:
        raise ValidationError("discount_amount_cents cannot be negative")
    sale_dt = _check_sale_date(sale_date)

    try:
        with write_transaction():
            # Re-read under lock: the decision and the decrement share one transaction
            loaded = _load_items({line["item_id"] for line in lines}, lock=True)
            _validate_stock(lines, loaded)
            priced = _price_lines(lines, loaded)

            total = sum(p.line_revenue_cents for p in priced)
            total_cost = sum(p.line_cost_cents for p in priced)
            final = max(0, total - discount)
            gross_profit = final - total_cost

            sale = Sale(
                sale_number=generate_sale_number(sale_dt),
                user_id=user_id,
                sale_date=sale_dt,
                total_amount_cents=total,
                discount_amount_cents=discount,
                final_amount_cents=final,
                payment_method=payment_method,
                status=SALE_STATUS_COMPLETED,
                notes=notes or None,
            )
            db.session.add(sale)
            db.session.flush()

            for p in priced:
                apply_delta(
                    item_id=p.item.id,
                    delta=-p.quantity,
                    entry_type=STOCK_OUT,
                    reason=f"Sale - {sale.sale_number}",
                    user_id=user_id,
                    reference=str(sale.id),
                    occurred_at=sale_dt,
                    commit=False,
                )
    except IntegrityError as exc:
        raise ConflictError("Sale number collision; please retry the sale") from exc

    current_app.logger.info(
        "Sale %s recorded: %s lines, final=%s, profit=%s",
        sale.sale_number, len(priced), final, gross_profit,
    )

    return SaleResult(
        sale=sale,
        final_amount_cents=final,
        gross_profit_cents=gross_profit,
        items_sold=len(priced),
        total_quantity=sum(p.quantity for p in priced),
    )


def create_quick_sale(
    *,
    total_amount_cents: int,
    payment_method: str,
    notes: str | None = None,
    user_id: int | None = None,
) -> Sale:
    """
    Record revenue without item detail (no stock movement, no COGS).
    """
    total = require_positive_int(total_amount_cents, "total_amount_cents")
    payment_method = _check_payment_method(payment_method)

    try:
        with write_transaction():
            now = utcnow()
            sale = Sale(
                sale_number=generate_sale_number(now),
                user_id=user_id,
                sale_date=now,
                total_amount_cents=total,
                discount_amount_cents=0,
                final_amount_cents=total,
                payment_method=payment_method,
                status=SALE_STATUS_COMPLETED,
                notes=notes or "Quick sale - total amount entry",
            )
            db.session.add(sale)
            db.session.flush()
    except IntegrityError as exc:
        raise ConflictError("Sale number collision; please retry the sale") from exc

    return sale


# =============================================================================
# REFUND
# =============================================================================

def refund_sale(*, sale_id: int, reason: str | None = None, user_id: int | None = None) -> Sale:
    """
    Flip a sale to REFUNDED and restore its stock with compensating entries.

    Each original STOCK_OUT entry (reference = sale id) gets one STOCK_IN of
    the same magnitude, reason "Refund - <sale number>", same reference.
    """
    with write_transaction():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError("Sale not found")

        if sale.status == SALE_STATUS_REFUNDED:
            raise ConflictError("Sale is already refunded")

        originals = entries_for_reference(str(sale.id), STOCK_OUT)

        sale.status = SALE_STATUS_REFUNDED
        sale.notes = f"{sale.notes or ''} | REFUNDED: {reason or 'No reason provided'}"

        for entry in originals:
            apply_delta(
                item_id=entry.item_id,
                delta=abs(entry.quantity),
                entry_type=STOCK_IN,
                reason=f"Refund - {sale.sale_number}",
                user_id=user_id,
                reference=str(sale.id),
                commit=False,
            )

    current_app.logger.info("Sale %s refunded (%s entries restored)", sale.sale_number, len(originals))
    return sale


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def get_sale_detail(sale_id: int) -> dict:
    """Sale plus the ledger entries that carry its stock movements."""
    sale = get_sale(sale_id)
    entries = entries_for_reference(str(sale.id))
    return {
        "sale": sale.to_dict(),
        "entries": [entry.to_dict() for entry in entries],
    }


def list_available_items() -> list[dict]:
    """Active, in-stock items with the price a sale would charge by default."""
    items = (
        db.session.query(Item)
        .filter(Item.is_active.is_(True), Item.current_stock > 0)
        .order_by(Item.name.asc())
        .all()
    )
    rows = []
    for item in items:
        price = effective_selling_price_cents(item.cost_price_cents, item.selling_price_cents)
        rows.append({
            "id": item.id,
            "name": item.name,
            "category_name": item.category.name if item.category else "Uncategorized",
            "unit": item.unit,
            "current_stock": item.current_stock,
            "cost_price_cents": item.cost_price_cents,
            "selling_price_cents": price,
            "profit_margin": margin_pct(price - item.cost_price_cents, price),
        })
    return rows

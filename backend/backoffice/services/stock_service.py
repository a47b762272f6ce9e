# Overview: The stock mutator; the only code path that changes Item.current_stock.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Item
from ..validation import NotFoundError, ValidationError, coerce_int
from .concurrency import lock_for_update, write_transaction
from .ledger_service import (
    ADJUSTMENT,
    ENTRY_TYPES,
    STOCK_IN,
    STOCK_OUT,
    WASTE,
    append_entry,
)
from backoffice.time_utils import utcnow


class InsufficientStockError(ValueError):
    """Raised when a movement would take an item's stock below zero."""

    def __init__(self, item_id: int, item_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {item_name}. Available: {available}, Required: {requested}"
        )
        self.item_id = item_id
        self.item_name = item_name
        self.available = available
        self.requested = requested

    @property
    def details(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "available": self.available,
            "requested": self.requested,
        }


def _check_sign(entry_type: str, delta: int) -> None:
    if entry_type not in ENTRY_TYPES:
        raise ValidationError(f"Unknown inventory entry type: {entry_type}")
    if entry_type == STOCK_IN and delta <= 0:
        raise ValidationError("STOCK_IN requires a positive quantity")
    if entry_type in (STOCK_OUT, WASTE) and delta >= 0:
        raise ValidationError(f"{entry_type} requires a negative quantity")


def load_item_for_update(item_id: int) -> Item:
    item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def _apply_delta_locked(
    *,
    item_id: int,
    delta: int,
    entry_type: str,
    reason: str | None,
    user_id: int | None,
    reference: str | None,
    occurred_at: datetime | None,
) -> int:
    item = load_item_for_update(item_id)

    previous = item.current_stock
    new_stock = previous + delta
    if new_stock < 0:
        raise InsufficientStockError(item.id, item.name, previous, -delta)

    item.current_stock = new_stock

    append_entry(
        item_id=item.id,
        entry_type=entry_type,
        quantity=delta,
        previous_stock=previous,
        new_stock=new_stock,
        reason=reason,
        user_id=user_id,
        reference=reference,
        created_at=occurred_at or utcnow(),
    )
    db.session.flush()
    return new_stock


def apply_delta(
    *,
    item_id: int,
    delta: int,
    entry_type: str,
    reason: str | None,
    user_id: int | None = None,
    reference: str | None = None,
    occurred_at: datetime | None = None,
    commit: bool = True,
) -> int:
    """
    Apply a signed stock change and append its ledger entry as one unit.

    The item row is re-read under lock inside the transaction, so concurrent
    writers are serialized by the store and a racing oversell fails with
    InsufficientStockError instead of driving stock negative.

    commit=True: run as its own write transaction.
    commit=False: flush into the caller's open transaction (caller commits or
    rolls back the whole unit).

    Returns the item's stock after the change.
    """
    delta = coerce_int(delta, "quantity")
    _check_sign(entry_type, delta)

    kwargs = dict(
        item_id=item_id,
        delta=delta,
        entry_type=entry_type,
        reason=reason,
        user_id=user_id,
        reference=reference,
        occurred_at=occurred_at,
    )

    if not commit:
        return _apply_delta_locked(**kwargs)

    with write_transaction():
        return _apply_delta_locked(**kwargs)


def record_audit_marker(*, item: Item, reason: str, user_id: int | None = None) -> None:
    """
    Zero-quantity ADJUSTMENT entry noting a non-stock event (activation etc.).

    Written in a savepoint: if it fails the primary operation still goes
    through, and the caller logs a warning.
    """
    with db.session.begin_nested():
        _apply_delta_locked(
            item_id=item.id,
            delta=0,
            entry_type=ADJUSTMENT,
            reason=reason,
            user_id=user_id,
            reference=None,
            occurred_at=None,
        )

# Overview: Service-layer operations for the inventory ledger; append and query only.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from ..extensions import db
from ..models import InventoryLogEntry, Item
from ..validation import ValidationError
from backoffice.time_utils import utcnow
"""
Inventory Ledger Invariants (authoritative)

- Append-only: entries are never updated or deleted. Corrections are new entries.
- Every entry satisfies new_stock = previous_stock + quantity.
- Entries are written inside the same DB transaction as the stock counter
  change they record (see stock_service.apply_delta).
- There is no "cause" column beyond type: sale-driven STOCK_OUT entries are
  recognised by their reason text ("Sale - <sale number>").
- Default read order is newest first (created_at desc, id desc).
"""

STOCK_IN = "STOCK_IN"
STOCK_OUT = "STOCK_OUT"
ADJUSTMENT = "ADJUSTMENT"
WASTE = "WASTE"

ENTRY_TYPES = (STOCK_IN, STOCK_OUT, ADJUSTMENT, WASTE)

SALE_REASON_MARKER = "Sale"


@dataclass
class LedgerFilter:
    item_id: Optional[int] = None
    types: Optional[Iterable[str]] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    reason_contains: Optional[str] = None
    reference: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0


def append_entry(
    *,
    item_id: int,
    entry_type: str,
    quantity: int,
    previous_stock: int,
    new_stock: int,
    reason: str | None = None,
    user_id: int | None = None,
    reference: str | None = None,
    created_at: datetime | None = None,
) -> InventoryLogEntry:
    """
    Append one immutable ledger entry (flush only, caller owns the commit).

    Raises ValidationError when the snapshot arithmetic does not hold.
    """
    if entry_type not in ENTRY_TYPES:
        raise ValidationError(f"Unknown inventory entry type: {entry_type}")

    if previous_stock + quantity != new_stock:
        raise ValidationError(
            f"Ledger snapshot mismatch: {previous_stock} + {quantity} != {new_stock}"
        )

    entry = InventoryLogEntry(
        item_id=item_id,
        user_id=user_id,
        type=entry_type,
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        reason=reason,
        reference=str(reference) if reference is not None else None,
        created_at=created_at or utcnow(),
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def _apply_filter(query, flt: LedgerFilter):
    if flt.item_id is not None:
        query = query.filter(InventoryLogEntry.item_id == flt.item_id)
    if flt.types:
        query = query.filter(InventoryLogEntry.type.in_(list(flt.types)))
    if flt.start is not None:
        query = query.filter(InventoryLogEntry.created_at >= flt.start)
    if flt.end is not None:
        query = query.filter(InventoryLogEntry.created_at <= flt.end)
    if flt.reason_contains:
        query = query.filter(InventoryLogEntry.reason.contains(flt.reason_contains))
    if flt.reference is not None:
        query = query.filter(InventoryLogEntry.reference == str(flt.reference))
    return query


def query_entries(flt: LedgerFilter | None = None) -> list[InventoryLogEntry]:
    flt = flt or LedgerFilter()
    query = _apply_filter(db.session.query(InventoryLogEntry), flt).order_by(
        InventoryLogEntry.created_at.desc(),
        InventoryLogEntry.id.desc(),
    )
    if flt.offset:
        query = query.offset(flt.offset)
    if flt.limit is not None:
        query = query.limit(flt.limit)
    return query.all()


def count_entries(flt: LedgerFilter | None = None) -> int:
    return _apply_filter(db.session.query(InventoryLogEntry), flt or LedgerFilter()).count()


def entries_for_reference(reference, entry_type: str | None = None) -> list[InventoryLogEntry]:
    """All entries tied to one source id (e.g. a sale), oldest first."""
    query = db.session.query(InventoryLogEntry).filter(
        InventoryLogEntry.reference == str(reference)
    )
    if entry_type is not None:
        query = query.filter(InventoryLogEntry.type == entry_type)
    return query.order_by(InventoryLogEntry.id.asc()).all()


def last_entry_for_item(item_id: int) -> InventoryLogEntry | None:
    # id, not created_at: sale entries may carry a back-dated business time
    return (
        db.session.query(InventoryLogEntry)
        .filter(InventoryLogEntry.item_id == item_id)
        .order_by(InventoryLogEntry.id.desc())
        .first()
    )


def verify_item_consistency(item: Item) -> dict:
    """
    Compare an item's counter with the newest ledger snapshot.

    Items without history are consistent only when their stock is zero.
    """
    last = last_entry_for_item(item.id)
    expected = last.new_stock if last is not None else 0
    return {
        "item_id": item.id,
        "sku": item.sku,
        "current_stock": item.current_stock,
        "ledger_stock": expected,
        "consistent": expected == item.current_stock,
    }

# backend/backoffice/services/items_service.py
"""
Item Catalog Service

STOCK RULE: this module never assigns Item.current_stock directly. Initial
stock and edit-form stock changes are routed through stock_service.apply_delta
so that every change has a ledger entry.

REMOVAL MODEL:
- deactivate_item: always safe, history stays intact
- purge_item: hard delete, guarded by an explicit "no ledger rows" check
- remove_item: picks one of the two based on related-row counts
"""
from __future__ import annotations

import re
import time

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Category, InventoryLogEntry, Item
from ..validation import (
    ITEM_POLICY,
    ConflictError,
    NotFoundError,
    ValidationError,
    enforce_rules_item,
    require_text,
    validate_payload,
)
from .concurrency import write_transaction
from .ledger_service import ADJUSTMENT, STOCK_IN
from .stock_service import apply_delta, load_item_for_update, record_audit_marker

ITEM_MUTABLE_FIELDS = {
    "name",
    "sku",
    "description",
    "category_id",
    "supplier_id",
    "unit",
    "cost_price_cents",
    "selling_price_cents",
    "reorder_level",
}


def apply_item_patch(item: Item, patch: dict) -> None:
    for k, v in patch.items():
        if k not in ITEM_MUTABLE_FIELDS:
            continue
        setattr(item, k, v)


# =============================================================================
# LOOKUPS
# =============================================================================

def get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item not found")
    return item


def list_items(*, include_inactive: bool = False, category_id: int | None = None) -> list[Item]:
    query = db.session.query(Item)
    if not include_inactive:
        query = query.filter(Item.is_active.is_(True))
    if category_id is not None:
        query = query.filter(Item.category_id == category_id)
    return query.order_by(Item.name.asc(), Item.id.asc()).all()


def low_stock_items() -> list[Item]:
    """Active items at or below their reorder level."""
    return (
        db.session.query(Item)
        .filter(Item.is_active.is_(True), Item.current_stock <= Item.reorder_level)
        .order_by(Item.current_stock.asc(), Item.name.asc())
        .all()
    )


def _require_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def _check_name_free(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Item.id).filter(func.lower(Item.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Item.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("An item with this name already exists")


def _check_sku_free(sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Item.id).filter(Item.sku == sku)
    if exclude_id is not None:
        query = query.filter(Item.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("An item with this SKU already exists")


def generate_sku(category: Category | None) -> str:
    """
    <first 3 letters of category>-<NNN>, numbered by items in the category.

    Falls back to ITM-<last 6 digits of epoch ms> when the category name has
    no usable characters.
    """
    prefix = re.sub(r"[^A-Za-z0-9]", "", category.name)[:3].upper() if category else ""
    if not prefix:
        return f"ITM-{str(int(time.time() * 1000))[-6:]}"

    n = db.session.query(Item).filter(Item.category_id == category.id).count() + 1
    sku = f"{prefix}-{n:03d}"
    # Purged items leave gaps; walk forward to the next free number
    while db.session.query(Item.id).filter(Item.sku == sku).first() is not None:
        n += 1
        sku = f"{prefix}-{n:03d}"
    return sku


# =============================================================================
# CREATE / UPDATE
# =============================================================================

def create_item(patch: dict, user_id: int | None = None) -> Item:
    """
    Create an item from an unvalidated payload.

    Initial stock (current_stock in the payload) is booked as a STOCK_IN
    "Initial stock entry" with reference Initial-<sku>.

    Raises:
        ValidationError: bad or missing fields
        NotFoundError: unknown category
        ConflictError: duplicate name or SKU
    """
    clean = validate_payload(model=Item, payload=patch, policy=ITEM_POLICY, partial=False)
    enforce_rules_item(clean)

    initial_stock = clean.pop("current_stock", None) or 0

    with write_transaction():
        category = _require_category(clean["category_id"])
        _check_name_free(clean["name"])

        if clean.get("sku"):
            _check_sku_free(clean["sku"])
        else:
            clean["sku"] = generate_sku(category)

        item = Item(current_stock=0, is_active=True)
        apply_item_patch(item, clean)
        db.session.add(item)
        db.session.flush()

        if initial_stock > 0:
            apply_delta(
                item_id=item.id,
                delta=initial_stock,
                entry_type=STOCK_IN,
                reason="Initial stock entry",
                user_id=user_id,
                reference=f"Initial-{item.sku}",
                commit=False,
            )

    current_app.logger.info("Item %s created with SKU %s", item.id, item.sku)
    return item


def update_item(item_id: int, patch: dict, user_id: int | None = None) -> Item:
    """
    Patch descriptive fields. A changed current_stock becomes an ADJUSTMENT
    entry ("Stock updated via edit form") rather than a direct write.
    """
    clean = validate_payload(model=Item, payload=patch, policy=ITEM_POLICY, partial=True)
    enforce_rules_item(clean)
    target_stock = clean.pop("current_stock", None)

    with write_transaction():
        item = load_item_for_update(item_id)

        if "name" in clean and clean["name"].lower() != item.name.lower():
            _check_name_free(clean["name"], exclude_id=item.id)
        if "sku" in clean and clean["sku"] != item.sku:
            _check_sku_free(clean["sku"], exclude_id=item.id)
        if "category_id" in clean:
            _require_category(clean["category_id"])

        apply_item_patch(item, clean)
        db.session.flush()

        if target_stock is not None and target_stock != item.current_stock:
            apply_delta(
                item_id=item.id,
                delta=target_stock - item.current_stock,
                entry_type=ADJUSTMENT,
                reason="Stock updated via edit form",
                user_id=user_id,
                commit=False,
            )

    return item


# =============================================================================
# STATUS / REMOVAL
# =============================================================================

def _audit(item: Item, reason: str, user_id: int | None) -> None:
    try:
        record_audit_marker(item=item, reason=reason, user_id=user_id)
    except Exception:
        current_app.logger.warning(
            "Failed to write audit entry for item %s (%s)", item.id, reason, exc_info=True
        )


def deactivate_item(item_id: int, user_id: int | None = None) -> Item:
    """Soft delete. History and stock stay untouched."""
    with write_transaction():
        item = load_item_for_update(item_id)
        if not item.is_active:
            raise ConflictError("This item is already deactivated")
        item.is_active = False
        db.session.flush()
        _audit(item, "Item deactivated", user_id)
    return item


def toggle_item_status(item_id: int, user_id: int | None = None) -> Item:
    with write_transaction():
        item = load_item_for_update(item_id)
        item.is_active = not item.is_active
        action = "activated" if item.is_active else "deactivated"
        db.session.flush()
        _audit(item, f"Item {action} via status toggle", user_id)
    return item


def count_related_rows(item_id: int) -> dict:
    return {
        "inventory_logs": db.session.query(InventoryLogEntry)
        .filter(InventoryLogEntry.item_id == item_id)
        .count(),
    }


def purge_item(item_id: int) -> None:
    """
    Hard delete. Only allowed for items without any ledger rows.

    Status changes write a zero-quantity ADJUSTMENT marker, so an item that
    was ever deactivated or toggled counts as having history and can only be
    deactivated from then on.
    """
    with write_transaction():
        item = load_item_for_update(item_id)
        related = count_related_rows(item.id)
        if any(related.values()):
            raise ConflictError(
                f"Cannot purge item with history ({related['inventory_logs']} inventory logs); deactivate it instead"
            )
        db.session.delete(item)

    current_app.logger.info("Item %s purged", item_id)


def remove_item(item_id: int, user_id: int | None = None) -> dict:
    """
    Deactivate when the item has history, purge when it has none.
    """
    item = get_item(item_id)
    related = count_related_rows(item.id)

    if any(related.values()):
        deactivate_item(item.id, user_id=user_id)
        return {
            "deactivated": True,
            "message": (
                f'Item "{item.name}" has been deactivated because it has related records '
                f"({related['inventory_logs']} inventory logs)"
            ),
        }

    name = item.name
    purge_item(item.id)
    return {"deactivated": False, "message": f'Item "{name}" has been permanently deleted'}


# =============================================================================
# CATEGORIES
# =============================================================================

def list_categories(*, include_inactive: bool = False) -> list[Category]:
    query = db.session.query(Category)
    if not include_inactive:
        query = query.filter(Category.is_active.is_(True))
    return query.order_by(Category.name.asc()).all()


def create_category(*, name: str, description: str | None = None) -> Category:
    name = require_text(name, "name")
    if len(name) > 128:
        raise ValidationError("name exceeds max length 128")

    with write_transaction():
        exists = (
            db.session.query(Category.id)
            .filter(func.lower(Category.name) == name.lower())
            .first()
        )
        if exists is not None:
            raise ConflictError("A category with this name already exists")
        category = Category(name=name, description=description or None, is_active=True)
        db.session.add(category)
        db.session.flush()
    return category


def deactivate_category(category_id: int) -> Category:
    with write_transaction():
        category = _require_category(category_id)
        if not category.is_active:
            raise ConflictError("This category is already deactivated")
        category.is_active = False
    return category


def purge_category(category_id: int) -> None:
    with write_transaction():
        category = _require_category(category_id)
        item_count = db.session.query(Item).filter(Item.category_id == category.id).count()
        if item_count:
            raise ConflictError(
                f"Cannot delete category with {item_count} items; deactivate it instead"
            )
        db.session.delete(category)

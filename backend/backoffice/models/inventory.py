from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Category(db.Model):
    """Item category (reference data; CRUD lives outside the ledger core)."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)


class Item(db.Model):
    """
    A stocked good.

    STOCK DESIGN DECISION:
    current_stock is a denormalized running total of the inventory log so that
    stock reads are O(1). It is written ONLY by stock_service.apply_delta, which
    appends the matching InventoryLogEntry in the same transaction.
    Descriptive fields (name, prices, unit, ...) are edited directly.

    version_id guards against lost updates when two writers race on one row.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_items_sku"),
        db.Index("ix_items_name", "name"),
        db.Index("ix_items_category_active", "category_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)

    unit = db.Column(db.String(16), nullable=False)

    # Authoritative storage in cents
    cost_price_cents = db.Column(db.Integer, nullable=False)
    selling_price_cents = db.Column(db.Integer, nullable=True)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("items", lazy=True))
    supplier = db.relationship("Supplier")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} sku={self.sku!r} name={self.name!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "description": self.description,
            "category_id": self.category_id,
            "supplier_id": self.supplier_id,
            "unit": self.unit,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "current_stock": self.current_stock,
            "reorder_level": self.reorder_level,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryLogEntry(db.Model):
    """
    Immutable stock movement.

    INVARIANT: new_stock = previous_stock + quantity, and the newest entry for
    an item carries the item's current_stock. Rows are never updated or deleted;
    corrections are new entries.
    """
    __tablename__ = "inventory_log_entries"
    __table_args__ = (
        db.Index("ix_invlog_item_created", "item_id", "created_at"),
        db.Index("ix_invlog_type_created", "type", "created_at"),
        db.Index("ix_invlog_reference_type", "reference", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=True)

    # STOCK_IN, STOCK_OUT, ADJUSTMENT, WASTE
    type = db.Column(db.String(16), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)

    # Free-form source id (sale id, "Initial-<sku>", supplier invoice, ...)
    reference = db.Column(db.String(64), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    item = db.relationship("Item", backref=db.backref("inventory_logs", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "user_id": self.user_id,
            "type": self.type,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reason": self.reason,
            "reference": self.reference,
            "created_at": to_utc_z(self.created_at),
        }

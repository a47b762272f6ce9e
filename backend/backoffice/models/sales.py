from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Sale(db.Model):
    """
    Sale revenue event.

    Items consumed by a sale are NOT stored as line rows: they are the
    STOCK_OUT inventory log entries whose reference equals str(sale.id).
    A sale is only ever mutated to flip status to REFUNDED.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("sale_number", name="uq_sales_sale_number"),
        db.Index("ix_sales_status_date", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "SALE-20260118-123456")
    sale_number = db.Column(db.String(64), nullable=False)

    user_id = db.Column(db.Integer, nullable=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # All amounts in cents
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    final_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # CASH, CARD, DIGITAL_WALLET, BANK_TRANSFER
    payment_method = db.Column(db.String(32), nullable=False)

    # COMPLETED, REFUNDED
    status = db.Column(db.String(16), nullable=False, default="COMPLETED", index=True)

    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_number": self.sale_number,
            "user_id": self.user_id,
            "sale_date": to_utc_z(self.sale_date),
            "total_amount_cents": self.total_amount_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "final_amount_cents": self.final_amount_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

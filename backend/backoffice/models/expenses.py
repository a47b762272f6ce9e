from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class ExpenseCategory(db.Model):
    __tablename__ = "expense_categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=True)

    # STOCK, PAYROLL, OPERATIONAL, UTILITIES, RENT, MAINTENANCE,
    # INSURANCE, TAXES, MARKETING, OTHER
    type = db.Column(db.String(32), nullable=False, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "is_active": self.is_active,
        }


class Expense(db.Model):
    """
    Cost event outside the stock ledger.

    Only APPROVED/PAID expenses count as incurred; PENDING/APPROVED ones are
    still owed and show up as liabilities on the balance sheet.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_status_date", "status", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    expense_category_id = db.Column(db.Integer, db.ForeignKey("expense_categories.id"), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    expense_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # PENDING, APPROVED, REJECTED, PAID
    status = db.Column(db.String(16), nullable=False, default="PENDING")

    # Links into payroll/purchasing (owned by external modules)
    payroll_id = db.Column(db.Integer, db.ForeignKey("payrolls.id"), nullable=True)
    employee_id = db.Column(db.Integer, nullable=True)
    purchase_id = db.Column(db.Integer, nullable=True)

    supplier_info = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    expense_category = db.relationship("ExpenseCategory", backref=db.backref("expenses", lazy=True))
    payroll = db.relationship("Payroll")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_category_id": self.expense_category_id,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "expense_date": to_utc_z(self.expense_date),
            "status": self.status,
            "payroll_id": self.payroll_id,
            "employee_id": self.employee_id,
            "purchase_id": self.purchase_id,
            "supplier_info": self.supplier_info,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class Payroll(db.Model):
    """Payroll run for one employee; read by the balance sheet only."""
    __tablename__ = "payrolls"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, nullable=False, index=True)
    period = db.Column(db.DateTime(timezone=True), nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    # PENDING, APPROVED, PAID
    status = db.Column(db.String(16), nullable=False, default="PENDING")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

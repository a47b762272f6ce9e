# Overview: Expense categories and expense records; read by the reporting engine.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Expense, ExpenseCategory, Payroll
from ..validation import (
    NotFoundError,
    ValidationError,
    require_non_negative_int,
    require_positive_int,
    require_text,
)
from .concurrency import write_transaction
from backoffice.time_utils import utcnow


EXPENSE_CATEGORY_TYPES = (
    "STOCK",
    "PAYROLL",
    "OPERATIONAL",
    "UTILITIES",
    "RENT",
    "MAINTENANCE",
    "INSURANCE",
    "TAXES",
    "MARKETING",
    "OTHER",
)

EXPENSE_STATUSES = ("PENDING", "APPROVED", "REJECTED", "PAID")
PAYROLL_STATUSES = ("PENDING", "APPROVED", "PAID")

# Statuses that count as incurred cost vs. still owed
INCURRED_STATUSES = ("APPROVED", "PAID")
OUTSTANDING_STATUSES = ("PENDING", "APPROVED")

DEFAULT_EXPENSE_CATEGORIES = [
    ("Stock Purchase", "STOCK", "Inventory and ingredient purchases"),
    ("Staff Salaries", "PAYROLL", "Employee salaries and wages"),
    ("Utilities", "UTILITIES", "Electricity, water, gas"),
    ("Rent", "RENT", "Premises rent"),
    ("Maintenance", "MAINTENANCE", "Repairs and upkeep"),
    ("Marketing", "MARKETING", "Advertising and promotions"),
    ("Operational", "OPERATIONAL", "Day-to-day running costs"),
    ("Insurance", "INSURANCE", "Insurance premiums"),
    ("Taxes", "TAXES", "Tax payments"),
    ("Other", "OTHER", "Miscellaneous expenses"),
]


def ensure_default_expense_categories() -> int:
    """Idempotent seed. Returns how many categories were created."""
    existing = {name for (name,) in db.session.query(ExpenseCategory.name).all()}
    created = 0
    for name, type_, description in DEFAULT_EXPENSE_CATEGORIES:
        if name in existing:
            continue
        db.session.add(ExpenseCategory(name=name, type=type_, description=description, is_active=True))
        created += 1
    if created:
        db.session.commit()
    return created


def create_expense(
    *,
    expense_category_id: int,
    description: str,
    amount_cents,
    expense_date: datetime | None = None,
    tax_amount_cents=0,
    status: str = "PENDING",
    supplier_info: str | None = None,
    employee_id: int | None = None,
    payroll_id: int | None = None,
    purchase_id: int | None = None,
    notes: str | None = None,
) -> Expense:
    description = require_text(description, "description")
    amount_cents = require_positive_int(amount_cents, "amount_cents")
    tax_amount_cents = require_non_negative_int(tax_amount_cents or 0, "tax_amount_cents")
    if status not in EXPENSE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(EXPENSE_STATUSES)}")

    with write_transaction():
        category = db.session.get(ExpenseCategory, expense_category_id)
        if category is None or not category.is_active:
            raise NotFoundError("Expense category not found")

        expense = Expense(
            expense_category_id=category.id,
            description=description,
            amount_cents=amount_cents,
            tax_amount_cents=tax_amount_cents,
            expense_date=expense_date or utcnow(),
            status=status,
            supplier_info=supplier_info,
            employee_id=employee_id,
            payroll_id=payroll_id,
            purchase_id=purchase_id,
            notes=notes,
        )
        db.session.add(expense)
        db.session.flush()
    return expense


def set_expense_status(expense_id: int, status: str) -> Expense:
    if status not in EXPENSE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(EXPENSE_STATUSES)}")

    with write_transaction():
        expense = db.session.get(Expense, expense_id)
        if expense is None:
            raise NotFoundError("Expense not found")
        expense.status = status
    return expense


def create_payroll(*, employee_id: int, period: datetime, total_amount_cents, status: str = "PENDING") -> Payroll:
    """Payroll rows are owned by the HR side; this exists for seeding and tests."""
    total_amount_cents = require_positive_int(total_amount_cents, "total_amount_cents")
    if status not in PAYROLL_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(PAYROLL_STATUSES)}")

    with write_transaction():
        payroll = Payroll(
            employee_id=employee_id,
            period=period,
            total_amount_cents=total_amount_cents,
            status=status,
        )
        db.session.add(payroll)
        db.session.flush()
    return payroll

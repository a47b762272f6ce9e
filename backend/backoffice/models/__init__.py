from .inventory import Category, Supplier, Item, InventoryLogEntry
from .sales import Sale
from .expenses import ExpenseCategory, Expense, Payroll

__all__ = [
    'Category', 'Supplier', 'Item', 'InventoryLogEntry',
    'Sale',
    'ExpenseCategory', 'Expense', 'Payroll',
]

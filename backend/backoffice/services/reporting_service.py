# Overview: Read-only financial aggregation over sales, the inventory ledger and expenses.

from __future__ import annotations

import functools
from collections import defaultdict
from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Category, Expense, ExpenseCategory, InventoryLogEntry, Item, Payroll, Sale
from ..validation import ValidationError
from .expense_service import INCURRED_STATUSES, OUTSTANDING_STATUSES
from .ledger_service import SALE_REASON_MARKER, STOCK_OUT
from .pricing import effective_selling_price_cents, margin_pct
from .sales_service import PAYMENT_METHODS, SALE_STATUS_COMPLETED
from backoffice.time_utils import date_key, end_of_day, start_of_day, to_utc_z, utcnow


class AggregationError(Exception):
    """Raised when a report query fails; the report is unavailable."""
    pass


PERIODS = ("today", "yesterday", "this_week", "last_week", "this_month", "last_month")

OTHER_EXPENSE_TYPES = ("UTILITIES", "RENT", "MAINTENANCE", "INSURANCE", "TAXES", "MARKETING", "OTHER")


def _aggregation(fn):
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise AggregationError(f"{fn.__name__} failed: {exc.__class__.__name__}") from exc
    return wrapper


# =============================================================================
# PERIODS
# =============================================================================

def resolve_period(period: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    """
    Map a period keyword to an inclusive [start, end] UTC range.

    Weeks start on Sunday. this_* periods end at the end of today.
    """
    today = (now or utcnow()).date()

    if period == "today":
        return start_of_day(today), end_of_day(today)

    if period == "yesterday":
        day = today - timedelta(days=1)
        return start_of_day(day), end_of_day(day)

    # date.weekday(): Monday=0 .. Sunday=6
    days_since_sunday = (today.weekday() + 1) % 7
    week_start = today - timedelta(days=days_since_sunday)

    if period == "this_week":
        return start_of_day(week_start), end_of_day(today)

    if period == "last_week":
        last_week_end = week_start - timedelta(days=1)
        return start_of_day(last_week_end - timedelta(days=6)), end_of_day(last_week_end)

    if period == "this_month":
        return start_of_day(today.replace(day=1)), end_of_day(today)

    if period == "last_month":
        last_month_end = today.replace(day=1) - timedelta(days=1)
        return start_of_day(last_month_end.replace(day=1)), end_of_day(last_month_end)

    raise ValidationError(f"period must be one of: {', '.join(PERIODS)}")


# =============================================================================
# SOURCE QUERIES
# =============================================================================

def _completed_sales(start: datetime | None, end: datetime):
    query = db.session.query(Sale).filter(Sale.status == SALE_STATUS_COMPLETED, Sale.sale_date <= end)
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def _sale_ledger_rows(start: datetime, end: datetime):
    """Sale-driven STOCK_OUT entries with their item and category."""
    return (
        db.session.query(InventoryLogEntry, Item, Category)
        .join(Item, InventoryLogEntry.item_id == Item.id)
        .outerjoin(Category, Item.category_id == Category.id)
        .filter(
            InventoryLogEntry.type == STOCK_OUT,
            InventoryLogEntry.reason.contains(SALE_REASON_MARKER),
            InventoryLogEntry.created_at >= start,
            InventoryLogEntry.created_at <= end,
        )
        .order_by(InventoryLogEntry.created_at.asc(), InventoryLogEntry.id.asc())
        .all()
    )


def _line_figures(entry: InventoryLogEntry, item: Item) -> tuple[int, int, int, int]:
    """(quantity, unit selling price, revenue, cost) for one sale entry."""
    qty = abs(entry.quantity)
    price = effective_selling_price_cents(item.cost_price_cents, item.selling_price_cents)
    return qty, price, qty * price, qty * item.cost_price_cents


def _new_item_bucket(item: Item, category: Category | None, price: int) -> dict:
    return {
        "item_id": item.id,
        "item_name": item.name,
        "category": category.name if category else "Uncategorized",
        "unit": item.unit,
        "cost_price_cents": item.cost_price_cents,
        "selling_price_cents": price,
        "quantity_sold": 0,
        "revenue_cents": 0,
        "cost_cents": 0,
    }


def _finish_item_bucket(bucket: dict) -> dict:
    profit = bucket["revenue_cents"] - bucket["cost_cents"]
    bucket["profit_cents"] = profit
    bucket["profit_margin"] = margin_pct(profit, bucket["revenue_cents"])
    bucket["average_price_cents"] = (
        bucket["revenue_cents"] // bucket["quantity_sold"] if bucket["quantity_sold"] else 0
    )
    return bucket


# =============================================================================
# DAILY SUMMARY
# =============================================================================

@_aggregation
def daily_sales_summary(day: date | None = None) -> dict:
    """
    One calendar day: completed sales, per-item breakdown and totals.

    Revenue totals come from the sale rows (after discounts); item revenue is
    quantity x current effective selling price.
    """
    day = day or utcnow().date()
    start, end = start_of_day(day), end_of_day(day)

    sales = _completed_sales(start, end)

    items: dict[int, dict] = {}
    for entry, item, category in _sale_ledger_rows(start, end):
        qty, price, revenue, cost = _line_figures(entry, item)
        bucket = items.setdefault(item.id, _new_item_bucket(item, category, price))
        bucket["quantity_sold"] += qty
        bucket["revenue_cents"] += revenue
        bucket["cost_cents"] += cost

    item_summary = [_finish_item_bucket(b) for b in items.values()]

    revenue = sum(s.final_amount_cents for s in sales)
    cost = sum(b["cost_cents"] for b in item_summary)
    return {
        "date": day.isoformat(),
        "sales": [s.to_dict() for s in sales],
        "item_summary": item_summary,
        "totals": {
            "revenue_cents": revenue,
            "cost_cents": cost,
            "profit_cents": revenue - cost,
            "sales_count": len(sales),
        },
    }


# =============================================================================
# PROFIT ANALYSIS
# =============================================================================

@_aggregation
def profit_analysis(period: str = "today", now: datetime | None = None) -> dict:
    """
    Daily buckets (revenue from sales, cost from the ledger) plus per-item
    buckets for the period. Days present in only one source count the other
    side as zero.
    """
    start, end = resolve_period(period, now)

    revenue_by_day: dict[str, dict] = defaultdict(lambda: {"revenue_cents": 0, "sales_count": 0})
    for sale in _completed_sales(start, end):
        bucket = revenue_by_day[date_key(sale.sale_date)]
        bucket["revenue_cents"] += sale.final_amount_cents
        bucket["sales_count"] += 1

    cost_by_day: dict[str, dict] = defaultdict(lambda: {"cost_cents": 0, "items_sold": 0})
    items: dict[int, dict] = {}
    for entry, item, category in _sale_ledger_rows(start, end):
        qty, price, revenue, cost = _line_figures(entry, item)

        day_bucket = cost_by_day[date_key(entry.created_at)]
        day_bucket["cost_cents"] += cost
        day_bucket["items_sold"] += qty

        bucket = items.setdefault(item.id, _new_item_bucket(item, category, price))
        bucket["quantity_sold"] += qty
        bucket["revenue_cents"] += revenue
        bucket["cost_cents"] += cost

    daily = []
    for key in sorted(set(revenue_by_day) | set(cost_by_day)):
        rev = revenue_by_day.get(key, {"revenue_cents": 0, "sales_count": 0})
        cst = cost_by_day.get(key, {"cost_cents": 0, "items_sold": 0})
        profit = rev["revenue_cents"] - cst["cost_cents"]
        daily.append({
            "date": key,
            "revenue_cents": rev["revenue_cents"],
            "cost_cents": cst["cost_cents"],
            "profit_cents": profit,
            "profit_margin": margin_pct(profit, rev["revenue_cents"]),
            "sales_count": rev["sales_count"],
            "items_sold": cst["items_sold"],
        })

    return {
        "period": period,
        "start_date": to_utc_z(start),
        "end_date": to_utc_z(end),
        "daily": daily,
        "items": sorted(
            (_finish_item_bucket(b) for b in items.values()),
            key=lambda b: b["revenue_cents"],
            reverse=True,
        ),
    }


@_aggregation
def category_profit_analysis(period: str = "today", now: datetime | None = None) -> list[dict]:
    start, end = resolve_period(period, now)

    groups: dict[str, dict] = {}
    for entry, item, category in _sale_ledger_rows(start, end):
        qty, _price, revenue, cost = _line_figures(entry, item)
        name = category.name if category else "Uncategorized"
        group = groups.setdefault(name, {
            "category_name": name,
            "item_ids": set(),
            "total_quantity": 0,
            "total_revenue_cents": 0,
            "total_cost_cents": 0,
        })
        group["item_ids"].add(item.id)
        group["total_quantity"] += qty
        group["total_revenue_cents"] += revenue
        group["total_cost_cents"] += cost

    rows = []
    for group in groups.values():
        profit = group["total_revenue_cents"] - group["total_cost_cents"]
        rows.append({
            "category_name": group["category_name"],
            "item_count": len(group["item_ids"]),
            "total_quantity": group["total_quantity"],
            "total_revenue_cents": group["total_revenue_cents"],
            "total_cost_cents": group["total_cost_cents"],
            "total_profit_cents": profit,
            "profit_margin": margin_pct(profit, group["total_revenue_cents"]),
        })
    rows.sort(key=lambda r: r["total_revenue_cents"], reverse=True)
    return rows


def _month_start(day: date, months_back: int) -> date:
    year, month = day.year, day.month - months_back
    while month <= 0:
        month += 12
        year -= 1
    return date(year, month, 1)


@_aggregation
def monthly_profit_trends(months: int = 6, now: datetime | None = None) -> list[dict]:
    """Revenue vs sale-driven cost per calendar month, oldest first."""
    if months <= 0:
        raise ValidationError("months must be greater than 0")

    now = now or utcnow()
    start = start_of_day(_month_start(now.date(), months))
    end = now

    revenue: dict[str, dict] = defaultdict(lambda: {"revenue_cents": 0, "sales_count": 0})
    for sale in _completed_sales(start, end):
        bucket = revenue[date_key(sale.sale_date)[:7]]
        bucket["revenue_cents"] += sale.final_amount_cents
        bucket["sales_count"] += 1

    costs: dict[str, int] = defaultdict(int)
    for entry, item, _category in _sale_ledger_rows(start, end):
        costs[date_key(entry.created_at)[:7]] += abs(entry.quantity) * item.cost_price_cents

    trends = []
    for month in sorted(set(revenue) | set(costs)):
        rev = revenue.get(month, {"revenue_cents": 0, "sales_count": 0})
        cost = costs.get(month, 0)
        profit = rev["revenue_cents"] - cost
        trends.append({
            "month": month,
            "revenue_cents": rev["revenue_cents"],
            "cost_cents": cost,
            "profit_cents": profit,
            "profit_margin": margin_pct(profit, rev["revenue_cents"]),
            "sales_count": rev["sales_count"],
        })
    return trends


# =============================================================================
# COMPREHENSIVE ANALYSIS
# =============================================================================

def _sales_by_day(start: datetime, end: datetime) -> dict[str, dict]:
    days: dict[str, dict] = {}
    for sale in _completed_sales(start, end):
        key = date_key(sale.sale_date)
        bucket = days.setdefault(key, {
            "total_sales": 0,
            "total_revenue_cents": 0,
            "total_discounts_cents": 0,
            "payments": {method: 0 for method in PAYMENT_METHODS},
        })
        bucket["total_sales"] += 1
        bucket["total_revenue_cents"] += sale.final_amount_cents
        bucket["total_discounts_cents"] += sale.discount_amount_cents
        if sale.payment_method in bucket["payments"]:
            bucket["payments"][sale.payment_method] += sale.final_amount_cents
    return days


def _expenses_by_day(start: datetime, end: datetime) -> dict[str, dict]:
    rows = (
        db.session.query(Expense.expense_date, Expense.amount_cents, ExpenseCategory.type)
        .join(ExpenseCategory, Expense.expense_category_id == ExpenseCategory.id)
        .filter(
            Expense.expense_date >= start,
            Expense.expense_date <= end,
            Expense.status.in_(INCURRED_STATUSES),
        )
        .all()
    )
    days: dict[str, dict] = {}
    for expense_date, amount, type_ in rows:
        bucket = days.setdefault(date_key(expense_date), {
            "total": 0, "stock": 0, "payroll": 0, "operational": 0, "other": 0,
        })
        bucket["total"] += amount
        if type_ == "STOCK":
            bucket["stock"] += amount
        elif type_ == "PAYROLL":
            bucket["payroll"] += amount
        elif type_ == "OPERATIONAL":
            bucket["operational"] += amount
        elif type_ in OTHER_EXPENSE_TYPES:
            bucket["other"] += amount
    return days


def _cogs_by_day(start: datetime, end: datetime) -> dict[str, int]:
    days: dict[str, int] = defaultdict(int)
    for entry, item, _category in _sale_ledger_rows(start, end):
        days[date_key(entry.created_at)] += abs(entry.quantity) * item.cost_price_cents
    return days


@_aggregation
def comprehensive_analysis(period: str = "today", now: datetime | None = None) -> dict:
    """
    Revenue, direct costs and all incurred expenses per day.

    direct costs  = sale-driven COGS + STOCK-type expenses
    total expenses = direct costs + every APPROVED/PAID expense
    (STOCK expenses therefore count twice in total expenses.)
    """
    start, end = resolve_period(period, now)

    sales = _sales_by_day(start, end)
    expenses = _expenses_by_day(start, end)
    cogs = _cogs_by_day(start, end)

    empty_sales = {
        "total_sales": 0,
        "total_revenue_cents": 0,
        "total_discounts_cents": 0,
        "payments": {method: 0 for method in PAYMENT_METHODS},
    }
    empty_expenses = {"total": 0, "stock": 0, "payroll": 0, "operational": 0, "other": 0}

    daily = []
    for key in sorted(set(sales) | set(expenses) | set(cogs), reverse=True):
        s = sales.get(key, empty_sales)
        e = expenses.get(key, empty_expenses)
        c = cogs.get(key, 0)

        revenue = s["total_revenue_cents"]
        direct_costs = c + e["stock"]
        total_expenses = e["total"] + direct_costs
        gross_profit = revenue - direct_costs
        net_profit = revenue - total_expenses

        daily.append({
            "date": key,
            "total_sales": s["total_sales"],
            "total_revenue_cents": revenue,
            "direct_costs_cents": direct_costs,
            "total_expenses_cents": total_expenses,
            "gross_profit_cents": gross_profit,
            "net_profit_cents": net_profit,
            "gross_margin": margin_pct(gross_profit, revenue),
            "net_margin": margin_pct(net_profit, revenue),
            "payment_breakdown": {
                "cash": s["payments"]["CASH"],
                "card": s["payments"]["CARD"],
                "digital_wallet": s["payments"]["DIGITAL_WALLET"],
                "bank_transfer": s["payments"]["BANK_TRANSFER"],
            },
            "expense_breakdown": {
                "cost_of_goods": c,
                "stock_expenses": e["stock"],
                "payroll_expenses": e["payroll"],
                "operational_expenses": e["operational"],
                "other_expenses": e["other"],
            },
            "total_discounts_cents": s["total_discounts_cents"],
        })

    total_revenue = sum(d["total_revenue_cents"] for d in daily)
    total_direct = sum(d["direct_costs_cents"] for d in daily)
    total_expenses = sum(d["total_expenses_cents"] for d in daily)
    gross = total_revenue - total_direct
    net = total_revenue - total_expenses

    return {
        "period": period,
        "start_date": to_utc_z(start),
        "end_date": to_utc_z(end),
        "summary": {
            "total_revenue_cents": total_revenue,
            "total_direct_costs_cents": total_direct,
            "total_expenses_cents": total_expenses,
            "total_gross_profit_cents": gross,
            "total_net_profit_cents": net,
            "gross_margin": margin_pct(gross, total_revenue),
            "net_margin": margin_pct(net, total_revenue),
            "total_sales": sum(d["total_sales"] for d in daily),
            "days_with_data": len(daily),
        },
        "daily": daily,
    }


# =============================================================================
# BALANCE SHEET
# =============================================================================

def _scalar_sum(query) -> int:
    return int(query.scalar() or 0)


def _partnership_split(retained: int) -> dict:
    """Integer split of retained earnings; the last partner absorbs rounding."""
    shares = current_app.config.get("PARTNERSHIP_SHARES") or {}
    if sum(shares.values()) != 100:
        raise ValidationError("PARTNERSHIP_SHARES must total 100")

    split = {}
    allocated = 0
    names = list(shares)
    for i, name in enumerate(names):
        if i == len(names) - 1:
            amount = retained - allocated
        else:
            amount = retained * shares[name] // 100
            allocated += amount
        split[name] = {"percent": shares[name], "amount_cents": amount}
    return {"shares": split, "total_distributable_cents": retained}


@_aggregation
def balance_sheet(as_of: date | datetime | None = None) -> dict:
    """
    Snapshot as of a date (end of that day).

    Inventory value is always the live stock x cost over active items; every
    other figure is cumulative up to as_of. balance_check is reported as-is,
    a non-zero value is not an error.
    """
    if as_of is None:
        as_of_dt = utcnow()
    elif isinstance(as_of, datetime):
        as_of_dt = as_of
    else:
        as_of_dt = end_of_day(as_of)

    inventory = _scalar_sum(
        db.session.query(func.sum(Item.current_stock * Item.cost_price_cents))
        .filter(Item.is_active.is_(True))
    )
    cash = _scalar_sum(
        db.session.query(
            func.sum(case((Sale.payment_method == "CASH", Sale.final_amount_cents), else_=0))
        ).filter(Sale.sale_date <= as_of_dt, Sale.status == SALE_STATUS_COMPLETED)
    )
    accounts_payable = _scalar_sum(
        db.session.query(func.sum(Expense.amount_cents))
        .filter(Expense.expense_date <= as_of_dt, Expense.status.in_(OUTSTANDING_STATUSES))
    )
    payroll_payable = _scalar_sum(
        db.session.query(func.sum(Payroll.total_amount_cents))
        .filter(Payroll.period <= as_of_dt, Payroll.status.in_(OUTSTANDING_STATUSES))
    )
    revenue = _scalar_sum(
        db.session.query(func.sum(Sale.final_amount_cents))
        .filter(Sale.sale_date <= as_of_dt, Sale.status == SALE_STATUS_COMPLETED)
    )
    incurred = _scalar_sum(
        db.session.query(func.sum(Expense.amount_cents))
        .filter(Expense.expense_date <= as_of_dt, Expense.status.in_(INCURRED_STATUSES))
    )

    total_assets = inventory + cash
    total_liabilities = accounts_payable + payroll_payable
    retained = revenue - incurred

    return {
        "as_of_date": date_key(as_of_dt),
        "assets": {
            "current_assets": {
                "inventory_cents": inventory,
                "cash_cents": cash,
                "total_cents": total_assets,
            },
            "total_assets_cents": total_assets,
        },
        "liabilities": {
            "current_liabilities": {
                "accounts_payable_cents": accounts_payable,
                "payroll_payable_cents": payroll_payable,
                "total_cents": total_liabilities,
            },
            "total_liabilities_cents": total_liabilities,
        },
        "equity": {
            "retained_earnings_cents": retained,
            "total_equity_cents": retained,
        },
        "partnership_distribution": _partnership_split(retained),
        "balance_check_cents": total_assets - total_liabilities - retained,
    }

"""
Reporting engine: period resolution, profit views and the balance sheet.
"""

from datetime import date, datetime

import pytest
from sqlalchemy.exc import OperationalError

from backoffice import actions
from backoffice.extensions import db
from backoffice.models import Category, Expense, ExpenseCategory
from backoffice.services import adjustment_service, expense_service, reporting_service, sales_service
from backoffice.services.reporting_service import AggregationError, resolve_period
from backoffice.validation import ValidationError


def _expense_category_id(name):
    return db.session.query(ExpenseCategory).filter_by(name=name).one().id


def _expense(name, amount, status, when=None):
    return expense_service.create_expense(
        expense_category_id=_expense_category_id(name),
        description=f"{name} {status}",
        amount_cents=amount,
        status=status,
        expense_date=when,
    )


def _sell(item, quantity, payment_method="CASH", **kwargs):
    return sales_service.create_sale(
        items=[{"item_id": item.id, "quantity": quantity}],
        payment_method=payment_method,
        **kwargs,
    )


class TestResolvePeriod:
    NOW = datetime(2026, 10, 14, 15, 30)  # a Wednesday

    @pytest.mark.parametrize(
        "period,start,end",
        [
            ("today", date(2026, 10, 14), date(2026, 10, 14)),
            ("yesterday", date(2026, 10, 13), date(2026, 10, 13)),
            ("this_week", date(2026, 10, 11), date(2026, 10, 14)),
            ("last_week", date(2026, 10, 4), date(2026, 10, 10)),
            ("this_month", date(2026, 10, 1), date(2026, 10, 14)),
            ("last_month", date(2026, 9, 1), date(2026, 9, 30)),
        ],
    )
    def test_ranges(self, period, start, end):
        range_start, range_end = resolve_period(period, self.NOW)

        assert range_start == datetime(start.year, start.month, start.day)
        assert range_end.date() == end
        assert (range_end.hour, range_end.minute, range_end.second) == (23, 59, 59)

    def test_week_starting_on_sunday(self):
        start, _ = resolve_period("this_week", datetime(2026, 10, 18, 9, 0))
        assert start == datetime(2026, 10, 18)

    def test_last_month_across_new_year(self):
        start, end = resolve_period("last_month", datetime(2026, 1, 5))
        assert start == datetime(2025, 12, 1)
        assert end.date() == date(2025, 12, 31)

    def test_unknown_period(self):
        with pytest.raises(ValidationError):
            resolve_period("fortnight")


class TestProfitViews:
    def test_report_uses_same_price_fallback_as_sale(self, item):
        sale = _sell(item, 2)

        report = reporting_service.profit_analysis("today")

        assert sale.final_amount_cents == 2600
        [row] = report["items"]
        assert row["selling_price_cents"] == 1300
        assert row["revenue_cents"] == 2600
        assert row["cost_cents"] == 2000
        assert row["profit_cents"] == 600
        assert row["average_price_cents"] == 1300
        [day] = report["daily"]
        assert day["revenue_cents"] == 2600
        assert day["cost_cents"] == 2000
        assert day["items_sold"] == 2

    def test_usage_and_waste_are_not_cost_of_goods(self, item):
        _sell(item, 1)
        adjustment_service.record_usage(item_id=item.id, quantity=1, usage_type="KITCHEN")
        adjustment_service.record_waste(item_id=item.id, quantity=1, reason="Spoiled")

        summary = reporting_service.daily_sales_summary()

        assert summary["totals"] == {
            "revenue_cents": 1300,
            "cost_cents": 1000,
            "profit_cents": 300,
            "sales_count": 1,
        }
        assert [row["quantity_sold"] for row in summary["item_summary"]] == [1]

    def test_refunded_sale_drops_revenue_but_keeps_cost(self, item):
        result = _sell(item, 1)
        sales_service.refund_sale(sale_id=result.sale.id)

        totals = reporting_service.daily_sales_summary()["totals"]

        assert totals["sales_count"] == 0
        assert totals["revenue_cents"] == 0
        assert totals["cost_cents"] == 1000

    def test_category_breakdown(self, make_item):
        food = Category(name="Food", is_active=True)
        db.session.add(food)
        db.session.commit()

        cola = make_item(name="Cola", selling_price_cents=300, cost_price_cents=100, current_stock=20)
        juice = make_item(name="Juice", selling_price_cents=400, cost_price_cents=200, current_stock=20)
        fries = make_item(name="Fries", category_id=food.id, selling_price_cents=500, cost_price_cents=150)
        _sell(cola, 2)
        _sell(juice, 1)
        _sell(fries, 1)

        rows = reporting_service.category_profit_analysis("today")

        assert [r["category_name"] for r in rows] == ["Beverages", "Food"]
        beverages = rows[0]
        assert beverages["item_count"] == 2
        assert beverages["total_quantity"] == 3
        assert beverages["total_revenue_cents"] == 1000
        assert beverages["total_cost_cents"] == 400
        assert beverages["total_profit_cents"] == 600
        assert beverages["profit_margin"] == 60.0

    def test_monthly_trends(self, item):
        _sell(item, 1, sale_date=datetime(2025, 3, 10, 12, 0))
        _sell(item, 2, sale_date=datetime(2025, 4, 2, 9, 0))

        trends = reporting_service.monthly_profit_trends(2, now=datetime(2025, 4, 15))

        assert [t["month"] for t in trends] == ["2025-03", "2025-04"]
        assert trends[0]["revenue_cents"] == 1300
        assert trends[1]["cost_cents"] == 2000
        assert trends[1]["profit_cents"] == 600

        with pytest.raises(ValidationError):
            reporting_service.monthly_profit_trends(0)


class TestComprehensiveAnalysis:
    def test_today_figures(self, item, expense_categories):
        _sell(item, 3)
        _expense("Operational", 500, "PAID")
        _expense("Stock Purchase", 200, "APPROVED")
        _expense("Operational", 999, "PENDING")

        summary = reporting_service.comprehensive_analysis("today")["summary"]

        assert summary["total_revenue_cents"] == 3900
        assert summary["total_direct_costs_cents"] == 3200
        assert summary["total_expenses_cents"] == 3900
        assert summary["total_gross_profit_cents"] == 700
        assert summary["total_net_profit_cents"] == 0
        assert summary["total_sales"] == 1
        assert summary["days_with_data"] == 1

    def test_days_from_any_source_are_included(self, item, expense_categories):
        _sell(item, 1, payment_method="CARD", sale_date=datetime(2025, 3, 10, 18, 0))
        _expense("Operational", 400, "PAID", when=datetime(2025, 3, 11, 10, 0))

        report = reporting_service.comprehensive_analysis("this_month", now=datetime(2025, 3, 20))

        assert [d["date"] for d in report["daily"]] == ["2025-03-11", "2025-03-10"]
        expense_day, sale_day = report["daily"]
        assert expense_day["total_revenue_cents"] == 0
        assert expense_day["net_profit_cents"] == -400
        assert expense_day["expense_breakdown"]["operational_expenses"] == 400
        assert sale_day["total_revenue_cents"] == 1300
        assert sale_day["direct_costs_cents"] == 1000
        assert sale_day["payment_breakdown"]["card"] == 1300
        assert sale_day["payment_breakdown"]["cash"] == 0
        assert report["summary"]["days_with_data"] == 2


class TestBalanceSheet:
    def test_figures_and_partnership_split(self, item, expense_categories):
        _sell(item, 3)
        _expense("Operational", 700, "PENDING")
        _expense("Operational", 300, "APPROVED")
        _expense("Operational", 200, "PAID")
        _expense("Operational", 50, "REJECTED")
        expense_service.create_payroll(employee_id=1, period=datetime(2025, 1, 31), total_amount_cents=1000)

        sheet = reporting_service.balance_sheet()

        assert sheet["assets"]["current_assets"] == {
            "inventory_cents": 2000,
            "cash_cents": 3900,
            "total_cents": 5900,
        }
        assert sheet["liabilities"]["current_liabilities"] == {
            "accounts_payable_cents": 1000,
            "payroll_payable_cents": 1000,
            "total_cents": 2000,
        }
        assert sheet["equity"]["retained_earnings_cents"] == 3400
        assert sheet["balance_check_cents"] == 500
        shares = sheet["partnership_distribution"]["shares"]
        assert shares["partner_1"] == {"percent": 40, "amount_cents": 1360}
        assert shares["partner_2"] == {"percent": 60, "amount_cents": 2040}

    def test_paying_an_expense_moves_it_out_of_payables(self, item, expense_categories):
        _sell(item, 3)
        expense = _expense("Utilities", 700, "PENDING")

        sheet = reporting_service.balance_sheet()
        assert sheet["liabilities"]["current_liabilities"]["accounts_payable_cents"] == 700
        assert sheet["equity"]["retained_earnings_cents"] == 3900

        expense_service.set_expense_status(expense.id, "APPROVED")
        sheet = reporting_service.balance_sheet()
        assert sheet["liabilities"]["current_liabilities"]["accounts_payable_cents"] == 700
        assert sheet["equity"]["retained_earnings_cents"] == 3200

        result = actions.set_expense_status(expense.id, "PAID")
        assert result["success"] is True
        assert result["expense"]["status"] == "PAID"

        sheet = reporting_service.balance_sheet()
        assert sheet["liabilities"]["current_liabilities"]["accounts_payable_cents"] == 0
        assert sheet["equity"]["retained_earnings_cents"] == 3200
        assert sheet["balance_check_cents"] == 5900 - 3200

    def test_expense_status_errors(self, expense_categories):
        expense = _expense("Rent", 500, "PENDING")

        with pytest.raises(ValidationError):
            expense_service.set_expense_status(expense.id, "SETTLED")
        assert actions.set_expense_status(98765, "PAID")["error"] == "not_found"
        assert db.session.get(Expense, expense.id).status == "PENDING"

    def test_last_partner_absorbs_rounding(self, app):
        split = reporting_service._partnership_split(3401)
        assert split["shares"]["partner_1"]["amount_cents"] == 1360
        assert split["shares"]["partner_2"]["amount_cents"] == 2041

    def test_historical_date_keeps_live_inventory(self, item):
        _sell(item, 3, payment_method="CASH")

        sheet = reporting_service.balance_sheet(date(2020, 1, 1))

        assert sheet["as_of_date"] == "2020-01-01"
        assert sheet["assets"]["current_assets"]["inventory_cents"] == 2000
        assert sheet["assets"]["current_assets"]["cash_cents"] == 0
        assert sheet["equity"]["retained_earnings_cents"] == 0


class TestAggregationFailure:
    def test_query_failure_is_report_unavailable(self, db_session, monkeypatch):
        def broken(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        monkeypatch.setattr(reporting_service, "_completed_sales", broken)

        with pytest.raises(AggregationError):
            reporting_service.profit_analysis("today")

        result = actions.profit_analysis("today")
        assert result["success"] is False
        assert result["error"] == "report_unavailable"

    def test_bad_period_is_validation_error(self, db_session):
        result = actions.comprehensive_analysis("decade")
        assert result["error"] == "validation_error"

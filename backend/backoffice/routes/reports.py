from flask import Blueprint, jsonify, request

from backoffice import actions
from backoffice.decorators import require_user
from backoffice.time_utils import parse_iso_date
from .responses import respond


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _date_arg(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_date(raw), None
    except ValueError:
        return None, (jsonify({"error": f"{name} must be an ISO-8601 date"}), 400)


@reports_bp.get("/daily-sales")
@require_user
def daily_sales_report():
    day, error = _date_arg("date")
    if error:
        return error
    return respond(actions.daily_sales_summary(day))


@reports_bp.get("/profit")
@require_user
def profit_report():
    period = request.args.get("period", "today")
    return respond(actions.profit_analysis(period))


@reports_bp.get("/category-profit")
@require_user
def category_profit_report():
    period = request.args.get("period", "today")
    return respond(actions.category_profit_analysis(period))


@reports_bp.get("/comprehensive")
@require_user
def comprehensive_report():
    period = request.args.get("period", "today")
    return respond(actions.comprehensive_analysis(period))


@reports_bp.get("/monthly-trends")
@require_user
def monthly_trends_report():
    months = request.args.get("months", default=6, type=int)
    return respond(actions.monthly_profit_trends(months))


@reports_bp.get("/balance-sheet")
@require_user
def balance_sheet_report():
    as_of, error = _date_arg("as_of")
    if error:
        return error
    return respond(actions.balance_sheet(as_of))

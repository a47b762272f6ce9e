# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/backoffice/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, current_app

from .. import actions
from ..decorators import require_user, current_user_id
from ..services import sales_service
from ..services.stock_service import InsufficientStockError
from ..validation import ValidationError, NotFoundError
from .responses import respond
from backoffice.time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@require_user
def create_sale_route():
    """
    Record a sale.

    Body:
        items: [{"item_id", "quantity", "selling_price_cents"?}]
        payment_method: CASH | CARD | DIGITAL_WALLET | BANK_TRANSFER
        discount_amount_cents, notes, sale_date (ISO-8601, optional)
    """
    data = request.get_json() or {}

    try:
        sale_date = parse_iso_datetime(data.get("sale_date"))
    except ValueError:
        return jsonify({"success": False, "error": "validation_error",
                        "message": "sale_date must be an ISO-8601 datetime"}), 400

    result = actions.create_sale(
        items=data.get("items") or [],
        payment_method=data.get("payment_method"),
        discount_amount_cents=data.get("discount_amount_cents", 0),
        notes=data.get("notes"),
        sale_date=sale_date,
        user_id=current_user_id(),
    )
    return respond(result, 201)


@sales_bp.post("/quick")
@require_user
def create_quick_sale_route():
    data = request.get_json() or {}
    result = actions.create_quick_sale(
        total_amount_cents=data.get("total_amount_cents"),
        payment_method=data.get("payment_method"),
        notes=data.get("notes"),
        user_id=current_user_id(),
    )
    return respond(result, 201)


@sales_bp.post("/quote")
@require_user
def quote_sale_route():
    """Price a cart without recording anything."""
    data = request.get_json() or {}
    try:
        quote = sales_service.quote_sale(
            data.get("items") or [],
            data.get("discount_amount_cents", 0),
        )
        return jsonify(quote), 200
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to quote sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/available-items")
@require_user
def available_items_route():
    return respond(actions.available_items())


@sales_bp.get("/<int:sale_id>")
@require_user
def get_sale_route(sale_id: int):
    return respond(actions.get_sale(sale_id))


@sales_bp.post("/<int:sale_id>/refund")
@require_user
def refund_sale_route(sale_id: int):
    data = request.get_json(silent=True) or {}
    result = actions.refund_sale(
        sale_id=sale_id,
        reason=data.get("reason"),
        user_id=current_user_id(),
    )
    return respond(result)

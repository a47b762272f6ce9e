# backend/backoffice/routes/inventory.py
"""
Inventory management routes: item catalog, stock movements and the ledger.

All routes require the X-User-Id header set by the auth layer.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- Ledger date filters are inclusive on both ends.
"""
from flask import Blueprint, request, jsonify, current_app

from .. import actions
from ..decorators import require_user, current_user_id
from ..services import items_service, ledger_service
from ..services.ledger_service import LedgerFilter
from ..validation import ValidationError, NotFoundError, ConflictError
from .responses import respond
from backoffice.time_utils import parse_iso_datetime


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _page_limit() -> int:
    default = current_app.config.get("LEDGER_PAGE_SIZE", 200)
    limit = request.args.get("limit", default=default, type=int)
    return max(1, min(limit, 1000))


def _service_error(e: Exception):
    if isinstance(e, NotFoundError):
        return jsonify({"error": str(e)}), 404
    if isinstance(e, ConflictError):
        return jsonify({"error": str(e)}), 409
    return jsonify({"error": str(e)}), 400


# =============================================================================
# ITEMS
# =============================================================================

@inventory_bp.get("/items")
@require_user
def list_items_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    category_id = request.args.get("category_id", type=int)
    items = items_service.list_items(include_inactive=include_inactive, category_id=category_id)
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200


@inventory_bp.get("/items/low-stock")
@require_user
def low_stock_route():
    items = items_service.low_stock_items()
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200


@inventory_bp.post("/items")
@require_user
def create_item_route():
    return respond(actions.create_item(request.get_json() or {}, user_id=current_user_id()), 201)


@inventory_bp.get("/items/<int:item_id>")
@require_user
def get_item_route(item_id: int):
    try:
        item = items_service.get_item(item_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"item": item.to_dict()}), 200


@inventory_bp.patch("/items/<int:item_id>")
@require_user
def update_item_route(item_id: int):
    return respond(actions.update_item(item_id, request.get_json() or {}, user_id=current_user_id()))


@inventory_bp.delete("/items/<int:item_id>")
@require_user
def remove_item_route(item_id: int):
    return respond(actions.remove_item(item_id, user_id=current_user_id()))


@inventory_bp.post("/items/<int:item_id>/toggle")
@require_user
def toggle_item_route(item_id: int):
    return respond(actions.toggle_item_status(item_id, user_id=current_user_id()))


# =============================================================================
# STOCK MOVEMENTS
# =============================================================================

@inventory_bp.post("/items/<int:item_id>/adjust")
@require_user
def adjust_route(item_id: int):
    data = request.get_json() or {}
    result = actions.record_adjustment(
        item_id=item_id,
        delta=data.get("delta"),
        reason=data.get("reason"),
        user_id=current_user_id(),
    )
    return respond(result)


@inventory_bp.post("/items/<int:item_id>/waste")
@require_user
def waste_route(item_id: int):
    data = request.get_json() or {}
    result = actions.record_waste(
        item_id=item_id,
        quantity=data.get("quantity"),
        reason=data.get("reason"),
        user_id=current_user_id(),
    )
    return respond(result)


@inventory_bp.post("/items/<int:item_id>/usage")
@require_user
def usage_route(item_id: int):
    data = request.get_json() or {}
    result = actions.record_usage(
        item_id=item_id,
        quantity=data.get("quantity"),
        usage_type=data.get("usage_type"),
        user_id=current_user_id(),
    )
    return respond(result)


@inventory_bp.post("/items/<int:item_id>/receive")
@require_user
def receive_route(item_id: int):
    data = request.get_json() or {}
    try:
        received_on = parse_iso_datetime(data.get("received_on"))
    except ValueError:
        return jsonify({"error": "received_on must be an ISO-8601 datetime"}), 400

    result = actions.receive_stock(
        item_id=item_id,
        quantity=data.get("quantity"),
        unit_cost_cents=data.get("unit_cost_cents"),
        supplier_invoice=data.get("supplier_invoice"),
        received_on=received_on,
        user_id=current_user_id(),
    )
    return respond(result)


# =============================================================================
# LEDGER
# =============================================================================

@inventory_bp.get("/ledger")
@require_user
def ledger_route():
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start and end must be ISO-8601 datetimes"}), 400

    types = [t for t in request.args.get("type", "").split(",") if t]
    unknown = [t for t in types if t not in ledger_service.ENTRY_TYPES]
    if unknown:
        return jsonify({"error": f"Unknown entry type(s): {', '.join(unknown)}"}), 400

    flt = LedgerFilter(
        item_id=request.args.get("item_id", type=int),
        types=types or None,
        start=start,
        end=end,
        reason_contains=request.args.get("reason") or None,
        reference=request.args.get("reference") or None,
        limit=_page_limit(),
        offset=max(0, request.args.get("offset", default=0, type=int)),
    )
    entries = ledger_service.query_entries(flt)
    return jsonify({
        "items": [e.to_dict() for e in entries],
        "count": len(entries),
        "total": ledger_service.count_entries(flt),
        "limit": flt.limit,
        "offset": flt.offset,
    }), 200


@inventory_bp.get("/items/<int:item_id>/consistency")
@require_user
def consistency_route(item_id: int):
    try:
        item = items_service.get_item(item_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(ledger_service.verify_item_consistency(item)), 200


# =============================================================================
# CATEGORIES
# =============================================================================

@inventory_bp.get("/categories")
@require_user
def list_categories_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    categories = items_service.list_categories(include_inactive=include_inactive)
    return jsonify({"items": [c.to_dict() for c in categories]}), 200


@inventory_bp.post("/categories")
@require_user
def create_category_route():
    data = request.get_json() or {}
    try:
        category = items_service.create_category(
            name=data.get("name"),
            description=data.get("description"),
        )
        return jsonify({"category": category.to_dict()}), 201
    except (ValidationError, NotFoundError, ConflictError) as e:
        return _service_error(e)


@inventory_bp.post("/categories/<int:category_id>/deactivate")
@require_user
def deactivate_category_route(category_id: int):
    try:
        category = items_service.deactivate_category(category_id)
        return jsonify({"category": category.to_dict()}), 200
    except (ValidationError, NotFoundError, ConflictError) as e:
        return _service_error(e)


@inventory_bp.delete("/categories/<int:category_id>")
@require_user
def purge_category_route(category_id: int):
    try:
        items_service.purge_category(category_id)
        return jsonify({"deleted": True}), 200
    except (ValidationError, NotFoundError, ConflictError) as e:
        return _service_error(e)

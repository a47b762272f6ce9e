# Overview: Maps action results to HTTP responses.

from flask import jsonify

ERROR_STATUS = {
    "validation_error": 400,
    "not_found": 404,
    "conflict": 409,
    "insufficient_stock": 409,
    "report_unavailable": 503,
    "internal_error": 500,
}


def respond(result: dict, success_status: int = 200):
    if result.get("success"):
        return jsonify(result), success_status
    return jsonify(result), ERROR_STATUS.get(result.get("error"), 500)

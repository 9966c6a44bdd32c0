"""
Payment estimate endpoints.

- POST /estimate        {"items": [...]}
- POST /estimate/mixed  {"items": [...], "currencies": [...], "prefer_native": bool}

Both run the resolver's pure planning step; nothing is minted.
"""

from flask import Blueprint, jsonify, request

from api.utils import (
    error_response,
    get_storefront,
    parse_currencies,
    parse_items,
    require_api_key,
    validate_json_schema,
)
from errors import DropMintError

estimates_bp = Blueprint("estimates", __name__, url_prefix="/estimate")


@estimates_bp.route("", methods=["POST"])
@require_api_key
def estimate_native():
    """Native value needed to mint every item natively."""
    data = request.get_json(silent=True)
    valid, error = validate_json_schema(data, {"items": list})
    if not valid:
        return jsonify({"error": error}), 400

    items, error = parse_items(data["items"])
    if error:
        return jsonify({"error": error}), 400

    resolver = get_storefront().resolver
    try:
        total = resolver.get_payment_estimate(items)
        plan = resolver.resolve(items, native_only=True)
    except DropMintError as e:
        return error_response(e)

    return jsonify({
        "native_total": total,
        "groups": [g.to_dict() for g in plan],
    })


@estimates_bp.route("/mixed", methods=["POST"])
@require_api_key
def estimate_mixed():
    """Per-currency totals and the execution groups for a mixed batch."""
    data = request.get_json(silent=True)
    valid, error = validate_json_schema(
        data,
        {"items": list},
        optional_fields={"currencies": list, "prefer_native": bool},
    )
    if not valid:
        return jsonify({"error": error}), 400

    items, error = parse_items(data["items"])
    if error:
        return jsonify({"error": error}), 400
    currencies, error = parse_currencies(data.get("currencies") or [])
    if error:
        return jsonify({"error": error}), 400
    prefer_native = data.get("prefer_native", True)

    try:
        estimate = get_storefront().resolver.get_mixed_payment_estimate(items, currencies, prefer_native)
    except DropMintError as e:
        return error_response(e)

    return jsonify(estimate.to_dict())

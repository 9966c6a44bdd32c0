"""
Shared utilities for the DropMint API.

This module contains common utilities, decorators, and helpers
used across all API blueprints.
"""

import re
import secrets
from functools import wraps
from typing import Any

from flask import current_app, jsonify, request

from errors import DropMintError, DropNotFoundError, UnknownCollectionError
from ledger import normalize_address
from resolver import BatchMintItem

# Bounded parameters
MAX_BATCH_ITEMS = 200
MAX_CURRENCIES = 20

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")

# Library error category -> HTTP status
STATUS_BY_CATEGORY = {
    "configuration": 400,
    "state": 400,
    "payment": 402,
    "settlement": 400,
    "access": 403,
}


# ============================================================
# Application State
# ============================================================

def get_storefront():
    """The Storefront bound to the current app."""
    return current_app.extensions["dropmint"]


def get_settings():
    return current_app.config["DROPMINT_SETTINGS"]


# ============================================================
# Validation Utilities
# ============================================================

def is_address(value: Any) -> bool:
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def validate_json_schema(
    data: dict[str, Any],
    required_fields: dict[str, type],
    optional_fields: dict[str, type] | None = None,
) -> tuple:
    """
    Validate JSON payload against a simple schema.

    Args:
        data: The JSON data to validate
        required_fields: Dict mapping field names to expected types
        optional_fields: Dict mapping optional field names to expected types

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(data, dict):
        return False, "Request body must be a JSON object"

    for field_name, expected_type in required_fields.items():
        if field_name not in data:
            return False, f"Missing required field: {field_name}"
        if not isinstance(data[field_name], expected_type):
            return False, f"Field '{field_name}' must be of type {expected_type.__name__}"

    if optional_fields:
        for field_name, expected_type in optional_fields.items():
            if field_name in data and data[field_name] is not None:
                if not isinstance(data[field_name], expected_type):
                    return False, f"Field '{field_name}' must be of type {expected_type.__name__}"

    return True, None


def parse_items(raw_items: list) -> tuple[list[BatchMintItem] | None, str | None]:
    """
    Parse a JSON list of {collection, token_id, amount} objects.

    Returns:
        Tuple of (items, error_message)
    """
    if not raw_items:
        return None, "items must not be empty"
    if len(raw_items) > MAX_BATCH_ITEMS:
        return None, f"At most {MAX_BATCH_ITEMS} items per request"

    items = []
    for index, raw in enumerate(raw_items):
        valid, error = validate_json_schema(
            raw, {"collection": str, "token_id": int, "amount": int}
        )
        if not valid:
            return None, f"items[{index}]: {error}"
        if not is_address(raw["collection"]):
            return None, f"items[{index}]: collection is not a valid address"
        items.append(BatchMintItem.from_dict(raw))
    return items, None


def parse_currencies(raw: list) -> tuple[list[str] | None, str | None]:
    if len(raw) > MAX_CURRENCIES:
        return None, f"At most {MAX_CURRENCIES} currencies per request"
    for index, currency in enumerate(raw):
        if not is_address(currency):
            return None, f"currencies[{index}] is not a valid address"
    return [normalize_address(currency) for currency in raw], None


# ============================================================
# Error Responses
# ============================================================

def error_response(error: DropMintError):
    """JSON body and status code for a library error."""
    if isinstance(error, (UnknownCollectionError, DropNotFoundError)):
        status = 404
    else:
        status = STATUS_BY_CATEGORY.get(error.category, 400)
    return jsonify({"error": error.message, **error.to_dict()}), status


# ============================================================
# Authentication
# ============================================================

def require_api_key(f):
    """Decorator to require API key authentication."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        settings = get_settings()
        if not settings.require_auth:
            return f(*args, **kwargs)

        provided_key = request.headers.get("X-API-Key")

        if not provided_key:
            return jsonify({
                "error": "API key required",
                "hint": "Provide API key in X-API-Key header"
            }), 401

        if not settings.api_key:
            return jsonify({
                "error": "Server API key not configured",
                "hint": "Set DROPMINT_API_KEY environment variable"
            }), 503

        if not secrets.compare_digest(provided_key, settings.api_key):
            return jsonify({"error": "Invalid API key"}), 403

        return f(*args, **kwargs)
    return decorated_function

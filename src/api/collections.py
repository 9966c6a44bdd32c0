"""
Collection read endpoints.

- GET /collections
- GET /collections/<address>/drops/<token_id>
- GET /collections/<address>/fee-config/<token_id>[?amount=N]
"""

from flask import Blueprint, jsonify, request

from api.utils import error_response, get_storefront
from errors import DropMintError

collections_bp = Blueprint("collections", __name__, url_prefix="/collections")


@collections_bp.route("", methods=["GET"])
def list_collections():
    store = get_storefront()
    return jsonify({
        "count": len(store.registry),
        "collections": [c.to_dict() for c in store.collections()],
    })


@collections_bp.route("/<address>/drops/<int:token_id>", methods=["GET"])
def get_drop(address: str, token_id: int):
    """Drop configuration with its supply and liveness at ledger time."""
    store = get_storefront()
    try:
        collection = store.collection(address)
        drop = collection.get_drop(token_id)
    except DropMintError as e:
        return error_response(e)

    return jsonify({
        "collection": collection.address,
        "drop": drop.to_dict(),
        "live": drop.is_live(store.ledger.now()),
        "total_supply": collection.get_token_total_supply(token_id),
    })


@collections_bp.route("/<address>/fee-config/<int:token_id>", methods=["GET"])
def get_fee_config(address: str, token_id: int):
    """
    Resolved fee configuration for a token.

    With ?amount=N the response also previews the native fee split for
    minting N units.
    """
    store = get_storefront()
    amount = request.args.get("amount", type=int)
    if "amount" in request.args and (amount is None or amount < 1):
        return jsonify({"error": "amount must be a positive integer"}), 400

    try:
        collection = store.collection(address)
        collection.get_drop(token_id)
        body = {
            "collection": collection.address,
            "token_id": token_id,
            "fee_config": collection.get_fee_config(token_id).to_dict(),
            "is_override": collection.has_custom_fee_config(token_id),
        }
        if amount is not None:
            body["split"] = collection.preview_split(token_id, amount).to_dict()
    except DropMintError as e:
        return error_response(e)

    return jsonify(body)

"""
DropMint Flask application factory.

Usage:
    store = Storefront.create(settings, admin=ADMIN)
    app = create_app(store, settings)
    app.run()
"""

import logging

from flask import Flask, jsonify

from api import register_blueprints
from api.utils import error_response
from config import Settings
from errors import DropMintError
from monitoring import setup_request_logging
from storefront import Storefront

logger = logging.getLogger(__name__)

# Request size limit
MAX_CONTENT_LENGTH = 1024 * 1024


def create_app(storefront: Storefront, settings: Settings | None = None) -> Flask:
    """
    Build the API application around an existing storefront.

    Args:
        storefront: Deployment the endpoints read from
        settings: Runtime settings (defaults to the storefront's)
    """
    settings = settings or storefront.settings

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_CONTENT_LENGTH
    app.config["DROPMINT_SETTINGS"] = settings
    app.extensions["dropmint"] = storefront

    register_blueprints(app)
    setup_request_logging(app)

    @app.errorhandler(DropMintError)
    def handle_dropmint_error(error: DropMintError):
        return error_response(error)

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"error": "Method not allowed"}), 405

    if settings.require_auth and not settings.api_key:
        logger.warning("DROPMINT_REQUIRE_AUTH is on but DROPMINT_API_KEY is not set; POST routes will return 503")

    return app

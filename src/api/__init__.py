"""
DropMint API Package.

This package contains the modular Flask blueprints for the DropMint API.

Blueprints:
- monitoring: Health check and metrics
- collections: Collections, drops and fee configuration (read-only)
- estimates: Payment estimates for cross-collection batches
"""

from api.collections import collections_bp
from api.estimates import estimates_bp
from api.monitoring import monitoring_bp

# List of all blueprints for registration
# Tuple format: (blueprint, url_prefix)
ALL_BLUEPRINTS = [
    (monitoring_bp, ""),
    (collections_bp, None),  # Blueprint carries its own /collections prefix
    (estimates_bp, None),  # Blueprint carries its own /estimate prefix
]


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    for blueprint, url_prefix in ALL_BLUEPRINTS:
        if url_prefix is None:
            app.register_blueprint(blueprint)
        else:
            app.register_blueprint(blueprint, url_prefix=url_prefix)

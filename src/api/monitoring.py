"""
Monitoring and metrics API endpoints.

This blueprint provides:
- /metrics: Prometheus-compatible metrics endpoint
- /metrics/json: JSON format metrics
- /health: Basic health check
"""

import time

from flask import Blueprint, Response, jsonify

from api.utils import get_storefront
from monitoring import metrics

monitoring_bp = Blueprint("monitoring", __name__)

_startup_time = time.time()


def _update_dynamic_metrics():
    """Refresh gauges derived from storefront state."""
    store = get_storefront()
    collections = store.collections()
    metrics.set_gauge("registered_collections", len(collections))
    metrics.set_gauge("collection_supply_total", sum(c.collection_supply for c in collections))
    metrics.set_gauge("ledger_events", len(store.ledger.events))


@monitoring_bp.route("/metrics", methods=["GET"])
def prometheus_metrics():
    """
    Prometheus-compatible metrics endpoint.

    Returns metrics in Prometheus text exposition format.
    """
    _update_dynamic_metrics()
    return Response(metrics.to_prometheus(), mimetype="text/plain; charset=utf-8")


@monitoring_bp.route("/metrics/json", methods=["GET"])
def json_metrics():
    _update_dynamic_metrics()
    return jsonify(metrics.get_all())


@monitoring_bp.route("/health", methods=["GET"])
def health():
    """Basic health check endpoint."""
    store = get_storefront()
    return jsonify({
        "status": "healthy",
        "service": "DropMint API",
        "uptime_seconds": round(time.time() - _startup_time, 2),
        "ledger_time": store.ledger.now(),
        "collections": len(store.registry),
    })

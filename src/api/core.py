"""
Core service endpoints.

- Health check
- Controller status (block, supply, issuer counts, configuration, storage)
- Prometheus metrics
"""

from flask import Blueprint, jsonify

from monitoring import metrics

from .state import services, status_payload

core_bp = Blueprint("core", __name__)

SERVICE_VERSION = "0.1.0"


@core_bp.route("/health", methods=["GET"])
def health_check():
    """Liveness check."""
    return jsonify({
        "status": "healthy",
        "service": "issuance-controller",
        "version": SERVICE_VERSION,
        "controller_ready": services.controller is not None,
    })


@core_bp.route("/status", methods=["GET"])
def get_status():
    """Current block, supply and registry summary."""
    if services.controller is None:
        return jsonify({"error": "Issuance controller not initialized"}), 503
    return jsonify(status_payload())


@core_bp.route("/metrics", methods=["GET"])
def get_metrics():
    """Prometheus text exposition."""
    return metrics.to_prometheus(), 200, {"Content-Type": "text/plain; version=0.0.4"}

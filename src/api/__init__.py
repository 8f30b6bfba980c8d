"""
Issuance API Package.

Flask blueprints exposing the issuance controller over HTTP.

Blueprints:
- core: health, status and metrics
- issuance: issuer registry, mint/burn, queries and notifications
"""

import os

from flask import Flask

from api.core import core_bp
from api.issuance import issuance_bp
from api.state import init_services

# Tuple format: (blueprint, url_prefix)
ALL_BLUEPRINTS = [
    (core_bp, ''),
    (issuance_bp, ''),
]


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    for blueprint, url_prefix in ALL_BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=url_prefix)


def create_app(controller=None, storage=None) -> Flask:
    """
    Build the Flask application.

    Args:
        controller: IssuanceController to serve (default: restored from storage)
        storage: StorageBackend for persistence (default: from environment)
    """
    from monitoring import setup_request_logging

    app = Flask(__name__)
    app.json.sort_keys = False

    init_services(controller=controller, storage=storage)
    register_blueprints(app)
    setup_request_logging(app)
    return app


def run_server(host: str | None = None, port: int | None = None, debug: bool = False):
    """Run the Flask development server."""
    app = create_app()
    app.run(
        host=host or os.getenv("HOST", "0.0.0.0"),
        port=port or int(os.getenv("PORT", 5000)),
        debug=debug,
    )

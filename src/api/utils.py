"""
Shared utilities for the issuance API.

Authentication decorator, payload validation and error responses used by
every blueprint.
"""

import os
import secrets
from functools import wraps
from typing import Any

from flask import jsonify, request

from issuance_exceptions import IssuanceError

# ============================================================
# Security Configuration
# ============================================================

API_KEY = os.getenv("ISSUANCE_API_KEY", None)
# Default to requiring authentication for mutating endpoints
API_KEY_REQUIRED = os.getenv("ISSUANCE_REQUIRE_AUTH", "true").lower() == "true"

MAX_IDENTITY_LENGTH = 128
DEFAULT_EVENT_LIMIT = 100
MAX_EVENT_LIMIT = 1000


# ============================================================
# Validation Utilities
# ============================================================

def validate_json_schema(
    data: Any,
    required_fields: dict[str, type],
    max_lengths: dict[str, int] | None = None
) -> tuple[bool, str | None]:
    """
    Validate a JSON payload against a simple schema.

    Args:
        data: The JSON data to validate
        required_fields: Field names mapped to expected types
        max_lengths: Field names mapped to maximum string lengths

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(data, dict):
        return False, "Request body must be a JSON object"

    for field_name, expected_type in required_fields.items():
        if field_name not in data:
            return False, f"Missing required field: {field_name}"
        value = data[field_name]
        # bool is an int subclass; amounts must be real integers
        if not isinstance(value, expected_type) or (expected_type is int and isinstance(value, bool)):
            return False, f"Field '{field_name}' must be of type {expected_type.__name__}"

    for field_name, max_len in (max_lengths or {}).items():
        value = data.get(field_name)
        if isinstance(value, str) and len(value) > max_len:
            return False, f"Field '{field_name}' exceeds maximum length of {max_len}"

    return True, None


def parse_payload(required_fields: dict[str, type]) -> tuple[dict[str, Any] | None, Any]:
    """
    Read and validate the JSON body of the current request.

    Identity fields (every required str field) are stripped of whitespace.

    Returns:
        (payload, None) on success, (None, error_response) on failure
    """
    data = request.get_json(silent=True)
    max_lengths = {name: MAX_IDENTITY_LENGTH for name, t in required_fields.items() if t is str}
    is_valid, error = validate_json_schema(data, required_fields, max_lengths)
    if not is_valid:
        return None, (jsonify({"error": error, "code": "invalid_request"}), 400)

    payload = dict(data)
    for name, expected_type in required_fields.items():
        if expected_type is str:
            payload[name] = payload[name].strip()
    return payload, None


def error_response(error: IssuanceError):
    """JSON response for a rejected operation."""
    return jsonify(error.to_dict()), error.http_status


# ============================================================
# Authentication Decorator
# ============================================================

def require_api_key(f):
    """Decorator to require API key authentication."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not API_KEY_REQUIRED:
            return f(*args, **kwargs)

        provided_key = request.headers.get("X-API-Key")

        if not provided_key:
            return jsonify({
                "error": "API key required",
                "hint": "Provide API key in X-API-Key header"
            }), 401

        if not API_KEY:
            return jsonify({
                "error": "Server API key not configured",
                "hint": "Set ISSUANCE_API_KEY environment variable"
            }), 503

        if not secrets.compare_digest(provided_key, API_KEY):
            return jsonify({"error": "Invalid API key"}), 403

        return f(*args, **kwargs)
    return decorated_function

"""
Issuance API Blueprint

REST endpoints for the issuer registry and mint/burn operations:
- Issuer authorization, deauthorization, expiry sweeps and transfers
- Mint, burn and burn-from on behalf of issuers
- Read-only issuer, mint factor and cooldown queries
- Reference ledger balance and approval endpoints

Rejected operations return {"error", "code", ...} with the status code of the
underlying exception; nothing is persisted for them.
"""

from flask import Blueprint, jsonify, request

from issuance_events import IssuanceEventType
from issuance_exceptions import IssuanceError
from token_ledger import InMemoryTokenLedger

from .state import get_controller, persist_state
from .utils import (
    DEFAULT_EVENT_LIMIT,
    MAX_EVENT_LIMIT,
    error_response,
    parse_payload,
    require_api_key,
)

issuance_bp = Blueprint("issuance", __name__)


# =============================================================================
# Issuer Registry Endpoints
# =============================================================================


@issuance_bp.route("/issuers", methods=["GET"])
def list_issuers():
    """List current issuers in registry order."""
    issuers = get_controller().get_issuers()
    return jsonify({"issuers": issuers, "count": len(issuers)})


@issuance_bp.route("/issuers/expired", methods=["GET"])
def list_expired_issuers():
    """List issuers whose term has ended but which have not been removed yet."""
    expired = get_controller().get_expired_issuers()
    return jsonify({"expired_issuers": expired, "count": len(expired)})


@issuance_bp.route("/issuers/<identity>", methods=["GET"])
def get_issuer(identity):
    """
    Get an issuer's record.

    Returns:
        Record with position, validity window and lifetime counters, or 404
    """
    record = get_controller().get_issuer_record(identity)
    if record is None:
        return jsonify({"error": f"{identity} is not an authorized issuer", "code": "not_authorized"}), 404
    return jsonify({"issuer": identity, **record.to_dict()})


@issuance_bp.route("/issuers/<identity>/mint-factor", methods=["GET"])
def get_issuer_mint_factor(identity):
    """Current mint factor with every intermediate term of the formula."""
    try:
        breakdown = get_controller().get_issuer_mint_factor_breakdown(identity)
    except IssuanceError as e:
        return error_response(e)
    return jsonify({"issuer": identity, **breakdown.to_dict()})


@issuance_bp.route("/issuers/<identity>/max-mintable", methods=["GET"])
def get_issuer_max_mintable(identity):
    """Largest amount the issuer may request in a single mint right now."""
    try:
        max_mintable = get_controller().get_issuer_max_mintable(identity)
    except IssuanceError as e:
        return error_response(e)
    return jsonify({"issuer": identity, "max_mintable": max_mintable})


@issuance_bp.route("/issuers/<identity>/cooldown", methods=["GET"])
def get_issuer_cooldown(identity):
    return jsonify(get_controller().get_cooldown(identity))


@issuance_bp.route("/issuers/authorize", methods=["POST"])
@require_api_key
def authorize_issuer():
    """
    Authorize a new issuer.

    Request body:
        {
            "identity": "0xabc..."
        }
    """
    payload, error = parse_payload({"identity": str})
    if error:
        return error

    try:
        result = get_controller().authorize_issuer(payload["identity"])
    except IssuanceError as e:
        return error_response(e)

    persist_state()
    return jsonify(result), 201


@issuance_bp.route("/issuers/deauthorize", methods=["POST"])
@require_api_key
def deauthorize_issuer():
    """
    Remove an issuer.

    Request body:
        {
            "identity": "0xabc...",   // issuer to remove
            "caller": "0xabc..."      // the issuer itself, or anyone after expiry
        }
    """
    payload, error = parse_payload({"identity": str, "caller": str})
    if error:
        return error

    try:
        result = get_controller().deauthorize_issuer(payload["identity"], payload["caller"])
    except IssuanceError as e:
        return error_response(e)

    persist_state()
    return jsonify(result)


@issuance_bp.route("/issuers/deauthorize-expired", methods=["POST"])
@require_api_key
def deauthorize_expired_issuers():
    """
    Remove every expired issuer.

    Request body:
        {
            "caller": "0xdef..."
        }
    """
    payload, error = parse_payload({"caller": str})
    if error:
        return error

    try:
        removed = get_controller().deauthorize_all_expired_issuers(payload["caller"])
    except IssuanceError as e:
        return error_response(e)

    if removed:
        persist_state()
    return jsonify({"removed": removed, "count": len(removed)})


@issuance_bp.route("/issuers/transfer", methods=["POST"])
@require_api_key
def transfer_issuer_authorization():
    """
    Transfer the caller's issuer authorization and statistics.

    Request body:
        {
            "caller": "0xabc...",
            "new_identity": "0xdef..."
        }
    """
    payload, error = parse_payload({"caller": str, "new_identity": str})
    if error:
        return error

    try:
        result = get_controller().transfer_issuer_authorization(
            payload["new_identity"], payload["caller"]
        )
    except IssuanceError as e:
        return error_response(e)

    persist_state()
    return jsonify(result)


# =============================================================================
# Mint and Burn Endpoints
# =============================================================================


@issuance_bp.route("/mint", methods=["POST"])
@require_api_key
def mint():
    """
    Mint on behalf of an issuer.

    Request body:
        {
            "caller": "0xabc...",
            "to": "0x123...",
            "amount": 5000   // ignored while supply is zero
        }
    """
    payload, error = parse_payload({"caller": str, "to": str, "amount": int})
    if error:
        return error

    try:
        result = get_controller().mint(payload["to"], payload["amount"], payload["caller"])
    except IssuanceError as e:
        return error_response(e)

    persist_state()
    return jsonify(result)


@issuance_bp.route("/burn", methods=["POST"])
@require_api_key
def burn():
    """
    Burn from the issuer's own balance.

    Request body:
        {
            "caller": "0xabc...",
            "amount": 100
        }
    """
    payload, error = parse_payload({"caller": str, "amount": int})
    if error:
        return error

    try:
        result = get_controller().burn(payload["amount"], payload["caller"])
    except IssuanceError as e:
        return error_response(e)

    persist_state()
    return jsonify(result)


@issuance_bp.route("/burn-from", methods=["POST"])
@require_api_key
def burn_from():
    """
    Burn from another account using the issuer's allowance.

    Request body:
        {
            "caller": "0xabc...",
            "account": "0x123...",
            "amount": 100
        }
    """
    payload, error = parse_payload({"caller": str, "account": str, "amount": int})
    if error:
        return error

    try:
        result = get_controller().burn_from(payload["account"], payload["amount"], payload["caller"])
    except IssuanceError as e:
        return error_response(e)

    persist_state()
    return jsonify(result)


# =============================================================================
# Reference Ledger Endpoints
# =============================================================================


def _reference_ledger() -> InMemoryTokenLedger | None:
    ledger = get_controller().ledger
    return ledger if isinstance(ledger, InMemoryTokenLedger) else None


@issuance_bp.route("/ledger/balance/<account>", methods=["GET"])
def get_balance(account):
    ledger = _reference_ledger()
    if ledger is None:
        return jsonify({"error": "Ledger queries not available for this deployment"}), 503
    return jsonify({
        "account": account,
        "balance": ledger.balance_of(account),
        "total_supply": ledger.total_supply(),
    })


@issuance_bp.route("/ledger/approve", methods=["POST"])
@require_api_key
def approve():
    """
    Set a spender's allowance over the owner's balance.

    Request body:
        {
            "owner": "0x123...",
            "spender": "0xabc...",
            "amount": 100
        }
    """
    if _reference_ledger() is None:
        return jsonify({"error": "Ledger approvals not available for this deployment"}), 503

    payload, error = parse_payload({"owner": str, "spender": str, "amount": int})
    if error:
        return error

    try:
        result = get_controller().approve(payload["owner"], payload["spender"], payload["amount"])
    except IssuanceError as e:
        return error_response(e)

    persist_state()
    return jsonify(result)


# =============================================================================
# Notification Log
# =============================================================================


@issuance_bp.route("/events", methods=["GET"])
def list_events():
    """
    Recent notifications, oldest first.

    Query params:
        limit: Maximum entries (default 100, max 1000)
        type: IssuerAuthorized | IssuerDeauthorized |
              IssuerAuthorizationTransferred | IssuerActivity
    """
    limit = request.args.get("limit", DEFAULT_EVENT_LIMIT, type=int)
    limit = max(1, min(limit, MAX_EVENT_LIMIT))

    event_type = None
    type_name = request.args.get("type")
    if type_name:
        try:
            event_type = IssuanceEventType(type_name)
        except ValueError:
            return jsonify({"error": f"Unknown event type: {type_name}", "code": "invalid_request"}), 400

    events = get_controller().get_events(limit=limit, event_type=event_type)
    return jsonify({"events": events, "count": len(events)})

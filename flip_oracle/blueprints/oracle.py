"""
Oracle Blueprint - Player State and Bet Authorization

The two operations the game UI calls: read a player's derived state, and
request a signed authorization for a bet it will submit on-chain itself.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from flip_oracle import metrics
from flip_oracle.audit_logger import get_audit_logger
from flip_oracle.errors import UpstreamUnavailableError, ValidationError
from flip_oracle.game import game_state_view
from flip_oracle.security import limiter
from flip_oracle.signer import validate_address

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

oracle_bp = Blueprint("oracle", __name__)


def _services():
    return current_app.config["ORACLE_SERVICES"]


def _sign_rate_limit() -> str:
    return current_app.config["APP_CONFIG"].get("SIGN_RATE_LIMIT", "30 per minute")


@oracle_bp.route("/game-state/<address>", methods=["GET"])
def get_game_state(address: str):
    """
    Return the derived state of a player.

    Unknown players are served as zeroed records.

    Returns:
        JSON with streak, karmaPool (decimal string), isKarmaReady, lastUpdate
        and display multipliers
    """
    player = validate_address(address, field="address")
    services = _services()
    state = services.store.get(player)
    return jsonify(game_state_view(state, services.karma_threshold, services.token_decimals))


@oracle_bp.route("/sign-flip", methods=["POST"])
@limiter.limit(_sign_rate_limit)
def sign_flip():
    """
    Sign a bet authorization.

    Expected JSON body:
        - playerAddress: 0x-prefixed account address
        - betAmount: decimal token amount as a string (e.g. "10")

    Returns:
        JSON with signature, nonce, streak, karmaPool, isKarmaReady, oracleAddress
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    if data.get("betAmount") in (None, ""):
        raise ValidationError("betAmount is required", field="betAmount")

    services = _services()
    try:
        authorization = services.signer.authorize(
            data.get("playerAddress"), data["betAmount"], ip_address=request.remote_addr
        )
    except ValidationError:
        metrics.authorizations_total.labels(outcome="rejected").inc()
        raise
    except UpstreamUnavailableError as e:
        metrics.authorizations_total.labels(outcome="unavailable").inc()
        audit_logger.log_upstream_failure("read_nonce", e.message)
        raise

    metrics.authorizations_total.labels(outcome="signed").inc()
    return jsonify(authorization.to_dict(services.token_decimals))


@oracle_bp.route("/players", methods=["GET"])
def list_players():
    """All players currently tracked by the state store."""
    services = _services()
    players = services.store.all_players()
    metrics.tracked_players.set(len(players))
    return jsonify(
        {
            "count": len(players),
            "players": [game_state_view(p, services.karma_threshold, services.token_decimals) for p in players],
        }
    )

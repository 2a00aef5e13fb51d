"""
Admin Blueprint - Health Checks and Metrics

Provides monitoring endpoints: chain connectivity, reconciler progress and
Prometheus metrics.
"""

import logging
import time
from typing import Any, Dict

from flask import Blueprint, Response, current_app, jsonify
from prometheus_client import generate_latest

from flip_oracle import metrics
from flip_oracle.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/health")
def health():
    """
    Health check endpoint.

    Returns:
        JSON health status with chain and reconciler information
    """
    cfg = current_app.config["APP_CONFIG"]
    services = current_app.config["ORACLE_SERVICES"]

    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": time.time(),
        "service": cfg.get("APP_NAME", "flip-oracle"),
        "version": cfg.get("APP_VERSION"),
        "oracle_address": services.signer.oracle_address,
        "components": {},
    }

    try:
        head = services.chain.block_number()
        health_status["components"]["chain"] = {"status": "connected", "block_number": head}
    except UpstreamUnavailableError as e:
        logger.warning(f"Chain health check failed: {e}")
        health_status["components"]["chain"] = {"status": "error", "error": e.message}
        health_status["status"] = "degraded"

    health_status["components"]["reconciler"] = services.reconciler.status()
    health_status["components"]["store"] = {"players": len(services.store.all_players())}

    return jsonify(health_status), 200


@admin_bp.route("/metrics")
def prometheus_metrics():
    """Prometheus scrape endpoint."""
    services = current_app.config["ORACLE_SERVICES"]
    metrics.tracked_players.set(len(services.store.all_players()))
    return Response(generate_latest(metrics.registry), mimetype="text/plain; version=0.0.4")

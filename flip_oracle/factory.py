"""
Application Factory for the flip oracle

Implements the Flask application factory pattern with:
- Blueprint registration
- Rate limiting, CORS and log configuration
- Oracle service wiring (store, signer, reconciler)
- JSON error handling that separates "fix your input" from "try again later"
"""

import logging
from typing import Any, Optional

from flask import Flask, jsonify, request

from flip_oracle import metrics
from flip_oracle.audit_logger import get_audit_logger, init_audit_logger
from flip_oracle.config import AppConfig, get_config, validate_config
from flip_oracle.errors import OracleError, UpstreamUnavailableError, ValidationError
from flip_oracle.security import init_security
from flip_oracle.services import OracleServices, build_services

logger = logging.getLogger(__name__)


def create_app(
    config_override: Optional[AppConfig] = None,
    chain: Optional[Any] = None,
    services: Optional[OracleServices] = None,
) -> Flask:
    """
    Create and configure the Flask application using the factory pattern.

    Args:
        config_override: Optional configuration override for testing
        chain: Optional chain gateway override (tests pass a fake chain)
        services: Optional prebuilt services bundle

    Returns:
        Configured Flask application instance. The reconciler is built but not
        started; the WSGI entry point starts it.
    """
    app = Flask(__name__)

    # Load configuration
    cfg = config_override or get_config()
    validate_config(cfg)
    app.config["APP_CONFIG"] = cfg

    init_security(app, cfg)
    init_audit_logger()

    app.config["ORACLE_SERVICES"] = services or build_services(cfg, chain=chain)

    register_blueprints(app)
    register_error_handlers(app)
    register_request_handlers(app)

    logger.info("🚀 Application factory completed successfully")
    return app


def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""

    # Game state and bet authorization
    from flip_oracle.blueprints.oracle import oracle_bp
    app.register_blueprint(oracle_bp, url_prefix="/api")

    # Health and metrics
    from flip_oracle.blueprints.admin import admin_bp
    app.register_blueprint(admin_bp)

    logger.info("✅ All blueprints registered")


def register_error_handlers(app: Flask) -> None:
    """Register global error handlers."""

    @app.errorhandler(ValidationError)
    def validation_error(e: ValidationError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(UpstreamUnavailableError)
    def upstream_unavailable(e: UpstreamUnavailableError):
        logger.warning(f"Upstream unavailable: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(OracleError)
    def oracle_error(e: OracleError):
        logger.error(f"Oracle error: {e.message}", exc_info=True)
        get_audit_logger().log_error(type(e).__name__, e.message, context={"path": request.path})
        return jsonify({"error": "internal_error", "message": "An unexpected error occurred"}), 500

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "not_found", "message": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "method_not_allowed", "message": str(e)}), 405

    @app.errorhandler(429)
    def rate_limit_exceeded(e):
        return jsonify({"error": "rate_limit_exceeded", "message": str(e)}), 429

    @app.errorhandler(500)
    def internal_error(e):
        logger.error(f"Internal server error: {e}", exc_info=True)
        return jsonify({"error": "internal_error", "message": "An unexpected error occurred"}), 500


def register_request_handlers(app: Flask) -> None:
    """Register after request handlers."""

    @app.after_request
    def count_request(response):
        endpoint = request.url_rule.rule if request.url_rule else "unmatched"
        metrics.request_counter.labels(method=request.method, endpoint=endpoint, status=response.status_code).inc()
        return response

"""Security helpers for configuring Flask in production."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.middleware.proxy_fix import ProxyFix

logger = logging.getLogger(__name__)

# Bound to the app in init_security; blueprints decorate routes at import time.
limiter = Limiter(key_func=get_remote_address, storage_uri="memory://", strategy="fixed-window")


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).lower() in {"1", "true", "yes", "on"}


def configure_logging(cfg: Mapping[str, Any]) -> None:
    """Install the root log handler once, at the configured level."""
    log_level = str(cfg.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, log_level, logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if not any(isinstance(handler, logging.StreamHandler) for handler in root_logger.handlers):
        handler = logging.StreamHandler()
        fmt = (
            "{\"level\":\"%(levelname)s\",\"msg\":\"%(message)s\",\"name\":\"%(name)s\",\"path\":\"%(pathname)s\","
            "\"lineno\":%(lineno)d}"
        )
        handler.setFormatter(logging.Formatter(fmt))
        root_logger.addHandler(handler)


def init_security(app: Flask, cfg: Mapping[str, Any]) -> Limiter:
    """Initialise proxy handling, CORS, rate limiting and log output."""

    # Respect reverse proxy headers for client IP extraction (rate limiting keys on it).
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)  # type: ignore[assignment]

    origins = [o.strip() for o in str(cfg.get("CORS_ORIGINS", "*")).split(",") if o.strip()] or "*"
    CORS(app, resources={r"/api/*": {"origins": origins}})

    limit_default = cfg.get("RATE_LIMIT_DEFAULT") or "300/hour"
    app.config["RATELIMIT_ENABLED"] = _as_bool(cfg.get("RATE_LIMIT_ENABLED"), True)
    app.config["RATELIMIT_DEFAULT"] = limit_default
    if not app.config["RATELIMIT_ENABLED"]:
        logger.warning("Rate limiting disabled by configuration")
    limiter.init_app(app)

    configure_logging(cfg)
    return limiter

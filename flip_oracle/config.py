"""Configuration management for the flip oracle.

Centralises environment variable loading and validation logic while keeping the
public API intentionally simple.
"""

from __future__ import annotations

import os
import re
from typing import Any, Mapping, Optional, TypedDict

_TRUTHY_VALUES = {"1", "true", "yes", "on"}
_HEX_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")
_HEX_KEY = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")

NONCE_SOURCES = ("chain", "local")


class AppConfig(TypedDict):
    """Typed representation of the oracle's configuration."""

    RPC_URL: str
    RPC_TIMEOUT: int
    CASINO_GAME_CONTRACT_ADDRESS: str
    ORACLE_PRIVATE_KEY: Optional[str]
    CONTRACT_ABI_PATH: Optional[str]
    NONCE_SOURCE: str
    KARMA_THRESHOLD_TOKENS: int
    TOKEN_DECIMALS: int
    RECONCILER_ENABLED: bool
    RECONCILER_START_BLOCK: Optional[int]
    POLL_INTERVAL_SECONDS: int
    LOG_CHUNK_SIZE: int
    CONFIRMATIONS: int
    FLASK_ENV: str
    FLASK_DEBUG: bool
    CORS_ORIGINS: str
    RATE_LIMIT_ENABLED: bool
    RATE_LIMIT_DEFAULT: str
    SIGN_RATE_LIMIT: str
    LOG_LEVEL: str
    APP_NAME: str
    APP_VERSION: str
    APP_HOST: str
    APP_PORT: int


def _get_env_bool(name: str, default: bool) -> bool:
    """Return an environment variable as a boolean."""

    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in _TRUTHY_VALUES


def _get_env_int(name: str, default: int) -> int:
    """Return an environment variable as an integer, raising on invalid input."""

    raw_value = os.getenv(name)
    if raw_value is None or raw_value == "":
        return default

    try:
        return int(raw_value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer (got {raw_value!r})") from exc


def _get_env_optional_int(name: str) -> Optional[int]:
    raw_value = os.getenv(name)
    if raw_value is None or raw_value.strip() == "":
        return None
    return _get_env_int(name, 0)


def get_config() -> AppConfig:
    """Load oracle configuration from environment variables."""

    return {
        # Chain access
        "RPC_URL": os.getenv("RPC_URL") or os.getenv("SEPOLIA_URL") or "http://127.0.0.1:8545",
        "RPC_TIMEOUT": _get_env_int("RPC_TIMEOUT", 10),
        "CASINO_GAME_CONTRACT_ADDRESS": os.getenv("CASINO_GAME_CONTRACT_ADDRESS", ""),
        "CONTRACT_ABI_PATH": os.getenv("CONTRACT_ABI_PATH") or None,
        # Signing
        "ORACLE_PRIVATE_KEY": os.getenv("ORACLE_PRIVATE_KEY") or None,
        "NONCE_SOURCE": os.getenv("NONCE_SOURCE", "chain").strip().lower(),
        # Game parameters (must match the deployed contract)
        "KARMA_THRESHOLD_TOKENS": _get_env_int("KARMA_THRESHOLD_TOKENS", 100),
        "TOKEN_DECIMALS": _get_env_int("TOKEN_DECIMALS", 18),
        # Reconciler
        "RECONCILER_ENABLED": _get_env_bool("RECONCILER_ENABLED", True),
        "RECONCILER_START_BLOCK": _get_env_optional_int("RECONCILER_START_BLOCK"),
        "POLL_INTERVAL_SECONDS": _get_env_int("POLL_INTERVAL_SECONDS", 4),
        "LOG_CHUNK_SIZE": _get_env_int("LOG_CHUNK_SIZE", 2000),
        "CONFIRMATIONS": _get_env_int("CONFIRMATIONS", 0),
        # Flask
        "FLASK_ENV": os.getenv("FLASK_ENV", "development"),
        "FLASK_DEBUG": _get_env_bool("FLASK_DEBUG", False),
        "CORS_ORIGINS": os.getenv("CORS_ORIGINS", "*"),
        # Rate Limiting
        "RATE_LIMIT_ENABLED": _get_env_bool("RATE_LIMIT_ENABLED", True),
        "RATE_LIMIT_DEFAULT": os.getenv("RATE_LIMIT_DEFAULT", "300/hour"),
        "SIGN_RATE_LIMIT": os.getenv("SIGN_RATE_LIMIT", "30 per minute"),
        # Logging
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
        # Application Settings
        "APP_NAME": os.getenv("APP_NAME", "flip-oracle"),
        "APP_VERSION": os.getenv("APP_VERSION", "1.0.0"),
        "APP_HOST": os.getenv("APP_HOST", "0.0.0.0"),
        "APP_PORT": _get_env_int("APP_PORT", 3007),
    }


def validate_config(config: Mapping[str, Any]) -> bool:
    """Validate critical configuration values.

    Args:
        config: Configuration mapping to validate.

    Returns:
        True if configuration is valid, raises ValueError otherwise.
    """

    contract = config.get("CASINO_GAME_CONTRACT_ADDRESS") or ""
    if not _HEX_ADDRESS.match(contract):
        raise ValueError("CASINO_GAME_CONTRACT_ADDRESS must be a 0x-prefixed 20-byte hex address")

    private_key = config.get("ORACLE_PRIVATE_KEY") or ""
    if not _HEX_KEY.match(private_key):
        raise ValueError("ORACLE_PRIVATE_KEY must be a 32-byte hex string")

    if config.get("NONCE_SOURCE") not in NONCE_SOURCES:
        raise ValueError(f"NONCE_SOURCE must be one of {', '.join(NONCE_SOURCES)}")

    if config.get("KARMA_THRESHOLD_TOKENS", 0) <= 0:
        raise ValueError("KARMA_THRESHOLD_TOKENS must be positive")

    if not 0 <= config.get("TOKEN_DECIMALS", 18) <= 77:
        raise ValueError("TOKEN_DECIMALS must be between 0 and 77")

    if config.get("LOG_CHUNK_SIZE", 1) <= 0:
        raise ValueError("LOG_CHUNK_SIZE must be positive")

    if config.get("CONFIRMATIONS", 0) < 0:
        raise ValueError("CONFIRMATIONS cannot be negative")

    if config.get("FLASK_ENV") == "production" and config.get("NONCE_SOURCE") == "local":
        import warnings

        warnings.warn(
            "⚠️  NONCE_SOURCE=local in production - signatures may drift from the contract's nonce!",
            stacklevel=2,
        )

    return True

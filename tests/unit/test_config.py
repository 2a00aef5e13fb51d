"""
Unit tests for configuration management.
"""

import os
from unittest.mock import patch

import pytest

from fakes import CONTRACT_ADDRESS, ORACLE_PRIVATE_KEY
from flip_oracle.config import get_config, validate_config


def _valid_config(**overrides):
    config = {
        "FLASK_ENV": "development",
        "CASINO_GAME_CONTRACT_ADDRESS": CONTRACT_ADDRESS,
        "ORACLE_PRIVATE_KEY": ORACLE_PRIVATE_KEY,
        "NONCE_SOURCE": "chain",
        "KARMA_THRESHOLD_TOKENS": 100,
        "TOKEN_DECIMALS": 18,
        "LOG_CHUNK_SIZE": 2000,
        "CONFIRMATIONS": 0,
    }
    config.update(overrides)
    return config


class TestGetConfig:
    """Test configuration loading from environment variables."""

    def test_get_config_defaults(self):
        """Test that get_config returns default values when env vars not set."""
        config = get_config()

        assert config["FLASK_ENV"] == "testing"  # Set in conftest
        assert config["NONCE_SOURCE"] == "chain"
        assert config["KARMA_THRESHOLD_TOKENS"] == 100
        assert config["TOKEN_DECIMALS"] == 18
        assert config["LOG_CHUNK_SIZE"] == 2000
        assert config["APP_NAME"] == "flip-oracle"
        assert config["APP_PORT"] == 3007

    def test_get_config_custom_values(self):
        """Test that get_config uses environment variables when provided."""
        with patch.dict(os.environ, {"RPC_URL": "https://rpc.example", "APP_NAME": "CustomOracle", "NONCE_SOURCE": "LOCAL"}):
            config = get_config()

            assert config["RPC_URL"] == "https://rpc.example"
            assert config["APP_NAME"] == "CustomOracle"
            assert config["NONCE_SOURCE"] == "local"

    def test_rpc_url_falls_back_to_sepolia_url(self):
        with patch.dict(os.environ, {"RPC_URL": "", "SEPOLIA_URL": "https://sepolia.example"}):
            assert get_config()["RPC_URL"] == "https://sepolia.example"

    def test_get_config_boolean_parsing(self):
        """Test that boolean environment variables are parsed correctly."""
        with patch.dict(os.environ, {"FLASK_DEBUG": "1", "RATE_LIMIT_ENABLED": "true", "RECONCILER_ENABLED": "no"}):
            config = get_config()

            assert config["FLASK_DEBUG"] is True
            assert config["RATE_LIMIT_ENABLED"] is True
            assert config["RECONCILER_ENABLED"] is False

    def test_get_config_integer_parsing(self):
        """Test that integer environment variables are parsed correctly."""
        with patch.dict(os.environ, {"LOG_CHUNK_SIZE": "500", "CONFIRMATIONS": "3", "RECONCILER_START_BLOCK": "1234"}):
            config = get_config()

            assert config["LOG_CHUNK_SIZE"] == 500
            assert config["CONFIRMATIONS"] == 3
            assert config["RECONCILER_START_BLOCK"] == 1234

    def test_start_block_unset_is_none(self):
        with patch.dict(os.environ, {"RECONCILER_START_BLOCK": ""}):
            assert get_config()["RECONCILER_START_BLOCK"] is None

    def test_get_config_invalid_integer_raises(self):
        """Invalid integer inputs should surface a helpful error."""
        with patch.dict(os.environ, {"TOKEN_DECIMALS": "eighteen"}):
            with pytest.raises(ValueError, match="TOKEN_DECIMALS"):
                get_config()


class TestValidateConfig:
    """Test configuration validation."""

    def test_valid_config_passes(self):
        assert validate_config(_valid_config()) is True

    def test_key_without_prefix_passes(self):
        assert validate_config(_valid_config(ORACLE_PRIVATE_KEY=ORACLE_PRIVATE_KEY[2:])) is True

    def test_environment_config_passes(self):
        """The environment prepared by conftest is valid."""
        assert validate_config(get_config()) is True

    @pytest.mark.parametrize("address", ["", "0x1234", CONTRACT_ADDRESS[2:], CONTRACT_ADDRESS + "00"])
    def test_invalid_contract_address_fails(self, address):
        with pytest.raises(ValueError, match="CASINO_GAME_CONTRACT_ADDRESS"):
            validate_config(_valid_config(CASINO_GAME_CONTRACT_ADDRESS=address))

    @pytest.mark.parametrize("key", [None, "", "0xdeadbeef", ORACLE_PRIVATE_KEY[:-1] + "g"])
    def test_invalid_private_key_fails(self, key):
        with pytest.raises(ValueError, match="ORACLE_PRIVATE_KEY"):
            validate_config(_valid_config(ORACLE_PRIVATE_KEY=key))

    def test_unknown_nonce_source_fails(self):
        with pytest.raises(ValueError, match="NONCE_SOURCE"):
            validate_config(_valid_config(NONCE_SOURCE="hybrid"))

    def test_non_positive_threshold_fails(self):
        with pytest.raises(ValueError, match="KARMA_THRESHOLD_TOKENS"):
            validate_config(_valid_config(KARMA_THRESHOLD_TOKENS=0))

    def test_decimals_out_of_range_fails(self):
        with pytest.raises(ValueError, match="TOKEN_DECIMALS"):
            validate_config(_valid_config(TOKEN_DECIMALS=78))

    def test_chunk_size_must_be_positive(self):
        with pytest.raises(ValueError, match="LOG_CHUNK_SIZE"):
            validate_config(_valid_config(LOG_CHUNK_SIZE=0))

    def test_negative_confirmations_fail(self):
        with pytest.raises(ValueError, match="CONFIRMATIONS"):
            validate_config(_valid_config(CONFIRMATIONS=-1))

    def test_local_nonces_in_production_warns(self):
        with pytest.warns(UserWarning, match="NONCE_SOURCE=local"):
            assert validate_config(_valid_config(FLASK_ENV="production", NONCE_SOURCE="local")) is True

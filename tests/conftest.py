"""
Pytest configuration and shared fixtures for flip oracle tests.
"""

import os

import pytest

from fakes import CONTRACT_ADDRESS, ORACLE_PRIVATE_KEY, TOKEN, FakeChain

# Set test environment before importing the package
os.environ["FLASK_ENV"] = "testing"
os.environ["CASINO_GAME_CONTRACT_ADDRESS"] = CONTRACT_ADDRESS
os.environ["ORACLE_PRIVATE_KEY"] = ORACLE_PRIVATE_KEY
os.environ["RPC_URL"] = "http://localhost:8545"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RECONCILER_ENABLED"] = "false"
os.environ["NONCE_SOURCE"] = "chain"


@pytest.fixture
def fake_chain():
    return FakeChain()


@pytest.fixture
def store():
    from flip_oracle.store import PlayerStateStore

    return PlayerStateStore()


@pytest.fixture
def oracle_key():
    from flip_oracle.encoding import OracleKey

    return OracleKey(ORACLE_PRIVATE_KEY)


@pytest.fixture
def signer(store, fake_chain, oracle_key):
    from flip_oracle.signer import AuthorizationSigner

    return AuthorizationSigner(store, fake_chain, oracle_key, CONTRACT_ADDRESS, karma_threshold=100 * TOKEN)


@pytest.fixture
def reconciler(store, fake_chain):
    from flip_oracle.reconciler import ChainEventReconciler

    rec = ChainEventReconciler(store, fake_chain, poll_interval=0.01, chunk_size=10)
    yield rec
    rec.stop(timeout=2)


@pytest.fixture
def app(fake_chain):
    """Create and configure a test Flask application instance."""
    from flip_oracle.factory import create_app

    flask_app = create_app(chain=fake_chain)
    flask_app.config.update({"TESTING": True})

    with flask_app.app_context():
        yield flask_app


@pytest.fixture
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


@pytest.fixture
def services(app):
    return app.config["ORACLE_SERVICES"]


# Pytest configuration hooks
def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "unit: fast tests without external services")
    config.addinivalue_line("markers", "integration: tests exercising the Flask app end to end")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Add 'unit' marker to tests in unit/ directory
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        # Add 'integration' marker to tests in integration/ directory
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)

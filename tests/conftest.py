"""
Pytest configuration and shared fixtures for issuance controller tests.

Provides:
- A manual block clock and a small deployment configuration
- A controller over an in-memory ledger
- Flask app and test client backed by memory storage
"""

import os
import sys

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# Set up test environment before any imports
os.environ["ISSUANCE_API_KEY"] = "test-api-key-12345"
os.environ["ISSUANCE_REQUIRE_AUTH"] = "false"
os.environ["STORAGE_BACKEND"] = "memory"

from block_clock import ManualBlockClock  # noqa: E402
from issuance_config import IssuanceConfig  # noqa: E402
from issuance_controller import IssuanceController  # noqa: E402
from monitoring.metrics import metrics  # noqa: E402
from storage.memory import MemoryStorage  # noqa: E402
from token_ledger import InMemoryTokenLedger  # noqa: E402

TERM_LENGTH = 1000
SUPPLY_FLOOR = 1_000_000


@pytest.fixture(autouse=True)
def reset_metrics():
    """Each test starts from empty metrics."""
    metrics.reset()
    yield


@pytest.fixture
def clock():
    return ManualBlockClock(start_block=0)


@pytest.fixture
def config():
    """Three issuers, 1000-block terms, 1% base factor, floor of one million."""
    return IssuanceConfig(
        max_issuers=3,
        issuer_term_length=TERM_LENGTH,
        base_mint_factor=100,
        mint_factor_scale=10_000,
        low_mint_threshold=200,
        supply_floor=SUPPLY_FLOOR,
        early_exit_threshold_percent=95,
        genesis_timestamp=0.0,
    )


@pytest.fixture
def ledger():
    return InMemoryTokenLedger()


@pytest.fixture
def controller(ledger, clock, config):
    return IssuanceController(ledger=ledger, clock=clock, config=config)


@pytest.fixture
def bootstrapped(controller):
    """Controller where 0xAlice has minted the supply floor to itself."""
    controller.authorize_issuer("0xAlice")
    controller.mint("0xAlice", 0, caller="0xAlice")
    return controller


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def flask_app(controller, memory_storage):
    """Flask test app serving the fixture controller."""
    from api import create_app

    app = create_app(controller=controller, storage=memory_storage)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def flask_client(flask_app):
    return flask_app.test_client()


@pytest.fixture
def test_auth_headers():
    """Headers for authenticated requests."""
    return {
        "Content-Type": "application/json",
        "X-API-Key": "test-api-key-12345"
    }

"""
Tests for deployment configuration (src/issuance_config.py)
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from issuance_config import DEFAULT_CONTROLLER_ADDRESS, ZERO_ADDRESS, IssuanceConfig
from issuance_exceptions import ConfigurationError

ENV_VARS = [
    "ISSUANCE_MAX_ISSUERS",
    "ISSUANCE_TERM_LENGTH_BLOCKS",
    "ISSUANCE_BASE_MINT_FACTOR",
    "ISSUANCE_MINT_FACTOR_SCALE",
    "ISSUANCE_LOW_MINT_THRESHOLD",
    "ISSUANCE_SUPPLY_FLOOR",
    "ISSUANCE_EARLY_EXIT_THRESHOLD_PERCENT",
    "ISSUANCE_CONTROLLER_ADDRESS",
    "ISSUANCE_BLOCK_TIME_SECONDS",
    "ISSUANCE_GENESIS_TIMESTAMP",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:

    def test_default_values(self):
        config = IssuanceConfig()

        assert config.max_issuers == 100
        assert config.issuer_term_length == 864_000
        assert config.base_mint_factor == 100
        assert config.mint_factor_scale == 10_000
        assert config.low_mint_threshold == 200
        assert config.supply_floor == 1_000_000
        assert config.early_exit_threshold_percent == 95
        assert config.controller_address == DEFAULT_CONTROLLER_ADDRESS

    def test_config_is_immutable(self):
        config = IssuanceConfig()

        with pytest.raises(AttributeError):
            config.max_issuers = 5

    def test_reserved_identities(self):
        config = IssuanceConfig()

        assert config.is_reserved_identity(ZERO_ADDRESS)
        assert config.is_reserved_identity(DEFAULT_CONTROLLER_ADDRESS)
        assert not config.is_reserved_identity("0xAlice")


class TestFromEnv:

    def test_reads_environment(self, clean_env):
        clean_env.setenv("ISSUANCE_MAX_ISSUERS", "7")
        clean_env.setenv("ISSUANCE_TERM_LENGTH_BLOCKS", "5000")
        clean_env.setenv("ISSUANCE_SUPPLY_FLOOR", "42")
        clean_env.setenv("ISSUANCE_CONTROLLER_ADDRESS", "0xController")
        clean_env.setenv("ISSUANCE_GENESIS_TIMESTAMP", "1700000000.5")

        config = IssuanceConfig.from_env()

        assert config.max_issuers == 7
        assert config.issuer_term_length == 5000
        assert config.supply_floor == 42
        assert config.controller_address == "0xController"
        assert config.genesis_timestamp == 1700000000.5
        assert config.base_mint_factor == 100

    def test_blank_values_use_defaults(self, clean_env):
        clean_env.setenv("ISSUANCE_MAX_ISSUERS", "  ")

        assert IssuanceConfig.from_env().max_issuers == 100

    def test_non_integer_rejected(self, clean_env):
        clean_env.setenv("ISSUANCE_MAX_ISSUERS", "many")

        with pytest.raises(ConfigurationError) as exc_info:
            IssuanceConfig.from_env()

        assert exc_info.value.details["variable"] == "ISSUANCE_MAX_ISSUERS"

    def test_bad_genesis_rejected(self, clean_env):
        clean_env.setenv("ISSUANCE_GENESIS_TIMESTAMP", "yesterday")

        with pytest.raises(ConfigurationError):
            IssuanceConfig.from_env()


class TestValidation:

    @pytest.mark.parametrize("overrides", [
        {"max_issuers": 0},
        {"issuer_term_length": 0},
        {"base_mint_factor": 0},
        {"base_mint_factor": 20_000},
        {"low_mint_threshold": -1},
        {"supply_floor": 0},
        {"early_exit_threshold_percent": 101},
        {"controller_address": ZERO_ADDRESS},
        {"block_time_seconds": 0},
    ])
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ConfigurationError):
            IssuanceConfig(**overrides)

    def test_to_dict(self):
        data = IssuanceConfig(genesis_timestamp=0.0).to_dict()

        assert data["genesis_timestamp"] == 0.0
        assert data["max_issuers"] == 100

"""
Issuance Controller - Configuration

Deployment constants for the issuer registry and mint-factor calculator.
Values are fixed when the controller is created; there is no runtime path
that changes them.

Environment variables:
    ISSUANCE_MAX_ISSUERS                   Issuer cap (default: 100)
    ISSUANCE_TERM_LENGTH_BLOCKS            Issuer term in blocks (default: 864000)
    ISSUANCE_BASE_MINT_FACTOR              Base factor in parts per scale (default: 100)
    ISSUANCE_MINT_FACTOR_SCALE             Fixed-point scale (default: 10000)
    ISSUANCE_LOW_MINT_THRESHOLD            Low average mint bonus threshold (default: 200)
    ISSUANCE_SUPPLY_FLOOR                  Minimum supply target (default: 1000000)
    ISSUANCE_EARLY_EXIT_THRESHOLD_PERCENT  Share of term that avoids cooldown (default: 95)
    ISSUANCE_CONTROLLER_ADDRESS            Controller's own identity
    ISSUANCE_BLOCK_TIME_SECONDS            Wall-clock seconds per block (default: 2)
    ISSUANCE_GENESIS_TIMESTAMP             Unix time of block 0 (default: process start)
"""

import os
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from issuance_exceptions import ConfigurationError

# The null identity; never a valid issuer, receiver or ledger account
ZERO_ADDRESS = "0x" + "0" * 40

DEFAULT_CONTROLLER_ADDRESS = "0x" + "0" * 38 + "c0"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}",
            operation="load_config",
            details={"variable": name, "value": raw},
            cause=e
        ) from e


@dataclass(frozen=True)
class IssuanceConfig:
    """Fixed deployment constants for the controller."""

    max_issuers: int = 100
    issuer_term_length: int = 864_000
    base_mint_factor: int = 100  # 1% with the default scale
    mint_factor_scale: int = 10_000
    low_mint_threshold: int = 200  # 2% with the default scale
    supply_floor: int = 1_000_000
    early_exit_threshold_percent: int = 95
    controller_address: str = DEFAULT_CONTROLLER_ADDRESS
    block_time_seconds: int = 2
    genesis_timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        self.validate()

    @classmethod
    def from_env(cls) -> "IssuanceConfig":
        """Build the configuration from ISSUANCE_* environment variables."""
        defaults = cls()
        genesis = os.getenv("ISSUANCE_GENESIS_TIMESTAMP")
        try:
            genesis_timestamp = float(genesis) if genesis else defaults.genesis_timestamp
        except ValueError as e:
            raise ConfigurationError(
                f"ISSUANCE_GENESIS_TIMESTAMP must be a number, got {genesis!r}",
                operation="load_config",
                cause=e
            ) from e

        return cls(
            max_issuers=_env_int("ISSUANCE_MAX_ISSUERS", defaults.max_issuers),
            issuer_term_length=_env_int(
                "ISSUANCE_TERM_LENGTH_BLOCKS", defaults.issuer_term_length
            ),
            base_mint_factor=_env_int("ISSUANCE_BASE_MINT_FACTOR", defaults.base_mint_factor),
            mint_factor_scale=_env_int(
                "ISSUANCE_MINT_FACTOR_SCALE", defaults.mint_factor_scale
            ),
            low_mint_threshold=_env_int(
                "ISSUANCE_LOW_MINT_THRESHOLD", defaults.low_mint_threshold
            ),
            supply_floor=_env_int("ISSUANCE_SUPPLY_FLOOR", defaults.supply_floor),
            early_exit_threshold_percent=_env_int(
                "ISSUANCE_EARLY_EXIT_THRESHOLD_PERCENT",
                defaults.early_exit_threshold_percent,
            ),
            controller_address=os.getenv(
                "ISSUANCE_CONTROLLER_ADDRESS", defaults.controller_address
            ),
            block_time_seconds=_env_int(
                "ISSUANCE_BLOCK_TIME_SECONDS", defaults.block_time_seconds
            ),
            genesis_timestamp=genesis_timestamp,
        )

    def validate(self) -> None:
        """
        Reject configurations the registry cannot honor.

        Raises:
            ConfigurationError: If any constant is out of range
        """
        problems = []

        if self.max_issuers <= 0:
            problems.append("max_issuers must be positive")
        if self.issuer_term_length <= 0:
            problems.append("issuer_term_length must be positive")
        if self.mint_factor_scale <= 0:
            problems.append("mint_factor_scale must be positive")
        if not 0 < self.base_mint_factor <= self.mint_factor_scale:
            problems.append("base_mint_factor must be in (0, mint_factor_scale]")
        if self.low_mint_threshold < 0:
            problems.append("low_mint_threshold must not be negative")
        if self.supply_floor <= 0:
            problems.append("supply_floor must be positive")
        if not 0 <= self.early_exit_threshold_percent <= 100:
            problems.append("early_exit_threshold_percent must be in [0, 100]")
        if not self.controller_address or self.controller_address == ZERO_ADDRESS:
            problems.append("controller_address must not be the null identity")
        if self.block_time_seconds <= 0:
            problems.append("block_time_seconds must be positive")

        if problems:
            raise ConfigurationError(
                "Invalid issuance configuration: " + "; ".join(problems),
                operation="validate_config",
                details={"problems": problems}
            )

    def is_reserved_identity(self, identity: str) -> bool:
        """True for the null identity and the controller's own identity."""
        return identity == ZERO_ADDRESS or identity == self.controller_address

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

"""
Issuance Controller - Mint Factor Calculator

The mint factor is the largest share of current supply an issuer may create
in a single mint, expressed as an integer numerator over a fixed scale
(parts per 10000 by default).

Formula, for supply > 0:
    avg_mint         = total_minted // mint_count       (0 with no mints)
    avg_burn         = total_burned // burn_count       (0 with no burns)
    avg_percent_mint = avg_mint * scale // supply
    adjusted_base    = max(0, base - avg_percent_mint)
    burn_offset      = [total_burned >= total_minted]
                     + [avg_burn >= avg_mint]
                     + [avg_percent_mint < low_mint_threshold]
    factor           = min(base, adjusted_base + burn_offset)

With zero supply the base factor is returned unchanged. All division
truncates; issuers receive the floor of their entitlement.
"""

from dataclasses import dataclass
from typing import Any, Protocol


class IssuerStats(Protocol):
    total_minted: int
    mint_count: int
    total_burned: int
    burn_count: int


@dataclass(frozen=True)
class MintFactorBreakdown:
    """Every intermediate term of one mint factor calculation."""
    current_supply: int
    base_factor: int
    avg_mint: int
    avg_burn: int
    avg_percent_mint: int
    adjusted_base: int
    burn_offset: int
    mint_factor: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_supply": self.current_supply,
            "base_factor": self.base_factor,
            "avg_mint": self.avg_mint,
            "avg_burn": self.avg_burn,
            "avg_percent_mint": self.avg_percent_mint,
            "adjusted_base": self.adjusted_base,
            "burn_offset": self.burn_offset,
            "mint_factor": self.mint_factor,
        }


class MintFactorCalculator:
    """Pure mint factor computation from an issuer's counters and current supply."""

    def __init__(self, base_factor: int, scale: int = 10_000, low_mint_threshold: int = 200):
        self.base_factor = base_factor
        self.scale = scale
        self.low_mint_threshold = low_mint_threshold

    @classmethod
    def from_config(cls, config) -> "MintFactorCalculator":
        return cls(
            base_factor=config.base_mint_factor,
            scale=config.mint_factor_scale,
            low_mint_threshold=config.low_mint_threshold,
        )

    def breakdown(self, stats: IssuerStats, current_supply: int) -> MintFactorBreakdown:
        """Compute the mint factor and keep the intermediate values."""
        base = self.base_factor
        avg_mint = stats.total_minted // stats.mint_count if stats.mint_count else 0
        avg_burn = stats.total_burned // stats.burn_count if stats.burn_count else 0

        if current_supply <= 0:
            return MintFactorBreakdown(
                current_supply=current_supply,
                base_factor=base,
                avg_mint=avg_mint,
                avg_burn=avg_burn,
                avg_percent_mint=0,
                adjusted_base=base,
                burn_offset=0,
                mint_factor=base,
            )

        avg_percent_mint = avg_mint * self.scale // current_supply
        adjusted_base = 0 if avg_percent_mint >= base else base - avg_percent_mint

        burn_offset = 0
        if stats.total_burned >= stats.total_minted:
            burn_offset += 1
        if avg_burn >= avg_mint:
            burn_offset += 1
        if avg_percent_mint < self.low_mint_threshold:
            burn_offset += 1

        return MintFactorBreakdown(
            current_supply=current_supply,
            base_factor=base,
            avg_mint=avg_mint,
            avg_burn=avg_burn,
            avg_percent_mint=avg_percent_mint,
            adjusted_base=adjusted_base,
            burn_offset=burn_offset,
            mint_factor=min(base, adjusted_base + burn_offset),
        )

    def calculate(self, stats: IssuerStats, current_supply: int) -> int:
        return self.breakdown(stats, current_supply).mint_factor

    def max_mintable(self, stats: IssuerStats, current_supply: int) -> int:
        """Largest amount allowed by ``amount * scale <= supply * factor``."""
        return current_supply * self.calculate(stats, current_supply) // self.scale

    def allows(self, stats: IssuerStats, current_supply: int, amount: int) -> bool:
        return amount * self.scale <= current_supply * self.calculate(stats, current_supply)

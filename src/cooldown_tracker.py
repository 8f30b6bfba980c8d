"""
Reactivation cooldowns for issuers that leave before serving their term.

An issuer that self-deauthorizes (or hands its authorization away) before a
configured share of its term has elapsed may not be authorized again until
the block at which its term would have expired naturally. Leaving early
therefore never resets statistics sooner than a full term would.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class CooldownTracker:
    """Maps identities to the block before which (re)authorization is refused."""

    def __init__(self, term_length: int, early_exit_threshold_percent: int = 95):
        self.term_length = term_length
        self.early_exit_threshold_percent = early_exit_threshold_percent
        self._cooldown_until: dict[str, int] = {}

    def cooldown_until(self, identity: str) -> int:
        """Block at which the cooldown ends, 0 when none is recorded."""
        return self._cooldown_until.get(identity, 0)

    def is_cooling_down(self, identity: str, now: int) -> bool:
        return now < self._cooldown_until.get(identity, 0)

    def is_early_exit(self, start_block: int, now: int) -> bool:
        """
        True if fewer than the threshold share of term blocks have elapsed.

        Integer-only: elapsed * 100 < term_length * threshold_percent.
        """
        elapsed = now - start_block
        return elapsed * 100 < self.term_length * self.early_exit_threshold_percent

    def record_early_exit(
        self,
        identity: str,
        start_block: int,
        expiration_block: int,
        now: int
    ) -> int | None:
        """
        Apply the early-exit rule for an identity leaving the registry.

        Returns:
            The cooldown end block if one was set, otherwise None
        """
        if not self.is_early_exit(start_block, now):
            return None

        self._cooldown_until[identity] = expiration_block
        logger.info(
            "Cooldown set for early exit",
            extra={"identity": identity, "cooldown_until": expiration_block, "block": now},
        )
        return expiration_block

    def clear(self, identity: str) -> None:
        self._cooldown_until.pop(identity, None)

    def active_cooldowns(self, now: int) -> dict[str, int]:
        return {
            identity: until
            for identity, until in self._cooldown_until.items()
            if now < until
        }

    def to_dict(self) -> dict[str, int]:
        return dict(self._cooldown_until)

    def load(self, data: dict[str, Any]) -> None:
        """Replace the tracked cooldowns with persisted values."""
        self._cooldown_until = {identity: int(until) for identity, until in data.items()}

"""
Block clocks for the issuance controller.

All timing decisions (term expiration, cooldowns) are made against an
integer block number that never decreases. The host environment owns the
clock; these classes model it for tests and for the standalone server.
"""

import threading
import time
from abc import ABC, abstractmethod


class BlockClock(ABC):
    """Source of the current block number."""

    @abstractmethod
    def current_block(self) -> int:
        """
        Return the current block number.

        Returns:
            Non-negative integer that never decreases between calls
        """
        pass


class ManualBlockClock(BlockClock):
    """
    Clock advanced explicitly by the caller.

    Used by tests and simulations to step through terms and cooldowns.
    """

    def __init__(self, start_block: int = 0):
        if start_block < 0:
            raise ValueError("start_block must not be negative")
        self._block = start_block
        self._lock = threading.Lock()

    def current_block(self) -> int:
        with self._lock:
            return self._block

    def advance(self, blocks: int = 1) -> int:
        """Move the clock forward and return the new block number."""
        if blocks < 0:
            raise ValueError("Block clock cannot move backwards")
        with self._lock:
            self._block += blocks
            return self._block

    def set_block(self, block: int) -> None:
        """Jump to an absolute block number at or after the current one."""
        with self._lock:
            if block < self._block:
                raise ValueError(
                    f"Block clock cannot move backwards ({self._block} -> {block})"
                )
            self._block = block


class WallClockBlockClock(BlockClock):
    """
    Derives block numbers from wall-clock time.

    Block n starts at genesis_timestamp + n * block_time_seconds. The last
    returned value is remembered so a wall-clock step backwards never yields
    a smaller block. ``min_block`` carries that floor across restarts.
    """

    def __init__(
        self,
        genesis_timestamp: float,
        block_time_seconds: int = 2,
        min_block: int = 0
    ):
        if block_time_seconds <= 0:
            raise ValueError("block_time_seconds must be positive")
        if min_block < 0:
            raise ValueError("min_block must not be negative")
        self.genesis_timestamp = genesis_timestamp
        self.block_time_seconds = block_time_seconds
        self._last_block = min_block
        self._lock = threading.Lock()

    def current_block(self) -> int:
        elapsed = time.time() - self.genesis_timestamp
        block = max(0, int(elapsed // self.block_time_seconds))
        with self._lock:
            self._last_block = max(self._last_block, block)
            return self._last_block

"""
Shared state for the issuance API.

Holds the controller and storage backend used by every blueprint. The app
factory populates ``services``; blueprints read from it.
"""

import logging
from dataclasses import dataclass
from typing import Any

from block_clock import BlockClock, WallClockBlockClock
from issuance_config import IssuanceConfig
from issuance_controller import IssuanceController
from storage import StorageBackend, get_storage_backend
from token_ledger import InMemoryTokenLedger

logger = logging.getLogger(__name__)


@dataclass
class ServiceRegistry:
    """Services shared across blueprints."""
    controller: IssuanceController | None = None
    storage: StorageBackend | None = None


services = ServiceRegistry()


def _restored_clock(config: IssuanceConfig, data: dict[str, Any] | None) -> WallClockBlockClock:
    """
    Wall-clock blocks that continue from persisted state.

    A saved genesis and block time take precedence over the configured ones
    so term expirations and cooldowns keep their wall-clock meaning, and the
    clock never reads below the last block served before the restart.
    """
    if not data:
        return WallClockBlockClock(config.genesis_timestamp, config.block_time_seconds)

    saved = data.get("clock", {})
    genesis = saved.get("genesis_timestamp", config.genesis_timestamp)
    block_time = saved.get("block_time_seconds", config.block_time_seconds)
    floor = IssuanceController.persisted_block(data)
    if genesis != config.genesis_timestamp or block_time != config.block_time_seconds:
        logger.info(
            "Resuming persisted block clock",
            extra={"genesis_timestamp": genesis, "block_time_seconds": block_time, "min_block": floor},
        )
    return WallClockBlockClock(genesis, block_time, min_block=floor)


def build_controller(
    storage: StorageBackend,
    config: IssuanceConfig | None = None,
    clock: BlockClock | None = None
) -> IssuanceController:
    """
    Create the controller, restoring persisted state when the backend has any.

    Args:
        storage: Backend to load state from
        config: Deployment constants (default: from environment)
        clock: Block source (default: wall-clock blocks resumed from the
            persisted clock, else from the config)

    Raises:
        ConfigurationError: An explicit clock reads below the persisted block
    """
    config = config or IssuanceConfig.from_env()
    data = storage.load_state()
    clock = clock or _restored_clock(config, data)

    if data:
        controller = IssuanceController.from_dict(data, clock=clock, config=config)
        logger.info(
            "Restored issuance state",
            extra={
                "total_issuers": controller.registry.total_issuers,
                "total_supply": controller.ledger.total_supply(),
            },
        )
        return controller

    logger.info("Starting with empty issuance state")
    return IssuanceController(ledger=InMemoryTokenLedger(), clock=clock, config=config)


def init_services(
    controller: IssuanceController | None = None,
    storage: StorageBackend | None = None
) -> ServiceRegistry:
    """Populate the shared registry; missing pieces are built from the environment."""
    services.storage = storage or get_storage_backend()
    services.controller = controller or build_controller(services.storage)
    return services


def persist_state() -> None:
    """Save the controller state after a successful mutation."""
    if services.storage is None or services.controller is None:
        return
    services.controller.persist(services.storage)


def get_controller() -> IssuanceController:
    if services.controller is None:
        raise RuntimeError("Issuance controller not initialized")
    return services.controller


def status_payload() -> dict[str, Any]:
    payload = get_controller().get_status()
    if services.storage is not None:
        payload["storage"] = services.storage.get_info()
    return payload

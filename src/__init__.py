"""
Issuance Controller - autonomous issuance rights for a fungible-value ledger

A bounded set of issuer identities holds time-limited, self-renewing
permission to mint and burn. Each issuer's per-mint allowance is derived from
its own mint/burn history and the current supply.

Core Components:
    - IssuerRegistry: membership, terms, swap-and-truncate removal
    - CooldownTracker: reactivation delay after an early exit
    - MintFactorCalculator: integer-only per-issuer mint factor
    - IssuanceController: guarded, atomic mint/burn/registry operations

Infrastructure:
    - storage: JSON file and memory state backends
    - monitoring: metrics, structured logging, request middleware
    - api: Flask blueprints

Usage:
    from block_clock import ManualBlockClock
    from issuance_controller import IssuanceController
    from token_ledger import InMemoryTokenLedger

    controller = IssuanceController(InMemoryTokenLedger(), ManualBlockClock())
    controller.authorize_issuer("0xA11CE")
    controller.mint("0xB0B", 0, caller="0xA11CE")
"""

__version__ = "0.1.0"

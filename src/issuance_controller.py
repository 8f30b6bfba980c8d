"""
Issuance Controller - Orchestration

Entry point for every public operation. Each mutating call:

1. takes the controller lock (the host runs one call at a time),
2. reads the current block once,
3. runs its guards in a fixed order (authorization, expiration, target,
   amount),
4. mutates the registry and drives the token ledger,
5. emits notifications.

If any step raises, registry, cooldowns, ledger and notification log are
restored to their state before the call.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any

from block_clock import BlockClock, WallClockBlockClock
from issuance_config import IssuanceConfig
from issuance_events import EventLog, IssuanceEventType
from issuance_exceptions import (
    ConfigurationError,
    ExceedsMintFactorError,
    InvalidAmountError,
    InvalidReceiverError,
    IssuanceError,
    NotAuthorizedError,
)
from issuer_registry import IssuerRecord, IssuerRegistry
from mint_factor import MintFactorBreakdown, MintFactorCalculator
from monitoring.metrics import metrics
from storage.base import StorageBackend
from token_ledger import InMemoryTokenLedger, TokenLedger

logger = logging.getLogger(__name__)


def _require_positive_amount(amount: Any, operation: str) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount, operation=operation)
    return amount


class IssuanceController:
    """
    Autonomous issuance-rights controller.

    Key Design Principles:
    - No privileged operator: configuration is fixed at construction
    - Every rejection is a named exception and leaves no partial state
    - Mint allowance is derived only from the issuer's record and supply
    """

    def __init__(
        self,
        ledger: TokenLedger,
        clock: BlockClock,
        config: IssuanceConfig | None = None,
        registry: IssuerRegistry | None = None
    ):
        """
        Initialize the controller.

        Args:
            ledger: Token ledger that holds balances and supply
            clock: Source of the current block number
            config: Deployment constants (defaults to IssuanceConfig())
            registry: Existing registry, e.g. restored from storage
        """
        self.config = config or (registry.config if registry else IssuanceConfig())
        self.ledger = ledger
        self.clock = clock
        self.registry = registry or IssuerRegistry(self.config)
        self.events: EventLog = self.registry.events
        self.calculator = MintFactorCalculator.from_config(self.config)
        self._lock = threading.RLock()

    # ==================== TRANSACTIONS ====================

    @contextmanager
    def _transaction(self, operation: str):
        """Run one operation atomically; yields the block number for the call."""
        with self._lock:
            registry_state = self.registry.to_dict()
            ledger_state = self.ledger.snapshot()
            event_mark = self.events.mark()
            now = self.clock.current_block()

            try:
                yield now
            except IssuanceError as e:
                self._rollback(registry_state, ledger_state, event_mark)
                metrics.increment(
                    "rejected_operations_total",
                    labels={"operation": operation, "code": e.code},
                )
                logger.warning(
                    "Rejected %s: %s",
                    operation,
                    e.message,
                    extra={"code": e.code, "block": now},
                )
                raise
            except Exception:
                self._rollback(registry_state, ledger_state, event_mark)
                logger.exception("Unexpected failure during %s; state rolled back", operation)
                raise

            self._update_gauges()

    def _rollback(self, registry_state: dict[str, Any], ledger_state: Any, event_mark: int) -> None:
        self.registry.load(registry_state)
        self.ledger.restore(ledger_state)
        self.events.truncate(event_mark)

    def _update_gauges(self) -> None:
        metrics.set_gauge("active_issuers", self.registry.total_issuers)
        metrics.set_gauge("total_supply", self.ledger.total_supply())

    # ==================== REGISTRY OPERATIONS ====================

    def authorize_issuer(self, identity: str) -> dict[str, Any]:
        """
        Grant a fresh issuer term to an identity.

        Returns:
            The new issuer's record as a dictionary
        """
        with self._transaction("authorize_issuer") as now:
            record = self.registry.authorize(identity, now)
            metrics.increment("issuer_authorizations_total")
            return {"issuer": identity, **record.to_dict()}

    def deauthorize_issuer(self, identity: str, caller: str) -> dict[str, Any]:
        """
        Remove an issuer (self-removal, or anyone once the term has expired).

        Returns:
            Removal summary including any cooldown that was started
        """
        with self._transaction("deauthorize_issuer") as now:
            record = self.registry.deauthorize(identity, caller, now)
            metrics.increment("issuer_deauthorizations_total")
            return {
                "issuer": identity,
                "caller": caller,
                "block": now,
                "final_record": record.to_dict(),
                "cooldown_until": self.registry.cooldowns.cooldown_until(identity),
            }

    def deauthorize_all_expired_issuers(self, caller: str) -> list[str]:
        """Sweep every expired issuer; returns the removed identities."""
        with self._transaction("deauthorize_all_expired_issuers") as now:
            removed = self.registry.deauthorize_all_expired(caller, now)
            if removed:
                metrics.increment("issuer_deauthorizations_total", len(removed))
            return removed

    def transfer_issuer_authorization(self, new_identity: str, caller: str) -> dict[str, Any]:
        """
        Move the caller's authorization and statistics to ``new_identity``.

        Returns:
            Transfer summary with the inherited record
        """
        with self._transaction("transfer_issuer_authorization") as now:
            record = self.registry.transfer_authorization(caller, new_identity, now)
            metrics.increment("issuer_transfers_total")
            return {
                "old_issuer": caller,
                "new_issuer": new_identity,
                "position": record.position,
                "record": record.to_dict(),
                "cooldown_until": self.registry.cooldowns.cooldown_until(caller),
            }

    # ==================== ISSUANCE ====================

    def mint(self, to: str, amount: Any, caller: str) -> dict[str, Any]:
        """
        Mint on behalf of an unexpired issuer.

        With zero supply the requested amount is ignored and exactly the
        supply floor is minted. Otherwise the amount must be positive and
        within the caller's mint factor; any shortfall to the supply floor
        is added on top.

        Raises:
            NotAuthorizedError, TermExpiredError: Caller is not an active issuer
            InvalidReceiverError: ``to`` is the null or controller identity
            InvalidAmountError: Non-positive amount with non-zero supply
            ExceedsMintFactorError: Amount above the caller's allowance
        """
        operation = "mint"
        with self._transaction(operation) as now:
            record = self.registry.require_active_issuer(caller, now, operation)
            if not to or self.config.is_reserved_identity(to):
                reason = "controller identity" if to == self.config.controller_address else "null identity"
                raise InvalidReceiverError(str(to), reason, operation=operation)

            supply = self.ledger.total_supply()
            top_up = 0
            if supply == 0:
                requested = amount
                minted = self.config.supply_floor
            else:
                requested = _require_positive_amount(amount, operation)
                breakdown = self.calculator.breakdown(record, supply)
                scale = self.calculator.scale
                if requested * scale > supply * breakdown.mint_factor:
                    raise ExceedsMintFactorError(
                        caller,
                        requested,
                        supply * breakdown.mint_factor // scale,
                        breakdown.mint_factor,
                        operation=operation,
                    )
                top_up = max(0, self.config.supply_floor - (supply + requested))
                minted = requested + top_up

            self.ledger.mint(to, minted)
            record = self.registry.record_mint(caller, minted)
            self._emit_activity(caller, now, record, minted=minted)

            metrics.increment("mints_total")
            metrics.increment("units_minted_total", minted)
            logger.info(
                "Mint executed",
                extra={
                    "issuer": caller,
                    "receiver": to,
                    "minted": minted,
                    "floor_top_up": top_up,
                    "supply_before": supply,
                },
            )
            return {
                "issuer": caller,
                "to": to,
                "requested": requested,
                "minted": minted,
                "floor_top_up": top_up,
                "bootstrap": supply == 0,
                "total_supply": self.ledger.total_supply(),
                "record": record.to_dict(),
            }

    def burn(self, amount: Any, caller: str) -> dict[str, Any]:
        """Burn from the caller's own balance."""
        operation = "burn"
        with self._transaction(operation) as now:
            self.registry.require_active_issuer(caller, now, operation)
            amount = _require_positive_amount(amount, operation)

            self.ledger.burn(caller, amount)
            return self._finish_burn(caller, caller, amount, now)

    def burn_from(self, account: str, amount: Any, caller: str) -> dict[str, Any]:
        """Burn from ``account`` using the caller's allowance over it."""
        operation = "burn_from"
        with self._transaction(operation) as now:
            self.registry.require_active_issuer(caller, now, operation)
            amount = _require_positive_amount(amount, operation)

            self.ledger.spend_allowance(account, caller, amount)
            self.ledger.burn(account, amount)
            return self._finish_burn(caller, account, amount, now)

    def _finish_burn(self, caller: str, account: str, amount: int, now: int) -> dict[str, Any]:
        record = self.registry.record_burn(caller, amount)
        self._emit_activity(caller, now, record, burned=amount)

        metrics.increment("burns_total")
        metrics.increment("units_burned_total", amount)
        logger.info(
            "Burn executed",
            extra={"issuer": caller, "account": account, "burned": amount},
        )
        return {
            "issuer": caller,
            "account": account,
            "burned": amount,
            "total_supply": self.ledger.total_supply(),
            "record": record.to_dict(),
        }

    def _emit_activity(
        self,
        issuer: str,
        now: int,
        record: IssuerRecord,
        minted: int = 0,
        burned: int = 0
    ) -> None:
        self.events.emit(
            IssuanceEventType.ISSUER_ACTIVITY,
            now,
            issuer=issuer,
            minted=minted,
            burned=burned,
            total_minted=record.total_minted,
            mint_count=record.mint_count,
            total_burned=record.total_burned,
            burn_count=record.burn_count,
        )

    # ==================== REFERENCE LEDGER ====================

    def approve(self, owner: str, spender: str, amount: int) -> dict[str, Any]:
        """Set ``spender``'s allowance over ``owner``'s balance on the reference ledger."""
        with self._transaction("approve"):
            if not isinstance(self.ledger, InMemoryTokenLedger):
                raise ConfigurationError(
                    "Ledger approvals are not available for this ledger",
                    operation="approve",
                )
            self.ledger.approve(owner, spender, amount)
            return {
                "owner": owner,
                "spender": spender,
                "allowance": self.ledger.allowance(owner, spender),
            }

    # ==================== READ-ONLY QUERIES ====================

    def get_issuers(self) -> list[str]:
        with self._lock:
            return self.registry.get_issuers()

    def get_expired_issuers(self) -> list[str]:
        with self._lock:
            return self.registry.get_expired_issuers(self.clock.current_block())

    def get_issuer_record(self, identity: str) -> IssuerRecord | None:
        with self._lock:
            return self.registry.get_record(identity)

    def get_issuer_mint_factor_breakdown(self, identity: str) -> MintFactorBreakdown:
        with self._lock:
            record = self.registry.records.get(identity)
            if record is None:
                raise NotAuthorizedError(identity, operation="get_issuer_mint_factor")
            breakdown = self.calculator.breakdown(record, self.ledger.total_supply())
            logger.debug("Mint factor for %s", identity, extra=breakdown.to_dict())
            return breakdown

    def get_issuer_mint_factor(self, identity: str) -> int:
        """Current mint factor (parts per scale) of an issuer."""
        return self.get_issuer_mint_factor_breakdown(identity).mint_factor

    def get_issuer_max_mintable(self, identity: str) -> int:
        """
        Largest amount the issuer may request in one mint right now.

        With zero supply this is the supply floor, the amount a bootstrap
        mint creates.
        """
        with self._lock:
            breakdown = self.get_issuer_mint_factor_breakdown(identity)
            supply = breakdown.current_supply
            if supply == 0:
                return self.config.supply_floor
            return supply * breakdown.mint_factor // self.calculator.scale

    def get_cooldown(self, identity: str) -> dict[str, Any]:
        with self._lock:
            now = self.clock.current_block()
            until = self.registry.cooldowns.cooldown_until(identity)
            return {
                "identity": identity,
                "cooldown_until": until,
                "active": now < until,
                "current_block": now,
            }

    def get_events(
        self,
        limit: int | None = None,
        event_type: IssuanceEventType | None = None
    ) -> list[dict[str, Any]]:
        with self._lock:
            return [event.to_dict() for event in self.events.entries(limit, event_type)]

    def get_status(self) -> dict[str, Any]:
        with self._lock:
            now = self.clock.current_block()
            return {
                "current_block": now,
                "total_supply": self.ledger.total_supply(),
                "total_issuers": self.registry.total_issuers,
                "max_issuers": self.config.max_issuers,
                "expired_issuers": len(self.registry.get_expired_issuers(now)),
                "active_cooldowns": len(self.registry.cooldowns.active_cooldowns(now)),
                "event_count": len(self.events),
                "config": {
                    "issuer_term_length": self.config.issuer_term_length,
                    "base_mint_factor": self.config.base_mint_factor,
                    "mint_factor_scale": self.config.mint_factor_scale,
                    "supply_floor": self.config.supply_floor,
                    "early_exit_threshold_percent": self.config.early_exit_threshold_percent,
                    "controller_address": self.config.controller_address,
                },
            }

    # ==================== PERSISTENCE ====================

    def to_dict(self) -> dict[str, Any]:
        """Full state: registry, cooldowns, ledger, notifications and the last block served."""
        with self._lock:
            data = {
                "registry": self.registry.to_dict(),
                "events": self.events.to_dict(),
                "clock": self._clock_state(),
            }
            if isinstance(self.ledger, InMemoryTokenLedger):
                data["ledger"] = self.ledger.to_dict()
            return data

    def _clock_state(self) -> dict[str, Any]:
        state: dict[str, Any] = {"block": self.clock.current_block()}
        if isinstance(self.clock, WallClockBlockClock):
            state["genesis_timestamp"] = self.clock.genesis_timestamp
            state["block_time_seconds"] = self.clock.block_time_seconds
        return state

    def persist(self, storage: StorageBackend) -> None:
        """Save the current state; holds the lock so saves land in operation order."""
        with self._lock:
            storage.save_state(self.to_dict())

    @staticmethod
    def persisted_block(data: dict[str, Any]) -> int:
        """
        Lowest block a clock may report for ``data`` to stay consistent.

        That is the last block served before the save, or for state written
        without clock information, the latest term start on record.
        """
        starts = [
            int(record.get("start_block", 0))
            for record in data.get("registry", {}).get("records", {}).values()
        ]
        return max([int(data.get("clock", {}).get("block", 0)), *starts])

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        clock: BlockClock,
        config: IssuanceConfig | None = None
    ) -> "IssuanceController":
        """
        Rebuild a controller around an in-memory ledger from ``to_dict`` output.

        Raises:
            ConfigurationError: ``clock`` reads below the persisted block
        """
        config = config or IssuanceConfig()
        floor = cls.persisted_block(data)
        current = clock.current_block()
        if current < floor:
            raise ConfigurationError(
                f"Block clock reads {current}, behind persisted block {floor}",
                operation="restore_state",
                details={"current_block": current, "persisted_block": floor},
            )

        events = EventLog.from_dict(data.get("events", []))
        registry = IssuerRegistry.from_dict(data.get("registry", {}), config, events=events)
        ledger = InMemoryTokenLedger.from_dict(data.get("ledger", {}))
        return cls(ledger=ledger, clock=clock, config=config, registry=registry)

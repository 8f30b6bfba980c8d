"""
Issuance Controller - Issuer Registry

Owns the bounded set of identities currently allowed to mint and burn.

State layout:
- issuer_list: dense list of identities; each record's position is its index
- membership: set of current issuers for O(1) presence tests
- records: identity -> IssuerRecord, present iff the identity is a member
- total_issuers: always len(issuer_list) == len(membership)

Removal is swap-and-truncate: the last identity moves into the vacated slot
and its record's position is updated, so no re-index scan is needed.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any

from cooldown_tracker import CooldownTracker
from issuance_config import IssuanceConfig
from issuance_events import EventLog, IssuanceEventType
from issuance_exceptions import (
    AlreadyAuthorizedError,
    CapReachedError,
    CooldownActiveError,
    InvalidTargetError,
    InvariantViolationError,
    NotAuthorizedError,
    TermExpiredError,
    TermNotExpiredError,
)

logger = logging.getLogger(__name__)


@dataclass
class IssuerRecord:
    """Per-issuer validity window and lifetime counters."""
    position: int
    start_block: int
    expiration_block: int
    total_minted: int = 0
    mint_count: int = 0
    total_burned: int = 0
    burn_count: int = 0

    def is_expired(self, now: int) -> bool:
        return now >= self.expiration_block

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IssuerRecord":
        return cls(
            position=int(data["position"]),
            start_block=int(data["start_block"]),
            expiration_block=int(data["expiration_block"]),
            total_minted=int(data.get("total_minted", 0)),
            mint_count=int(data.get("mint_count", 0)),
            total_burned=int(data.get("total_burned", 0)),
            burn_count=int(data.get("burn_count", 0)),
        )


class IssuerRegistry:
    """
    Membership management for issuers.

    Every mutating method takes the block number ``now`` read once by the
    caller, so all guards in one operation see the same time.
    """

    def __init__(
        self,
        config: IssuanceConfig,
        cooldowns: CooldownTracker | None = None,
        events: EventLog | None = None
    ):
        self.config = config
        self.cooldowns = cooldowns or CooldownTracker(
            term_length=config.issuer_term_length,
            early_exit_threshold_percent=config.early_exit_threshold_percent,
        )
        self.events = events if events is not None else EventLog()

        self.issuer_list: list[str] = []
        self.membership: set[str] = set()
        self.records: dict[str, IssuerRecord] = {}
        self.total_issuers = 0

    # ==================== GUARDS ====================

    def require_issuer(self, identity: str, operation: str) -> IssuerRecord:
        """Return the identity's record or raise NotAuthorizedError."""
        if identity not in self.membership:
            raise NotAuthorizedError(identity, operation=operation)
        return self.records[identity]

    def require_active_issuer(self, identity: str, now: int, operation: str) -> IssuerRecord:
        """Return the record of an unexpired issuer; membership is checked first."""
        record = self.require_issuer(identity, operation)
        if record.is_expired(now):
            raise TermExpiredError(identity, record.expiration_block, now, operation=operation)
        return record

    def require_valid_target(self, identity: str, operation: str) -> None:
        if not identity:
            raise InvalidTargetError(str(identity), "empty identity", operation=operation)
        if self.config.is_reserved_identity(identity):
            reason = (
                "controller identity"
                if identity == self.config.controller_address
                else "null identity"
            )
            raise InvalidTargetError(identity, reason, operation=operation)

    def require_not_cooling_down(self, identity: str, now: int, operation: str) -> None:
        if self.cooldowns.is_cooling_down(identity, now):
            raise CooldownActiveError(
                identity, self.cooldowns.cooldown_until(identity), now, operation=operation
            )

    # ==================== MEMBERSHIP OPERATIONS ====================

    def authorize(self, identity: str, now: int) -> IssuerRecord:
        """
        Add an identity to the registry with a fresh term.

        Raises:
            InvalidTargetError: Null or controller identity
            AlreadyAuthorizedError: Identity is already a member
            CapReachedError: Registry is full
            CooldownActiveError: Identity left early and is still cooling down
        """
        operation = "authorize"
        self.require_valid_target(identity, operation)
        if identity in self.membership:
            raise AlreadyAuthorizedError(identity, operation=operation)
        if self.total_issuers >= self.config.max_issuers:
            raise CapReachedError(self.config.max_issuers, operation=operation)
        self.require_not_cooling_down(identity, now, operation)

        self.cooldowns.clear(identity)
        self.issuer_list.append(identity)
        self.membership.add(identity)
        record = IssuerRecord(
            position=len(self.issuer_list) - 1,
            start_block=now,
            expiration_block=now + self.config.issuer_term_length,
        )
        self.records[identity] = record
        self.total_issuers += 1

        self.events.emit(
            IssuanceEventType.ISSUER_AUTHORIZED,
            now,
            issuer=identity,
            expiration_block=record.expiration_block,
        )
        logger.info(
            "Issuer authorized",
            extra={
                "issuer": identity,
                "position": record.position,
                "expiration_block": record.expiration_block,
            },
        )
        return record

    def deauthorize(self, identity: str, caller: str, now: int) -> IssuerRecord:
        """
        Remove an issuer.

        The issuer may always remove itself; anyone may remove an issuer
        whose term has expired. A self-exit before the early-exit threshold
        starts a cooldown lasting until the original expiration block.

        Returns:
            The removed record as it was before deletion
        """
        operation = "deauthorize"
        record = self.require_issuer(identity, operation)
        if caller != identity and not record.is_expired(now):
            raise TermNotExpiredError(
                identity, caller, record.expiration_block, now, operation=operation
            )

        if caller == identity:
            self.cooldowns.record_early_exit(
                identity, record.start_block, record.expiration_block, now
            )
        return self._remove(identity, caller, now)

    def deauthorize_all_expired(self, caller: str, now: int) -> list[str]:
        """
        Remove every issuer whose term has ended.

        Scans back to front: a swap-removal only moves the last element into
        the vacated slot, and every slot after the cursor has already been
        visited, so no unvisited identity is skipped.

        Returns:
            Identities removed, in scan order
        """
        removed = []
        for index in range(len(self.issuer_list) - 1, -1, -1):
            identity = self.issuer_list[index]
            record = self.records[identity]
            if record.expiration_block > now:
                continue
            if caller == identity:
                self.cooldowns.record_early_exit(
                    identity, record.start_block, record.expiration_block, now
                )
            self._remove(identity, caller, now)
            removed.append(identity)

        if removed:
            logger.info(
                "Expired issuers swept",
                extra={"removed_count": len(removed), "remaining": self.total_issuers},
            )
        return removed

    def transfer_authorization(self, from_identity: str, to_identity: str, now: int) -> IssuerRecord:
        """
        Move an unexpired issuer's authorization and statistics to a new identity.

        The record is copied verbatim, position included, so the new identity
        takes over the same slot of the issuer list.

        Raises:
            NotAuthorizedError: from_identity is not a member
            TermExpiredError: from_identity's term has ended
            AlreadyAuthorizedError: to_identity is already a member
            InvalidTargetError: to_identity is the null or controller identity
            CooldownActiveError: to_identity is cooling down
        """
        operation = "transfer_authorization"
        record = self.require_active_issuer(from_identity, now, operation)
        if to_identity in self.membership:
            raise AlreadyAuthorizedError(to_identity, operation=operation)
        self.require_valid_target(to_identity, operation)
        self.require_not_cooling_down(to_identity, now, operation)

        self.cooldowns.record_early_exit(
            from_identity, record.start_block, record.expiration_block, now
        )

        migrated = IssuerRecord(**record.to_dict())
        self.issuer_list[migrated.position] = to_identity
        self.membership.discard(from_identity)
        del self.records[from_identity]
        self.membership.add(to_identity)
        self.records[to_identity] = migrated
        self.cooldowns.clear(to_identity)

        self.events.emit(
            IssuanceEventType.ISSUER_AUTHORIZATION_TRANSFERRED,
            now,
            old_issuer=from_identity,
            new_issuer=to_identity,
            position=migrated.position,
        )
        logger.info(
            "Issuer authorization transferred",
            extra={
                "old_issuer": from_identity,
                "new_issuer": to_identity,
                "position": migrated.position,
            },
        )
        return migrated

    def _remove(self, identity: str, caller: str, now: int) -> IssuerRecord:
        """Swap-and-truncate removal of a member."""
        record = self.records[identity]
        index = record.position
        last = len(self.issuer_list) - 1

        if index != last:
            moved = self.issuer_list[last]
            self.issuer_list[index] = moved
            self.records[moved].position = index
        self.issuer_list.pop()

        self.membership.discard(identity)
        del self.records[identity]
        self.total_issuers -= 1

        self.events.emit(
            IssuanceEventType.ISSUER_DEAUTHORIZED,
            now,
            issuer=identity,
            caller=caller,
        )
        logger.info(
            "Issuer deauthorized",
            extra={"issuer": identity, "caller": caller, "remaining": self.total_issuers},
        )
        return record

    # ==================== ACTIVITY COUNTERS ====================

    def record_mint(self, identity: str, amount: int) -> IssuerRecord:
        record = self.records[identity]
        record.total_minted += amount
        record.mint_count += 1
        return record

    def record_burn(self, identity: str, amount: int) -> IssuerRecord:
        record = self.records[identity]
        record.total_burned += amount
        record.burn_count += 1
        return record

    # ==================== READ-ONLY QUERIES ====================

    def is_issuer(self, identity: str) -> bool:
        return identity in self.membership

    def is_active_issuer(self, identity: str, now: int) -> bool:
        record = self.records.get(identity)
        return record is not None and not record.is_expired(now)

    def get_record(self, identity: str) -> IssuerRecord | None:
        """Copy of an issuer's record, or None if not a member."""
        record = self.records.get(identity)
        if record is None:
            return None
        return IssuerRecord(**record.to_dict())

    def get_issuers(self) -> list[str]:
        return list(self.issuer_list)

    def get_expired_issuers(self, now: int) -> list[str]:
        """
        Issuers whose term has ended, in list order.

        Counts first, then fills a result of exactly that size.
        """
        count = 0
        for identity in self.issuer_list:
            if self.records[identity].expiration_block <= now:
                count += 1

        expired = [""] * count
        slot = 0
        for identity in self.issuer_list:
            if self.records[identity].expiration_block <= now:
                expired[slot] = identity
                slot += 1
        return expired

    def check_invariants(self) -> None:
        """
        Verify the structural invariants of the registry.

        Raises:
            InvariantViolationError: Describing the first broken invariant
        """
        problems = []
        if not len(self.issuer_list) == self.total_issuers == len(self.membership):
            problems.append(
                f"size mismatch: list={len(self.issuer_list)} "
                f"total={self.total_issuers} membership={len(self.membership)}"
            )
        if set(self.records) != self.membership:
            problems.append("records keys differ from membership")
        if set(self.issuer_list) != self.membership:
            problems.append("issuer list differs from membership")
        for index, identity in enumerate(self.issuer_list):
            record = self.records.get(identity)
            if record is not None and record.position != index:
                problems.append(f"{identity} at index {index} has position {record.position}")
        if self.total_issuers > self.config.max_issuers:
            problems.append(f"{self.total_issuers} issuers exceeds cap {self.config.max_issuers}")

        if problems:
            raise InvariantViolationError(
                "Registry invariants violated: " + "; ".join(problems),
                operation="check_invariants",
                details={"problems": problems}
            )

    # ==================== PERSISTENCE ====================

    def to_dict(self) -> dict[str, Any]:
        return {
            "issuer_list": list(self.issuer_list),
            "membership": sorted(self.membership),
            "records": {identity: record.to_dict() for identity, record in self.records.items()},
            "total_issuers": self.total_issuers,
            "cooldown_until": self.cooldowns.to_dict(),
        }

    def load(self, data: dict[str, Any]) -> None:
        """Replace registry state with a snapshot produced by ``to_dict``."""
        self.issuer_list = list(data.get("issuer_list", []))
        self.membership = set(data.get("membership", self.issuer_list))
        self.records = {
            identity: IssuerRecord.from_dict(record)
            for identity, record in data.get("records", {}).items()
        }
        self.total_issuers = int(data.get("total_issuers", len(self.issuer_list)))
        self.cooldowns.load(data.get("cooldown_until", {}))

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        config: IssuanceConfig,
        events: EventLog | None = None
    ) -> "IssuerRegistry":
        registry = cls(config, events=events)
        registry.load(data)
        registry.check_invariants()
        return registry

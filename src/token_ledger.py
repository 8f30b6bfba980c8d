"""
Token ledger interface and in-memory reference ledger.

The issuance controller does not store balances. It drives a standard
fungible-token ledger through mint, burn, spend_allowance and total_supply,
and the ledger fires its own Transfer/Approval notifications.

InMemoryTokenLedger is the ledger used by the standalone server and tests
(in production the balances live on the host chain).
"""

import copy
import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

from issuance_config import ZERO_ADDRESS
from issuance_exceptions import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidLedgerAccountError,
    InvalidLedgerAmountError,
)

logger = logging.getLogger(__name__)


class TokenLedger(ABC):
    """Operations the controller needs from the underlying token ledger."""

    @abstractmethod
    def total_supply(self) -> int:
        pass

    @abstractmethod
    def mint(self, account: str, amount: int) -> None:
        pass

    @abstractmethod
    def burn(self, account: str, amount: int) -> None:
        pass

    @abstractmethod
    def spend_allowance(self, owner: str, spender: str, amount: int) -> None:
        pass

    @abstractmethod
    def snapshot(self) -> Any:
        """Opaque copy of ledger state, used to roll back a failed operation."""
        pass

    @abstractmethod
    def restore(self, snapshot: Any) -> None:
        pass


class InMemoryTokenLedger(TokenLedger):
    """
    Balance and allowance bookkeeping for a single fungible token.

    Each method validates fully before mutating, so a raised error leaves
    the ledger unchanged.
    """

    def __init__(self):
        self._balances: dict[str, int] = {}
        self._allowances: dict[str, dict[str, int]] = {}
        self._total_supply = 0
        self.events: list[dict[str, Any]] = []

    # ==================== QUERIES ====================

    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get(owner, {}).get(spender, 0)

    # ==================== SUPPLY CHANGES ====================

    def mint(self, account: str, amount: int) -> None:
        self._require_amount(amount, "mint")
        self._require_account(account, "mint")

        self._balances[account] = self.balance_of(account) + amount
        self._total_supply += amount
        self._emit_event("Transfer", {"from": ZERO_ADDRESS, "to": account, "amount": amount})

    def burn(self, account: str, amount: int) -> None:
        self._require_amount(amount, "burn")
        self._require_account(account, "burn")
        balance = self.balance_of(account)
        if balance < amount:
            raise InsufficientBalanceError(account, balance, amount, operation="burn")

        self._balances[account] = balance - amount
        self._total_supply -= amount
        self._emit_event("Transfer", {"from": account, "to": ZERO_ADDRESS, "amount": amount})

    # ==================== TRANSFERS AND ALLOWANCES ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        self._require_amount(amount, "transfer")
        self._require_account(sender, "transfer")
        self._require_account(recipient, "transfer")
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalanceError(sender, balance, amount, operation="transfer")

        self._balances[sender] = balance - amount
        self._balances[recipient] = self.balance_of(recipient) + amount
        self._emit_event("Transfer", {"from": sender, "to": recipient, "amount": amount})

    def approve(self, owner: str, spender: str, amount: int) -> None:
        self._require_amount(amount, "approve")
        self._require_account(owner, "approve")
        self._require_account(spender, "approve")

        self._allowances.setdefault(owner, {})[spender] = amount
        self._emit_event("Approval", {"owner": owner, "spender": spender, "amount": amount})

    def spend_allowance(self, owner: str, spender: str, amount: int) -> None:
        self._require_amount(amount, "spend_allowance")
        current = self.allowance(owner, spender)
        if current < amount:
            raise InsufficientAllowanceError(owner, spender, current, amount)

        self._allowances.setdefault(owner, {})[spender] = current - amount

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> None:
        current = self.allowance(owner, spender)
        if current < amount:
            raise InsufficientAllowanceError(owner, spender, current, amount, operation="transfer_from")
        self.transfer(owner, recipient, amount)
        self.spend_allowance(owner, spender, amount)

    # ==================== ROLLBACK AND PERSISTENCE ====================

    def snapshot(self) -> dict[str, Any]:
        return {
            "balances": dict(self._balances),
            "allowances": copy.deepcopy(self._allowances),
            "total_supply": self._total_supply,
            "event_count": len(self.events),
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        self._balances = dict(snapshot["balances"])
        self._allowances = copy.deepcopy(snapshot["allowances"])
        self._total_supply = snapshot["total_supply"]
        del self.events[snapshot["event_count"]:]

    def to_dict(self) -> dict[str, Any]:
        return {
            "balances": dict(self._balances),
            "allowances": copy.deepcopy(self._allowances),
            "total_supply": self._total_supply,
            "events": copy.deepcopy(self.events),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InMemoryTokenLedger":
        ledger = cls()
        ledger._balances = {k: int(v) for k, v in data.get("balances", {}).items()}
        ledger._allowances = {
            owner: {spender: int(v) for spender, v in spenders.items()}
            for owner, spenders in data.get("allowances", {}).items()
        }
        ledger._total_supply = int(data.get("total_supply", sum(ledger._balances.values())))
        ledger.events = copy.deepcopy(data.get("events", []))
        return ledger

    # ==================== HELPERS ====================

    @staticmethod
    def _require_amount(amount: Any, operation: str) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidLedgerAmountError(amount, operation=operation)

    @staticmethod
    def _require_account(account: str, operation: str) -> None:
        if not account or account == ZERO_ADDRESS:
            raise InvalidLedgerAccountError(str(account), operation=operation)

    def _emit_event(self, event_type: str, data: dict[str, Any]) -> None:
        """Emit a ledger notification."""
        self.events.append({
            "event_type": event_type,
            "timestamp": datetime.now(UTC).isoformat(),
            "data": data,
        })
        logger.debug("Ledger %s", event_type, extra=data)

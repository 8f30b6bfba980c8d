"""
Issuance Controller - Exception Hierarchy

Every rejected request is a named, synchronous failure that aborts the whole
operation. Exceptions carry a stable error code, an HTTP status for the API
layer and structured details for logging.

Categories:
- Eligibility: not authorized, term expired, already authorized, cap reached,
  cooldown active
- Target validity: null identity or the controller's own identity
- Economic bound: amount exceeds the mint factor, amount not positive
- Timing: term not yet expired (forced deauthorization by a third party)
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Failure categories for rejected requests."""
    ELIGIBILITY = "eligibility"
    TARGET = "target"
    ECONOMIC_BOUND = "economic_bound"
    TIMING = "timing"
    LEDGER = "ledger"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Structured context for error tracking and debugging."""
    operation: str
    category: ErrorCategory
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "operation": self.operation,
            "category": self.category.value,
            "timestamp": self.timestamp,
            "details": self.details,
        }


class IssuanceError(Exception):
    """
    Base exception for all issuance controller errors.

    Subclasses set ``code``, ``category`` and ``http_status``.
    """

    code = "issuance_error"
    category = ErrorCategory.INTERNAL
    http_status = 400

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        details: dict[str, Any] | None = None,
        cause: Exception | None = None
    ):
        super().__init__(message)
        self.message = message
        self.context = ErrorContext(
            operation=operation,
            category=self.category,
            details=details or {}
        )
        self.cause = cause

        if cause:
            self.__cause__ = cause

    @property
    def details(self) -> dict[str, Any]:
        return self.context.details

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        result = {
            "error": self.message,
            "code": self.code,
            **self.context.to_dict()
        }
        if self.cause:
            result["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause)
            }
        return result

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# =============================================================================
# Eligibility Errors
# =============================================================================

class EligibilityError(IssuanceError):
    """Caller or target is not eligible for the requested action."""
    category = ErrorCategory.ELIGIBILITY
    http_status = 403


class NotAuthorizedError(EligibilityError):
    """Identity is not a current issuer."""
    code = "not_authorized"

    def __init__(self, identity: str, operation: str = "unknown"):
        super().__init__(
            f"{identity} is not an authorized issuer",
            operation=operation,
            details={"identity": identity}
        )
        self.identity = identity


class TermExpiredError(EligibilityError):
    """Issuer's term has ended."""
    code = "term_expired"

    def __init__(self, identity: str, expiration_block: int, current_block: int,
                 operation: str = "unknown"):
        super().__init__(
            f"Issuer term for {identity} expired at block {expiration_block}",
            operation=operation,
            details={
                "identity": identity,
                "expiration_block": expiration_block,
                "current_block": current_block,
            }
        )
        self.identity = identity
        self.expiration_block = expiration_block


class AlreadyAuthorizedError(EligibilityError):
    """Identity is already a current issuer."""
    code = "already_authorized"
    http_status = 409

    def __init__(self, identity: str, operation: str = "unknown"):
        super().__init__(
            f"{identity} is already an authorized issuer",
            operation=operation,
            details={"identity": identity}
        )
        self.identity = identity


class CapReachedError(EligibilityError):
    """Registry already holds the maximum number of issuers."""
    code = "cap_reached"
    http_status = 409

    def __init__(self, max_issuers: int, operation: str = "unknown"):
        super().__init__(
            f"Issuer cap of {max_issuers} reached",
            operation=operation,
            details={"max_issuers": max_issuers}
        )
        self.max_issuers = max_issuers


class CooldownActiveError(EligibilityError):
    """Identity exited early and may not be authorized until its cooldown ends."""
    code = "cooldown_active"

    def __init__(self, identity: str, cooldown_until: int, current_block: int,
                 operation: str = "unknown"):
        super().__init__(
            f"{identity} is cooling down until block {cooldown_until}",
            operation=operation,
            details={
                "identity": identity,
                "cooldown_until": cooldown_until,
                "current_block": current_block,
            }
        )
        self.identity = identity
        self.cooldown_until = cooldown_until


# =============================================================================
# Target Validity Errors
# =============================================================================

class TargetError(IssuanceError):
    """Target identity is the null identity or the controller itself."""
    category = ErrorCategory.TARGET


class InvalidTargetError(TargetError):
    """Authorization target is not a usable identity."""
    code = "invalid_target"

    def __init__(self, identity: str, reason: str, operation: str = "unknown"):
        super().__init__(
            f"Invalid target {identity}: {reason}",
            operation=operation,
            details={"identity": identity, "reason": reason}
        )
        self.identity = identity


class InvalidReceiverError(TargetError):
    """Mint receiver is not a usable identity."""
    code = "invalid_receiver"

    def __init__(self, identity: str, reason: str, operation: str = "mint"):
        super().__init__(
            f"Invalid receiver {identity}: {reason}",
            operation=operation,
            details={"identity": identity, "reason": reason}
        )
        self.identity = identity


# =============================================================================
# Economic Bound Errors
# =============================================================================

class EconomicBoundError(IssuanceError):
    """Requested amount violates an economic bound."""
    category = ErrorCategory.ECONOMIC_BOUND


class ExceedsMintFactorError(EconomicBoundError):
    """Requested mint exceeds the issuer's mint factor share of supply."""
    code = "exceeds_mint_factor"

    def __init__(self, identity: str, requested: int, max_mintable: int,
                 mint_factor: int, operation: str = "mint"):
        super().__init__(
            f"Requested {requested} exceeds max mintable {max_mintable} for {identity}",
            operation=operation,
            details={
                "identity": identity,
                "requested": requested,
                "max_mintable": max_mintable,
                "mint_factor": mint_factor,
            }
        )
        self.requested = requested
        self.max_mintable = max_mintable


class InvalidAmountError(EconomicBoundError):
    """Amount must be a positive integer."""
    code = "invalid_amount"

    def __init__(self, amount: Any, operation: str = "unknown"):
        super().__init__(
            f"Amount must be a positive integer, got {amount!r}",
            operation=operation,
            details={"amount": amount}
        )
        self.amount = amount


# =============================================================================
# Timing Errors
# =============================================================================

class TimingError(IssuanceError):
    """Action is not permitted yet."""
    category = ErrorCategory.TIMING
    http_status = 403


class TermNotExpiredError(TimingError):
    """Third party tried to remove an issuer whose term is still running."""
    code = "term_not_expired"

    def __init__(self, identity: str, caller: str, expiration_block: int,
                 current_block: int, operation: str = "deauthorize"):
        super().__init__(
            f"Term for {identity} runs until block {expiration_block}; "
            f"only the issuer may deauthorize before then",
            operation=operation,
            details={
                "identity": identity,
                "caller": caller,
                "expiration_block": expiration_block,
                "current_block": current_block,
            }
        )
        self.identity = identity
        self.expiration_block = expiration_block


# =============================================================================
# Ledger Errors
# =============================================================================

class LedgerError(IssuanceError):
    """Base class for failures raised by the token ledger."""
    code = "ledger_error"
    category = ErrorCategory.LEDGER


class InsufficientBalanceError(LedgerError):
    """Account balance is below the requested debit."""
    code = "insufficient_balance"

    def __init__(self, account: str, balance: int, amount: int, operation: str = "burn"):
        super().__init__(
            f"Balance of {account} ({balance}) is below {amount}",
            operation=operation,
            details={"account": account, "balance": balance, "amount": amount}
        )


class InsufficientAllowanceError(LedgerError):
    """Spender allowance is below the requested amount."""
    code = "insufficient_allowance"

    def __init__(self, owner: str, spender: str, allowance: int, amount: int,
                 operation: str = "spend_allowance"):
        super().__init__(
            f"Allowance of {spender} over {owner} ({allowance}) is below {amount}",
            operation=operation,
            details={
                "owner": owner,
                "spender": spender,
                "allowance": allowance,
                "amount": amount,
            }
        )


class InvalidLedgerAmountError(LedgerError):
    """Ledger amounts must be non-negative integers."""
    code = "invalid_ledger_amount"

    def __init__(self, amount: Any, operation: str = "unknown"):
        super().__init__(
            f"Ledger amount must be a non-negative integer, got {amount!r}",
            operation=operation,
            details={"amount": amount}
        )


class InvalidLedgerAccountError(LedgerError):
    """Ledger account is the null identity."""
    code = "invalid_ledger_account"

    def __init__(self, account: str, operation: str = "unknown"):
        super().__init__(
            f"Invalid ledger account {account}",
            operation=operation,
            details={"account": account}
        )


# =============================================================================
# Configuration and Internal Errors
# =============================================================================

class ConfigurationError(IssuanceError):
    """Deployment configuration is invalid."""
    code = "configuration_error"
    category = ErrorCategory.CONFIGURATION
    http_status = 500


class InvariantViolationError(IssuanceError):
    """Registry state no longer satisfies its structural invariants."""
    code = "invariant_violation"
    category = ErrorCategory.INTERNAL
    http_status = 500

"""
Core types for the interest-accruing balance ledger.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerStore, AccessGuard, CollateralVault
2. Immutable data structures: HolderRecord, Notification
3. Exceptions: AccrualError and domain-specific error types
4. Enums: Action (capabilities checked by the guard), EventType
5. Constants: fixed-point precision, the "all of it" amount sentinel

Amounts, rates and timestamps are plain Python ints. Rates are fixed-point
values scaled by PRECISION and express interest per unit of principal per
second of the ledger clock.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple,
    runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point scale for rates and accrual factors.
PRECISION = 10 ** 18

# Amount sentinel meaning "the holder's entire settled principal".
# Also used as an allowance value that is never decremented.
MAX_AMOUNT = 2 ** 256 - 1

# 365-day year, used only by the annual-rate conversion helper.
SECONDS_PER_YEAR = 365 * 24 * 60 * 60

# Counterparty recorded on mint and burn notifications.
ZERO_ADDRESS = "0x0"

DEFAULT_SYMBOL = "IUSD"
DEFAULT_DECIMALS = 18


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from holder id to materialized principal.
PrincipalMap = Dict[str, int]

# Callback receiving committed notifications.
Subscriber = Callable[['Notification'], None]


# ============================================================================
# ENUMS
# ============================================================================

class Action(Enum):
    """Capabilities an AccessGuard is asked about."""
    SET_RATE = "set_rate"
    MINT = "mint"
    BURN = "burn"


class EventType(Enum):
    """Kinds of notification emitted for off-ledger observers."""
    RATE_CHANGED = "rate_changed"
    INTEREST_ACCRUED = "interest_accrued"
    MINTED = "minted"
    BURNED = "burned"
    TRANSFER = "transfer"
    APPROVAL = "approval"
    DEPOSIT = "deposit"
    REDEEM = "redeem"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class AccrualError(Exception):
    """Base exception for all ledger errors."""
    pass


class RateIncreaseRejected(AccrualError):
    """Raised when a rate update is not strictly below the current rate."""

    def __init__(self, old_rate: int, new_rate: int):
        self.old_rate = old_rate
        self.new_rate = new_rate
        super().__init__(
            f"Rate can only decrease: current={old_rate}, requested={new_rate}"
        )


class Unauthorized(AccrualError):
    """Raised when the caller lacks the capability for an action."""

    def __init__(self, caller: str, action: Action):
        self.caller = caller
        self.action = action
        super().__init__(f"{caller} is not authorized to {action.value}")


class InsufficientPrincipal(AccrualError):
    """Raised when a burn or transfer exceeds the settled principal."""

    def __init__(self, holder: str, requested: int, available: int):
        self.holder = holder
        self.requested = requested
        self.available = available
        super().__init__(
            f"{holder}: requested {requested} but settled principal is {available}"
        )


class InsufficientAllowance(AccrualError):
    """Raised when a delegated transfer exceeds the approved allowance."""

    def __init__(self, owner: str, spender: str, requested: int, available: int):
        self.owner = owner
        self.spender = spender
        self.requested = requested
        self.available = available
        super().__init__(
            f"{spender} may move {available} of {owner}'s units, requested {requested}"
        )


class PayoutFailed(AccrualError):
    """Raised when the collateral payout of a redemption does not succeed."""

    def __init__(self, payee: str, amount: int):
        self.payee = payee
        self.amount = amount
        super().__init__(f"Collateral payout of {amount} to {payee} failed")


class CollateralTransferFailed(AccrualError):
    """Raised when collateral cannot be collected from a depositor."""

    def __init__(self, payer: str, amount: int):
        self.payer = payer
        self.amount = amount
        super().__init__(f"Could not collect {amount} collateral from {payer}")


class NotificationDeliveryFailed(AccrualError):
    """
    Raised after commit when one or more subscriber callbacks failed.

    The operation that produced the notifications is committed and every
    subscriber has been offered every notification. `failures` holds
    (notification, exception) pairs in delivery order.
    """

    def __init__(self, failures: List[Tuple['Notification', Exception]]):
        self.failures = failures
        first_notification, first_error = failures[0]
        super().__init__(
            f"Operation committed but {len(failures)} subscriber callback(s) failed; "
            f"first on {first_notification!r}: {first_error!r}"
        )


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerStore(Protocol):
    """
    Principal bookkeeping consumed by the settlement engine.

    Implementations must keep every principal non-negative and conserve
    total supply across moves. Every mutation has an inverse among the
    other mutations, which is what InterestLedger uses to unwind a failed
    operation.
    """

    def principal_of(self, holder: str) -> int:
        """Return the materialized principal (0 for unknown holders)."""
        ...

    def increase_principal(self, holder: str, amount: int) -> None:
        """Create `amount` new units for `holder`."""
        ...

    def decrease_principal(self, holder: str, amount: int) -> None:
        """Destroy `amount` units; raises InsufficientPrincipal if short."""
        ...

    def move_principal(self, source: str, dest: str, amount: int) -> None:
        """Move units between holders; raises InsufficientPrincipal if short."""
        ...

    def total_supply(self) -> int:
        """Sum of all principals."""
        ...

    def holders(self) -> Iterable[str]:
        """Holders with a non-zero principal."""
        ...


@runtime_checkable
class AccessGuard(Protocol):
    """Capability predicate deciding who may mint, burn or change the rate."""

    def is_authorized(self, caller: str, action: Action) -> bool:
        ...


@runtime_checkable
class CollateralVault(Protocol):
    """
    Custodian of the collateral backing the exchange facade.

    Both transfer methods return False on failure and leave the vault
    unchanged in that case.
    """

    @property
    def reserves(self) -> int:
        ...

    def collect(self, payer: str, amount: int) -> bool:
        ...

    def pay_out(self, payee: str, amount: int) -> bool:
        ...


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class HolderRecord:
    """
    Per-holder accrual snapshot.

    Attributes:
        locked_rate: Rate captured when the holder's principal last went
            from zero to non-zero. Fixed-point, scaled by PRECISION.
        last_settled: Ledger time of the holder's most recent settlement.

    Records are replaced, never mutated, and never removed from the ledger
    even when the holder's principal drops back to zero.
    """
    locked_rate: int
    last_settled: int

    def __post_init__(self):
        if self.locked_rate < 0:
            raise ValueError(f"locked_rate must be non-negative, got {self.locked_rate}")
        if self.last_settled < 0:
            raise ValueError(f"last_settled must be non-negative, got {self.last_settled}")

    def settled_at(self, timestamp: int) -> HolderRecord:
        """Return a copy with the settlement clock advanced to `timestamp`."""
        if timestamp < self.last_settled:
            raise ValueError(
                f"Settlement clock cannot move backwards: {timestamp} < {self.last_settled}"
            )
        return HolderRecord(locked_rate=self.locked_rate, last_settled=timestamp)

    def __repr__(self) -> str:
        return f"HolderRecord(rate={self.locked_rate}, settled@{self.last_settled})"


@dataclass(frozen=True, slots=True)
class Notification:
    """
    Immutable record of an observable ledger event.

    Attributes:
        event_type: What happened.
        holder: Primary holder affected (the sender for transfers).
        amount: Units involved (the new rate for RATE_CHANGED).
        timestamp: Ledger time of the operation.
        sequence_number: Monotonic position in the ledger's event log.
        counterparty: Other side of the event, if any.
        data: Extra event-specific fields.
    """
    event_type: EventType
    holder: str
    amount: int
    timestamp: int
    sequence_number: int
    counterparty: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        arrow = f"→{self.counterparty}" if self.counterparty else ""
        return (
            f"Notification(#{self.sequence_number} {self.event_type.value} "
            f"{self.amount} {self.holder}{arrow} @{self.timestamp})"
        )


def validate_holder(holder: str) -> None:
    """Raise ValueError for an empty or blank holder id."""
    if not isinstance(holder, str) or not holder.strip():
        raise ValueError("Holder id cannot be empty")


def validate_amount(amount: int, name: str = "amount") -> None:
    """Raise ValueError unless `amount` is a non-negative int."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"{name} must be int, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"{name} must be non-negative, got {amount}")

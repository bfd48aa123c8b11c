"""
accrual - Interest-Accruing Balance Ledger

Each holder's balance grows at the rate locked when they were first funded,
without any background process: interest is computed on demand and only
materialized into principal when an operation touches the holder.

Usage:
    from accrual import InterestLedger, CapabilityGuard, Action, MAX_AMOUNT

    guard = CapabilityGuard({"treasury": {Action.MINT, Action.BURN, Action.SET_RATE}})
    ledger = InterestLedger("main", initial_rate=5 * 10**10, guard=guard)

    ledger.mint("treasury", "alice", 100_000)      # alice locks 5e10
    ledger.advance_time(3600)
    ledger.effective_balance_of("alice")           # includes accrued interest
    ledger.transfer("alice", "bob", 40_000)        # settles both, bob inherits 5e10
    ledger.set_rate("treasury", 4 * 10**10)        # only affects future lock-ins
    ledger.burn("treasury", "alice", MAX_AMOUNT)   # burns settled principal
"""

# Core types
from .core import (
    HolderRecord,
    Notification,
    Action,
    EventType,
    LedgerStore,
    AccessGuard,
    CollateralVault,
    AccrualError,
    RateIncreaseRejected,
    Unauthorized,
    InsufficientPrincipal,
    InsufficientAllowance,
    PayoutFailed,
    CollateralTransferFailed,
    NotificationDeliveryFailed,
    PRECISION,
    MAX_AMOUNT,
    SECONDS_PER_YEAR,
    ZERO_ADDRESS,
)

# Pure accrual math
from .interest import (
    accrual_factor,
    calculate_accrued_balance,
    calculate_interest_owed,
    resolve_amount,
    per_second_rate,
    to_display_amount,
)

# Collaborators
from .store import InMemoryLedgerStore
from .guards import AllowAllGuard, CapabilityGuard
from .rates import RateRegistry

# Ledger
from .ledger import InterestLedger

# Exchange facade
from .exchange import ExchangeFacade, InMemoryCollateralVault


__all__ = [
    # Core
    'HolderRecord', 'Notification', 'Action', 'EventType',
    'LedgerStore', 'AccessGuard', 'CollateralVault',
    'AccrualError', 'RateIncreaseRejected', 'Unauthorized', 'InsufficientPrincipal',
    'InsufficientAllowance', 'PayoutFailed', 'CollateralTransferFailed',
    'NotificationDeliveryFailed',
    'PRECISION', 'MAX_AMOUNT', 'SECONDS_PER_YEAR', 'ZERO_ADDRESS',
    # Interest
    'accrual_factor', 'calculate_accrued_balance', 'calculate_interest_owed',
    'resolve_amount', 'per_second_rate', 'to_display_amount',
    # Collaborators
    'InMemoryLedgerStore', 'AllowAllGuard', 'CapabilityGuard', 'RateRegistry',
    # Ledger
    'InterestLedger',
    # Exchange
    'ExchangeFacade', 'InMemoryCollateralVault',
]

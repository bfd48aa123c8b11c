"""
conftest.py - Shared pytest fixtures for accrual tests

Provides common fixtures used across unit, conformance and functional tests:
- Basic ledgers (empty, funded)
- A ledger behind a CapabilityGuard
- An exchange facade with a funded collateral vault
"""

import pytest

from accrual import (
    InterestLedger, CapabilityGuard, Action,
    ExchangeFacade, InMemoryCollateralVault,
)


# =============================================================================
# CONSTANTS
# =============================================================================

# 5e10 per second, the rate used throughout the scenario tests
RATE = 5 * 10 ** 10

TREASURY = "treasury"
GOVERNOR = "governor"
EXCHANGE = "exchange"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def make_ledger(rate: int = RATE, **kwargs) -> InterestLedger:
    """Create a quiet ledger for testing."""
    kwargs.setdefault("verbose", False)
    return InterestLedger("test", rate, **kwargs)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def ledger():
    """Empty ledger with the default allow-all guard."""
    return make_ledger()


@pytest.fixture
def funded_ledger():
    """Ledger where alice holds 100_000 and bob 50_000, both locked at RATE."""
    ledger = make_ledger()
    ledger.mint(TREASURY, "alice", 100_000)
    ledger.mint(TREASURY, "bob", 50_000)
    return ledger


@pytest.fixture
def guard():
    return CapabilityGuard({
        TREASURY: {Action.MINT, Action.BURN},
        GOVERNOR: {Action.SET_RATE},
        EXCHANGE: {Action.MINT, Action.BURN},
    })


@pytest.fixture
def guarded_ledger(guard):
    """Ledger where only treasury mints/burns and only governor sets the rate."""
    return make_ledger(guard=guard)


@pytest.fixture
def vault():
    vault = InMemoryCollateralVault()
    vault.fund("alice", 10_000)
    vault.fund("bob", 5_000)
    return vault


@pytest.fixture
def exchange(guarded_ledger, vault):
    """Exchange facade over a guarded ledger and a funded vault."""
    return ExchangeFacade(guarded_ledger, vault, address=EXCHANGE)

"""
test_core_types.py - Unit tests for core data types

Tests:
- HolderRecord validation and settlement clock
- Notification immutability and repr
- Exception hierarchy and attributes
- Input validators
- Protocol conformance of the bundled implementations
"""

import pytest
from dataclasses import FrozenInstanceError

from accrual import (
    HolderRecord, Notification, Action, EventType,
    LedgerStore, AccessGuard, CollateralVault,
    AccrualError, RateIncreaseRejected, Unauthorized, InsufficientPrincipal,
    InsufficientAllowance, PayoutFailed, CollateralTransferFailed,
    InMemoryLedgerStore, AllowAllGuard, CapabilityGuard, InMemoryCollateralVault,
    PRECISION, MAX_AMOUNT,
)
from accrual.core import validate_amount, validate_holder

from tests.fake_store import FakeStore, FailingVault


class TestConstants:

    def test_precision(self):
        assert PRECISION == 10 ** 18

    def test_max_amount_is_uint256_max(self):
        assert MAX_AMOUNT == 2 ** 256 - 1


class TestHolderRecord:
    """Tests for HolderRecord."""

    def test_create(self):
        record = HolderRecord(locked_rate=5 * 10 ** 10, last_settled=100)
        assert record.locked_rate == 5 * 10 ** 10
        assert record.last_settled == 100

    def test_frozen(self):
        record = HolderRecord(1, 0)
        with pytest.raises(FrozenInstanceError):
            record.locked_rate = 2

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError, match="locked_rate"):
            HolderRecord(-1, 0)

    def test_negative_timestamp_rejected(self):
        with pytest.raises(ValueError, match="last_settled"):
            HolderRecord(1, -5)

    def test_settled_at_keeps_rate(self):
        record = HolderRecord(7, 10)
        later = record.settled_at(20)
        assert later == HolderRecord(7, 20)
        assert record.last_settled == 10

    def test_settled_at_same_instant(self):
        record = HolderRecord(7, 10)
        assert record.settled_at(10) == record

    def test_settled_at_backwards_rejected(self):
        with pytest.raises(ValueError, match="backwards"):
            HolderRecord(7, 10).settled_at(9)

    def test_repr(self):
        assert repr(HolderRecord(3, 42)) == "HolderRecord(rate=3, settled@42)"


class TestNotification:

    def test_defaults(self):
        n = Notification(EventType.MINTED, "alice", 100, 0, 0)
        assert n.counterparty is None
        assert n.data == {}

    def test_frozen(self):
        n = Notification(EventType.MINTED, "alice", 100, 0, 0)
        with pytest.raises(FrozenInstanceError):
            n.amount = 5

    def test_repr_with_counterparty(self):
        n = Notification(EventType.TRANSFER, "alice", 10, 5, 3, counterparty="bob")
        assert repr(n) == "Notification(#3 transfer 10 alice→bob @5)"

    def test_repr_without_counterparty(self):
        n = Notification(EventType.RATE_CHANGED, "gov", 10, 5, 0)
        assert "→" not in repr(n)


class TestExceptions:
    """Every domain error derives from AccrualError and carries its context."""

    @pytest.mark.parametrize("exc", [
        RateIncreaseRejected(2, 3),
        Unauthorized("mallory", Action.MINT),
        InsufficientPrincipal("alice", 10, 5),
        InsufficientAllowance("alice", "carol", 10, 5),
        PayoutFailed("alice", 10),
        CollateralTransferFailed("alice", 10),
    ])
    def test_hierarchy(self, exc):
        assert isinstance(exc, AccrualError)

    def test_rate_increase_attributes(self):
        exc = RateIncreaseRejected(100, 100)
        assert (exc.old_rate, exc.new_rate) == (100, 100)
        assert "decrease" in str(exc)

    def test_unauthorized_message(self):
        exc = Unauthorized("mallory", Action.SET_RATE)
        assert exc.caller == "mallory"
        assert exc.action is Action.SET_RATE
        assert str(exc) == "mallory is not authorized to set_rate"

    def test_insufficient_principal_attributes(self):
        exc = InsufficientPrincipal("alice", 10, 5)
        assert (exc.holder, exc.requested, exc.available) == ("alice", 10, 5)

    def test_insufficient_allowance_attributes(self):
        exc = InsufficientAllowance("alice", "carol", 10, 5)
        assert (exc.owner, exc.spender, exc.requested, exc.available) == ("alice", "carol", 10, 5)


class TestValidators:

    @pytest.mark.parametrize("amount", [0, 1, MAX_AMOUNT])
    def test_valid_amounts(self, amount):
        validate_amount(amount)

    @pytest.mark.parametrize("amount", [-1, 1.5, "10", None, True])
    def test_invalid_amounts(self, amount):
        with pytest.raises(ValueError):
            validate_amount(amount)

    def test_amount_name_in_message(self):
        with pytest.raises(ValueError, match="new_rate"):
            validate_amount(-1, "new_rate")

    @pytest.mark.parametrize("holder", ["", "   ", None, 7])
    def test_invalid_holders(self, holder):
        with pytest.raises(ValueError):
            validate_holder(holder)


class TestProtocols:
    """Bundled implementations satisfy the runtime-checkable protocols."""

    def test_stores(self):
        assert isinstance(InMemoryLedgerStore(), LedgerStore)
        assert isinstance(FakeStore(), LedgerStore)

    def test_guards(self):
        assert isinstance(AllowAllGuard(), AccessGuard)
        assert isinstance(CapabilityGuard(), AccessGuard)

    def test_vaults(self):
        assert isinstance(InMemoryCollateralVault(), CollateralVault)
        assert isinstance(FailingVault(), CollateralVault)

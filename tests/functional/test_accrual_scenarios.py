"""
test_accrual_scenarios.py - End-to-end accrual scenarios

Walks complete holder lifecycles through a guarded ledger:
- the 5e10 / 100,000-unit / one-hour accrual scenario
- mint then burn everything
- rate cuts and rate inheritance across transfers
- stale locks on emptied holders
- annual-rate configuration through per_second_rate
"""

import pytest
from decimal import Decimal

from accrual import (
    InterestLedger, CapabilityGuard, Action, EventType, MAX_AMOUNT, PRECISION,
    RateIncreaseRejected, Unauthorized,
    per_second_rate, to_display_amount,
)


RATE = 5 * 10 ** 10
HOUR = 3600


@pytest.fixture
def ledger():
    guard = CapabilityGuard({
        "treasury": {Action.MINT, Action.BURN},
        "governor": {Action.SET_RATE},
    })
    return InterestLedger("main", RATE, guard=guard, verbose=False)


class TestOneHourScenario:
    """Holder A mints 100,000 units at t=0 under a 5e10 global rate."""

    def test_balance_after_one_hour(self, ledger):
        ledger.mint("treasury", "A", 100_000)
        assert ledger.get_user_rate("A") == RATE

        ledger.advance_time(HOUR)
        expected = 100_000 * (PRECISION + RATE * HOUR) // PRECISION
        assert expected == 100_018
        assert ledger.effective_balance_of("A") == expected
        # Nothing was materialized by reading
        assert ledger.principal_of("A") == 100_000

    def test_second_hour_matches_first(self, ledger):
        ledger.mint("treasury", "A", 100_000)
        b0 = ledger.effective_balance_of("A")
        ledger.advance_time(HOUR)
        b1 = ledger.effective_balance_of("A")
        ledger.advance_time(2 * HOUR)
        b2 = ledger.effective_balance_of("A")
        assert abs((b2 - b1) - (b1 - b0)) <= 1

    def test_second_hour_matches_first_with_settlement(self, ledger):
        ledger.mint("treasury", "A", 100_000)
        ledger.advance_time(HOUR)
        first = ledger.settle("A")
        ledger.advance_time(2 * HOUR)
        second = ledger.settle("A")
        assert abs(second - first) <= 1
        assert ledger.verify_supply()['valid']


class TestMintBurnLifecycle:

    def test_mint_then_burn_max_leaves_zero(self, ledger):
        ledger.mint("treasury", "A", 1_000)
        assert ledger.burn("treasury", "A", MAX_AMOUNT) == 1_000
        assert ledger.effective_balance_of("A") == 0
        assert ledger.total_supply() == 0

    def test_full_lifecycle_event_trail(self, ledger):
        ledger.mint("treasury", "A", 100_000)
        ledger.advance_time(HOUR)
        ledger.transfer("A", "B", 50_000)
        ledger.advance_time(2 * HOUR)
        ledger.burn("treasury", "B", MAX_AMOUNT)
        kinds = [n.event_type for n in ledger.event_log]
        assert kinds == [
            EventType.MINTED,
            EventType.INTEREST_ACCRUED,   # A settled before transfer
            EventType.TRANSFER,
            EventType.INTEREST_ACCRUED,   # B settled before burn
            EventType.BURNED,
        ]
        assert ledger.verify_supply()['valid']

    def test_unauthorized_parties_blocked(self, ledger):
        with pytest.raises(Unauthorized):
            ledger.mint("A", "A", 1_000_000)
        with pytest.raises(Unauthorized):
            ledger.set_rate("treasury", 1)
        assert ledger.total_supply() == 0
        assert ledger.get_rate() == RATE


class TestRateHistory:

    def test_set_rate_to_current_value_fails(self, ledger):
        with pytest.raises(RateIncreaseRejected):
            ledger.set_rate("governor", RATE)
        assert ledger.get_rate() == RATE

    def test_rate_inheritance_across_transfer(self, ledger):
        ledger.mint("treasury", "A", 100_000)
        ledger.set_rate("governor", RATE // 2)

        ledger.transfer("A", "B", 40_000)
        ledger.mint("treasury", "C", 40_000)

        assert ledger.get_user_rate("B") == RATE
        assert ledger.get_user_rate("C") == RATE // 2

        ledger.advance_time(HOUR)
        # B accrues at the inherited rate, C at the lowered one
        assert ledger.effective_balance_of("B") == 40_007
        assert ledger.effective_balance_of("C") == 40_003

    def test_stale_lock_on_emptied_holder(self, ledger):
        """An emptied holder keeps reporting its old lock until refunded."""
        ledger.mint("treasury", "A", 1_000)
        ledger.burn("treasury", "A", MAX_AMOUNT)
        ledger.set_rate("governor", RATE // 2)

        assert ledger.principal_of("A") == 0
        assert ledger.get_user_rate("A") == RATE
        assert "A" in ledger.list_holders()

        ledger.mint("treasury", "A", 1_000)
        assert ledger.get_user_rate("A") == RATE // 2


class TestAnnualRates:

    def test_five_percent_a_year(self):
        rate = per_second_rate(Decimal("0.05"))
        ledger = InterestLedger("main", rate, verbose=False)
        one_token = 10 ** 18
        ledger.mint("treasury", "A", 100 * one_token)
        ledger.advance_time(365 * 24 * 3600)
        balance = to_display_amount(ledger.effective_balance_of("A"), ledger.decimals)
        # Rounded-down rate: just under 105
        assert Decimal("104.99999") < balance < Decimal("105")

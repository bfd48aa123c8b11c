"""
rates.py - Global interest rate registry

Holds the single process-wide rate that new holders lock in. The rate can
only ever go down: every accepted update satisfies new_rate < current_rate.
Updating it never touches existing HolderRecords; already-locked rates keep
accruing at their own value.
"""

from __future__ import annotations
from typing import Callable, Optional

from .core import (
    AccessGuard, Action,
    RateIncreaseRejected, Unauthorized,
    validate_amount,
)


# Called with (caller, old_rate, new_rate) after an accepted update.
RateListener = Callable[[str, int, int], None]


class RateRegistry:
    """
    Single-writer store for the global rate.

    Writes are gated by the AccessGuard (Action.SET_RATE) and validated for
    strict decrease at this one boundary.

    Example:
        registry = RateRegistry(5 * 10**10, guard)
        registry.set_rate("governor", 4 * 10**10)   # ok
        registry.set_rate("governor", 4 * 10**10)   # RateIncreaseRejected
    """

    def __init__(
        self,
        initial_rate: int,
        guard: AccessGuard,
        listener: Optional[RateListener] = None,
    ):
        validate_amount(initial_rate, "initial_rate")
        if initial_rate == 0:
            raise ValueError("initial_rate must be positive")
        self._rate = initial_rate
        self._guard = guard
        self._listener = listener

    @property
    def rate(self) -> int:
        return self._rate

    def get_rate(self) -> int:
        return self._rate

    def set_rate(self, caller: str, new_rate: int) -> int:
        """
        Lower the global rate.

        Returns:
            The previous rate.

        Raises:
            Unauthorized: caller lacks Action.SET_RATE.
            RateIncreaseRejected: new_rate >= current rate.
            ValueError: new_rate is not a non-negative int.
        """
        if not self._guard.is_authorized(caller, Action.SET_RATE):
            raise Unauthorized(caller, Action.SET_RATE)
        validate_amount(new_rate, "new_rate")
        old_rate = self._rate
        if new_rate >= old_rate:
            raise RateIncreaseRejected(old_rate, new_rate)
        self._rate = new_rate
        if self._listener is not None:
            self._listener(caller, old_rate, new_rate)
        return old_rate

    def clone(self, listener: Optional[RateListener] = None) -> RateRegistry:
        """Copy sharing the same guard, reporting to `listener`."""
        cloned = RateRegistry.__new__(RateRegistry)
        cloned._rate = self._rate
        cloned._guard = self._guard
        cloned._listener = listener
        return cloned

    def _reset(self, rate: int) -> None:
        # Rollback path for InterestLedger.atomic(); bypasses validation.
        self._rate = rate

    def __repr__(self) -> str:
        return f"RateRegistry(rate={self._rate})"

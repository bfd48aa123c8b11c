"""
store.py - In-memory principal bookkeeping

InMemoryLedgerStore implements the LedgerStore protocol with a dict of
holder -> principal. It knows nothing about interest: settlement-driven
interest reaches it as ordinary increase_principal() calls.

Invariants enforced here:
    - every principal is a non-negative int
    - move_principal() conserves total supply
"""

from __future__ import annotations
from typing import Dict, List

from .core import (
    InsufficientPrincipal, PrincipalMap,
    validate_amount, validate_holder,
)


class InMemoryLedgerStore:
    """
    Dict-backed LedgerStore.

    Zero principals are dropped from the map to keep it compact; queries
    for absent holders return 0.

    Thread Safety:
        Not thread-safe.
    """

    def __init__(self):
        self._principals: PrincipalMap = {}

    def principal_of(self, holder: str) -> int:
        return self._principals.get(holder, 0)

    def increase_principal(self, holder: str, amount: int) -> None:
        validate_holder(holder)
        validate_amount(amount)
        if amount == 0:
            return
        self._set(holder, self.principal_of(holder) + amount)

    def decrease_principal(self, holder: str, amount: int) -> None:
        validate_holder(holder)
        validate_amount(amount)
        current = self.principal_of(holder)
        if amount > current:
            raise InsufficientPrincipal(holder, amount, current)
        if amount == 0:
            return
        self._set(holder, current - amount)

    def move_principal(self, source: str, dest: str, amount: int) -> None:
        validate_holder(source)
        validate_holder(dest)
        validate_amount(amount)
        available = self.principal_of(source)
        if amount > available:
            raise InsufficientPrincipal(source, amount, available)
        if amount == 0 or source == dest:
            return
        self._set(source, available - amount)
        self._set(dest, self.principal_of(dest) + amount)

    def total_supply(self) -> int:
        """Sum of all principals, accumulated in sorted holder order."""
        return sum(self._principals[h] for h in sorted(self._principals))

    def holders(self) -> List[str]:
        return sorted(self._principals)

    def positions(self) -> Dict[str, int]:
        """Copy of all non-zero principals."""
        return dict(self._principals)

    def _set(self, holder: str, quantity: int) -> None:
        if quantity:
            self._principals[holder] = quantity
        else:
            self._principals.pop(holder, None)

    def __repr__(self) -> str:
        return (
            f"InMemoryLedgerStore({len(self._principals)} holders, "
            f"supply={self.total_supply()})"
        )

"""
exchange.py - 1:1 collateral exchange facade

Thin wrapper turning collateral into ledger units and back:

    deposit(caller, n)  -> mint n units to caller, collect n collateral
    redeem(caller, n)   -> burn n units from caller, pay out n collateral

Each call is one atomic unit on the ledger: if the collateral leg fails the
mint or burn is rolled back and the error surfaces to the caller. The facade
mints and burns under its own address, which the ledger's guard must
authorize for Action.MINT and Action.BURN.

Interest is created by settlement without matching collateral; funding it
(InMemoryCollateralVault.top_up) is the operator's concern.
"""

from __future__ import annotations
from typing import Dict

from .core import (
    CollateralVault, EventType,
    CollateralTransferFailed, PayoutFailed,
    validate_amount, validate_holder,
)
from .ledger import InterestLedger


class InMemoryCollateralVault:
    """
    Dict-backed CollateralVault.

    Tracks collateral held by outside accounts plus the reserves the vault
    custodies. Failed transfers return False and change nothing.
    """

    def __init__(self, reserves: int = 0):
        validate_amount(reserves, "reserves")
        self._reserves = reserves
        self._accounts: Dict[str, int] = {}

    @property
    def reserves(self) -> int:
        return self._reserves

    def balance_of(self, account: str) -> int:
        return self._accounts.get(account, 0)

    def fund(self, account: str, amount: int) -> None:
        """Give an outside account collateral to deposit."""
        validate_holder(account)
        validate_amount(amount)
        self._accounts[account] = self.balance_of(account) + amount

    def top_up(self, amount: int) -> None:
        """Add reserves from outside, e.g. to back settled interest."""
        validate_amount(amount)
        self._reserves += amount

    def collect(self, payer: str, amount: int) -> bool:
        if self.balance_of(payer) < amount:
            return False
        self._accounts[payer] = self.balance_of(payer) - amount
        self._reserves += amount
        return True

    def pay_out(self, payee: str, amount: int) -> bool:
        if self._reserves < amount:
            return False
        self._reserves -= amount
        self._accounts[payee] = self.balance_of(payee) + amount
        return True

    def __repr__(self) -> str:
        return f"InMemoryCollateralVault(reserves={self._reserves}, accounts={len(self._accounts)})"


class ExchangeFacade:
    """
    Deposit collateral for units 1:1 and redeem units for collateral 1:1.

    Example:
        guard = CapabilityGuard({"exchange": {Action.MINT, Action.BURN}})
        ledger = InterestLedger("main", 5 * 10**10, guard=guard)
        vault = InMemoryCollateralVault()
        vault.fund("alice", 1_000)
        exchange = ExchangeFacade(ledger, vault)
        exchange.deposit("alice", 1_000)
        exchange.redeem("alice", MAX_AMOUNT)
    """

    def __init__(self, ledger: InterestLedger, vault: CollateralVault, address: str = "exchange"):
        validate_holder(address)
        self.ledger = ledger
        self.vault = vault
        self.address = address

    def deposit(self, caller: str, collateral_amount: int) -> int:
        """
        Mint `collateral_amount` units to `caller` against their collateral.

        Raises:
            Unauthorized: the facade may not mint on this ledger
            CollateralTransferFailed: the vault could not collect from caller
        """
        validate_holder(caller)
        validate_amount(collateral_amount, "collateral_amount")
        with self.ledger.atomic():
            self.ledger.mint(self.address, caller, collateral_amount)
            if not self.vault.collect(caller, collateral_amount):
                raise CollateralTransferFailed(caller, collateral_amount)
            self.ledger.emit(EventType.DEPOSIT, caller, collateral_amount, counterparty=self.address)
        return collateral_amount

    def redeem(self, caller: str, unit_amount: int) -> int:
        """
        Burn units of `caller` and pay out the same amount of collateral.

        MAX_AMOUNT redeems the caller's whole settled principal.

        Returns:
            The amount burned and paid out.

        Raises:
            Unauthorized: the facade may not burn on this ledger
            InsufficientPrincipal: unit_amount exceeds caller's settled principal
            PayoutFailed: the vault could not pay; the burn is rolled back
        """
        validate_holder(caller)
        validate_amount(unit_amount, "unit_amount")
        with self.ledger.atomic():
            burned = self.ledger.burn(self.address, caller, unit_amount)
            if not self.vault.pay_out(caller, burned):
                raise PayoutFailed(caller, burned)
            self.ledger.emit(EventType.REDEEM, caller, burned, counterparty=self.address)
        return burned

    def shortfall(self) -> int:
        """Collateral missing to redeem every effective balance right now."""
        return max(0, self.ledger.effective_total_supply() - self.vault.reserves)

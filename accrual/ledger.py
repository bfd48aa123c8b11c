"""
ledger.py - Stateful interest-accruing ledger

InterestLedger is the central state manager. It owns the per-holder accrual
records, drives the LedgerStore and the RateRegistry, and is the only module
that mutates accrual state.

Key responsibilities:
    - Settlement: materialize accrued interest into principal, lazily, at the
      moment a holder is touched (never from a background process)
    - Mint / burn / transfer, each preceded by settlement of every holder
      whose principal it reads or writes
    - Rate lock-in on a holder's zero -> non-zero principal transition
    - Atomic operations: any failure restores rate, records, allowances,
      principals and the event log
    - Event log and subscriber notification on commit

Read-only queries (effective_balance_of, accrued_balance, get_user_rate, ...)
never mutate state. All mutation goes through explicit operations.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple
import copy

from .core import (
    # Types
    HolderRecord, Notification, EventType, Action,
    LedgerStore, AccessGuard, Subscriber,
    # Constants
    MAX_AMOUNT, ZERO_ADDRESS, DEFAULT_SYMBOL, DEFAULT_DECIMALS,
    # Exceptions
    AccrualError, Unauthorized, InsufficientAllowance, NotificationDeliveryFailed,
    # Validation
    validate_amount, validate_holder,
)
from .interest import (
    calculate_accrued_balance, calculate_interest_owed, resolve_amount,
)
from .guards import AllowAllGuard
from .rates import RateRegistry
from .store import InMemoryLedgerStore


# Journal opcodes for mutations made inside atomic(). Store opcodes are
# undone through the inverse store operation; record and allowance opcodes
# carry the previous value (None if absent).
_OP_INCREASE = "increase"
_OP_DECREASE = "decrease"
_OP_MOVE = "move"
_OP_RECORD = "record"
_OP_ALLOWANCE = "allowance"


@dataclass(frozen=True, slots=True)
class _Savepoint:
    """Everything needed to restore the ledger to the start of an atomic block."""
    journal_length: int
    rate: int
    totals: Tuple[int, int, int]
    event_log_length: int
    outbox_length: int


class InterestLedger:
    """
    Interest-accruing balance ledger with lazy settlement.

    Each holder's effective balance is
        principal * (PRECISION + locked_rate * (now - last_settled)) // PRECISION
    and is only written back to the store when an operation settles them.

    Design Principles:
        - Settle first: every mint, burn and transfer settles the holders it
          touches before reading their principal for business purposes.
        - Always atomic: a failing operation leaves no trace.
        - Records are forever: a holder's rate lock and settlement clock
          survive their principal dropping to zero.

    Thread Safety:
        Not thread-safe. Operations are serialized by the caller.

    Example:
        ledger = InterestLedger("main", initial_rate=5 * 10**10)
        ledger.mint("treasury", "alice", 100_000)
        ledger.advance_time(3600)
        ledger.effective_balance_of("alice")   # 100000 * 1.00018 -> 100018
        ledger.transfer("alice", "bob", MAX_AMOUNT)
    """

    def __init__(
        self,
        name: str,
        initial_rate: int,
        initial_time: int = 0,
        store: Optional[LedgerStore] = None,
        guard: Optional[AccessGuard] = None,
        symbol: str = DEFAULT_SYMBOL,
        decimals: int = DEFAULT_DECIMALS,
        verbose: bool = True,
        test_mode: bool = False,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier (also used as the token name)
            initial_rate: Starting global rate, fixed-point, must be > 0
            initial_time: Starting logical time in seconds (default: 0)
            store: Principal store (default: InMemoryLedgerStore)
            guard: Capability guard (default: AllowAllGuard)
            symbol: Token symbol
            decimals: Display decimals of one unit
            verbose: Print operation summaries (default: True)
            test_mode: Allow set_principal() calls (default: False)
        """
        validate_amount(initial_time, "initial_time")
        validate_amount(decimals, "decimals")
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.store: LedgerStore = store if store is not None else InMemoryLedgerStore()
        self.guard: AccessGuard = guard if guard is not None else AllowAllGuard()
        self.registry = RateRegistry(initial_rate, self.guard, listener=self._on_rate_changed)
        self.records: Dict[str, HolderRecord] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}
        self.event_log: List[Notification] = []
        self.verbose = verbose
        self._test_mode = test_mode
        self._current_time: int = initial_time

        # Gross flows through this ledger, for supply auditing
        self.total_minted: int = 0
        self.total_interest: int = 0
        self.total_burned: int = 0

        self._subscribers: List[Subscriber] = []
        self._journal: List[Tuple[str, Tuple[Any, ...]]] = []
        self._outbox: List[Notification] = []
        self._depth: int = 0

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    @property
    def current_time(self) -> int:
        """Current logical time of the ledger."""
        return self._current_time

    def get_rate(self) -> int:
        """Current global rate (the rate new holders lock in)."""
        return self.registry.get_rate()

    def get_user_rate(self, holder: str) -> int:
        """
        Rate locked for a holder, or 0 if they were never funded.

        A holder whose principal has fallen back to zero still reports the
        rate they locked last time.
        """
        record = self.records.get(holder)
        return record.locked_rate if record else 0

    def get_holder_record(self, holder: str) -> Optional[HolderRecord]:
        return self.records.get(holder)

    def last_settled_of(self, holder: str) -> Optional[int]:
        record = self.records.get(holder)
        return record.last_settled if record else None

    def list_holders(self) -> List[str]:
        """Every holder that ever had a record, zero principal included."""
        return sorted(self.records)

    def principal_of(self, holder: str) -> int:
        """Materialized principal, excluding unsettled interest."""
        return self.store.principal_of(holder)

    def accrued_balance(self, holder: str, at: int) -> int:
        """
        Effective balance of `holder` as of time `at`, without settling.

        Args:
            holder: Holder id
            at: Timestamp, not earlier than the holder's last settlement

        Raises:
            ValueError: if `at` precedes the holder's last settlement
        """
        validate_amount(at, "at")
        return calculate_accrued_balance(
            self.store.principal_of(holder), self.records.get(holder), at
        )

    def effective_balance_of(self, holder: str) -> int:
        """Principal plus interest accrued up to the current time."""
        return self.accrued_balance(holder, self._current_time)

    def balance_of(self, holder: str) -> int:
        """Alias of effective_balance_of(): the redeemable balance."""
        return self.effective_balance_of(holder)

    def interest_owed(self, holder: str) -> int:
        """Interest that settling the holder now would materialize."""
        return calculate_interest_owed(
            self.store.principal_of(holder), self.records.get(holder), self._current_time
        )

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def total_supply(self) -> int:
        """Sum of materialized principals (the conserved quantity)."""
        return self.store.total_supply()

    def effective_total_supply(self) -> int:
        """Sum of effective balances, including unsettled interest."""
        holders = set(self.records) | set(self.store.holders())
        return sum(self.effective_balance_of(h) for h in sorted(holders))

    def verify_supply(self) -> Dict[str, Any]:
        """
        Verify the principal-layer conservation law.

        sum(principal) must equal everything minted (explicit mints plus
        settlement interest) minus everything burned.

        Returns:
            Dict with keys:
            - 'valid': bool - True if the law holds
            - 'supply': int - current sum of principals
            - 'expected': int - total_minted + total_interest - total_burned
            - 'discrepancy': int - supply - expected

        Example:
            result = ledger.verify_supply()
            assert result['valid'], f"Supply drifted by {result['discrepancy']}"
        """
        supply = self.store.total_supply()
        expected = self.total_minted + self.total_interest - self.total_burned
        return {
            'valid': supply == expected,
            'supply': supply,
            'expected': expected,
            'discrepancy': supply - expected,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: int) -> None:
        """
        Advance the ledger's logical clock.

        Time can only move forward, never backward.

        Raises:
            ValueError: If new_time is before the current time
        """
        validate_amount(new_time, "new_time")
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # SETTLEMENT
    # ========================================================================

    def settle(self, holder: str) -> int:
        """
        Materialize a holder's accrued interest into principal.

        Mints exactly accrued - principal (if positive) through the store,
        then moves the holder's settlement clock to now. Settling twice at
        the same instant mints once. Holders without a record have nothing
        to settle.

        Returns:
            The amount of interest minted.
        """
        validate_holder(holder)
        with self.atomic():
            return self._settle(holder, self._current_time)

    def _settle(self, holder: str, now: int) -> int:
        record = self.records.get(holder)
        if record is None:
            return 0
        owed = calculate_interest_owed(self.store.principal_of(holder), record, now)
        if owed > 0:
            self._increase(holder, owed)
            self.total_interest += owed
            self._emit(
                EventType.INTEREST_ACCRUED, holder, owed,
                rate=record.locked_rate,
                elapsed=now - record.last_settled,
            )
        self._put_record(holder, record.settled_at(now))
        return owed

    def _lock_rate(self, holder: str, rate: int, now: int) -> None:
        # Callers guarantee the holder's principal is going from zero to
        # non-zero; an existing record was settled at `now` already.
        self._put_record(holder, HolderRecord(locked_rate=rate, last_settled=now))

    # ========================================================================
    # MINT / BURN
    # ========================================================================

    def mint(self, caller: str, holder: str, amount: int) -> int:
        """
        Create `amount` new units for `holder`.

        If the holder's settled principal is zero, their rate is locked to
        the current global rate. Later rate changes never alter it.

        Raises:
            Unauthorized: caller lacks Action.MINT
        """
        validate_holder(holder)
        validate_amount(amount)
        with self.atomic():
            self._require(caller, Action.MINT)
            now = self._current_time
            self._settle(holder, now)
            if amount > 0 and self.store.principal_of(holder) == 0:
                self._lock_rate(holder, self.registry.get_rate(), now)
            self._increase(holder, amount)
            self.total_minted += amount
            self._emit(EventType.MINTED, holder, amount, counterparty=ZERO_ADDRESS)
        return amount

    def burn(self, caller: str, holder: str, amount: int) -> int:
        """
        Destroy units of `holder`, after settling them.

        MAX_AMOUNT burns the holder's entire post-settlement principal.

        Returns:
            The amount actually burned.

        Raises:
            Unauthorized: caller lacks Action.BURN
            InsufficientPrincipal: amount exceeds the settled principal
        """
        validate_holder(holder)
        validate_amount(amount)
        with self.atomic():
            self._require(caller, Action.BURN)
            now = self._current_time
            self._settle(holder, now)
            burned = resolve_amount(holder, amount, self.store.principal_of(holder))
            self._decrease(holder, burned)
            self.total_burned += burned
            self._emit(EventType.BURNED, holder, burned, counterparty=ZERO_ADDRESS)
        return burned

    # ========================================================================
    # TRANSFERS
    # ========================================================================

    def transfer(self, sender: str, recipient: str, amount: int) -> int:
        """
        Move principal from sender to recipient, after settling both.

        MAX_AMOUNT moves the sender's entire post-settlement principal. A
        recipient with zero settled principal inherits the sender's locked
        rate, not the current global rate.

        Returns:
            The amount moved.

        Raises:
            InsufficientPrincipal: amount exceeds the sender's settled principal
        """
        validate_holder(sender)
        validate_holder(recipient)
        validate_amount(amount)
        with self.atomic():
            return self._transfer(sender, recipient, amount, self._current_time)

    def transfer_from(self, spender: str, sender: str, recipient: str, amount: int) -> int:
        """
        Delegated transfer: `spender` moves `sender`'s units within their allowance.

        A MAX_AMOUNT allowance is never decremented.

        Raises:
            InsufficientPrincipal: amount exceeds the sender's settled principal
            InsufficientAllowance: moved amount exceeds the allowance
        """
        validate_holder(spender)
        validate_holder(sender)
        validate_holder(recipient)
        validate_amount(amount)
        with self.atomic():
            moved = self._transfer(sender, recipient, amount, self._current_time)
            self._spend_allowance(sender, spender, moved)
        return moved

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Set how much of owner's principal spender may move."""
        validate_holder(owner)
        validate_holder(spender)
        validate_amount(amount)
        with self.atomic():
            self._put_allowance((owner, spender), amount)
            self._emit(EventType.APPROVAL, owner, amount, counterparty=spender)

    def _transfer(self, sender: str, recipient: str, amount: int, now: int) -> int:
        self._settle(sender, now)
        self._settle(recipient, now)
        moved = resolve_amount(sender, amount, self.store.principal_of(sender))
        if moved > 0 and sender != recipient and self.store.principal_of(recipient) == 0:
            self._lock_rate(recipient, self.get_user_rate(sender), now)
        self._move(sender, recipient, moved)
        self._emit(EventType.TRANSFER, sender, moved, counterparty=recipient)
        return moved

    def _spend_allowance(self, owner: str, spender: str, amount: int) -> None:
        current = self.allowance(owner, spender)
        if current == MAX_AMOUNT:
            return
        if amount > current:
            raise InsufficientAllowance(owner, spender, amount, current)
        self._put_allowance((owner, spender), current - amount)

    # ========================================================================
    # RATE
    # ========================================================================

    def set_rate(self, caller: str, new_rate: int) -> int:
        """
        Lower the global rate. Already-locked holder rates are untouched.

        Returns:
            The previous rate.

        Raises:
            Unauthorized: caller lacks Action.SET_RATE
            RateIncreaseRejected: new_rate is not strictly below the current rate
        """
        with self.atomic():
            return self.registry.set_rate(caller, new_rate)

    def _on_rate_changed(self, caller: str, old_rate: int, new_rate: int) -> None:
        self._emit(EventType.RATE_CHANGED, caller, new_rate, old_rate=old_rate)

    # ========================================================================
    # TEST SUPPORT
    # ========================================================================

    def set_principal(self, holder: str, quantity: int) -> None:
        """
        Set a holder's principal directly.

        WARNING: only available in test mode. The holder is settled first;
        the difference is booked as a mint or burn so verify_supply() still
        holds. A zero -> non-zero change locks the current global rate.

        Raises:
            AccrualError: If called when test_mode is False
        """
        if not self._test_mode:
            raise AccrualError(
                "set_principal() is disabled in production mode. "
                "Use mint(), burn() and transfer() to modify principals. "
                "Set test_mode=True when creating InterestLedger for testing."
            )
        validate_holder(holder)
        validate_amount(quantity, "quantity")
        with self.atomic():
            now = self._current_time
            self._settle(holder, now)
            current = self.store.principal_of(holder)
            if current == 0 and quantity > 0:
                self._lock_rate(holder, self.registry.get_rate(), now)
            if quantity > current:
                self._increase(holder, quantity - current)
                self.total_minted += quantity - current
            elif quantity < current:
                self._decrease(holder, current - quantity)
                self.total_burned += current - quantity

    # ========================================================================
    # ATOMICITY
    # ========================================================================

    @contextmanager
    def atomic(self) -> Iterator[InterestLedger]:
        """
        Run a block as one all-or-nothing unit.

        On any exception, the journal is unwound in reverse: store mutations
        through the store's inverse operations, record and allowance writes
        by restoring the previous value. Rate, totals and the event log are
        restored from the savepoint. Blocks nest;
        notifications reach subscribers only when the outermost block
        commits.

        Example:
            with ledger.atomic():
                ledger.burn("desk", "alice", 500)
                if not vault.pay_out("alice", 500):
                    raise PayoutFailed("alice", 500)
        """
        savepoint = self._savepoint()
        self._depth += 1
        try:
            yield self
        except BaseException as exc:
            self._depth -= 1
            self._rollback(savepoint)
            if self._depth == 0 and self.verbose:
                print(f"✗ REJECTED [{self.name}]: {exc}")
            raise
        self._depth -= 1
        if self._depth == 0:
            self._commit()

    def _savepoint(self) -> _Savepoint:
        return _Savepoint(
            journal_length=len(self._journal),
            rate=self.registry.get_rate(),
            totals=(self.total_minted, self.total_interest, self.total_burned),
            event_log_length=len(self.event_log),
            outbox_length=len(self._outbox),
        )

    def _rollback(self, savepoint: _Savepoint) -> None:
        while len(self._journal) > savepoint.journal_length:
            op, args = self._journal.pop()
            if op == _OP_INCREASE:
                self.store.decrease_principal(*args)
            elif op == _OP_DECREASE:
                self.store.increase_principal(*args)
            elif op == _OP_MOVE:
                source, dest, amount = args
                self.store.move_principal(dest, source, amount)
            elif op == _OP_RECORD:
                _restore(self.records, *args)
            else:
                _restore(self.allowances, *args)
        self.registry._reset(savepoint.rate)
        self.total_minted, self.total_interest, self.total_burned = savepoint.totals
        del self.event_log[savepoint.event_log_length:]
        del self._outbox[savepoint.outbox_length:]

    def _commit(self) -> None:
        """
        Deliver pending notifications once the outermost block has committed.

        Every notification reaches every subscriber even if some callbacks
        raise. Failures are collected and raised afterwards as
        NotificationDeliveryFailed; the operation itself stays committed.
        """
        self._journal.clear()
        delivered, self._outbox = self._outbox, []
        failures: List[Tuple[Notification, Exception]] = []
        for notification in delivered:
            if self.verbose:
                print(f"✓ [{self.name}] {notification}")
            for subscriber in list(self._subscribers):
                try:
                    subscriber(notification)
                except Exception as exc:
                    failures.append((notification, exc))
        if failures:
            if self.verbose:
                print(f"⚠ [{self.name}] {len(failures)} subscriber callback(s) failed")
            raise NotificationDeliveryFailed(failures) from failures[0][1]

    def _put_record(self, holder: str, record: HolderRecord) -> None:
        self._journal.append((_OP_RECORD, (holder, self.records.get(holder))))
        self.records[holder] = record

    def _put_allowance(self, key: Tuple[str, str], amount: int) -> None:
        self._journal.append((_OP_ALLOWANCE, (key, self.allowances.get(key))))
        self.allowances[key] = amount

    def _increase(self, holder: str, amount: int) -> None:
        self.store.increase_principal(holder, amount)
        self._journal.append((_OP_INCREASE, (holder, amount)))

    def _decrease(self, holder: str, amount: int) -> None:
        self.store.decrease_principal(holder, amount)
        self._journal.append((_OP_DECREASE, (holder, amount)))

    def _move(self, source: str, dest: str, amount: int) -> None:
        self.store.move_principal(source, dest, amount)
        self._journal.append((_OP_MOVE, (source, dest, amount)))

    def _require(self, caller: str, action: Action) -> None:
        if not self.guard.is_authorized(caller, action):
            raise Unauthorized(caller, action)

    # ========================================================================
    # NOTIFICATIONS
    # ========================================================================

    def subscribe(self, callback: Subscriber) -> None:
        """Receive every committed notification, in log order."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers.remove(callback)

    def emit(
        self,
        event_type: EventType,
        holder: str,
        amount: int,
        counterparty: Optional[str] = None,
        **data: Any,
    ) -> Notification:
        """
        Append a notification to the event log.

        Inside an atomic block the notification is delivered on commit and
        discarded on rollback. Used by the exchange facade for DEPOSIT and
        REDEEM.
        """
        return self._emit(event_type, holder, amount, counterparty=counterparty, **data)

    def _emit(
        self,
        event_type: EventType,
        holder: str,
        amount: int,
        counterparty: Optional[str] = None,
        **data: Any,
    ) -> Notification:
        notification = Notification(
            event_type=event_type,
            holder=holder,
            amount=amount,
            timestamp=self._current_time,
            sequence_number=len(self.event_log),
            counterparty=counterparty,
            data=data,
        )
        self.event_log.append(notification)
        self._outbox.append(notification)
        if self._depth == 0:
            self._commit()
        return notification

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> InterestLedger:
        """
        Create a deep copy of this ledger.

        Records, allowances, principals, totals, event log and clock are
        fully independent of the original. The guard is shared; subscribers
        are not copied.

        Raises:
            AccrualError: If called inside an atomic block
        """
        if self._depth:
            raise AccrualError("Cannot clone a ledger inside an atomic block")
        cloned = InterestLedger.__new__(InterestLedger)
        cloned.name = self.name
        cloned.symbol = self.symbol
        cloned.decimals = self.decimals
        cloned.store = copy.deepcopy(self.store)
        cloned.guard = self.guard
        cloned.registry = self.registry.clone(listener=cloned._on_rate_changed)
        cloned.records = dict(self.records)
        cloned.allowances = dict(self.allowances)
        cloned.event_log = list(self.event_log)
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode
        cloned._current_time = self._current_time
        cloned.total_minted = self.total_minted
        cloned.total_interest = self.total_interest
        cloned.total_burned = self.total_burned
        cloned._subscribers = []
        cloned._journal = []
        cloned._outbox = []
        cloned._depth = 0
        return cloned

    def __repr__(self) -> str:
        return (
            f"InterestLedger({self.name!r}, rate={self.get_rate()}, "
            f"holders={len(self.records)}, supply={self.total_supply()}, "
            f"t={self._current_time})"
        )


def _restore(mapping: Dict[Any, Any], key: Any, previous: Any) -> None:
    if previous is None:
        mapping.pop(key, None)
    else:
        mapping[key] = previous

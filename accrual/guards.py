"""
guards.py - AccessGuard implementations

A guard is a pure predicate: is_authorized(caller, action) -> bool. The
ledger asks it once per gated operation and raises Unauthorized on False.

    AllowAllGuard     - authorizes everything (isolated engine tests, demos)
    CapabilityGuard   - explicit caller -> {Action} grants
"""

from __future__ import annotations
from typing import Dict, FrozenSet, Iterable, Optional, Set

from .core import Action, validate_holder


class AllowAllGuard:
    """Guard that authorizes every caller for every action."""

    def is_authorized(self, caller: str, action: Action) -> bool:
        return True


class CapabilityGuard:
    """
    Capability-set guard.

    Each caller holds a set of Actions. Callers without an entry hold
    nothing.

    Example:
        guard = CapabilityGuard({"treasury": {Action.MINT, Action.BURN}})
        guard.grant("governor", Action.SET_RATE)
        guard.is_authorized("treasury", Action.MINT)   # True
        guard.is_authorized("alice", Action.MINT)      # False
    """

    def __init__(self, grants: Optional[Dict[str, Iterable[Action]]] = None):
        self._grants: Dict[str, Set[Action]] = {}
        for caller, actions in (grants or {}).items():
            for action in actions:
                self.grant(caller, action)

    def is_authorized(self, caller: str, action: Action) -> bool:
        return action in self._grants.get(caller, ())

    def grant(self, caller: str, action: Action) -> None:
        validate_holder(caller)
        if not isinstance(action, Action):
            raise ValueError(f"action must be an Action, got {action!r}")
        self._grants.setdefault(caller, set()).add(action)

    def revoke(self, caller: str, action: Action) -> None:
        actions = self._grants.get(caller)
        if not actions:
            return
        actions.discard(action)
        if not actions:
            del self._grants[caller]

    def capabilities_of(self, caller: str) -> FrozenSet[Action]:
        return frozenset(self._grants.get(caller, ()))

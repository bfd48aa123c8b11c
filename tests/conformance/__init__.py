"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the accrual ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Principal-layer supply accounting
2. atomicity.py - All-or-nothing operation semantics
3. idempotency.py - Repeated settlement at one instant
4. temporal.py - Monotonic, linear accrual over time
5. rate_monotonicity.py - The global rate only ever decreases
6. settlement_order.py - Transfers are independent of settlement order

These tests use hypothesis for property-based testing.
"""

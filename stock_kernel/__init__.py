"""
Stock Kernel - pharmacy batch inventory core

A ledger-backed stock system with:
- Atomic batch quantity updates (never negative)
- Immutable stock movement entries
- Two-phase sale approval with reservation/release
- Derived, deduplicated stock and expiry alerts
- Asynchronous audit trail
"""

__version__ = "0.1.0"

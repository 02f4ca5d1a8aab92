"""
Operations Dashboard - Source Package

Offline-first persistence and derived-state engine for a single-tenant
business operations dashboard (customers, projects, automations,
expenses, budgets).

DESIGN PRINCIPLES:
1. The in-memory state is authoritative for the running session
2. Every mutation is mirrored to the local cache and the remote store
3. Remote failures degrade durability, never correctness
4. Deletions are detected from collection diffs, not declared
5. Derived values are recomputed, never persisted
"""

__version__ = "1.0.0"
__author__ = "Operations Dashboard Team"

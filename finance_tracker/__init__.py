"""
Finance Tracker - Source Package

Aggregation and categorization core of a personal finance tracker:
bank-connected and manual accounts merged into one view, user-defined
transaction categories (optionally assigned by an LLM) and informal
peer debts.

DESIGN PRINCIPLES:
1. The store is the source of truth, memory is a cache of it
2. Degrade per account, never halt the whole refresh
3. One stable identity per transaction, used everywhere
4. External services (bank gateway, LLM) are swappable collaborators
5. Every significant step is logged
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"

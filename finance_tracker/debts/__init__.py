"""Debt tracking."""

from finance_tracker.debts.ledger import DebtLedger

__all__ = ["DebtLedger"]

"""Transaction categories: registry, identity and auto-categorization."""

from finance_tracker.categories.engine import (
    OVERLOADED_MESSAGE,
    AutoCategorizer,
    AutoCategorizeResult,
    BatchFailure,
    clean_remittance_info,
    stable_identity,
    summarize_transaction,
    user_facing_error,
)
from finance_tracker.categories.registry import CategoryRegistry, UnknownCategoryError

__all__ = [
    "OVERLOADED_MESSAGE",
    "AutoCategorizer",
    "AutoCategorizeResult",
    "BatchFailure",
    "CategoryRegistry",
    "UnknownCategoryError",
    "clean_remittance_info",
    "stable_identity",
    "summarize_transaction",
    "user_facing_error",
]

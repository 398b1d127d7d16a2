"""AI agents package."""

from finance_tracker.agents.categorization import (
    CategorizationAgent,
    GeminiCategorizationAgent,
    InferenceBatchFailure,
    build_categorization_prompt,
    parse_assignment_response,
)

__all__ = [
    "CategorizationAgent",
    "GeminiCategorizationAgent",
    "InferenceBatchFailure",
    "build_categorization_prompt",
    "parse_assignment_response",
]

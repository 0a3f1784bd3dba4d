"""AI agents package."""

from finance_tracker.agents.ai_agents import (
    CategoryClassification,
    CategorySuggestionAgent,
    CategorySuggestionError,
    apply_suggestion_policy,
    parse_classification,
)

__all__ = [
    "CategoryClassification",
    "CategorySuggestionAgent",
    "CategorySuggestionError",
    "apply_suggestion_policy",
    "parse_classification",
]

"""Transaction categorization utilities.

This module provides deterministic, household-scoped categorization of
transactions from user-defined rules. It is intentionally rule-based (no
network calls) so results are explainable and reproducible.
"""

from .rules import (
    UNCATEGORIZED,
    AssessedRule,
    CategorizationResult,
    CategorizationSource,
    RuleEngine,
    RuleState,
    RuleType,
    assess_rules,
    check_pattern,
    suggest_rule_from_correction,
)

__all__ = [
    "UNCATEGORIZED",
    "AssessedRule",
    "CategorizationResult",
    "CategorizationSource",
    "RuleEngine",
    "RuleState",
    "RuleType",
    "assess_rules",
    "check_pattern",
    "suggest_rule_from_correction",
]

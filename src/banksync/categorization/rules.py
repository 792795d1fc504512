"""Deterministic, household-scoped transaction categorization.

Rules map a pattern to a category. They come in three flavors:
- merchant: case-insensitive substring of the transaction's merchant
- keyword: case-insensitive substring of the transaction's description
- regex: case-insensitive regular expression searched in the description

Rules are evaluated strictly by priority (highest first), then by creation
time (newest first); the first match wins. Rule validity is checked when the
rule set is read: rules pointing at a missing category are "broken", regex
rules that do not compile are "invalid", and neither kind is evaluated.

Evaluation has no side effects. Persisting the result, or creating a rule
from a manual categorization, is up to the caller.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Protocol
from uuid import UUID

from banksync.core.exceptions import RuleEvaluationError

INVALID_PATTERN = "invalid pattern"


class RuleType(str, Enum):
    MERCHANT = "merchant"
    KEYWORD = "keyword"
    REGEX = "regex"


class RuleState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BROKEN = "broken"
    INVALID = "invalid"


class CategorizationSource(str, Enum):
    NONE = "none"
    RULE_MERCHANT = "rule_merchant"
    RULE_KEYWORD = "rule_keyword"
    RULE_REGEX = "rule_regex"
    IMPORTED = "imported"
    MANUAL = "manual"


_SOURCE_BY_TYPE = {
    RuleType.MERCHANT: CategorizationSource.RULE_MERCHANT,
    RuleType.KEYWORD: CategorizationSource.RULE_KEYWORD,
    RuleType.REGEX: CategorizationSource.RULE_REGEX,
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class RuleLike(Protocol):
    id: Any
    type: str
    pattern: str
    category_id: UUID | None
    priority: int
    is_active: bool
    created_at: datetime | None


class Categorizable(Protocol):
    description: str
    merchant: str | None


@dataclass(frozen=True)
class AssessedRule:
    """A rule together with its evaluated validity state."""

    rule: RuleLike
    state: RuleState
    error: str | None = None

    @property
    def is_evaluable(self) -> bool:
        return self.state == RuleState.ACTIVE


@dataclass(frozen=True)
class CategorizationResult:
    category_id: UUID | None
    source: CategorizationSource
    matched_rule_id: Any = None
    reason: str | None = None

    @property
    def is_categorized(self) -> bool:
        return self.category_id is not None


UNCATEGORIZED = CategorizationResult(
    category_id=None,
    source=CategorizationSource.NONE,
    reason="No matching rule",
)


def _sort_key(created_at: datetime | None) -> datetime:
    if created_at is None:
        return _EPOCH
    if created_at.tzinfo is None:
        return created_at.replace(tzinfo=timezone.utc)
    return created_at


def compile_matcher(rule_type: RuleType | str, pattern: str) -> Callable[[Categorizable], bool]:
    """Build the predicate for a rule.

    Raises:
        RuleEvaluationError: If a regex pattern does not compile
        ValueError: If the rule type is unknown
    """
    rule_type = RuleType(rule_type)

    if rule_type == RuleType.REGEX:
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            raise RuleEvaluationError(f"Invalid regex pattern: {e}") from e
        return lambda txn: regex.search(txn.description or "") is not None

    needle = pattern.lower()
    if rule_type == RuleType.MERCHANT:
        return lambda txn: bool(txn.merchant) and needle in txn.merchant.lower()
    return lambda txn: needle in (txn.description or "").lower()


def assess_rule(rule: RuleLike, valid_category_ids: set[UUID] | None = None) -> AssessedRule:
    """Classify one rule as active, inactive, broken or invalid.

    A broken target category takes precedence over the inactive flag so that
    operators see every rule needing repair.
    """
    if valid_category_ids is not None and (
        rule.category_id is None or rule.category_id not in valid_category_ids
    ):
        return AssessedRule(rule, RuleState.BROKEN, "Target category no longer exists")
    try:
        compile_matcher(rule.type, rule.pattern)
    except RuleEvaluationError as e:
        return AssessedRule(rule, RuleState.INVALID, e.message)
    except ValueError:
        return AssessedRule(rule, RuleState.INVALID, f"Unknown rule type: {rule.type}")
    if not rule.is_active:
        return AssessedRule(rule, RuleState.INACTIVE)
    return AssessedRule(rule, RuleState.ACTIVE)


def assess_rules(
    rules: Iterable[RuleLike], valid_category_ids: set[UUID] | None = None
) -> list[AssessedRule]:
    """Assess rules, returned in evaluation order (priority, then newest)."""
    return [assess_rule(rule, valid_category_ids) for rule in order_rules(rules)]


def order_rules(rules: Iterable[RuleLike]) -> list[RuleLike]:
    return sorted(
        rules,
        key=lambda r: (r.priority, _sort_key(r.created_at)),
        reverse=True,
    )


@dataclass
class _CompiledRule:
    rule: RuleLike
    matches: Callable[[Categorizable], bool]
    source: CategorizationSource


@dataclass
class RuleEngine:
    """Evaluates a household's active rules against transactions.

    Example:
        >>> engine = RuleEngine.from_rules(rules, valid_category_ids)
        >>> result = engine.categorize(txn)
        >>> result.category_id
    """

    assessed: list[AssessedRule] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._compiled: list[_CompiledRule] = []
        for item in self.assessed:
            if not item.is_evaluable:
                continue
            rule_type = RuleType(item.rule.type)
            self._compiled.append(
                _CompiledRule(
                    rule=item.rule,
                    matches=compile_matcher(rule_type, item.rule.pattern),
                    source=_SOURCE_BY_TYPE[rule_type],
                )
            )

    @classmethod
    def from_rules(
        cls, rules: Iterable[RuleLike], valid_category_ids: set[UUID] | None = None
    ) -> "RuleEngine":
        return cls(assess_rules(rules, valid_category_ids))

    @property
    def active_rule_count(self) -> int:
        return len(self._compiled)

    @property
    def flagged(self) -> list[AssessedRule]:
        """Rules excluded from evaluation because they need operator attention."""
        return [a for a in self.assessed if a.state in (RuleState.BROKEN, RuleState.INVALID)]

    def categorize(self, txn: Categorizable) -> CategorizationResult:
        """Return the first matching rule's category, or UNCATEGORIZED."""
        for compiled in self._compiled:
            if compiled.matches(txn):
                rule = compiled.rule
                return CategorizationResult(
                    category_id=rule.category_id,
                    source=compiled.source,
                    matched_rule_id=rule.id,
                    reason=f'{rule.type} rule "{rule.pattern}" matched',
                )
        return UNCATEGORIZED


def check_pattern(rule_type: RuleType | str, pattern: str, sample_text: str) -> dict[str, Any]:
    """Check a pattern against sample text for rule authoring.

    Never raises for a malformed regex: returns ``{"matches": False,
    "error": "invalid pattern"}`` instead.
    """
    try:
        matcher = compile_matcher(rule_type, pattern)
    except RuleEvaluationError:
        return {"matches": False, "error": INVALID_PATTERN}

    sample = _Sample(description=sample_text, merchant=sample_text)
    return {"matches": bool(matcher(sample))}


@dataclass(frozen=True)
class _Sample:
    description: str
    merchant: str | None


@dataclass(frozen=True)
class RuleSuggestion:
    type: RuleType
    pattern: str
    category_id: UUID


def suggest_rule_from_correction(
    txn: Categorizable, category_id: UUID
) -> RuleSuggestion | None:
    """Propose a rule capturing a user's manual categorization.

    Prefers a merchant rule; otherwise uses the longest description word of at
    least four characters as a keyword.
    """
    if txn.merchant and len(txn.merchant) >= 3:
        return RuleSuggestion(RuleType.MERCHANT, txn.merchant, category_id)

    words = [w for w in (txn.description or "").split() if len(w) >= 4]
    if words:
        keyword = max(words, key=len)
        return RuleSuggestion(RuleType.KEYWORD, keyword, category_id)

    return None

"""Rule management service: listing with validity state, creation and batch ops."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from banksync.categorization.rules import (
    AssessedRule,
    RuleState,
    assess_rule,
    assess_rules,
    check_pattern,
)
from banksync.core.exceptions import NotFoundError, RuleEvaluationError
from banksync.models.category_rule import CategoryRule
from banksync.repositories.category import CategoryRepository
from banksync.repositories.category_rule import CategoryRuleRepository
from banksync.schemas.rules import RuleCreateRequest, RuleTestRequest

logger = logging.getLogger(__name__)


class RuleService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.rule_repo = CategoryRuleRepository(db)
        self.category_repo = CategoryRepository(db)

    async def list_rules(self, household_id: UUID) -> list[AssessedRule]:
        """All rules in evaluation order, each with its state."""
        rules = await self.rule_repo.get_by_household(household_id)
        valid_ids = await self.category_repo.get_ids(household_id)
        return assess_rules(rules, valid_ids)

    async def list_flagged(self, household_id: UUID) -> list[AssessedRule]:
        """Broken or invalid rules, for operators to repair or delete."""
        return [
            a
            for a in await self.list_rules(household_id)
            if a.state in (RuleState.BROKEN, RuleState.INVALID)
        ]

    async def create_rule(self, household_id: UUID, request: RuleCreateRequest) -> AssessedRule:
        """Create a manual rule.

        Raises:
            NotFoundError: If the category is not in the household
            RuleEvaluationError: If a regex pattern does not compile
        """
        category = await self.category_repo.get_scoped(household_id, request.category_id)
        if category is None:
            raise NotFoundError("Category not found")

        result = check_pattern(request.type, request.pattern, "")
        if "error" in result:
            raise RuleEvaluationError(
                "Invalid regex pattern", details={"pattern": request.pattern}
            )

        rule = await self.rule_repo.create(
            CategoryRule(
                household_id=household_id,
                type=request.type.value,
                pattern=request.pattern,
                category_id=category.id,
                priority=request.priority,
                is_active=request.is_active,
                created_from="manual",
            )
        )
        logger.info("Created rule", extra={"household_id": household_id})
        return assess_rule(rule, {category.id})

    def test_pattern(self, request: RuleTestRequest) -> dict:
        return check_pattern(request.type, request.pattern, request.sample_text)

    async def batch_delete(self, household_id: UUID, rule_ids: list[UUID]) -> int:
        return await self.rule_repo.batch_delete(household_id, rule_ids)

    async def batch_toggle(self, household_id: UUID, rule_ids: list[UUID], is_active: bool) -> int:
        return await self.rule_repo.batch_set_active(household_id, rule_ids, is_active)

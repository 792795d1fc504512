"""Categorization service.

Applies the household's rule engine to stored transactions and handles manual
category assignment. Creating a rule from a manual assignment only happens
when the caller asks for it.
"""

import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from banksync.categorization.rules import (
    CategorizationSource,
    RuleEngine,
    suggest_rule_from_correction,
)
from banksync.core.exceptions import NotFoundError
from banksync.models.category_rule import CategoryRule
from banksync.models.transaction import Transaction
from banksync.repositories.category import CategoryRepository
from banksync.repositories.category_rule import CategoryRuleRepository
from banksync.repositories.transaction import TransactionRepository

logger = logging.getLogger(__name__)


class CategorizationService:
    """Service for assigning categories to transactions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.transaction_repo = TransactionRepository(db)
        self.rule_repo = CategoryRuleRepository(db)
        self.category_repo = CategoryRepository(db)

    async def load_engine(self, household_id: UUID) -> RuleEngine:
        """Build a rule engine from the household's current rules and categories."""
        rules = await self.rule_repo.get_by_household(household_id)
        valid_ids = await self.category_repo.get_ids(household_id)
        engine = RuleEngine.from_rules(rules, valid_ids)
        if engine.flagged:
            logger.info(
                "Skipping rules that need repair",
                extra={"household_id": household_id, "flagged": len(engine.flagged)},
            )
        return engine

    async def categorize_transactions(
        self, household_id: UUID, transaction_ids: Iterable[UUID] | None = None
    ) -> int:
        """Categorize uncategorized transactions (optionally only ``transaction_ids``).

        Rules are tried first. When no rule matches and the bank supplied a
        category name, that category is looked up (or created) and used.

        Returns:
            Number of transactions that received a category
        """
        rows = await self.transaction_repo.get_uncategorized(household_id, transaction_ids)
        if not rows:
            return 0

        engine = await self.load_engine(household_id)
        categorized = 0

        for row in rows:
            result = engine.categorize(row)
            if result.is_categorized:
                row.category_id = result.category_id
                row.categorization_source = result.source.value
                categorized += 1
            elif row.external_category:
                category = await self.category_repo.find_or_create_by_name(
                    household_id, row.external_category, category_type=row.direction
                )
                row.category_id = category.id
                row.categorization_source = CategorizationSource.IMPORTED.value
                categorized += 1

        await self.db.commit()
        logger.info(
            "Categorized transactions",
            extra={"household_id": household_id, "categorized": categorized, "total": len(rows)},
        )
        return categorized

    async def assign_category(
        self,
        household_id: UUID,
        transaction_id: UUID,
        category_id: UUID,
        create_rule: bool = False,
    ) -> tuple[Transaction, CategoryRule | None]:
        """Manually set a transaction's category.

        Raises:
            NotFoundError: If the transaction or category is not in the household
        """
        txn = await self.transaction_repo.get_scoped(household_id, transaction_id)
        if txn is None:
            raise NotFoundError("Transaction not found")
        category = await self.category_repo.get_scoped(household_id, category_id)
        if category is None:
            raise NotFoundError("Category not found")

        txn.category_id = category.id
        txn.categorization_source = CategorizationSource.MANUAL.value

        rule = None
        if create_rule:
            suggestion = suggest_rule_from_correction(txn, category.id)
            if suggestion is not None:
                rule = CategoryRule(
                    household_id=household_id,
                    type=suggestion.type.value,
                    pattern=suggestion.pattern,
                    category_id=suggestion.category_id,
                    created_from="manual_categorization",
                )
                self.db.add(rule)

        await self.db.commit()
        await self.db.refresh(txn)
        if rule is not None:
            await self.db.refresh(rule)
        return txn, rule

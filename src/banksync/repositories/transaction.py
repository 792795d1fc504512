"""Transaction repository: dedup lookups, grouped inserts and spending queries."""
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from banksync.core.exceptions import PersistenceError
from banksync.models.transaction import Transaction
from banksync.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

# Keep IN (...) lists well below driver parameter limits.
LOOKUP_CHUNK_SIZE = 500


def _chunks(values: list, size: int = LOOKUP_CHUNK_SIZE):
    for start in range(0, len(values), size):
        yield values[start : start + size]


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for Transaction model with dedup and analytics queries."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Transaction)

    async def get_existing_external_ids(
        self, household_id: UUID, external_ids: Iterable[str]
    ) -> set[str]:
        """Return which of ``external_ids`` are already stored for the household."""
        wanted = list(dict.fromkeys(external_ids))
        found: set[str] = set()
        for chunk in _chunks(wanted):
            result = await self.db.execute(
                select(Transaction.external_id).where(
                    Transaction.household_id == household_id,
                    Transaction.external_id.in_(chunk),
                )
            )
            found.update(result.scalars().all())
        return found

    async def get_external_ids_by_hash(
        self, household_id: UUID, hashes: Iterable[str]
    ) -> dict[str, str]:
        """Map stored dedup hashes to the external id of the row carrying them."""
        wanted = list(dict.fromkeys(hashes))
        found: dict[str, str] = {}
        for chunk in _chunks(wanted):
            result = await self.db.execute(
                select(Transaction.dedup_hash, Transaction.external_id).where(
                    Transaction.household_id == household_id,
                    Transaction.dedup_hash.in_(chunk),
                )
            )
            for row in result:
                found.setdefault(row.dedup_hash, row.external_id)
        return found

    async def insert_group(self, rows: list[Transaction]) -> list[UUID]:
        """Insert one account's new transactions, commit, and return the new ids.

        If the group violates the (household, external_id) constraint, e.g.
        because a concurrent writer inserted some of the same rows, the group
        is rolled back and retried row by row, skipping duplicates. Rows
        committed by earlier groups are kept. Instances in the session are expired
        after a rollback, so callers should reload rows by the returned ids.

        Raises:
            PersistenceError: On any other database failure
        """
        if not rows:
            return []

        try:
            self.db.add_all(rows)
            await self.db.commit()
            return [row.id for row in rows]
        except IntegrityError:
            await self.db.rollback()
            logger.warning(
                "Duplicate external ids in group, inserting one by one",
                extra={"household_id": rows[0].household_id},
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(
                "Failed to store transactions", details={"error": str(e)}
            ) from e

        return await self._insert_individually(rows)

    async def _insert_individually(self, rows: list[Transaction]) -> list[UUID]:
        inserted: list[UUID] = []
        for row in rows:
            try:
                self.db.add(row)
                await self.db.commit()
                inserted.append(row.id)
            except IntegrityError:
                await self.db.rollback()
            except SQLAlchemyError as e:
                await self.db.rollback()
                raise PersistenceError(
                    "Failed to store transactions", details={"error": str(e)}
                ) from e
        return inserted

    async def get_by_household(
        self, household_id: UUID, skip: int = 0, limit: int = 100
    ) -> list[Transaction]:
        """Get a household's transactions, newest first."""
        result = await self.db.execute(
            select(Transaction)
            .where(Transaction.household_id == household_id)
            .order_by(Transaction.date.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_scoped(self, household_id: UUID, transaction_id: UUID) -> Transaction | None:
        result = await self.db.execute(
            select(Transaction).where(
                Transaction.id == transaction_id, Transaction.household_id == household_id
            )
        )
        return result.scalar_one_or_none()

    async def get_uncategorized(
        self, household_id: UUID, ids: Iterable[UUID] | None = None
    ) -> list[Transaction]:
        """Uncategorized transactions, optionally limited to ``ids``."""
        query = select(Transaction).where(
            Transaction.household_id == household_id,
            Transaction.category_id.is_(None),
        )
        if ids is not None:
            id_list = list(ids)
            if not id_list:
                return []
            query = query.where(Transaction.id.in_(id_list))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_by_date_range(
        self, household_id: UUID, start_date: date, end_date: date
    ) -> list[Transaction]:
        """Get transactions within a date range (both ends inclusive)."""
        result = await self.db.execute(
            select(Transaction)
            .where(
                Transaction.household_id == household_id,
                Transaction.date >= start_date,
                Transaction.date <= end_date,
            )
            .order_by(Transaction.date.desc())
        )
        return list(result.scalars().all())

    async def get_expense_totals_by_category(
        self, household_id: UUID, start_date: date, end_date: date
    ) -> dict[UUID, Decimal]:
        """
        Sum non-ignored expenses per category between two dates (inclusive).
        Returns dict of {category_id: total_amount}.
        """
        result = await self.db.execute(
            select(Transaction.category_id, func.sum(Transaction.amount).label("total"))
            .where(
                Transaction.household_id == household_id,
                Transaction.direction == "expense",
                Transaction.is_ignored.is_(False),
                Transaction.category_id.is_not(None),
                Transaction.date >= start_date,
                Transaction.date <= end_date,
            )
            .group_by(Transaction.category_id)
        )
        return {row.category_id: Decimal(str(row.total or 0)) for row in result}

"""Transaction endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends

from banksync.api.deps import HouseholdId, get_categorization_service
from banksync.schemas.transaction import (
    TransactionCategorizeRequest,
    TransactionCategorizeResponse,
)
from banksync.services.categorization import CategorizationService

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.put(
    "/{transaction_id}/category",
    response_model=TransactionCategorizeResponse,
    summary="Categorize a transaction manually",
    description="""
    Assign a category to one transaction.

    With `create_rule: true` a rule is also created from the transaction's
    merchant (or its longest description word), so that similar
    transactions are categorized automatically on the next sync.
    """,
)
async def categorize_transaction(
    transaction_id: UUID,
    household_id: HouseholdId,
    request: TransactionCategorizeRequest,
    service: CategorizationService = Depends(get_categorization_service),
):
    txn, rule = await service.assign_category(
        household_id, transaction_id, request.category_id, request.create_rule
    )
    return TransactionCategorizeResponse(
        transaction_id=txn.id,
        category_id=txn.category_id,
        categorization_source=txn.categorization_source,
        created_rule_id=rule.id if rule else None,
    )

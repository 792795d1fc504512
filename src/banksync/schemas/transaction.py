"""Transaction-specific request/response schemas."""

from uuid import UUID

from pydantic import BaseModel, Field


class TransactionCategorizeRequest(BaseModel):
    """Assign a category by hand, optionally remembering it as a rule."""

    category_id: UUID
    create_rule: bool = Field(
        False, description="Also create a rule matching similar transactions"
    )


class TransactionCategorizeResponse(BaseModel):
    transaction_id: UUID
    category_id: UUID
    categorization_source: str
    created_rule_id: UUID | None = None

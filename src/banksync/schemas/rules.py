"""Request/response schemas for categorization rules."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from banksync.categorization.rules import RuleState, RuleType


class RuleCreateRequest(BaseModel):
    type: RuleType
    pattern: str = Field(min_length=1, max_length=255)
    category_id: UUID
    priority: int = Field(5, ge=0, le=100)
    is_active: bool = True


class RuleResponse(BaseModel):
    """A rule with its validity state as of read time."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    pattern: str
    category_id: UUID | None
    priority: int
    is_active: bool
    created_from: str
    created_at: datetime
    state: RuleState
    error: str | None = None


class RuleTestRequest(BaseModel):
    type: RuleType
    pattern: str
    sample_text: str


class RuleTestResponse(BaseModel):
    matches: bool
    error: str | None = None


class RuleBatchRequest(BaseModel):
    """Explicit list of rule ids; ids of other households are ignored."""

    rule_ids: list[UUID] = Field(min_length=1)


class RuleBatchToggleRequest(RuleBatchRequest):
    is_active: bool


class RuleBatchResult(BaseModel):
    affected: int

"""Category schemas."""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class CategoryCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: Literal["income", "expense"]
    parent_id: UUID | None = None
    icon: str | None = None
    sort_order: int = 0


class CategoryTreeNode(BaseModel):
    id: UUID
    name: str
    type: str
    icon: str | None = None
    children: list["CategoryTreeNode"] = Field(default_factory=list)

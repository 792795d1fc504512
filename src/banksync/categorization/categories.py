"""Category tree helpers.

Categories nest at most one level: a subcategory's parent must be a
top-level category of the same type (income or expense).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol
from uuid import UUID

from banksync.core.exceptions import ValidationError

CATEGORY_TYPES = {"income", "expense"}


class CategoryLike(Protocol):
    id: UUID
    name: str
    type: str
    parent_id: UUID | None
    sort_order: int


@dataclass
class CategoryNode:
    category: Any
    children: list[Any] = field(default_factory=list)


def validate_parent(
    child_type: str,
    parent: CategoryLike | None,
    *,
    child_id: UUID | None = None,
    child_has_children: bool = False,
) -> None:
    """Validate placing a category (of ``child_type``) under ``parent``.

    Raises:
        ValidationError: If the placement breaks the tree invariants
    """
    if child_type not in CATEGORY_TYPES:
        raise ValidationError(f"Unknown category type: {child_type}")
    if parent is None:
        return
    if child_id is not None and parent.id == child_id:
        raise ValidationError("A category cannot be its own parent")
    if parent.parent_id is not None:
        raise ValidationError("Subcategories cannot have subcategories")
    if child_has_children:
        raise ValidationError("A category with subcategories cannot become a subcategory")
    if parent.type != child_type:
        raise ValidationError(
            f"Subcategory type '{child_type}' must match parent type '{parent.type}'"
        )


def build_category_tree(categories: Iterable[CategoryLike]) -> list[CategoryNode]:
    """Group categories into top-level nodes ordered by sort order then name.

    Subcategories whose parent is missing are promoted to the top level.
    """
    categories = sorted(categories, key=lambda c: (c.sort_order, c.name))
    nodes: dict[UUID, CategoryNode] = {
        c.id: CategoryNode(c) for c in categories if c.parent_id is None
    }
    orphans: list[CategoryNode] = []
    for c in categories:
        if c.parent_id is None:
            continue
        parent = nodes.get(c.parent_id)
        if parent is None:
            orphans.append(CategoryNode(c))
        else:
            parent.children.append(c)
    return list(nodes.values()) + orphans


def category_ids_to_delete(category_id: UUID, categories: Iterable[CategoryLike]) -> list[UUID]:
    """Return the category and its direct subcategories (deleted together)."""
    return [category_id] + [c.id for c in categories if c.parent_id == category_id]

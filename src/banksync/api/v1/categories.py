"""Category endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from banksync.api.deps import HouseholdId, get_category_service
from banksync.categorization.categories import CategoryNode
from banksync.schemas.category import CategoryCreateRequest, CategoryTreeNode
from banksync.services.categories import CategoryService

router = APIRouter(prefix="/categories", tags=["categories"])


def _leaf(category) -> CategoryTreeNode:
    return CategoryTreeNode(
        id=category.id, name=category.name, type=category.type, icon=category.icon
    )


def _to_tree(node: CategoryNode) -> CategoryTreeNode:
    tree = _leaf(node.category)
    tree.children = [_leaf(child) for child in node.children]
    return tree


@router.get("", response_model=list[CategoryTreeNode])
async def list_categories(
    household_id: HouseholdId,
    service: CategoryService = Depends(get_category_service),
):
    return [_to_tree(node) for node in await service.get_tree(household_id)]


@router.post("", response_model=CategoryTreeNode, status_code=status.HTTP_201_CREATED)
async def create_category(
    household_id: HouseholdId,
    request: CategoryCreateRequest,
    service: CategoryService = Depends(get_category_service),
):
    return _leaf(await service.create(household_id, request))


@router.delete("/{category_id}")
async def delete_category(
    category_id: UUID,
    household_id: HouseholdId,
    service: CategoryService = Depends(get_category_service),
):
    """Delete a category and its subcategories. Rules pointing at it become broken."""
    return {"deleted": await service.delete(household_id, category_id)}

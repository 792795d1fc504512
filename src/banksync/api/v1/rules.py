"""Categorization rule endpoints."""

from fastapi import APIRouter, Depends, status

from banksync.api.deps import HouseholdId, get_rule_service
from banksync.categorization.rules import AssessedRule
from banksync.schemas.rules import (
    RuleBatchRequest,
    RuleBatchResult,
    RuleBatchToggleRequest,
    RuleCreateRequest,
    RuleResponse,
    RuleTestRequest,
    RuleTestResponse,
)
from banksync.services.rules import RuleService

router = APIRouter(prefix="/rules", tags=["rules"])


def _to_response(assessed: AssessedRule) -> RuleResponse:
    rule = assessed.rule
    return RuleResponse(
        id=rule.id,
        type=rule.type,
        pattern=rule.pattern,
        category_id=rule.category_id,
        priority=rule.priority,
        is_active=rule.is_active,
        created_from=rule.created_from,
        created_at=rule.created_at,
        state=assessed.state,
        error=assessed.error,
    )


@router.get("", response_model=list[RuleResponse], summary="List rules in evaluation order")
async def list_rules(
    household_id: HouseholdId,
    service: RuleService = Depends(get_rule_service),
):
    return [_to_response(a) for a in await service.list_rules(household_id)]


@router.get("/flagged", response_model=list[RuleResponse], summary="Broken or invalid rules")
async def list_flagged_rules(
    household_id: HouseholdId,
    service: RuleService = Depends(get_rule_service),
):
    return [_to_response(a) for a in await service.list_flagged(household_id)]


@router.post("", response_model=RuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    household_id: HouseholdId,
    request: RuleCreateRequest,
    service: RuleService = Depends(get_rule_service),
):
    return _to_response(await service.create_rule(household_id, request))


@router.post(
    "/test",
    response_model=RuleTestResponse,
    response_model_exclude_none=True,
    summary="Check a pattern against sample text",
)
async def test_rule_pattern(
    request: RuleTestRequest,
    service: RuleService = Depends(get_rule_service),
):
    """Returns `{"matches": false, "error": "invalid pattern"}` for a malformed regex."""
    return service.test_pattern(request)


@router.post("/batch/delete", response_model=RuleBatchResult)
async def batch_delete_rules(
    household_id: HouseholdId,
    request: RuleBatchRequest,
    service: RuleService = Depends(get_rule_service),
):
    return RuleBatchResult(affected=await service.batch_delete(household_id, request.rule_ids))


@router.post("/batch/toggle", response_model=RuleBatchResult)
async def batch_toggle_rules(
    household_id: HouseholdId,
    request: RuleBatchToggleRequest,
    service: RuleService = Depends(get_rule_service),
):
    affected = await service.batch_toggle(household_id, request.rule_ids, request.is_active)
    return RuleBatchResult(affected=affected)

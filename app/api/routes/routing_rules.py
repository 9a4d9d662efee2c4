"""Routing rule administration (lead and appointment to workspace)."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin
from app.api.schemas.rules import (
    RoutingRuleBulkCreate,
    RoutingRuleCreate,
    RoutingRuleResponse,
    RoutingRuleUpdate,
)
from app.core.exceptions import (
    RuleConfigurationError,
    RuleNotFoundError,
    SourceNotFoundError,
    WorkspaceNotFoundError,
)
from app.domain.services.rule_service import RuleService
from app.persistence.database import get_db

router = APIRouter(dependencies=[Depends(require_admin)])


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, RuleConfigurationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("", response_model=RoutingRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_routing_rule(
    rule_data: RoutingRuleCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> RoutingRuleResponse:
    try:
        rule = await RuleService(db).create_routing_rule(**rule_data.model_dump())
    except (WorkspaceNotFoundError, SourceNotFoundError, RuleConfigurationError) as e:
        raise _http_error(e)
    return RoutingRuleResponse.model_validate(rule)


@router.post("/bulk", response_model=RoutingRuleResponse, status_code=status.HTTP_201_CREATED)
async def bulk_create_routing_rule(
    rule_data: RoutingRuleBulkCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> RoutingRuleResponse:
    """Create a routing rule from a comma-separated zip code list."""
    try:
        rule = await RuleService(db).bulk_create_routing_rule(**rule_data.model_dump())
    except (WorkspaceNotFoundError, SourceNotFoundError, RuleConfigurationError) as e:
        raise _http_error(e)
    return RoutingRuleResponse.model_validate(rule)


@router.get("", response_model=list[RoutingRuleResponse])
async def list_routing_rules(
    db: Annotated[AsyncSession, Depends(get_db)],
    source_webhook_id: str | None = Query(None),
    workspace_id: int | None = Query(None),
) -> list[RoutingRuleResponse]:
    """List routing rules in evaluation order.

    With ``source_webhook_id`` the result is what applies to that source,
    global rules included.
    """
    rules = await RuleService(db).list_routing_rules(source_webhook_id, workspace_id)
    return [RoutingRuleResponse.model_validate(rule) for rule in rules]


@router.get("/{rule_id}", response_model=RoutingRuleResponse)
async def get_routing_rule(
    rule_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> RoutingRuleResponse:
    try:
        rule = await RuleService(db).get_routing_rule(rule_id)
    except RuleNotFoundError as e:
        raise _http_error(e)
    return RoutingRuleResponse.model_validate(rule)


@router.put("/{rule_id}", response_model=RoutingRuleResponse)
async def update_routing_rule(
    rule_id: int,
    rule_data: RoutingRuleUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> RoutingRuleResponse:
    try:
        rule = await RuleService(db).update_routing_rule(
            rule_id, **rule_data.model_dump(exclude_unset=True)
        )
    except (RuleNotFoundError, WorkspaceNotFoundError, RuleConfigurationError) as e:
        raise _http_error(e)
    return RoutingRuleResponse.model_validate(rule)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_routing_rule(
    rule_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    try:
        await RuleService(db).delete_routing_rule(rule_id)
    except RuleNotFoundError as e:
        raise _http_error(e)

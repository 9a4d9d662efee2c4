"""Forwarding rule, toggle, log and statistics endpoints for one webhook source."""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin, scope_from_path
from app.api.schemas.forwarding import (
    ForwardingLogEntryResponse,
    ForwardingLogResponse,
    ForwardingStatsResponse,
)
from app.api.schemas.rules import (
    ForwardingRuleBulkCreate,
    ForwardingRuleCreate,
    ForwardingRuleResponse,
    ForwardingRulesListResponse,
    ForwardingRuleUpdate,
)
from app.api.schemas.source import ForwardingToggleRequest, ForwardingToggleResponse
from app.core.exceptions import RuleConfigurationError, RuleNotFoundError, SourceNotFoundError
from app.domain.services.rule_service import RuleService
from app.domain.services.source_service import SourceService
from app.persistence.database import get_db
from app.persistence.models.forwarding import ForwardStatus

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])

_LOG_STATUSES = (ForwardStatus.SUCCESS, ForwardStatus.FAILED, ForwardStatus.RETRY, ForwardStatus.SKIPPED)


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, RuleConfigurationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post(
    "/{webhook_id}/forwarding-rules",
    response_model=ForwardingRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_forwarding_rule(
    rule_data: ForwardingRuleCreate,
    webhook_id: Annotated[str, Depends(scope_from_path)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ForwardingRuleResponse:
    """Create a forwarding rule. Omitted priority goes after the existing rules."""
    try:
        rule = await RuleService(db).create_forwarding_rule(webhook_id, **rule_data.model_dump())
    except (SourceNotFoundError, RuleConfigurationError) as e:
        raise _http_error(e)
    return ForwardingRuleResponse.model_validate(rule)


@router.post(
    "/{webhook_id}/forwarding-rules/bulk",
    response_model=ForwardingRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def bulk_create_forwarding_rule(
    rule_data: ForwardingRuleBulkCreate,
    webhook_id: Annotated[str, Depends(scope_from_path)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ForwardingRuleResponse:
    """Create a forwarding rule from a comma-separated zip code list."""
    try:
        rule = await RuleService(db).bulk_create_forwarding_rule(webhook_id, **rule_data.model_dump())
    except (SourceNotFoundError, RuleConfigurationError) as e:
        raise _http_error(e)
    return ForwardingRuleResponse.model_validate(rule)


@router.get("/{webhook_id}/forwarding-rules", response_model=ForwardingRulesListResponse)
async def list_forwarding_rules(
    webhook_id: Annotated[str, Depends(scope_from_path)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ForwardingRulesListResponse:
    """List a source's forwarding rules in evaluation order."""
    rules = await RuleService(db).list_forwarding_rules(webhook_id)
    return ForwardingRulesListResponse(
        webhook_id=webhook_id,
        total_rules=len(rules),
        active_rules=sum(1 for rule in rules if rule.is_active and rule.forward_enabled),
        rules=[ForwardingRuleResponse.model_validate(rule) for rule in rules],
    )


@router.get("/{webhook_id}/forwarding-rules/{rule_id}", response_model=ForwardingRuleResponse)
async def get_forwarding_rule(
    rule_id: int,
    webhook_id: Annotated[str, Depends(scope_from_path)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ForwardingRuleResponse:
    try:
        rule = await RuleService(db).get_forwarding_rule(webhook_id, rule_id)
    except RuleNotFoundError as e:
        raise _http_error(e)
    return ForwardingRuleResponse.model_validate(rule)


@router.put("/{webhook_id}/forwarding-rules/{rule_id}", response_model=ForwardingRuleResponse)
async def update_forwarding_rule(
    rule_id: int,
    rule_data: ForwardingRuleUpdate,
    webhook_id: Annotated[str, Depends(scope_from_path)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ForwardingRuleResponse:
    """Update the fields present in the body."""
    try:
        rule = await RuleService(db).update_forwarding_rule(
            webhook_id, rule_id, **rule_data.model_dump(exclude_unset=True)
        )
    except (RuleNotFoundError, RuleConfigurationError) as e:
        raise _http_error(e)
    return ForwardingRuleResponse.model_validate(rule)


@router.delete("/{webhook_id}/forwarding-rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_forwarding_rule(
    rule_id: int,
    webhook_id: Annotated[str, Depends(scope_from_path)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    try:
        await RuleService(db).delete_forwarding_rule(webhook_id, rule_id)
    except RuleNotFoundError as e:
        raise _http_error(e)


@router.patch("/{webhook_id}/forwarding-toggle", response_model=ForwardingToggleResponse)
async def toggle_forwarding(
    toggle: ForwardingToggleRequest,
    webhook_id: Annotated[str, Depends(scope_from_path)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ForwardingToggleResponse:
    """Turn all forwarding for a source on or off without touching its rules."""
    try:
        source = await SourceService(db).set_forwarding_enabled(webhook_id, toggle.forwarding_enabled)
    except SourceNotFoundError as e:
        raise _http_error(e)
    return ForwardingToggleResponse(
        webhook_id=source.webhook_id,
        forwarding_enabled=source.forwarding_enabled,
        updated_at=source.updated_at,
    )


@router.get("/{webhook_id}/forwarding-log", response_model=ForwardingLogResponse)
async def get_forwarding_log(
    webhook_id: Annotated[str, Depends(scope_from_path)],
    db: Annotated[AsyncSession, Depends(get_db)],
    forward_status: str | None = Query(None, alias="status"),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
) -> ForwardingLogResponse:
    """Forwarding attempts of a source, newest first."""
    if forward_status is not None and forward_status not in _LOG_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"status must be one of: {', '.join(_LOG_STATUSES)}",
        )
    try:
        entries, total = await SourceService(db).get_forwarding_log(
            webhook_id,
            status=forward_status,
            from_date=from_date,
            to_date=to_date,
            skip=skip,
            limit=limit,
        )
    except SourceNotFoundError as e:
        raise _http_error(e)
    return ForwardingLogResponse(
        webhook_id=webhook_id,
        total=total,
        skip=skip,
        limit=limit,
        entries=[ForwardingLogEntryResponse.model_validate(entry) for entry in entries],
    )


@router.get("/{webhook_id}/forwarding-stats", response_model=ForwardingStatsResponse)
async def get_forwarding_stats(
    webhook_id: Annotated[str, Depends(scope_from_path)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ForwardingStatsResponse:
    try:
        stats = await SourceService(db).get_forwarding_stats(webhook_id)
    except SourceNotFoundError as e:
        raise _http_error(e)
    return ForwardingStatsResponse(webhook_id=webhook_id, **stats)

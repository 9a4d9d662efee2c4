"""Webhook source and workspace administration."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin
from app.api.schemas.source import SourceCreate, SourceResponse, WorkspaceCreate, WorkspaceResponse
from app.core.exceptions import DuplicateSourceError, SourceNotFoundError
from app.domain.services.source_service import SourceService
from app.persistence.database import get_db
from app.persistence.repositories.workspace_repository import WorkspaceRepository

router = APIRouter(dependencies=[Depends(require_admin)])


@router.post("/sources", response_model=SourceResponse, status_code=status.HTTP_201_CREATED)
async def create_source(
    source_data: SourceCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SourceResponse:
    try:
        source = await SourceService(db).create_source(**source_data.model_dump())
    except DuplicateSourceError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return SourceResponse.model_validate(source)


@router.get("/sources", response_model=list[SourceResponse])
async def list_sources(
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
) -> list[SourceResponse]:
    sources = await SourceService(db).list_sources(skip=skip, limit=limit)
    return [SourceResponse.model_validate(source) for source in sources]


@router.get("/sources/{webhook_id}", response_model=SourceResponse)
async def get_source(
    webhook_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SourceResponse:
    try:
        source = await SourceService(db).get_source(webhook_id)
    except SourceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return SourceResponse.model_validate(source)


@router.delete("/sources/{webhook_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_source(
    webhook_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """Soft delete a source; it stops accepting leads."""
    try:
        await SourceService(db).delete_source(webhook_id)
    except SourceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/workspaces", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
async def create_workspace(
    workspace_data: WorkspaceCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WorkspaceResponse:
    workspace = await WorkspaceRepository(db).create(None, **workspace_data.model_dump())
    return WorkspaceResponse.model_validate(workspace)


@router.get("/workspaces", response_model=list[WorkspaceResponse])
async def list_workspaces(
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
) -> list[WorkspaceResponse]:
    workspaces = await WorkspaceRepository(db).list(None, skip=skip, limit=limit)
    return [WorkspaceResponse.model_validate(workspace) for workspace in workspaces]

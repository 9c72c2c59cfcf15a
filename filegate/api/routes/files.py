"""File routes.

Project-scoped routes use the project id from the path; file-level routes
only carry the file id and derive the owning project during authorization.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from filegate.auth import require_authentication
from filegate.authz import require_project_role, require_project_role_for_file
from filegate.models import FileRecord
from filegate.rbac.presets import ROLE_EDITOR, ROLE_VIEWER

router = APIRouter(tags=["Files"], dependencies=[Depends(require_authentication)])


class CreateFileRequest(BaseModel):
    name: str = Field(min_length=1, max_length=1024)
    folder_id: UUID | None = None
    size_bytes: int = Field(default=0, ge=0)
    content_type: str = Field(default="application/octet-stream", max_length=256)


@router.post(
    "/projects/{project_id}/files",
    status_code=status.HTTP_201_CREATED,
    summary="Register a file",
)
async def create_file(
    req: CreateFileRequest,
    request: Request,
    project_id: UUID = Depends(require_project_role(ROLE_EDITOR)),
):
    record = await request.app.state.store.create_file(
        FileRecord(project_id=project_id, **req.model_dump())
    )
    return record.model_dump(mode="json")


@router.get("/projects/{project_id}/files", summary="List files in a project")
async def list_files(
    request: Request, project_id: UUID = Depends(require_project_role(ROLE_VIEWER))
):
    records = await request.app.state.store.list_by_project(project_id)
    return {"items": [r.model_dump(mode="json") for r in records], "total": len(records)}


@router.get("/files/{id}", summary="Get a file")
async def get_file(record: FileRecord = Depends(require_project_role_for_file(ROLE_VIEWER))):
    return record.model_dump(mode="json")


@router.delete("/files/{id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a file")
async def delete_file(
    request: Request,
    record: FileRecord = Depends(require_project_role_for_file(ROLE_EDITOR)),
):
    await request.app.state.store.delete_file(record.id)

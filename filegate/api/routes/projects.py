"""Project and membership routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from filegate.auth import RequestAuth, require_authentication
from filegate.authz import require_capability, require_project_role
from filegate.exceptions import ForbiddenError, ValidationError
from filegate.models import Project, ProjectMember
from filegate.rbac import AuthType, InvalidRoleError
from filegate.rbac.presets import ACTION_READ, RESOURCE_MEMBER, ROLE_ADMIN, ROLE_VIEWER

router = APIRouter(tags=["Projects"], dependencies=[Depends(require_authentication)])


class CreateProjectRequest(BaseModel):
    name: str = Field(min_length=1, max_length=256)


class AddMemberRequest(BaseModel):
    user_id: UUID
    role: str = Field(min_length=1, max_length=64)


@router.post("/projects", status_code=status.HTTP_201_CREATED, summary="Create a project")
async def create_project(
    req: CreateProjectRequest,
    request: Request,
    auth: RequestAuth = Depends(require_authentication),
):
    # Projects belong to users; a project-bound API key cannot create one.
    if auth.auth_type != AuthType.JWT or auth.user_id is None:
        raise ForbiddenError("forbidden")
    store = request.app.state.store
    project = await store.create_project(Project(name=req.name, owner_id=auth.user_id))
    await store.add_member(
        ProjectMember(project_id=project.id, user_id=auth.user_id, role=ROLE_ADMIN)
    )
    return project.model_dump(mode="json")


@router.get("/projects/{id}", summary="Get a project")
async def get_project(
    request: Request, project_id: UUID = Depends(require_project_role(ROLE_VIEWER))
):
    project = await request.app.state.store.get_project(project_id)
    return project.model_dump(mode="json")


@router.delete(
    "/projects/{id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a project"
)
async def delete_project(
    request: Request, project_id: UUID = Depends(require_project_role(ROLE_ADMIN))
):
    await request.app.state.store.delete_project(project_id)


@router.get("/projects/{project_id}/members", summary="List project members")
async def list_members(
    request: Request,
    project_id: UUID = Depends(require_capability(RESOURCE_MEMBER, ACTION_READ)),
):
    members = await request.app.state.store.list_members(project_id)
    return {"items": [m.model_dump(mode="json") for m in members], "total": len(members)}


@router.post(
    "/projects/{project_id}/members",
    status_code=status.HTTP_201_CREATED,
    summary="Add a project member",
)
async def add_member(
    req: AddMemberRequest,
    request: Request,
    project_id: UUID = Depends(require_project_role(ROLE_ADMIN)),
):
    try:
        role = request.app.state.checker.validate_role(req.role)
    except InvalidRoleError as e:
        raise ValidationError(e.message) from None
    member = await request.app.state.store.add_member(
        ProjectMember(project_id=project_id, user_id=req.user_id, role=role)
    )
    return member.model_dump(mode="json")

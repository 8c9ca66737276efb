"""
Read-only project endpoints: visibility filtering plus response redaction.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from erp_access.core.database.engine import get_db
from erp_access.features.organizations.dependencies import get_scope_guard
from erp_access.features.organizations.scope import OrganizationScopeGuard
from erp_access.features.permissions.dependencies import get_role_resolver, require_permission
from erp_access.features.permissions.roles import RoleResolver
from erp_access.features.permissions.schemas import AuthContext
from erp_access.features.projects.models import Project
from erp_access.features.projects.schemas import ProjectListResponse, ProjectResponse
from erp_access.features.projects.visibility import PROJECT_SHAPE, VisibilityPolicy
from erp_access.features.redaction.dependencies import Redactor, get_redactor
from erp_access.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


@router.get("")
async def list_projects(
    ctx: Annotated[AuthContext, Depends(require_permission("projects", "read"))],
    guard: Annotated[OrganizationScopeGuard, Depends(get_scope_guard)],
    resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
    redact: Annotated[Redactor, Depends(get_redactor)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List projects visible to the current user."""
    policy = VisibilityPolicy(resolver, PROJECT_SHAPE)
    stmt = policy.select_visible(ctx, Project).order_by(Project.name, Project.id)
    result = await db.execute(stmt)
    projects = guard.enforce(result.scalars().all())

    body = ProjectListResponse(
        items=[ProjectResponse.from_project(p) for p in projects],
        total=len(projects),
    )
    return redact(body)


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    ctx: Annotated[AuthContext, Depends(require_permission("projects", "read"))],
    guard: Annotated[OrganizationScopeGuard, Depends(get_scope_guard)],
    resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
    redact: Annotated[Redactor, Depends(get_redactor)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Get one project. Projects that exist but are not visible return the same
    404 as projects that do not exist.
    """
    policy = VisibilityPolicy(resolver, PROJECT_SHAPE)
    stmt = policy.select_visible(ctx, Project).where(Project.id == project_id)
    result = await db.execute(stmt)
    project = result.scalar_one_or_none()

    if project is None or not guard.enforce([project]):
        log.info(f"Project {project_id} not visible to user {ctx.user_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    return redact(ProjectResponse.from_project(project))

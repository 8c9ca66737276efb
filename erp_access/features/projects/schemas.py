"""
Pydantic schemas for project responses.

Financial fields are tagged with financial_field() so redaction does not
depend on what they happen to be called.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from erp_access.features.projects.models import Project
from erp_access.features.redaction.tags import financial_field


class TaskResponse(BaseModel):
    id: str
    title: str
    assignee_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ProjectResponse(BaseModel):
    id: str
    organization_id: str
    name: str
    owner_id: Optional[str] = None
    co_owner_ids: List[str] = []
    member_ids: List[str] = []
    tasks: List[TaskResponse] = []
    budget: Optional[Decimal] = financial_field(None, description="Approved project budget")
    created_at: Optional[datetime] = None

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            organization_id=project.organization_id,
            name=project.name,
            owner_id=project.owner_id,
            co_owner_ids=[u.id for u in project.co_owners],
            member_ids=[u.id for u in project.members],
            tasks=[TaskResponse.model_validate(t) for t in project.tasks],
            budget=project.budget,
            created_at=project.created_at,
        )


class ProjectListResponse(BaseModel):
    items: List[ProjectResponse]
    # A record count, not money: untagged, so it survives redaction
    total: int = Field(..., ge=0)

"""
Project and Task models: the concrete visibility-relevant records.

A project is visible to a standard user through any of four relations:
primary owner, co-owner, member, or assignee of one of its tasks.
"""
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, ForeignKey, Table, Column, DateTime, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_access.core.database.base import Base, TimestampMixin, generate_ulid


project_owners = Table(
    "project_owners",
    Base.metadata,
    Column("project_id", String(26), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

project_members = Table(
    "project_members",
    Base.metadata,
    Column("project_id", String(26), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Project(Base, TimestampMixin):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    owner_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    budget: Mapped[Decimal | None] = mapped_column(
        Numeric(14, 2),
        nullable=True,
        info={"capability": "financial"},
    )

    # Soft delete; set rows are excluded from every visibility result
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    co_owners: Mapped[list["User"]] = relationship(  # type: ignore
        "User",
        secondary=project_owners,
        lazy="selectin"
    )

    members: Mapped[list["User"]] = relationship(  # type: ignore
        "User",
        secondary=project_members,
        lazy="selectin"
    )

    tasks: Mapped[list["Task"]] = relationship(
        "Task",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name={self.name!r}, org_id={self.organization_id})>"


class Task(Base, TimestampMixin):
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    project_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    assignee_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    project: Mapped["Project"] = relationship("Project", back_populates="tasks")

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, title={self.title!r}, assignee_id={self.assignee_id})>"

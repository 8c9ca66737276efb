"""
Organization model.

An organization is the tenancy boundary: every scoped row carries exactly one
organization_id, set at creation and never changed.
"""
from sqlalchemy import String, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from erp_access.core.database.base import Base, TimestampMixin, generate_ulid


class Organization(Base, TimestampMixin):
    __tablename__ = "organizations"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name!r})>"

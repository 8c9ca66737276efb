"""
Pydantic schemas for the authenticated context and permission checks.
"""
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


class Capability(BaseModel):
    """A grantable (resource, action) pair. Hashable, so it can live in sets."""
    resource: str = Field(..., min_length=1, max_length=100, description="Resource name (e.g., 'projects', 'finance.invoices')")
    action: str = Field(..., min_length=1, max_length=50, description="Action name (e.g., 'read', 'approve')")

    model_config = ConfigDict(frozen=True)

    @field_validator("resource", "action")
    @classmethod
    def strip_and_lower(cls, v: str) -> str:
        return v.strip().lower()

    @classmethod
    def parse(cls, code: str) -> "Capability":
        """Parse 'resource:action'."""
        resource, sep, action = code.partition(":")
        if not sep:
            raise ValueError(f"Capability must look like 'resource:action', got {code!r}")
        return cls(resource=resource, action=action)

    @property
    def code(self) -> str:
        return f"{self.resource}:{self.action}"

    def __str__(self) -> str:
        return self.code


class RoleInfo(BaseModel):
    """The part of a role the engine needs: its name and seniority level."""
    id: Optional[str] = None
    name: Optional[str] = None
    level: int = 0

    model_config = ConfigDict(frozen=True, from_attributes=True)


class AuthContext(BaseModel):
    """
    Authenticated request context, supplied by the authentication layer.

    Every field is optional at the type level so an incomplete context can be
    represented and then rejected (fail closed) by the engine instead of
    failing during parsing somewhere upstream.
    """
    user_id: Optional[str] = None
    organization_id: Optional[str] = None
    role: Optional[RoleInfo] = None
    granted_capabilities: frozenset[Capability] = frozenset()

    model_config = ConfigDict(frozen=True)


class PermissionCheckResponse(BaseModel):
    resource: str
    action: str
    allowed: bool


class GrantAllResponse(BaseModel):
    role_id: str
    inserted: int
    total: int

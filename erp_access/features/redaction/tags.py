"""
Schema-level capability tags.

A field tagged "financial" is removed for roles without financial access,
whatever its name. Tags are attached:
- on pydantic schemas with financial_field(...)
- on SQLAlchemy columns with mapped_column(..., info={"capability": "financial"})
"""
from typing import Any, Optional
from pydantic import Field
from pydantic.fields import FieldInfo


CAPABILITY_KEY = "capability"
FINANCIAL = "financial"


def financial_field(default: Any = None, **kwargs: Any) -> Any:
    """
    pydantic Field tagged as financial.

    Usage:
        class ProjectResponse(BaseModel):
            budget: Decimal | None = financial_field(None, description="Approved budget")
    """
    extra = dict(kwargs.pop("json_schema_extra", None) or {})
    extra[CAPABILITY_KEY] = FINANCIAL
    return Field(default, json_schema_extra=extra, **kwargs)


def field_capability(field: FieldInfo) -> Optional[str]:
    extra = field.json_schema_extra
    if isinstance(extra, dict):
        return extra.get(CAPABILITY_KEY)
    return None


def column_capability(column: Any) -> Optional[str]:
    info = getattr(column, "info", None) or {}
    return info.get(CAPABILITY_KEY)

"""
Storage-independent boolean filters over named record fields.

A predicate is a small immutable tree. The same tree can be:
- evaluated against in-memory records (mappings or attribute objects)
- compiled to a SQLAlchemy WHERE clause for a mapped model
- rendered as a string for logs

Node kinds:
    Eq(field, value)          field equals value (a None value means IS NULL)
    IsNull(field)             field is null
    Contains(field, value)    value is the id of some element of a collection
    Exists(relation, where)   some related record satisfies `where`
    And(operands), Or(operands)
    Never()                   matches nothing
"""
from dataclasses import dataclass
from typing import Any, Mapping, Union

from sqlalchemy import and_, or_, false, true, inspect as sa_inspect
from sqlalchemy.sql.elements import ColumnElement

from erp_access.core.errors import ValidationError


@dataclass(frozen=True)
class Eq:
    field: str
    value: Any


@dataclass(frozen=True)
class IsNull:
    field: str


@dataclass(frozen=True)
class Contains:
    field: str
    value: Any


@dataclass(frozen=True)
class Exists:
    relation: str
    where: "Predicate"


@dataclass(frozen=True)
class And:
    operands: tuple["Predicate", ...]


@dataclass(frozen=True)
class Or:
    operands: tuple["Predicate", ...]


@dataclass(frozen=True)
class Never:
    pass


Predicate = Union[Eq, IsNull, Contains, Exists, And, Or, Never]


def all_of(*operands: Predicate) -> Predicate:
    if any(isinstance(p, Never) for p in operands):
        return Never()
    return And(tuple(operands))


def any_of(*operands: Predicate) -> Predicate:
    live = tuple(p for p in operands if not isinstance(p, Never))
    if not live:
        return Never()
    return Or(live)


# ============================================================================
# In-memory evaluation
# ============================================================================

def _get(record: Any, field: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(field)
    return getattr(record, field, None)


def _identity(item: Any) -> Any:
    if item is None or isinstance(item, (str, int)):
        return item
    return _get(item, "id")


def evaluate(predicate: Predicate, record: Any) -> bool:
    """Evaluate a predicate against one record."""
    if isinstance(predicate, Eq):
        value = _get(record, predicate.field)
        if predicate.value is None:
            return value is None
        return value == predicate.value
    if isinstance(predicate, IsNull):
        return _get(record, predicate.field) is None
    if isinstance(predicate, Contains):
        if predicate.value is None:
            return False
        return any(_identity(item) == predicate.value for item in _get(record, predicate.field) or ())
    if isinstance(predicate, Exists):
        return any(evaluate(predicate.where, item) for item in _get(record, predicate.relation) or ())
    if isinstance(predicate, And):
        return all(evaluate(p, record) for p in predicate.operands)
    if isinstance(predicate, Or):
        return any(evaluate(p, record) for p in predicate.operands)
    if isinstance(predicate, Never):
        return False
    raise ValidationError(f"Unknown predicate node {predicate!r}")


# ============================================================================
# SQLAlchemy compilation
# ============================================================================

def _column(model, field: str):
    mapper = sa_inspect(model)
    if field not in mapper.columns:
        raise ValidationError(f"{model.__name__} has no column {field!r}")
    return getattr(model, field)


def _relationship(model, field: str):
    mapper = sa_inspect(model)
    if field not in mapper.relationships:
        raise ValidationError(f"{model.__name__} has no relationship {field!r}")
    return getattr(model, field), mapper.relationships[field].mapper


def to_sqlalchemy(predicate: Predicate, model) -> ColumnElement[bool]:
    """Compile a predicate into a WHERE clause for a mapped model."""
    if isinstance(predicate, Eq):
        column = _column(model, predicate.field)
        return column.is_(None) if predicate.value is None else column == predicate.value
    if isinstance(predicate, IsNull):
        return _column(model, predicate.field).is_(None)
    if isinstance(predicate, Contains):
        if predicate.value is None:
            return false()
        attr, target = _relationship(model, predicate.field)
        return attr.any(target.primary_key[0] == predicate.value)
    if isinstance(predicate, Exists):
        attr, target = _relationship(model, predicate.relation)
        return attr.any(to_sqlalchemy(predicate.where, target.class_))
    if isinstance(predicate, And):
        if not predicate.operands:
            return true()
        return and_(*(to_sqlalchemy(p, model) for p in predicate.operands))
    if isinstance(predicate, Or):
        if not predicate.operands:
            return false()
        return or_(*(to_sqlalchemy(p, model) for p in predicate.operands))
    if isinstance(predicate, Never):
        return false()
    raise ValidationError(f"Unknown predicate node {predicate!r}")


# ============================================================================
# Debug rendering
# ============================================================================

def describe(predicate: Predicate) -> str:
    if isinstance(predicate, Eq):
        return f"{predicate.field} IS NULL" if predicate.value is None else f"{predicate.field} == {predicate.value!r}"
    if isinstance(predicate, IsNull):
        return f"{predicate.field} IS NULL"
    if isinstance(predicate, Contains):
        return f"{predicate.value!r} IN {predicate.field}"
    if isinstance(predicate, Exists):
        return f"EXISTS {predicate.relation} WHERE {describe(predicate.where)}"
    if isinstance(predicate, And):
        return " AND ".join(_wrap(p) for p in predicate.operands) or "TRUE"
    if isinstance(predicate, Or):
        return " OR ".join(_wrap(p) for p in predicate.operands) or "FALSE"
    if isinstance(predicate, Never):
        return "FALSE"
    raise ValidationError(f"Unknown predicate node {predicate!r}")


def _wrap(predicate: Predicate) -> str:
    text = describe(predicate)
    return f"({text})" if isinstance(predicate, (And, Or)) and len(predicate.operands) > 1 else text

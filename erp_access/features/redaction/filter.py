"""
Financial field redaction for outgoing payloads.

Two ways to decide that a field is financial:

1. Schema tags (preferred). pydantic models and SQLAlchemy rows carry a
   "financial" capability tag per field (see tags.py). For those nodes the tag
   is authoritative and names are not consulted, so a task-count field called
   "total" survives and a tagged field called "monto" does not.
2. Field names (fallback). Mappings, dataclasses, named tuples and plain
   objects have no capability schema, so any field whose case-folded name is
   in the configured financial-field set is dropped. This is a heuristic with
   known false positives and false negatives; tag the schema wherever one
   exists.

Traversal works over a closed set of node kinds. Every composite is walked;
only leaves the filter cannot look inside (sets, byte buffers, classes) are
returned unexamined. Errors raised while walking a composite propagate to the
caller.
"""
import dataclasses
import enum
from collections import deque
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import InstanceState

from erp_access.features.permissions.roles import RoleLike, RoleResolver
from erp_access.features.permissions.schemas import AuthContext
from erp_access.features.redaction.tags import FINANCIAL, column_capability, field_capability
from erp_access.utils import get_logger


log = get_logger(__name__)

SCALAR_TYPES = (str, bytes, bool, int, float, Decimal, datetime, date, time, timedelta, UUID, enum.Enum)

# Leaves that hold values but no named fields
OPAQUE_TYPES = (set, frozenset, bytearray, memoryview, type)


class NodeKind(enum.Enum):
    NULL = "null"
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    NAMED_TUPLE = "named_tuple"
    MAPPING = "mapping"
    MODEL = "model"
    ROW = "row"
    DATACLASS = "dataclass"
    OBJECT = "object"
    REDACTED = "redacted"
    OPAQUE = "opaque"


class RedactedMapping(dict):
    """
    Output of a schema-tagged node.

    Later passes return it unchanged: the schema that produced it is gone, and
    re-applying the name heuristic would strip fields the tags kept.
    """


def node_kind(value: Any) -> NodeKind:
    if value is None:
        return NodeKind.NULL
    if isinstance(value, RedactedMapping):
        return NodeKind.REDACTED
    if isinstance(value, SCALAR_TYPES):
        return NodeKind.SCALAR
    if isinstance(value, OPAQUE_TYPES):
        return NodeKind.OPAQUE
    if isinstance(value, BaseModel):
        return NodeKind.MODEL
    if isinstance(value, Mapping):
        return NodeKind.MAPPING
    if isinstance(value, tuple) and hasattr(value, "_fields"):
        return NodeKind.NAMED_TUPLE
    if isinstance(value, (Sequence, deque)):
        return NodeKind.SEQUENCE
    state = sa_inspect(value, raiseerr=False)
    if isinstance(state, InstanceState):
        return NodeKind.ROW
    if dataclasses.is_dataclass(value):
        return NodeKind.DATACLASS
    if hasattr(value, "__dict__"):
        return NodeKind.OBJECT
    return NodeKind.OPAQUE


class FieldRedactionFilter:
    """
    Usage:
        redactor = FieldRedactionFilter(resolver)
        body = redactor.redact(payload, ctx.role)
    """

    def __init__(self, resolver: RoleResolver):
        self.resolver = resolver
        self.financial_fields = resolver.config.financial_field_names

    def redact(self, payload: Any, role: RoleLike) -> Any:
        """
        Return payload unchanged for financial-access roles; otherwise a copy
        without financial fields. A missing role redacts.
        """
        if self.resolver.has_financial_access(role):
            return payload
        return self._visit(payload)

    def redact_for(self, context: Optional[AuthContext], payload: Any) -> Any:
        return self.redact(payload, context.role if context is not None else None)

    def is_financial_name(self, key: Any) -> bool:
        return isinstance(key, str) and key.casefold() in self.financial_fields

    def _visit(self, node: Any) -> Any:
        kind = node_kind(node)

        if kind in (NodeKind.NULL, NodeKind.SCALAR, NodeKind.REDACTED):
            return node

        if kind is NodeKind.SEQUENCE:
            return self._visit_sequence(node)

        if kind is NodeKind.NAMED_TUPLE:
            return self._visit_named_tuple(node)

        if kind is NodeKind.MAPPING:
            return self._visit_fields(node.items())

        if kind is NodeKind.MODEL:
            return self._visit_model(node)

        if kind is NodeKind.ROW:
            return self._visit_row(node)

        if kind is NodeKind.DATACLASS:
            return self._visit_fields((f.name, getattr(node, f.name)) for f in dataclasses.fields(node))

        if kind is NodeKind.OBJECT:
            return self._visit_fields(
                (key, value) for key, value in vars(node).items() if not key.startswith("_")
            )

        log.debug(f"Redaction passed through leaf of type {type(node).__name__}")
        return node

    def _visit_fields(self, items) -> dict:
        """Name-based redaction of (name, value) pairs, in their original order."""
        return {key: self._visit(value) for key, value in items if not self.is_financial_name(key)}

    def _visit_sequence(self, node: Any) -> Any:
        items = [self._visit(item) for item in node]
        if isinstance(node, list):
            return items
        if isinstance(node, tuple):
            return tuple(items)
        if isinstance(node, deque):
            return deque(items, maxlen=node.maxlen)
        return items

    def _visit_named_tuple(self, node: Any) -> Any:
        fields = node._asdict()
        if any(self.is_financial_name(name) for name in fields):
            # A named tuple cannot lose a field; fall back to a mapping
            return self._visit_fields(fields.items())
        return type(node)._make(self._visit(value) for value in node)

    def _visit_model(self, model: BaseModel) -> RedactedMapping:
        out = RedactedMapping()
        for name, field in type(model).model_fields.items():
            if field_capability(field) == FINANCIAL:
                continue
            out[name] = self._visit(getattr(model, name))
        return out

    def _visit_row(self, row: Any) -> RedactedMapping:
        # Loaded column values only; relationships are not followed
        state = sa_inspect(row)
        out = RedactedMapping()
        for attr in state.mapper.column_attrs:
            if attr.key not in state.dict:
                continue
            if any(column_capability(c) == FINANCIAL for c in attr.columns):
                continue
            out[attr.key] = self._visit(state.dict[attr.key])
        return out

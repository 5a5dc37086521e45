# collab_core/infrastructure/field_ops.py
import copy
from collections.abc import Sequence
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from collab_core.domain.entities import (
    DELETE_FIELD,
    ArrayRemove,
    ArrayUnion,
    FieldFilter,
    OrderBy,
)

_MISSING = object()


def format_timestamp(value: datetime) -> str:
    # fixed width so that string order is time order
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def get_path(data: dict[str, Any], path: str, default: Any = None) -> Any:
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def _parent_for_write(data: dict[str, Any], parts: list[str]) -> dict[str, Any]:
    current = data
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    return current


def apply_update(data: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with ``fields`` applied.

    Keys may be dotted paths into nested maps. Values may be plain values,
    ``ArrayUnion``/``ArrayRemove`` set operations, or ``DELETE_FIELD``.
    """
    result = copy.deepcopy(data)
    for path, value in fields.items():
        parts = path.split(".")
        if value is DELETE_FIELD:
            parent = get_path(result, ".".join(parts[:-1])) if len(parts) > 1 else result
            if isinstance(parent, dict):
                parent.pop(parts[-1], None)
            continue

        parent = _parent_for_write(result, parts)
        key = parts[-1]
        if isinstance(value, ArrayUnion):
            existing = parent.get(key)
            items = list(existing) if isinstance(existing, list) else []
            for item in encode_value(list(value.values)):
                if item not in items:
                    items.append(item)
            parent[key] = items
        elif isinstance(value, ArrayRemove):
            existing = parent.get(key)
            items = list(existing) if isinstance(existing, list) else []
            removed = encode_value(list(value.values))
            parent[key] = [item for item in items if item not in removed]
        else:
            parent[key] = encode_value(value)
    return result


def matches(data: dict[str, Any], filters: Sequence[FieldFilter]) -> bool:
    for field_filter in filters:
        actual = get_path(data, field_filter.field, _MISSING)
        expected = encode_value(field_filter.value)
        if field_filter.op == FieldFilter.EQ:
            if actual is _MISSING or actual != expected:
                return False
        elif field_filter.op == FieldFilter.ARRAY_CONTAINS:
            if not isinstance(actual, list) or expected not in actual:
                return False
        else:
            raise ValueError(f"Unsupported filter operator: {field_filter.op}")
    return True


def sort_documents(documents: list, order_by: OrderBy) -> list:
    """Sort ``Document`` objects by one field; documents missing the field go last."""
    present = [d for d in documents if get_path(d.data, order_by.field) is not None]
    missing = [d for d in documents if get_path(d.data, order_by.field) is None]
    present.sort(
        key=lambda d: get_path(d.data, order_by.field),
        reverse=order_by.descending,
    )
    return present + missing

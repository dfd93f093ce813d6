"""Cache key builders for Supabase-backed reads.

Keys look like ``<namespace>:<logical_key>:<name1>:<value1>|<name2>:<value2>``.

Rules:
- Parameters are sorted by name, so insertion order never changes the key.
- Values are rendered with fixed rules (see ``render_value``) so the same
  logical request always maps to the same bytes.
- Delimiters (``:`` and ``|``) are not escaped. Callers must keep them out of
  parameter names and values, otherwise two different requests may collide.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

DEFAULT_NAMESPACE = "supabase"
KEY_SEPARATOR = ":"
PARAM_DELIMITER = "|"


def render_value(value: Any) -> str:
    """Render a parameter value for inclusion in a cache key."""

    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return render_value(value.value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ",".join(render_value(item) for item in value)
    return str(value)


def params_to_pairs(params: Optional[Mapping[str, Any]]) -> list[tuple[str, str]]:
    """Return ``(name, rendered value)`` pairs sorted by name."""

    if not params:
        return []
    return [(str(name), render_value(params[name])) for name in sorted(params, key=str)]


def build_key(
    logical_key: str,
    params: Optional[Mapping[str, Any]] = None,
    *,
    namespace: str = DEFAULT_NAMESPACE,
) -> str:
    """Build a deterministic cache key.

    Example:
        >>> build_key("stacks:public", {"offset": 0, "limit": 20})
        'supabase:stacks:public:limit:20|offset:0'
    """

    if not logical_key:
        raise ValueError("logical_key must be a non-empty string")
    param_str = PARAM_DELIMITER.join(f"{name}{KEY_SEPARATOR}{value}" for name, value in params_to_pairs(params))
    return f"{namespace}{KEY_SEPARATOR}{logical_key}{KEY_SEPARATOR}{param_str}"


def query_key(
    table: str,
    filters: Optional[Mapping[str, Any]] = None,
    *,
    select: Optional[str] = None,
    order: Optional[str] = None,
    limit: Optional[int] = None,
    namespace: str = DEFAULT_NAMESPACE,
) -> str:
    """Key for a table query: filters first, then the query options that are set.

    Filter values render through ``render_value`` like any other parameter, so
    strings are not JSON-quoted: ``owner_id:u1``, not ``owner_id:"u1"``. Keys
    written by a client that quotes filter values never match these, so a
    cache shared with such a client misses on every table query.
    """

    key = build_key(table, filters, namespace=namespace)
    options = [
        f"select{KEY_SEPARATOR}{select}" if select else "",
        f"order{KEY_SEPARATOR}{order}" if order else "",
        f"limit{KEY_SEPARATOR}{int(limit)}" if limit else "",
    ]
    options_str = PARAM_DELIMITER.join(option for option in options if option)
    if options_str:
        key = f"{key}{KEY_SEPARATOR}{options_str}"
    return key


@dataclass(frozen=True)
class CacheKeyBuilder:
    """``build_key`` bound to one namespace."""

    namespace: str = DEFAULT_NAMESPACE

    def build(self, logical_key: str, params: Optional[Mapping[str, Any]] = None) -> str:
        return build_key(logical_key, params, namespace=self.namespace)

    def query(self, table: str, filters: Optional[Mapping[str, Any]] = None, **options: Any) -> str:
        return query_key(table, filters, namespace=self.namespace, **options)

    def pattern(self, logical_key: str) -> str:
        """Glob pattern matching every key of ``logical_key``."""
        return f"{self.namespace}{KEY_SEPARATOR}{logical_key}{KEY_SEPARATOR}*"


__all__ = [
    "CacheKeyBuilder",
    "DEFAULT_NAMESPACE",
    "KEY_SEPARATOR",
    "PARAM_DELIMITER",
    "build_key",
    "params_to_pairs",
    "query_key",
    "render_value",
]

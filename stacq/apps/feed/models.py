from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

FEED_TYPES = ("card", "collection", "both")
DEFAULT_LIMIT = 50
MAX_LIMIT = 100

UNKNOWN_OWNER: dict[str, Any] = {"username": "unknown", "display_name": "Unknown"}


def normalize_feed_type(value: Optional[str]) -> str:
    """Map request input to a feed type; legacy ``stack`` means ``collection``."""

    feed_type = (value or "").strip().lower() or "both"
    if feed_type == "stack":
        feed_type = "collection"
    if feed_type not in FEED_TYPES:
        raise ValueError(f"Unknown feed type: {value!r}")
    return feed_type


def _parse_int(raw: Any, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class FeedQuery:
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    type: str = "both"

    def __post_init__(self) -> None:
        object.__setattr__(self, "limit", min(max(int(self.limit), 1), MAX_LIMIT))
        object.__setattr__(self, "offset", max(int(self.offset), 0))
        object.__setattr__(self, "type", normalize_feed_type(self.type))

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "FeedQuery":
        """Build a query from raw query-string values."""
        return cls(
            limit=_parse_int(params.get("limit"), DEFAULT_LIMIT),
            offset=_parse_int(params.get("offset"), 0),
            type=params.get("type") or "both",
        )

    @property
    def range_end(self) -> int:
        return self.offset + self.limit - 1


@dataclass
class FeedPage:
    items: list[dict[str, Any]] = field(default_factory=list)
    next_offset: Optional[int] = None

    @classmethod
    def from_rows(cls, rows: list[dict[str, Any]], query: FeedQuery) -> "FeedPage":
        next_offset = query.offset + query.limit if len(rows) == query.limit else None
        return cls(items=list(rows), next_offset=next_offset)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FeedPage":
        return cls(items=list(payload.get("items") or []), next_offset=payload.get("nextOffset"))

    def to_dict(self) -> dict[str, Any]:
        return {"items": self.items, "nextOffset": self.next_offset}


__all__ = [
    "DEFAULT_LIMIT",
    "FEED_TYPES",
    "FeedPage",
    "FeedQuery",
    "MAX_LIMIT",
    "UNKNOWN_OWNER",
    "normalize_feed_type",
]

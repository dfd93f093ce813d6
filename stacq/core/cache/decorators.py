"""Cache decorators for repository/service coroutines.

Provides decorators to add caching to async methods with:
- Automatic key generation from call arguments
- TTL management
- Invalidation after writes
"""

from __future__ import annotations

import functools
import inspect
import logging
import re
from typing import Any, Callable, Mapping, Optional

from stacq.core.cache.keys import DEFAULT_NAMESPACE, build_key
from stacq.core.cache.readthrough import ReadThroughCache

logger = logging.getLogger(__name__)

_SKIPPED_ARGS = {"self", "cls"}
_SELF_ATTR_RE = re.compile(r"\{self\.(\w+)\}")
_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


def _bound_arguments(func: Callable, args: tuple, kwargs: dict) -> dict[str, Any]:
    bound = inspect.signature(func).bind(*args, **kwargs)
    bound.apply_defaults()
    return dict(bound.arguments)


def read_through(
    cache: ReadThroughCache,
    logical_key: str,
    *,
    ttl_seconds: Optional[int] = None,
    params: Optional[Callable[..., Mapping[str, Any]]] = None,
    namespace: str = DEFAULT_NAMESPACE,
) -> Callable:
    """
    Decorator routing an async function through ``cache.get_or_compute``.

    Usage:
        @read_through(cache, "stacks:public", ttl_seconds=CacheTTL.FEED)
        async def public_stacks(limit: int = 20, offset: int = 0) -> list[dict]:
            ...

    Args:
        cache: Read-through cache to use
        logical_key: Resource class, e.g. "stacks:public"
        ttl_seconds: Time to live (cache default when None)
        params: Builds the key parameters from the call's arguments; by
            default every bound argument except self/cls is used

    Returns:
        Decorated function with caching
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            if params is not None:
                key_params = params(*args, **kwargs)
            else:
                key_params = {
                    name: value
                    for name, value in _bound_arguments(func, args, kwargs).items()
                    if name not in _SKIPPED_ARGS
                }
            cache_key = build_key(logical_key, key_params, namespace=namespace)
            return await cache.get_or_compute(
                cache_key,
                lambda: func(*args, **kwargs),
                ttl_seconds,
            )

        return wrapper

    return decorator


def invalidates(cache: ReadThroughCache, *patterns: str) -> Callable:
    """
    Decorator that clears cache keys after the wrapped coroutine succeeds.

    Patterns containing ``*`` are invalidated by glob; others are cleared as
    exact keys.

    Usage:
        @invalidates(cache, "supabase:feed:*", "supabase:stack:{stack_id}:")
        async def update_stack(stack_id: str, payload: dict) -> dict:
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            result = await func(*args, **kwargs)

            arguments = _bound_arguments(func, args, kwargs)
            for pattern in patterns:
                resolved = resolve_pattern(pattern, arguments)
                if "*" in resolved:
                    await cache.invalidate(resolved)
                else:
                    await cache.clear(resolved)
                logger.debug("Cache invalidated: %s", resolved)

            return result

        return wrapper

    return decorator


def resolve_pattern(pattern: str, arguments: Mapping[str, Any]) -> str:
    """
    Resolve placeholders in a cache pattern.

    Supports:
    - {self.attr} - instance attributes
    - {name} - bound argument values
    """
    resolved = pattern

    self_obj = arguments.get("self")
    if self_obj is not None:
        for match in _SELF_ATTR_RE.finditer(pattern):
            attr_name = match.group(1)
            if hasattr(self_obj, attr_name):
                resolved = resolved.replace(match.group(0), str(getattr(self_obj, attr_name)))

    def _substitute(match: re.Match) -> str:
        name = match.group(1)
        if name in arguments and name not in _SKIPPED_ARGS:
            return str(arguments[name])
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_substitute, resolved)


__all__ = ["invalidates", "read_through", "resolve_pattern"]

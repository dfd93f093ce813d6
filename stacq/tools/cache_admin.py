"""Management script for inspecting and invalidating cache keys."""

from __future__ import annotations

import argparse
import asyncio
from typing import Optional, Sequence

from stacq.core.cache import build_cache, build_key
from stacq.core.logging import configure_logging
from stacq.core.settings import get_settings


def _parse_params(pairs: Sequence[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"Expected name=value, got {pair!r}")
        params[name] = value
    return params


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and invalidate read-through cache keys")
    sub = parser.add_subparsers(dest="command", required=True)

    key_cmd = sub.add_parser("key", help="Print the cache key for a logical key and parameters")
    key_cmd.add_argument("logical_key")
    key_cmd.add_argument("params", nargs="*", help="Parameters as name=value")

    clear_cmd = sub.add_parser("clear", help="Delete one cache key")
    clear_cmd.add_argument("key")

    invalidate_cmd = sub.add_parser("invalidate", help="Delete every key matching a glob pattern")
    invalidate_cmd.add_argument("pattern")

    return parser


async def _run(args: argparse.Namespace) -> str:
    settings = get_settings()

    if args.command == "key":
        return build_key(args.logical_key, _parse_params(args.params), namespace=settings.cache_namespace)

    cache = build_cache(settings)
    try:
        if args.command == "clear":
            deleted = await cache.clear(args.key)
            return f"cleared {args.key}" if deleted else f"not found {args.key}"
        deleted_count = await cache.invalidate(args.pattern)
        return f"deleted {deleted_count} keys matching {args.pattern}"
    finally:
        await cache.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging()
    try:
        output = asyncio.run(_run(args))
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))
    print(output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

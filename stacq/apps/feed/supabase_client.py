"""Minimal PostgREST client for Supabase table reads."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Iterable, Mapping, Optional

import aiohttp

logger = logging.getLogger(__name__)


class SupabaseError(RuntimeError):
    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def _format_in(values: Iterable[Any]) -> str:
    return "in.(" + ",".join(str(v) for v in values) + ")"


class SupabaseClient:
    def __init__(self, url: str, key: str, *, timeout: float = 10.0) -> None:
        self._base_url = (url or "").strip().rstrip("/")
        self._key = (key or "").strip()
        self._timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def configured(self) -> bool:
        return bool(self._base_url and self._key)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    def _headers(self, range_: Optional[tuple[int, int]]) -> dict[str, str]:
        headers = {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Accept": "application/json",
        }
        if range_ is not None:
            headers["Range-Unit"] = "items"
            headers["Range"] = f"{range_[0]}-{range_[1]}"
        return headers

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        eq: Optional[Mapping[str, Any]] = None,
        in_: Optional[Mapping[str, Iterable[Any]]] = None,
        order: Optional[str] = None,
        ascending: bool = True,
        range_: Optional[tuple[int, int]] = None,
    ) -> list[dict[str, Any]]:
        """Run ``select`` on a table or view and return its rows.

        Raises:
            SupabaseError: not configured, HTTP error status or transport failure
        """
        if not self.configured:
            raise SupabaseError("SUPABASE_URL / SUPABASE_KEY are not configured")

        params: dict[str, str] = {"select": columns}
        for column, value in (eq or {}).items():
            params[column] = f"eq.{value}"
        for column, values in (in_ or {}).items():
            params[column] = _format_in(values)
        if order:
            params["order"] = f"{order}.{'asc' if ascending else 'desc'}"

        url = f"{self._base_url}/rest/v1/{table}"
        session = self._get_session()
        try:
            async with session.get(url, params=params, headers=self._headers(range_)) as resp:
                raw = await resp.text()
                if resp.status >= 400:
                    raise SupabaseError(f"Supabase HTTP {resp.status} for {table}: {raw[:500]}", status=resp.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise SupabaseError(str(exc)) from exc

        try:
            rows = json.loads(raw) if raw else []
        except ValueError as exc:
            raise SupabaseError(f"Invalid JSON from Supabase for {table}: {exc}") from exc
        if not isinstance(rows, list):
            raise SupabaseError(f"Unexpected payload from Supabase for {table}")
        return rows

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


__all__ = ["SupabaseClient", "SupabaseError"]

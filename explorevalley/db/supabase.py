"""
ExploreValley API - Remote store client (PostgREST over httpx)

One table per collection under /rest/v1/<table>. Every failure is classified:
  - missing column (42703 / PGRST204)  -> MissingColumnError
  - missing table  (42P01 / PGRST205)  -> MissingTableError
  - anything else                      -> StorageError (table + response body)
"""
import logging
import re
from typing import Any

import httpx

from explorevalley.core.column_retry import with_column_strip_retry
from explorevalley.core.config import get_settings
from explorevalley.core.errors import (
    ConfigurationError,
    MissingColumnError,
    MissingTableError,
    StorageError,
)

settings = get_settings()
logger = logging.getLogger(__name__)

MISSING_COLUMN_CODES = {"42703", "PGRST204"}
MISSING_TABLE_CODES = {"42P01", "PGRST205"}

_COLUMN_PATTERNS = (
    re.compile(r"Could not find the '([^']+)' column"),
    re.compile(r'column "?([\w.]+)"?(?: of relation "[^"]+")? does not exist'),
)


def _error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"message": response.text}
    return body if isinstance(body, dict) else {"message": str(body)}


def missing_column_name(message: str) -> str | None:
    for pattern in _COLUMN_PATTERNS:
        m = pattern.search(message or "")
        if m:
            return m.group(1).split(".")[-1]
    return None


def classify_error(table: str, response: httpx.Response) -> StorageError:
    body = _error_body(response)
    code = str(body.get("code") or "")
    message = str(body.get("message") or response.text or response.reason_phrase)

    column = missing_column_name(message)
    if code in MISSING_COLUMN_CODES or (column and "does not exist" in message):
        return MissingColumnError(table, column or "", message)
    lowered = message.lower()
    if code in MISSING_TABLE_CODES or "could not find the table" in lowered or (
        "relation" in lowered and "does not exist" in lowered
    ):
        return MissingTableError(table, message)
    return StorageError(table, f"HTTP {response.status_code}: {message}", status=response.status_code)


class SupabaseClient:
    """Thin async PostgREST client; one shared httpx.AsyncClient per process."""

    def __init__(
        self,
        rest_url: str,
        api_key: str,
        page_size: int = 1000,
        chunk_size: int = 500,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.page_size = page_size
        self.chunk_size = chunk_size
        self._http = httpx.AsyncClient(
            base_url=rest_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_settings(cls, transport: httpx.AsyncBaseTransport | None = None) -> "SupabaseClient":
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        return cls(
            settings.rest_url,
            settings.SUPABASE_SERVICE_ROLE_KEY,
            page_size=settings.STORE_PAGE_SIZE,
            chunk_size=settings.STORE_UPSERT_CHUNK_SIZE,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, table: str, method: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, f"/{table}", **kwargs)
        except httpx.TimeoutException as exc:
            raise StorageError(table, f"timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise StorageError(table, f"unreachable: {exc}") from exc
        if response.is_error:
            raise classify_error(table, response)
        return response

    # ── Reads ──────────────────────────────────────────────────────────────────

    async def select_all(self, table: str, order: str = "id") -> list[dict[str, Any]]:
        """All rows, paged with Range headers in a stable order."""
        rows: list[dict[str, Any]] = []
        ordering = ",".join(f"{column.strip()}.asc" for column in order.split(","))
        start = 0
        while True:
            end = start + self.page_size - 1
            response = await self._request(
                table, "GET",
                params={"select": "*", "order": ordering},
                headers={"Range-Unit": "items", "Range": f"{start}-{end}"},
            )
            page = response.json() or []
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            start += self.page_size

    async def ping(self, table: str) -> None:
        await self._request(table, "GET", params={"select": "*", "limit": "1"})

    # ── Writes ─────────────────────────────────────────────────────────────────

    async def _write(self, table: str, rows: list[dict], on_conflict: str, resolution: str) -> None:
        for i in range(0, len(rows), self.chunk_size):
            chunk = rows[i:i + self.chunk_size]
            await self._request(
                table, "POST",
                params={"on_conflict": on_conflict},
                headers={"Prefer": f"resolution={resolution},return=minimal"},
                json=chunk,
            )

    async def upsert(self, table: str, rows: list[dict], on_conflict: str = "id") -> None:
        if rows:
            await self._write(table, rows, on_conflict, "merge-duplicates")

    async def insert_ignore(self, table: str, rows: list[dict], on_conflict: str = "id") -> None:
        if rows:
            await self._write(table, rows, on_conflict, "ignore-duplicates")

    async def delete_where(self, table: str, column: str, op: str, value: str) -> None:
        await self._request(table, "DELETE", params={column: f"{op}.{value}"})

    @with_column_strip_retry
    async def upsert_stripping_missing_columns(self, table: str, rows: list[dict], on_conflict: str = "id") -> None:
        await self.upsert(table, rows, on_conflict)

    @with_column_strip_retry
    async def insert_ignore_stripping_missing_columns(
        self, table: str, rows: list[dict], on_conflict: str = "id",
    ) -> None:
        await self.insert_ignore(table, rows, on_conflict)


# ── Shared instance ────────────────────────────────────────────────────────────

_store_client: SupabaseClient | None = None


def get_store_client() -> SupabaseClient:
    global _store_client
    if _store_client is None:
        _store_client = SupabaseClient.from_settings()
    return _store_client


def set_store_client(client: SupabaseClient | None) -> None:
    global _store_client
    _store_client = client


async def close_store_client() -> None:
    global _store_client
    if _store_client:
        await _store_client.aclose()
        _store_client = None

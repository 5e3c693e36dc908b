"""
supabase_rest.py: HTTP-based database client using Supabase's PostgREST API.
Every table the app touches is read and written through these helpers with
the service-role key; row-level security is enforced by the callers.
"""
import httpx
from urllib.parse import quote

from kakeibo import config

# Tests swap this for an httpx.MockTransport
_transport: httpx.BaseTransport | None = None

NOT_FOUND_CODE = "PGRST116"


class SupabaseError(Exception):
    """A non-2xx PostgREST response."""

    def __init__(self, message: str, status_code: int = 500, code: str | None = None, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details

    @property
    def is_not_found(self) -> bool:
        return self.code == NOT_FOUND_CODE or self.status_code == 404

    def __str__(self):
        prefix = f"[{self.code}] " if self.code else ""
        return f"{prefix}{self.message}"


def _headers():
    return {
        "apikey": config.SUPABASE_SERVICE_ROLE_KEY,
        "Authorization": f"Bearer {config.SUPABASE_SERVICE_ROLE_KEY}",
        "Content-Type": "application/json",
        "Prefer": "return=representation",
    }


def _client() -> httpx.Client:
    return httpx.Client(timeout=config.HTTP_TIMEOUT, transport=_transport)


def _check(resp: httpx.Response) -> None:
    if resp.is_success:
        return
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    raise SupabaseError(
        body.get("message") or resp.text or f"HTTP {resp.status_code}",
        status_code=resp.status_code,
        code=body.get("code"),
        details=body.get("details"),
    )


def _filter_params(filters: dict | None) -> str:
    """Equality filters; a None value becomes an IS NULL test."""
    parts = []
    for key, value in (filters or {}).items():
        if value is None:
            parts.append(f"{key}=is.null")
        else:
            parts.append(f"{key}=eq.{quote(str(value))}")
    return "&".join(parts)


def _url(table: str, query: str = "") -> str:
    url = f"{config.SUPABASE_URL}/rest/v1/{table}"
    return f"{url}?{query}" if query else url


def sb_select(
    table: str,
    filters: dict = None,
    columns: str = "*",
    query_string: str = None,
    order: str = None,
    ranges: dict = None,
) -> list:
    """
    Select rows from a table.

    filters: equality filters (None → IS NULL).
    ranges: {column: (low, high)} inclusive bounds; either side may be None.
    order: PostgREST order clause, e.g. "date.desc".
    """
    parts = [f"select={columns}"]
    if filters:
        parts.append(_filter_params(filters))
    for column, (low, high) in (ranges or {}).items():
        if low is not None:
            parts.append(f"{column}=gte.{quote(str(low))}")
        if high is not None:
            parts.append(f"{column}=lte.{quote(str(high))}")
    if order:
        parts.append(f"order={order}")
    if query_string:
        parts.append(query_string)

    with _client() as client:
        resp = client.get(_url(table, "&".join(parts)), headers=_headers())
        _check(resp)
        return resp.json()


def sb_select_one(table: str, filters: dict, columns: str = "*") -> dict | None:
    """Return the first matching row, or None when there is none."""
    rows = sb_select(table, filters=filters, columns=columns, query_string="limit=1")
    return rows[0] if rows else None


def sb_insert(table: str, data: dict) -> dict:
    """Insert a row and return the created record."""
    with _client() as client:
        resp = client.post(_url(table), json=data, headers=_headers())
        _check(resp)
        result = resp.json()
        return result[0] if isinstance(result, list) and result else {}


def sb_upsert(table: str, data: dict, on_conflict: str) -> dict:
    """Insert or merge a row keyed on the on_conflict columns."""
    headers = {**_headers(), "Prefer": "return=representation,resolution=merge-duplicates"}
    with _client() as client:
        resp = client.post(_url(table, f"on_conflict={on_conflict}"), json=data, headers=headers)
        _check(resp)
        result = resp.json()
        return result[0] if isinstance(result, list) and result else {}


def sb_update(table: str, filters: dict, data: dict) -> dict:
    """Update rows matching filters and return the first updated record."""
    with _client() as client:
        resp = client.patch(_url(table, _filter_params(filters)), json=data, headers=_headers())
        _check(resp)
        result = resp.json()
        return result[0] if isinstance(result, list) and result else {}


def sb_delete(table: str, filters: dict = None, query_string: str = None) -> None:
    """Delete rows matching filters (or a raw PostgREST condition)."""
    query = _filter_params(filters)
    if query_string:
        query = f"{query}&{query_string}" if query else query_string
    if not query:
        raise ValueError("Refusing to delete without a filter")
    with _client() as client:
        resp = client.delete(_url(table, query), headers=_headers())
        _check(resp)


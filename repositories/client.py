"""
Supabase client initialization.

This module contains *only* the database connection setup. Repository modules
call `get_supabase()` to obtain the shared client; it is created on first use so
that importing the repositories never requires credentials.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Sequence

from dotenv import load_dotenv
from postgrest.exceptions import APIError
from supabase import Client, create_client  # type: ignore[import-not-found]

# Load environment variables from the .env file at the project root.
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Postgres error codes surfaced through PostgREST.
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"

# Ids per `in_()` lookup; keeps URLs short and results under the max-rows cap.
IN_FILTER_CHUNK_SIZE = 200

_client: Optional[Client] = None


def _require_env(name: str, hint: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing environment variable: {name}. {hint}")
    return value


def get_supabase() -> Client:
    """Return the shared Supabase client, creating it from the environment on first use."""

    global _client
    if _client is None:
        url = _require_env("SUPABASE_URL", "Set SUPABASE_URL to your Supabase project URL.")
        key = _require_env("SUPABASE_KEY", "Set SUPABASE_KEY to your Supabase API key.")
        _client = create_client(url, key)
    return _client


def response_rows(response: Any, action: str) -> List[dict]:
    """
    Return the rows of a PostgREST response, raising on a reported error.

    Older client versions report errors on the response instead of raising.
    """

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return list(getattr(response, "data", None) or [])


def response_count(response: Any, action: str) -> int:
    """Return the exact count of a `count="exact"` query."""

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return int(getattr(response, "count", 0) or 0)


def fetch_all_rows(build_query: Callable[[], Any], action: str, page_size: int = 1000) -> List[dict]:
    """
    Fetch every row of a query, one page at a time.

    PostgREST caps response size, so large listings are read with `range()`.
    `build_query` must return a fresh, filtered and ordered query builder.
    """

    rows: List[dict] = []
    offset = 0
    while True:
        response = build_query().range(offset, offset + page_size - 1).execute()
        page = response_rows(response, action)
        rows.extend(page)
        if len(page) < page_size:
            return rows
        offset += len(page)


def chunked(values: Sequence[Any], size: int = IN_FILTER_CHUNK_SIZE) -> Iterator[List[Any]]:
    """Split values into lists of at most `size` items."""

    items = list(values)
    for start in range(0, len(items), size):
        yield items[start:start + size]


def error_code(exc: APIError) -> str:
    return str(getattr(exc, "code", "") or "")


__all__ = [
    "APIError",
    "FOREIGN_KEY_VIOLATION",
    "IN_FILTER_CHUNK_SIZE",
    "UNIQUE_VIOLATION",
    "chunked",
    "error_code",
    "fetch_all_rows",
    "get_supabase",
    "response_count",
    "response_rows",
]

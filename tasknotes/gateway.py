from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

import httpx
from postgrest.exceptions import APIError
from supabase import Client, ClientOptions, create_client

from .config import Settings
from .errors import ConfigurationError, ConnectivityError, QueryError

logger = logging.getLogger(__name__)

USER_AGENT = "telegram-miniapp/1.0"

USERS = "users"
TASKS = "tasks"
NOTES = "notes"


@contextmanager
def _translate(relation: str, operation: str) -> Iterator[None]:
    """Map supabase/postgrest/httpx failures onto the handler error taxonomy."""
    try:
        yield
    except APIError as e:
        logger.error("%s on %s rejected: %s", operation, relation, e.message)
        raise QueryError(f"{operation} {relation}: {e.message}", relation, operation) from e
    except (httpx.HTTPError, OSError) as e:
        logger.error("%s on %s failed to reach the store: %s", operation, relation, e)
        raise ConnectivityError(f"{operation} {relation}: {e}") from e


class SupabaseGateway:
    """
    Row-level access to the ``users``, ``tasks`` and ``notes`` relations.

    One instance per request; nothing is cached between invocations.
    """

    def __init__(self, client: Client) -> None:
        self._client = client

    @classmethod
    def connect(cls, settings: Settings) -> "SupabaseGateway":
        """Create a fresh supabase client from settings."""
        try:
            options = ClientOptions(
                schema=settings.schema,
                headers={"User-Agent": USER_AGENT},
                auto_refresh_token=False,
                persist_session=False,
                postgrest_client_timeout=settings.timeout,
            )
            client = create_client(settings.supabase_url, settings.supabase_key, options=options)
        except Exception as e:
            raise ConfigurationError(f"Could not create Supabase client: {e}") from e
        logger.debug("Supabase client created for %s", settings.supabase_url)
        return cls(client)

    def ping(self) -> None:
        """Probe connectivity with a one-row select. Any failure is a ConnectivityError."""
        try:
            with _translate(USERS, "ping"):
                self._client.table(USERS).select("id").limit(1).execute()
        except QueryError as e:
            raise ConnectivityError(f"Supabase connection test failed: {e}") from e

    def select(
        self,
        relation: str,
        columns: str,
        filters: Dict[str, Any],
        order: Union[str, Sequence[str], None] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with _translate(relation, "select"):
            query = self._client.table(relation).select(columns)
            for column, value in filters.items():
                query = query.eq(column, value)
            for column in (order,) if isinstance(order, str) else order or ():
                query = query.order(column, desc=descending)
            if limit:
                query = query.limit(limit)
            response = query.execute()
        return list(response.data or [])

    def upsert(self, relation: str, row: Dict[str, Any], on_conflict: str) -> List[Dict[str, Any]]:
        with _translate(relation, "upsert"):
            response = self._client.table(relation).upsert(row, on_conflict=on_conflict).execute()
        return list(response.data or [])

    def delete(self, relation: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not filters:
            # PostgREST refuses unfiltered deletes anyway
            raise QueryError(f"refusing to delete from {relation} without a filter", relation, "delete")
        with _translate(relation, "delete"):
            query = self._client.table(relation).delete()
            for column, value in filters.items():
                query = query.eq(column, value)
            response = query.execute()
        return list(response.data or [])

    def insert(self, relation: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        with _translate(relation, "insert"):
            response = self._client.table(relation).insert(rows).execute()
        return list(response.data or [])

    def rpc(self, function: str, params: Dict[str, Any]) -> Any:
        with _translate(function, "rpc"):
            response = self._client.rpc(function, params).execute()
        return response.data

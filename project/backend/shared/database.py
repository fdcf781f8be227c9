"""
Database client.

Async wrapper around the Supabase client with a chainable table query builder.
"""

import asyncio
from typing import Any, List, Optional, Tuple

from shared.config import settings
from shared.errors import ConfigError, RetryableError
from shared.logging import get_logger

logger = get_logger("database")


class AsyncTableQueryBuilder:
    """
    Chainable query builder whose execute() runs the Supabase call off the event loop.

    Usage:
        result = await db.table("videos").select("*").eq("id", video_id).execute()
        rows = result.data
    """

    def __init__(self, client_factory, table_name: str):
        self._client_factory = client_factory
        self._table_name = table_name
        self._operations: List[Tuple[str, tuple, dict]] = []

    def _chain(self, method: str, *args, **kwargs) -> "AsyncTableQueryBuilder":
        self._operations.append((method, args, kwargs))
        return self

    def select(self, columns: str = "*", count: Optional[str] = None) -> "AsyncTableQueryBuilder":
        if count:
            return self._chain("select", columns, count=count)
        return self._chain("select", columns)

    def insert(self, data: Any) -> "AsyncTableQueryBuilder":
        return self._chain("insert", data)

    def upsert(self, data: Any) -> "AsyncTableQueryBuilder":
        return self._chain("upsert", data)

    def update(self, data: dict) -> "AsyncTableQueryBuilder":
        return self._chain("update", data)

    def delete(self) -> "AsyncTableQueryBuilder":
        return self._chain("delete")

    def eq(self, column: str, value: Any) -> "AsyncTableQueryBuilder":
        return self._chain("eq", column, value)

    def in_(self, column: str, values: list) -> "AsyncTableQueryBuilder":
        return self._chain("in_", column, values)

    def order(self, column: str, desc: bool = False) -> "AsyncTableQueryBuilder":
        return self._chain("order", column, desc=desc)

    def limit(self, count: int) -> "AsyncTableQueryBuilder":
        return self._chain("limit", count)

    def _build(self):
        query = self._client_factory().table(self._table_name)
        for method, args, kwargs in self._operations:
            query = getattr(query, method)(*args, **kwargs)
        return query

    async def execute(self):
        """
        Execute the built query.

        Returns:
            Supabase APIResponse with .data (and .count when requested)

        Raises:
            RetryableError: If the database call fails
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, lambda: self._build().execute())
        except ConfigError:
            raise
        except Exception as e:
            logger.error(
                f"Database query failed on {self._table_name}: {str(e)}",
                extra={"table": self._table_name}
            )
            raise RetryableError(f"Database query failed: {str(e)}") from e


class DatabaseClient:
    """Supabase database client (lazily connected)."""

    def __init__(self):
        """Initialize database client without connecting."""
        self._client = None

    def _get_client(self):
        if self._client is None:
            try:
                from supabase import create_client
                self._client = create_client(settings.supabase_url, settings.supabase_service_key)
            except Exception as e:
                raise ConfigError(f"Failed to initialize Supabase client: {str(e)}") from e
        return self._client

    def table(self, name: str) -> AsyncTableQueryBuilder:
        """Start a query against a table."""
        return AsyncTableQueryBuilder(self._get_client, name)

    async def health_check(self) -> bool:
        """
        Check database connection health.

        Returns:
            True if a trivial query succeeds, False otherwise
        """
        try:
            await self.table("videos").select("id").limit(1).execute()
            return True
        except Exception as e:
            logger.warning(f"Database health check failed: {str(e)}")
            return False


# Singleton instance
db = DatabaseClient()

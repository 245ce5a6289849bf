"""
Database client.

Supabase runs synchronous HTTP calls, so queries are executed in the
default thread pool and retried with exponential backoff.
"""

import asyncio
from typing import Any, Callable, Optional
from supabase import create_client, Client
from shared.config import settings
from shared.errors import RetryableError, ConfigError

# Query builder methods that return a new builder and can be chained
CHAINABLE = ("select", "insert", "update", "eq", "in_", "lte", "limit", "order")


class DatabaseClient:
    """
    Supabase client wrapper.

    The underlying client is created on first use, so importing a module
    that holds a DatabaseClient never needs credentials.
    """

    def __init__(self, client: Optional[Client] = None):
        self._client: Optional[Client] = client

    @property
    def client(self) -> Client:
        if self._client is None:
            try:
                self._client = create_client(settings.supabase_url, settings.supabase_service_key)
            except Exception as e:
                raise ConfigError(f"Failed to initialize database client: {str(e)}") from e
        return self._client

    async def _execute_sync(self, func: Callable[[], Any], max_attempts: int = 3) -> Any:
        """
        Run a blocking Supabase call off the event loop.

        Raises:
            RetryableError: If every attempt failed
        """
        loop = asyncio.get_running_loop()
        for attempt in range(1, max_attempts + 1):
            try:
                return await loop.run_in_executor(None, func)
            except Exception as e:
                if attempt == max_attempts:
                    raise RetryableError(
                        f"Database operation failed after {max_attempts} attempts: {str(e)}"
                    ) from e
                # 2s, 4s, 8s...
                await asyncio.sleep(2 ** attempt)

    def table(self, table_name: str) -> "AsyncTableQueryBuilder":
        return AsyncTableQueryBuilder(self, table_name)

    async def health_check(self) -> bool:
        """Single-attempt query. Returns False instead of raising."""
        try:
            await self._execute_sync(
                lambda: self.client.table("projects").select("id").limit(1).execute(),
                max_attempts=1
            )
            return True
        except (RetryableError, ConfigError):
            return False


class AsyncTableQueryBuilder:
    """Chains onto the Supabase query builder; only execute() is awaited."""

    def __init__(self, db_client: DatabaseClient, table_name: str):
        self.db_client = db_client
        self.table_name = table_name
        self._query_builder = db_client.client.table(table_name)

    def __getattr__(self, name: str):
        if name not in CHAINABLE:
            raise AttributeError(f"{type(self).__name__} has no attribute {name!r}")

        def chain(*args, **kwargs):
            self._query_builder = getattr(self._query_builder, name)(*args, **kwargs)
            return self
        return chain

    async def execute(self, max_attempts: int = 3) -> Any:
        query_builder = self._query_builder
        return await self.db_client._execute_sync(query_builder.execute, max_attempts)

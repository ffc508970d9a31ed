"""
PostgreSQL async client wrapper for the ranked leaderboard store.

Provides high-level interface for PostgreSQL operations
with connection pooling and error handling.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass
import structlog

import asyncpg


@dataclass
class PostgresConfig:
    """PostgreSQL configuration."""
    dsn: str
    min_size: int = 2
    max_size: int = 20
    timeout: int = 30


class PostgresClient:
    """
    Async PostgreSQL client with connection pooling.

    The pool bounds concurrency against the database: once max_size
    connections are checked out, further callers wait in acquire()
    instead of opening new connections.
    """

    def __init__(self, config: Union[PostgresConfig, str, None] = None, **kwargs: Any):
        if isinstance(config, PostgresConfig):
            self.config = config
        else:
            dsn = config
            if not dsn:
                host = kwargs.get("host", "localhost")
                port = kwargs.get("port", 5432)
                database = kwargs.get("database") or kwargs.get("db") or "postgres"
                user = kwargs.get("user") or kwargs.get("username") or "postgres"
                password = kwargs.get("password", "")
                dsn = f"postgresql://{user}:{password}@{host}:{port}/{database}"

            self.config = PostgresConfig(
                dsn=dsn,
                min_size=kwargs.get("min_size", 2),
                max_size=kwargs.get("max_size", 20),
                timeout=kwargs.get("timeout", 30),
            )

        self.logger = structlog.get_logger("postgres-client")
        self.pool: Optional[asyncpg.Pool] = None
        self.is_connected: bool = False

    async def connect(self) -> None:
        """Connect to PostgreSQL."""
        if self.pool:
            self.is_connected = True
            return

        self.pool = await asyncpg.create_pool(
            self.config.dsn,
            min_size=self.config.min_size,
            max_size=self.config.max_size,
            command_timeout=self.config.timeout
        )

        self.is_connected = True
        self.logger.info("Connected to PostgreSQL", max_size=self.config.max_size)

    async def close(self) -> None:
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None

        self.is_connected = False
        self.logger.info("Disconnected from PostgreSQL")

    async def _acquire(self):
        if not self.pool:
            await self.connect()
        return await self.pool.acquire(timeout=self.config.timeout)

    async def _release(self, conn) -> None:
        await self.pool.release(conn)

    async def execute(self, query: str, *args: Any) -> List[Dict[str, Any]]:
        """Execute a SELECT query and return list of rows."""
        conn = await self._acquire()
        try:
            rows = await conn.fetch(query, *args)
            return [dict(row) for row in rows]
        except Exception as e:
            self.logger.error("PostgreSQL query error", error=str(e), query=query)
            raise
        finally:
            await self._release(conn)

    async def execute_one(self, query: str, *args: Any) -> Optional[Dict[str, Any]]:
        """Execute a SELECT query returning a single row."""
        conn = await self._acquire()
        try:
            row = await conn.fetchrow(query, *args)
            return dict(row) if row else None
        except Exception as e:
            self.logger.error("PostgreSQL query error", error=str(e), query=query)
            raise
        finally:
            await self._release(conn)

    async def execute_scalar(self, query: str, *args: Any) -> Any:
        """Execute a SELECT query returning a scalar value."""
        conn = await self._acquire()
        try:
            return await conn.fetchval(query, *args)
        except Exception as e:
            self.logger.error("PostgreSQL query error", error=str(e), query=query)
            raise
        finally:
            await self._release(conn)

    async def execute_command(self, command: str, *args: Any) -> str:
        """Execute a statement that returns no rows (DDL, REFRESH, UPDATE)."""
        conn = await self._acquire()
        try:
            status = await conn.execute(command, *args)
            self.logger.debug("Command executed", status=status)
            return status
        except Exception as e:
            self.logger.error("PostgreSQL command error", error=str(e), command=command)
            raise
        finally:
            await self._release(conn)

    async def insert_many(self, table: str, data: List[Dict[str, Any]]) -> None:
        """Insert multiple records in a single batch."""
        if not data:
            return

        conn = await self._acquire()
        try:
            columns = list(data[0].keys())
            values_list = [[record[col] for col in columns] for record in data]

            insert_sql = (
                f"INSERT INTO {table} ({', '.join(columns)}) "
                f"VALUES ({', '.join(f'${i+1}' for i in range(len(columns)))})"
            )
            await conn.executemany(insert_sql, values_list)

            self.logger.debug("Records inserted", table=table, count=len(data))
        except Exception as e:
            self.logger.error("PostgreSQL insert many error", error=str(e), table=table)
            raise
        finally:
            await self._release(conn)

    async def health_check(self) -> bool:
        """Check PostgreSQL health."""
        try:
            result = await self.execute_scalar("SELECT 1")
            return result == 1
        except Exception as e:
            self.logger.error("PostgreSQL health check failed", error=str(e))
            return False

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

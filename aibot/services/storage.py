"""
aibot/services/storage.py
PostgreSQL storage for the bot service.

Only the connection lifecycle lives here; psycopg2 is blocking, so open,
close and queries run on a worker thread to keep the event loop free.
"""

import asyncio
from typing import Optional

import psycopg2
import psycopg2.extensions
import structlog

from ..core.exceptions import AcquisitionError

logger = structlog.get_logger("storage")


async def get_db(dsn: str, connect_timeout: int = 10) -> psycopg2.extensions.connection:
    """
    Open a database connection.

    Raises:
        AcquisitionError: if the connection can't be established
    """
    logger.info("opening_database_connection")
    try:
        conn = await asyncio.to_thread(psycopg2.connect, dsn, connect_timeout=connect_timeout)
    except psycopg2.Error as e:
        logger.error("database_connection_failed", error=str(e))
        raise AcquisitionError("storage", f"Database connection failed: {e}") from e

    conn.autocommit = True
    logger.info("database_connection_opened", server_version=getattr(conn, "server_version", None))
    return conn


async def close_db(conn: Optional[psycopg2.extensions.connection]) -> None:
    """Close a connection; no-op when it is already closed."""
    if conn is None or conn.closed:
        return
    await asyncio.to_thread(conn.close)
    logger.info("database_connection_closed")


class DbStorage:
    """Storage facade handed to the controller."""

    def __init__(self, conn: psycopg2.extensions.connection):
        self.conn = conn

    @property
    def closed(self) -> bool:
        return bool(self.conn.closed)

    async def ping(self) -> bool:
        """Round-trip a trivial query; False if the connection is unusable."""
        if self.closed:
            return False
        try:
            return await asyncio.to_thread(self._ping)
        except psycopg2.Error as e:
            logger.warning("database_ping_failed", error=str(e))
            return False

    def _ping(self) -> bool:
        with self.conn.cursor() as cursor:
            cursor.execute("SELECT 1")
            return cursor.fetchone()[0] == 1


__all__ = ["get_db", "close_db", "DbStorage"]

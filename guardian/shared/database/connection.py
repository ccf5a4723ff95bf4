"""Pooled PostgreSQL connections for PostgresStore.

psycopg2 is imported when the pool is first opened, so processes that run
on the in-memory store never need the driver.
"""
import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatabaseConfig:
    host: str
    port: int = 5432
    database: str = "guardian"
    username: str = ""
    password: str = ""
    min_connections: int = 2
    max_connections: int = 10
    connect_timeout: int = 10
    ssl_mode: str = "require"

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Environment variables:
            DB_HOST, DB_PORT (5432), DB_NAME (guardian), DB_USER, DB_PASSWORD
            DB_MIN_CONN (2), DB_MAX_CONN (10), DB_CONNECT_TIMEOUT (10)
            DB_SSL_MODE (require)
        """
        return cls(
            host=os.getenv("DB_HOST", "localhost"),
            port=int(os.getenv("DB_PORT", "5432")),
            database=os.getenv("DB_NAME", "guardian"),
            username=os.getenv("DB_USER", ""),
            password=os.getenv("DB_PASSWORD", ""),
            min_connections=int(os.getenv("DB_MIN_CONN", "2")),
            max_connections=int(os.getenv("DB_MAX_CONN", "10")),
            connect_timeout=int(os.getenv("DB_CONNECT_TIMEOUT", "10")),
            ssl_mode=os.getenv("DB_SSL_MODE", "require"),
        )

    def connect_kwargs(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.username,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
            "sslmode": self.ssl_mode,
        }


class ConnectionManager:
    """Lazily opened ThreadedConnectionPool shared by request threads."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool = None
        self._lock = threading.Lock()

    def _open_pool(self):
        with self._lock:
            if self._pool is not None:
                return self._pool

            from psycopg2 import pool

            try:
                self._pool = pool.ThreadedConnectionPool(
                    self.config.min_connections,
                    self.config.max_connections,
                    **self.config.connect_kwargs(),
                )
            except Exception as e:
                logger.critical(
                    "DATABASE_POOL_OPEN_FAILED",
                    extra={"host": self.config.host, "error": str(e)}
                )
                raise

            logger.info(
                "DATABASE_POOL_OPENED",
                extra={
                    "host": self.config.host,
                    "database": self.config.database,
                    "max_connections": self.config.max_connections,
                }
            )
            return self._pool

    @contextmanager
    def get_connection(self):
        """Borrow a connection; it goes back to the pool on exit."""
        connections = self._pool or self._open_pool()
        conn = connections.getconn()
        try:
            yield conn
        finally:
            connections.putconn(conn)


_connection_manager: Optional[ConnectionManager] = None


def get_connection_manager() -> ConnectionManager:
    """Process-wide manager built from the environment."""
    global _connection_manager
    if _connection_manager is None:
        _connection_manager = ConnectionManager(DatabaseConfig.from_env())
    return _connection_manager

"""
PostgreSQL connection pool for the site store

Wraps a psycopg_pool ConnectionPool returning dict rows. Each caller thread
borrows its own connection, so concurrent site creations never share a
transaction and the database arbitrates their conditional inserts.
"""
import os
import time
from contextlib import contextmanager

from psycopg import OperationalError
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from siteledger.observability.logger import get_logger

logger = get_logger(__name__)


class DatabaseConnectionPool:
    """
    Lazily opened psycopg connection pool.

    Connection parameters default to the DB_* environment variables.
    Instances are passed explicitly to PostgresSiteStore and SchemaManager.

    Usage:
        with DatabaseConnectionPool(password="secret") as pool:
            pool.execute_query("SELECT 1 AS ok")
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        database: str | None = None,
        user: str | None = None,
        password: str | None = None,
        min_size: int = 1,
        max_size: int = 10,
        timeout: float = 30.0,
    ) -> None:
        """
        Args:
            host: Database host (env DB_HOST, default localhost)
            port: Database port (env DB_PORT, default 5432)
            database: Database name (env DB_NAME, default siteledger)
            user: Database user (env DB_USER, default siteledger)
            password: Database password (env DB_PASSWORD, required)
            min_size: Connections kept open
            max_size: Upper bound on concurrent connections
            timeout: Seconds to wait for a connection, also the connect timeout

        Raises:
            ValueError: If no password is configured
        """
        self.host = host or os.getenv("DB_HOST", "localhost")
        self.port = port or int(os.getenv("DB_PORT", "5432"))
        self.database = database or os.getenv("DB_NAME", "siteledger")
        self.user = user or os.getenv("DB_USER", "siteledger")
        password = password or os.getenv("DB_PASSWORD")

        if not password:
            raise ValueError(
                "Database password must be provided. "
                "Set DB_PASSWORD environment variable or pass to constructor."
            )

        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout
        self.conninfo = make_conninfo(
            host=self.host,
            port=self.port,
            dbname=self.database,
            user=self.user,
            password=password,
            connect_timeout=int(self.timeout),
        )

        self._pool: ConnectionPool | None = None

    @classmethod
    def from_settings(cls, settings) -> "DatabaseConnectionPool":
        """Build a pool from a siteledger.config.StoreSettings."""
        return cls(
            host=settings.host,
            port=settings.port,
            database=settings.database,
            user=settings.user,
            password=settings.password,
            min_size=settings.min_size,
            max_size=settings.max_size,
            timeout=settings.timeout,
        )

    def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the pool, retrying while the database is unreachable.

        Opening an already open pool does nothing.

        Raises:
            OperationalError: If every attempt fails
        """
        if self._pool is not None:
            return

        for attempt in range(1, max_retries + 1):
            pool = ConnectionPool(
                conninfo=self.conninfo,
                min_size=self.min_size,
                max_size=self.max_size,
                timeout=self.timeout,
                kwargs={"row_factory": dict_row},
                open=False,
            )
            try:
                pool.open(wait=True, timeout=self.timeout)
            except OperationalError as e:  # PoolTimeout is a subclass
                pool.close()
                if attempt == max_retries:
                    raise OperationalError(
                        f"Failed to connect to database after {max_retries} attempts: {e}"
                    ) from e
                logger.warning(
                    f"Database connection attempt {attempt} failed: {e}",
                    extra={"host": self.host, "attempt": attempt},
                )
                time.sleep(retry_delay)
                continue

            self._pool = pool
            logger.info(
                "Database pool opened",
                extra={"host": self.host, "database": self.database, "attempt": attempt},
            )
            return

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def get_connection(self):
        """
        Borrow a connection; it returns to the pool when the block exits.

        Raises:
            RuntimeError: If the pool is not open
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")

        with self._pool.connection() as conn:
            yield conn

    def execute_query(self, query, params: tuple | None = None) -> list[dict]:
        """Run a SELECT (str or psycopg.sql.Composable) and return all rows as dicts."""
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchall()

    def execute_command(self, command, params: tuple | None = None) -> int:
        """Run and commit an INSERT/UPDATE/DELETE; returns the affected row count."""
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(command, params)
                rowcount = cur.rowcount
            conn.commit()
            return rowcount

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

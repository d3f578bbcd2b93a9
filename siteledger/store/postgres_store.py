"""
PostgreSQL-backed site store.

Items live as JSONB rows keyed by (pk, sk). Creation uses
INSERT ... ON CONFLICT DO NOTHING so a duplicate key is detected by the
database rather than overwritten; updates are guarded by the stored version.
"""

import json
from functools import partial
from typing import Any

import psycopg
from psycopg import sql

from siteledger.core.errors import (
    DuplicateKeyError,
    SiteNotFoundError,
    StoreReadFailure,
    StoreWriteFailure,
    VersionConflictError,
)
from siteledger.observability.logger import get_logger
from siteledger.observability.metrics import record_store_error
from siteledger.utils.validation import sanitize_sql_identifier

from .base import ScanKey, ScanPage
from .connection import DatabaseConnectionPool
from .schema_mgmt import DEFAULT_TABLE_NAME

logger = get_logger(__name__)

# Caller attributes may carry Decimals or dates; store them as strings
_dumps = partial(json.dumps, default=str)


class PostgresSiteStore:
    """
    SiteStore implementation on PostgreSQL.

    All driver errors are translated into StoreReadFailure or
    StoreWriteFailure with the psycopg exception attached as the cause.
    """

    def __init__(self, pool: DatabaseConnectionPool, table_name: str = DEFAULT_TABLE_NAME):
        """
        Initialize store.

        Args:
            pool: Open database connection pool
            table_name: Name of the site table (see SchemaManager)
        """
        self.pool = pool
        self.table_name = sanitize_sql_identifier(table_name, "table_name")
        self._table = sql.Identifier(self.table_name)

    def scan_page(
        self, attribute: str, start_key: ScanKey | None = None, limit: int = 100
    ) -> ScanPage:
        """
        Read one keyset-paginated page of ``attribute`` values.

        One extra row is fetched to tell whether another page follows.
        """
        if start_key is None:
            query = sql.SQL("""
                SELECT pk, sk, item ->> %s::text AS value
                FROM {table}
                ORDER BY pk, sk
                LIMIT %s
            """).format(table=self._table)
            params = (attribute, limit + 1)
        else:
            query = sql.SQL("""
                SELECT pk, sk, item ->> %s::text AS value
                FROM {table}
                WHERE (pk, sk) > (%s, %s)
                ORDER BY pk, sk
                LIMIT %s
            """).format(table=self._table)
            params = (attribute, start_key[0], start_key[1], limit + 1)

        rows = self._read("scan", query, params)

        page = rows[:limit]
        last_key = (page[-1]["pk"], page[-1]["sk"]) if len(rows) > limit else None
        return ScanPage(values=[row["value"] for row in page], last_key=last_key)

    def conditional_put(self, item: dict[str, Any]) -> None:
        """
        Insert a new item unless any item already uses its PK.

        Raises:
            DuplicateKeyError: If the PK is taken
            StoreWriteFailure: On any database error
        """
        command = sql.SQL("""
            INSERT INTO {table} (pk, sk, company_id, item)
            SELECT %s::text, %s::text, %s::text, %s::jsonb
            WHERE NOT EXISTS (SELECT 1 FROM {table} WHERE pk = %s)
            ON CONFLICT DO NOTHING
        """).format(table=self._table)

        pk = item["PK"]
        rowcount = self._write(
            "put",
            command,
            (pk, item["SK"], str(item["companyId"]), _dumps(item), pk),
        )

        if rowcount == 0:
            raise DuplicateKeyError(pk)

    def query_by_company(self, company_id: str) -> list[dict[str, Any]]:
        query = sql.SQL("""
            SELECT item
            FROM {table}
            WHERE company_id = %s
            ORDER BY pk, sk
        """).format(table=self._table)

        return [row["item"] for row in self._read("query", query, (company_id,))]

    def get_item(self, pk: str, sk: str) -> dict[str, Any] | None:
        query = sql.SQL(
            "SELECT item FROM {table} WHERE pk = %s AND sk = %s"
        ).format(table=self._table)

        rows = self._read("get", query, (pk, sk))
        return rows[0]["item"] if rows else None

    def conditional_replace(self, item: dict[str, Any], expected_version: int) -> None:
        """
        Overwrite an item only if its stored version equals ``expected_version``.

        Raises:
            SiteNotFoundError: If the item does not exist
            VersionConflictError: If another writer bumped the version first
        """
        command = sql.SQL("""
            UPDATE {table}
            SET item = %s::jsonb
            WHERE pk = %s AND sk = %s AND (item ->> 'version')::int = %s
        """).format(table=self._table)

        pk, sk = item["PK"], item["SK"]
        rowcount = self._write(
            "replace",
            command,
            (_dumps(item), pk, sk, expected_version),
        )

        if rowcount == 0:
            current = self.get_item(pk, sk)
            if current is None:
                raise SiteNotFoundError(pk)
            raise VersionConflictError(pk, expected_version, current.get("version"))

    def delete_item(self, pk: str, sk: str) -> dict[str, Any] | None:
        command = sql.SQL(
            "DELETE FROM {table} WHERE pk = %s AND sk = %s RETURNING item"
        ).format(table=self._table)

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(command, (pk, sk))
                    row = cur.fetchone()
                conn.commit()
        except psycopg.Error as e:
            self._raise_write_failure("delete", e)

        return row["item"] if row else None

    def _read(self, operation: str, query, params: tuple) -> list[dict]:
        try:
            return self.pool.execute_query(query, params)
        except psycopg.Error as e:
            record_store_error(operation, e)
            logger.error(
                f"Site store {operation} failed: {e}",
                extra={"table": self.table_name, "operation": operation},
            )
            raise StoreReadFailure(f"Failed to read site table during {operation}: {e}", e) from e

    def _write(self, operation: str, command, params: tuple) -> int:
        try:
            return self.pool.execute_command(command, params)
        except psycopg.Error as e:
            self._raise_write_failure(operation, e)

    def _raise_write_failure(self, operation: str, error: psycopg.Error):
        record_store_error(operation, error)
        logger.error(
            f"Site store {operation} failed: {error}",
            extra={"table": self.table_name, "operation": operation},
        )
        raise StoreWriteFailure(
            f"Failed to write site table during {operation}: {error}",
            error,
            retryable=isinstance(error, psycopg.OperationalError),
        ) from error

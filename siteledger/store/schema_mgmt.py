"""
Schema management for the site table.

Creates the table and indexes PostgresSiteStore relies on.
"""

from psycopg import sql

from siteledger.observability.logger import get_logger
from siteledger.utils.validation import sanitize_sql_identifier

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

DEFAULT_TABLE_NAME = "site_record"


class SchemaManager:
    """
    Manages DDL for the site table.

    The table mirrors a key-value layout: a composite (pk, sk) key, the
    owning company for listing, and the whole site item as JSONB.
    """

    def __init__(self, pool: DatabaseConnectionPool, table_name: str = DEFAULT_TABLE_NAME):
        """
        Initialize schema manager.

        Args:
            pool: Database connection pool
            table_name: Name of the site table
        """
        self.pool = pool
        self.table_name = sanitize_sql_identifier(table_name, "table_name")

    def ensure_schema(self) -> None:
        """Create the site table and its company index if they do not exist."""
        table = sql.Identifier(self.table_name)
        index = sql.Identifier(f"idx_{self.table_name}_company")

        create_table = sql.SQL("""
            CREATE TABLE IF NOT EXISTS {table} (
                pk TEXT NOT NULL,
                sk TEXT NOT NULL,
                company_id TEXT NOT NULL,
                item JSONB NOT NULL,
                PRIMARY KEY (pk, sk)
            )
        """).format(table=table)

        create_index = sql.SQL(
            "CREATE INDEX IF NOT EXISTS {index} ON {table} (company_id)"
        ).format(index=index, table=table)

        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(create_table)
                cur.execute(create_index)
            conn.commit()

        logger.info("Site schema ensured", extra={"table": self.table_name})

    def table_exists(self) -> bool:
        result = self.pool.execute_query(
            "SELECT to_regclass(%s) IS NOT NULL AS present",
            (self.table_name,),
        )
        return bool(result and result[0]["present"])

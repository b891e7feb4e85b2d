"""PostgreSQL connection provider.

Provides ``PostgresConnection``, a synchronous implementation of the
``ConnectionProvider`` protocol on top of psycopg (v3).

Row data is streamed through named server-side cursors, so memory stays
proportional to the batch size rather than the table size.

Usage:
    from db_dumper.adapters.postgres import PostgresConnection

    conn = PostgresConnection.connect(
        "host=localhost port=5432 dbname=mydb user=me password=secret"
    )
    with conn.snapshot(statement_timeout_ms=60_000):
        rows = conn.fetch_all("SELECT 1")
    conn.close()
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import psycopg
from psycopg import IsolationLevel

from db_dumper.adapters.base import Params, Query
from db_dumper.exceptions import DumpConnectionError, IntrospectionError

logger = logging.getLogger(__name__)


class PostgresConnection:
    """psycopg-backed ``ConnectionProvider``.

    Args:
        conn: An open, non-autocommit psycopg connection.

    Example:
        conn = PostgresConnection.connect(conninfo, application_name="db-dumper")
        with conn.snapshot(statement_timeout_ms=30_000):
            for batch in conn.stream("SELECT * FROM public.users", batch_size=500):
                ...
    """

    def __init__(self, conn: psycopg.Connection) -> None:
        self._conn = conn
        self._cursor_seq = 0

    @classmethod
    def connect(
        cls,
        conninfo: str,
        application_name: str = "db-dumper",
        connect_timeout: int = 10,
    ) -> "PostgresConnection":
        """Open a connection.

        Args:
            conninfo: libpq keyword/value string or ``postgresql://`` URL.
            application_name: Reported in ``pg_stat_activity``.
            connect_timeout: Seconds to wait for the server. Overrides any
                value set in ``conninfo``.

        Raises:
            DumpConnectionError: If the server is unreachable or rejects the
                credentials.
        """
        try:
            conn = psycopg.connect(
                conninfo,
                autocommit=False,
                application_name=application_name,
                connect_timeout=connect_timeout,
            )
        except psycopg.OperationalError as e:
            raise DumpConnectionError(f"Could not connect to database: {e}") from e
        logger.debug("Connected to server version %s", conn.info.server_version)
        return cls(conn)

    @property
    def server_version(self) -> int:
        return self._conn.info.server_version

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def fetch_all(self, query: Query, params: Params = None) -> list[tuple]:
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchall()
        except psycopg.Error as e:
            raise IntrospectionError(f"Catalog query failed: {e}") from e

    def fetch_one(self, query: Query, params: Params = None) -> tuple | None:
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchone()
        except psycopg.Error as e:
            raise IntrospectionError(f"Catalog query failed: {e}") from e

    def stream(
        self, query: Query, params: Params = None, batch_size: int = 1000
    ) -> Iterator[list[tuple]]:
        """Yield row batches from a named server-side cursor."""
        self._cursor_seq += 1
        name = f"db_dumper_rows_{self._cursor_seq}"
        try:
            with self._conn.cursor(name=name) as cur:
                cur.itersize = batch_size
                cur.execute(query, params)
                while True:
                    batch = cur.fetchmany(batch_size)
                    if not batch:
                        break
                    yield batch
        except psycopg.Error as e:
            raise IntrospectionError(f"Row query failed: {e}") from e

    # ------------------------------------------------------------------
    # Snapshot and lifecycle
    # ------------------------------------------------------------------

    @contextmanager
    def snapshot(self, statement_timeout_ms: int) -> Iterator[None]:
        """Run the block in one ``REPEATABLE READ READ ONLY`` transaction.

        Session settings are transaction-local:
        - ``statement_timeout`` bounds every query.
        - ``search_path`` is ``pg_catalog`` only, so ``format_type()``,
          ``pg_get_expr()`` and friends schema-qualify every user object.
        - ``DateStyle``/``IntervalStyle``/``extra_float_digits`` fix the
          text form of values fetched as ``::text``.
        - ``synchronize_seqscans`` is off so unordered scans start at the
          first block.
        """
        try:
            self._conn.isolation_level = IsolationLevel.REPEATABLE_READ
            self._conn.read_only = True
        except psycopg.Error as e:
            raise IntrospectionError(f"Could not configure snapshot: {e}") from e

        with self._conn.transaction():
            settings = {
                "statement_timeout": str(statement_timeout_ms),
                "search_path": "pg_catalog",
                "DateStyle": "ISO, YMD",
                "IntervalStyle": "postgres",
                "extra_float_digits": "3",
                "synchronize_seqscans": "off",
            }
            for name, value in settings.items():
                self.fetch_one("SELECT pg_catalog.set_config(%s, %s, true)", (name, value))
            yield

    def cancel(self) -> None:
        """Ask the server to cancel the running statement.

        Called while the dump is already failing, so a cancel failure is
        logged rather than raised over the original error.
        """
        try:
            self._conn.cancel()
        except psycopg.Error as e:
            logger.warning("Could not cancel running statement: %s", e)

    def close(self) -> None:
        if not self._conn.closed:
            self._conn.close()

"""Collaborator protocols the dump engine depends on.

Defines ``ConnectionProvider`` (query execution, streaming, snapshot,
cancellation) and ``OutputSink`` (append-only text sink with commit/discard
semantics). The engine only talks to these protocols, so tests can drive it
with in-memory fakes and no live database.

Usage:
    from db_dumper.adapters.base import ConnectionProvider, OutputSink

    def dump(conn: ConnectionProvider, sink: OutputSink) -> None:
        with conn.snapshot(statement_timeout_ms=60_000):
            for batch in conn.stream("SELECT * FROM t", batch_size=500):
                sink.write(...)
        sink.commit()
"""

from collections.abc import Iterator, Sequence
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any, Protocol

from psycopg import sql

Query = str | sql.Composable
Params = Sequence[Any] | dict[str, Any] | None


class ConnectionProvider(Protocol):
    """Database connection interface used by the introspector.

    All methods are synchronous: one connection, one snapshot, one pass.
    Query failures surface as ``IntrospectionError``.
    """

    @property
    def server_version(self) -> int:
        """Server version number (e.g. ``160002``)."""
        ...

    def fetch_all(self, query: Query, params: Params = None) -> list[tuple]:
        """Run a query and return all rows.

        Args:
            query: SQL text or composed query, with ``%s`` placeholders.
            params: Values bound to the placeholders.

        Returns:
            List of row tuples.  Empty list if no rows.

        Example:
            rows = conn.fetch_all(
                "SELECT relname FROM pg_class WHERE relnamespace = %s::regnamespace",
                ("public",),
            )
        """
        ...

    def fetch_one(self, query: Query, params: Params = None) -> tuple | None:
        """Run a query and return the first row, or ``None``."""
        ...

    def stream(
        self, query: Query, params: Params = None, batch_size: int = 1000
    ) -> Iterator[list[tuple]]:
        """Run a query and yield its rows in batches of at most ``batch_size``.

        The iterator is lazy, finite and non-restartable.  Only one batch
        is held in memory at a time.
        """
        ...

    def snapshot(self, statement_timeout_ms: int) -> AbstractContextManager[None]:
        """Open one read-only, repeatable-read transaction.

        Every statement executed inside the block sees the same
        point-in-time view and is bounded by ``statement_timeout_ms``.
        """
        ...

    def cancel(self) -> None:
        """Cancel the statement currently running on the server."""
        ...

    def close(self) -> None:
        """Close the connection and release its resources."""
        ...


class OutputSink(Protocol):
    """Append-only destination for dump text.

    Nothing written becomes visible as a finished dump until ``commit()``;
    ``discard()`` removes every byte written so far.
    """

    def write(self, text: str) -> None:
        """Append text to the output."""
        ...

    def commit(self) -> Path:
        """Finalize the output and return its location."""
        ...

    def discard(self) -> None:
        """Drop everything written so far."""
        ...

"""Dump orchestration.

``DumpOrchestrator`` sequences one dump run:

    IDLE -> CONNECTED -> INTROSPECTING -> ORDERING -> EMITTING -> DONE

Any failure (including ``KeyboardInterrupt``) from a non-terminal state
cancels the running query, closes the connection, discards the partial
output and moves to FAILED before the error is re-raised. Nothing is
retried.

Usage:
    from db_dumper.orchestrator import dump_database

    result = dump_database(options, settings)
    print(result.path)
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from db_dumper.adapters.base import ConnectionProvider, OutputSink
from db_dumper.adapters.postgres import PostgresConnection
from db_dumper.adapters.sink import FileSink
from db_dumper.config.models import ConnectionOptions, DumpSettings
from db_dumper.exceptions import DumpError
from db_dumper.schema.graph import DependencyGraphBuilder
from db_dumper.schema.introspector import CatalogIntrospector
from db_dumper.schema.models import ObjectKind, ObjectRef
from db_dumper.schema.roles import RoleExporter
from db_dumper.schema.serializer import Serializer

logger = logging.getLogger(__name__)


class DumpState(str, Enum):
    """Lifecycle of one dump run."""

    IDLE = "idle"
    CONNECTED = "connected"
    INTROSPECTING = "introspecting"
    ORDERING = "ordering"
    EMITTING = "emitting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class DumpResult:
    """Summary of a successful dump.

    Attributes:
        path: Location the sink committed the script to.
        roles: Exported role names, database owner first.
        objects: Number of objects in the main emission order.
        rows: Number of data rows written.
        deferred_constraints: Foreign keys emitted after the data.
        dropped_edges: Dangling references left out of the ordering.
    """

    path: Path
    roles: list[str] = field(default_factory=list)
    objects: int = 0
    rows: int = 0
    deferred_constraints: int = 0
    dropped_edges: list[tuple[ObjectRef, ObjectRef]] = field(default_factory=list)


class DumpOrchestrator:
    """Runs introspection, ordering and serialization against one sink.

    Args:
        connection_factory: Opens the connection when the run starts.
        sink: Receives the script; committed on success, discarded on failure.
        settings: Batch size and statement timeout. Defaults to ``DumpSettings()``.

    Example:
        orchestrator = DumpOrchestrator(
            lambda: PostgresConnection.connect(conninfo),
            FileSink("mydb-dump.sql"),
        )
        result = orchestrator.run("mydb")
    """

    def __init__(
        self,
        connection_factory: Callable[[], ConnectionProvider],
        sink: OutputSink,
        settings: DumpSettings | None = None,
    ) -> None:
        self._connection_factory = connection_factory
        self._sink = sink
        self._settings = settings or DumpSettings()
        self._conn: ConnectionProvider | None = None
        self.history: list[DumpState] = [DumpState.IDLE]

    @property
    def state(self) -> DumpState:
        return self.history[-1]

    def _transition(self, state: DumpState) -> None:
        logger.debug("Dump state %s -> %s", self.state.value, state.value)
        self.history.append(state)

    def run(self, database: str) -> DumpResult:
        """Dump ``database`` to the sink.

        Returns:
            DumpResult describing the committed output.

        Raises:
            DumpError: If the orchestrator already ran, or any subclass
                raised by a stage (connection, introspection, graph,
                serialization).
        """
        if self.state != DumpState.IDLE:
            raise DumpError(f"Orchestrator already used (state: {self.state.value})")

        try:
            self._conn = self._connection_factory()
            self._transition(DumpState.CONNECTED)

            with self._conn.snapshot(self._settings.statement_timeout_ms):
                self._transition(DumpState.INTROSPECTING)
                introspector = CatalogIntrospector(self._conn, batch_size=self._settings.batch_size)
                snapshot = introspector.introspect(database)

                self._transition(DumpState.ORDERING)
                plan = DependencyGraphBuilder().build(snapshot.objects)
                roles = RoleExporter().export(snapshot)

                self._transition(DumpState.EMITTING)
                serializer = Serializer(snapshot, plan, roles, rows=introspector.iter_batches)
                rows = serializer.render(self._sink)

            path = self._sink.commit()
        except BaseException as e:
            self._fail(e)
            raise

        # Script is committed; only warn from here on.
        try:
            self._conn.close()
        except Exception as close_error:
            logger.warning("Could not close connection: %s", close_error)
        self._transition(DumpState.DONE)
        logger.info(
            "Dumped %s: %d tables, %d rows to %s",
            database,
            len(plan.of_kind(ObjectKind.TABLE)),
            rows,
            path,
        )
        return DumpResult(
            path=path,
            roles=roles.names,
            objects=len(plan.ordered),
            rows=rows,
            deferred_constraints=len(plan.deferred),
            dropped_edges=list(plan.dropped_edges),
        )

    def _fail(self, error: BaseException) -> None:
        logger.error(
            "Dump failed during %s: %s", self.state.value, str(error) or type(error).__name__
        )
        if self._conn is not None:
            self._conn.cancel()
            try:
                self._conn.close()
            except Exception as close_error:
                logger.warning("Could not close connection: %s", close_error)
        try:
            self._sink.discard()
        except OSError as discard_error:
            logger.warning("Could not discard partial output: %s", discard_error)
        self._transition(DumpState.FAILED)


def dump_database(options: ConnectionOptions, settings: DumpSettings | None = None) -> DumpResult:
    """Dump the database described by ``options`` to a file.

    Args:
        options: Connection values and output name from the command line.
        settings: Engine settings. Defaults to ``DumpSettings()``.

    Returns:
        DumpResult for the committed file.

    Raises:
        DumpError: On any connection, introspection, graph or
            serialization failure. Nothing is left on disk.
    """
    settings = settings or DumpSettings()
    sink = FileSink(options.output_path(settings.output_dir))

    def connect() -> ConnectionProvider:
        return PostgresConnection.connect(
            options.conninfo(),
            application_name=settings.application_name,
            connect_timeout=settings.connect_timeout,
        )

    return DumpOrchestrator(connect, sink, settings).run(options.dbname)

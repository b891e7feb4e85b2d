"""SQL script rendering.

``Serializer`` turns a ``CatalogSnapshot``, its ``DumpPlan`` and the
``RoleExport`` into the text of a restorable script, section by section:

    header, roles, types, sequences, tables/constraints/indexes, data,
    deferred constraints

Output is produced as a stream of chunks (one statement or one row per
chunk) so row data never has to be held in memory. Sections with nothing to
say are left out entirely.
"""

import logging
from collections.abc import Callable, Iterable, Iterator

from db_dumper.adapters.base import OutputSink
from db_dumper.schema.encoding import encode_row, qualified_name, quote_ident, quote_literal
from db_dumper.schema.graph import DumpPlan
from db_dumper.schema.models import (
    CatalogSnapshot,
    ColumnSchema,
    ConstraintDetail,
    DatabaseObject,
    IndexDetail,
    ObjectKind,
    ObjectRef,
    RoleAttribute,
    RoleSchema,
    SequenceDetail,
    TableDetail,
    TypeDetail,
)
from db_dumper.schema.roles import RoleExport

logger = logging.getLogger(__name__)

RowSource = Callable[[DatabaseObject], Iterable[list[tuple]]]

ROLE_ATTRIBUTE_ORDER = [
    RoleAttribute.SUPERUSER,
    RoleAttribute.INHERIT,
    RoleAttribute.CREATEROLE,
    RoleAttribute.CREATEDB,
    RoleAttribute.LOGIN,
    RoleAttribute.REPLICATION,
    RoleAttribute.BYPASSRLS,
]

PRIVILEGE_ORDER = [
    "SELECT",
    "INSERT",
    "UPDATE",
    "DELETE",
    "TRUNCATE",
    "REFERENCES",
    "TRIGGER",
    "MAINTAIN",
    "USAGE",
]

INLINE_CONSTRAINT_ORDER = ["PRIMARY KEY", "UNIQUE", "CHECK", "EXCLUDE"]

HEADER_SETTINGS = [
    "SET client_encoding = 'UTF8';",
    "SET standard_conforming_strings = on;",
    "SELECT pg_catalog.set_config('search_path', '', false);",
    "SET check_function_bodies = false;",
    "SET client_min_messages = warning;",
]


def banner(title: str) -> str:
    return f"\n--\n-- {title}\n--\n\n"


def _privilege_key(privilege: str) -> tuple[int, str]:
    if privilege in PRIVILEGE_ORDER:
        return (PRIVILEGE_ORDER.index(privilege), privilege)
    return (len(PRIVILEGE_ORDER), privilege)


class Serializer:
    """Renders one dump script.

    Args:
        snapshot: Extracted catalog.
        plan: Emission order from ``DependencyGraphBuilder``.
        roles: Ordered role export from ``RoleExporter``.
        rows: Row batches per table, usually
            ``CatalogIntrospector.iter_batches``. Without it the data
            section only restores sequence values.

    Example:
        serializer = Serializer(snapshot, plan, roles, rows=introspector.iter_batches)
        serializer.render(sink)
    """

    def __init__(
        self,
        snapshot: CatalogSnapshot,
        plan: DumpPlan,
        roles: RoleExport,
        rows: RowSource | None = None,
    ) -> None:
        self.snapshot = snapshot
        self.plan = plan
        self.roles = roles
        self._rows = rows
        self._objects = {o.ref: o for o in snapshot.objects}
        self._exported = set(roles.names)
        self.rows_written = 0

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def render(self, sink: OutputSink) -> int:
        """Write every chunk to ``sink``; return the number of rows written."""
        for chunk in self.iter_chunks():
            sink.write(chunk)
        return self.rows_written

    def iter_chunks(self) -> Iterator[str]:
        """Yield the script in emission order."""
        self.rows_written = 0
        yield from self._header()
        yield from self._section("Roles", self._roles())
        if self.plan.ordered or self.plan.deferred:
            yield from self._section("Types", self._types())
            yield from self._section("Sequences", self._sequences())
            yield from self._section("Tables", self._tables())
            yield from self._section("Data", self._data())
            yield from self._section("Deferred constraints", self._deferred())

    def _section(self, title: str, chunks: Iterator[str]) -> Iterator[str]:
        # Banner only once the section has produced its first chunk
        first = next(chunks, None)
        if first is None:
            return
        yield banner(title)
        yield first
        yield from chunks

    # ------------------------------------------------------------------
    # Header and roles
    # ------------------------------------------------------------------

    def _header(self) -> Iterator[str]:
        yield "--\n-- PostgreSQL database dump\n"
        yield f"-- Database: {self.snapshot.database}\n"
        if self.snapshot.server_version:
            yield f"-- Server version: {self.snapshot.server_version}\n"
        yield "--\n\n"
        for statement in HEADER_SETTINGS:
            yield statement + "\n"

    def _roles(self) -> Iterator[str]:
        for role in self.roles.roles:
            yield from self.role_statements(role)
        if self.roles.memberships:
            yield "\n"
        for group, member in self.roles.memberships:
            yield f"GRANT {quote_ident(group)} TO {quote_ident(member)};\n"

    def role_statements(self, role: RoleSchema) -> Iterator[str]:
        name = quote_ident(role.name)
        options = [
            attr.value if attr in role.attributes else f"NO{attr.value}"
            for attr in ROLE_ATTRIBUTE_ORDER
        ]
        if role.connection_limit != -1:
            options.append(f"CONNECTION LIMIT {role.connection_limit}")

        yield f"CREATE ROLE {name};\n"
        yield f"ALTER ROLE {name} WITH {' '.join(options)};\n"
        if role.password is not None:
            yield f"ALTER ROLE {name} WITH PASSWORD {quote_literal(role.password)};\n"
        if role.comment is not None:
            yield f"COMMENT ON ROLE {name} IS {quote_literal(role.comment)};\n"

    # ------------------------------------------------------------------
    # Types and sequences
    # ------------------------------------------------------------------

    def _types(self) -> Iterator[str]:
        schemas = sorted(
            {o.schema_name for o in self.snapshot.objects if o.schema_name} - {"public"}
        )
        for schema_name in schemas:
            yield f"CREATE SCHEMA IF NOT EXISTS {quote_ident(schema_name)};\n"

        for obj in self.plan.of_kind(ObjectKind.TYPE):
            yield "\n"
            yield self.type_statement(obj)
            yield from self._owner("TYPE", obj)

    def type_statement(self, obj: DatabaseObject) -> str:
        detail: TypeDetail = obj.detail
        name = qualified_name(obj.schema_name, obj.name)
        if detail.type_kind == "enum":
            labels = ",\n".join(f"    {quote_literal(label)}" for label in detail.labels)
            if not labels:
                return f"CREATE TYPE {name} AS ENUM ();\n"
            return f"CREATE TYPE {name} AS ENUM (\n{labels}\n);\n"

        parts = [f"CREATE DOMAIN {name} AS {detail.base_type}"]
        if detail.default is not None:
            parts.append(f"    DEFAULT {detail.default}")
        if detail.not_null:
            parts.append("    NOT NULL")
        for check_name in sorted(detail.checks):
            parts.append(f"    CONSTRAINT {quote_ident(check_name)} {detail.checks[check_name]}")
        return "\n".join(parts) + ";\n"

    def _sequences(self) -> Iterator[str]:
        for obj in self.plan.of_kind(ObjectKind.SEQUENCE):
            yield self.sequence_statement(obj)
            yield from self._owner("SEQUENCE", obj)
            yield from self._grants("SEQUENCE", obj.ref)
            yield "\n"

    def sequence_statement(self, obj: DatabaseObject) -> str:
        detail: SequenceDetail = obj.detail
        return (
            f"CREATE SEQUENCE {qualified_name(obj.schema_name, obj.name)}\n"
            f"    AS {detail.data_type}\n"
            f"    START WITH {detail.start_value}\n"
            f"    INCREMENT BY {detail.increment_by}\n"
            f"    MINVALUE {detail.min_value}\n"
            f"    MAXVALUE {detail.max_value}\n"
            f"    CACHE {detail.cache_size}\n"
            f"    {'CYCLE' if detail.cycle else 'NO CYCLE'};\n"
        )

    # ------------------------------------------------------------------
    # Tables, constraints, indexes
    # ------------------------------------------------------------------

    def _tables(self) -> Iterator[str]:
        for obj in self.plan.of_kind(ObjectKind.TABLE, ObjectKind.CONSTRAINT, ObjectKind.INDEX):
            if obj.kind == ObjectKind.TABLE:
                yield self.table_statement(obj)
                yield from self._owner("TABLE", obj)
                yield from self._grants("TABLE", obj.ref)
            elif obj.kind == ObjectKind.CONSTRAINT:
                yield self.constraint_statement(obj)
            else:
                yield self.index_statement(obj)
            yield "\n"

    def table_statement(self, obj: DatabaseObject) -> str:
        detail: TableDetail = obj.detail
        name = qualified_name(obj.schema_name, obj.name)
        constraints = [
            f"    CONSTRAINT {quote_ident(c.name)} {c.definition}"
            for c in sorted(
                detail.constraints,
                key=lambda c: (INLINE_CONSTRAINT_ORDER.index(c.constraint_type), c.name),
            )
        ]

        if detail.partition_of is not None:
            parent = qualified_name(detail.partition_of.schema_name, detail.partition_of.name)
            statement = f"CREATE TABLE {name} PARTITION OF {parent}"
            if constraints:
                statement += " (\n" + ",\n".join(constraints) + "\n)"
            return f"{statement}\n    {detail.partition_bound};\n"

        elements = [f"    {self.column_definition(c)}" for c in detail.columns] + constraints
        statement = f"CREATE TABLE {name} (\n" + ",\n".join(elements) + "\n)"
        if not elements:
            statement = f"CREATE TABLE {name} ()"
        if detail.inherits:
            parents = ", ".join(qualified_name(p.schema_name, p.name) for p in detail.inherits)
            statement += f"\nINHERITS ({parents})"
        if detail.is_partitioned:
            statement += f"\nPARTITION BY {detail.partition_key}"
        return statement + ";\n"

    def column_definition(self, column: ColumnSchema) -> str:
        parts = [quote_ident(column.name), column.data_type]
        if column.generated is not None:
            parts.append(f"GENERATED ALWAYS AS ({column.generated}) STORED")
        elif column.identity:
            parts.append(f"GENERATED {column.identity} AS IDENTITY")
        elif column.default is not None:
            parts.append(f"DEFAULT {column.default}")
        if not column.is_nullable:
            parts.append("NOT NULL")
        return " ".join(parts)

    def index_statement(self, obj: DatabaseObject) -> str:
        detail: IndexDetail = obj.detail
        definition = detail.definition
        table = self._objects.get(detail.table)
        if table is not None and table.detail.is_partitioned:
            # Cascade to partitions instead of creating an invalid parent index
            definition = definition.replace(" ON ONLY ", " ON ", 1)
        return f"{definition};\n"

    def constraint_statement(self, obj: DatabaseObject) -> str:
        detail: ConstraintDetail = obj.detail
        table = self._objects.get(detail.table)
        only = "ONLY "
        if table is not None and table.detail.is_partitioned:
            only = ""
        return (
            f"ALTER TABLE {only}{qualified_name(detail.table.schema_name, detail.table.name)}\n"
            f"    ADD CONSTRAINT {quote_ident(detail.constraint_name)} {detail.definition};\n"
        )

    # ------------------------------------------------------------------
    # Ownership and privileges
    # ------------------------------------------------------------------

    def _owner(self, keyword: str, obj: DatabaseObject) -> Iterator[str]:
        if obj.owner is None:
            return
        yield (
            f"ALTER {keyword} {qualified_name(obj.schema_name, obj.name)} "
            f"OWNER TO {quote_ident(obj.owner)};\n"
        )

    def _grants(self, keyword: str, ref: ObjectRef) -> Iterator[str]:
        target = qualified_name(ref.schema_name, ref.name)
        for permission in self.snapshot.permissions_for(ref):
            if permission.grantee == "PUBLIC":
                grantee = "PUBLIC"
            elif permission.grantee in self._exported:
                grantee = quote_ident(permission.grantee)
            else:
                logger.info(
                    "Skipping grant on %s to unexported role %s", ref, permission.grantee
                )
                continue
            privileges = ", ".join(sorted(permission.privileges, key=_privilege_key))
            yield f"GRANT {privileges} ON {keyword} {target} TO {grantee};\n"

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def _data(self) -> Iterator[str]:
        if self._rows is not None:
            for obj in self.plan.of_kind(ObjectKind.TABLE):
                yield from self.table_rows(obj)

        for obj in self.plan.of_kind(ObjectKind.SEQUENCE):
            detail: SequenceDetail = obj.detail
            if detail.last_value is not None:
                regclass = quote_literal(qualified_name(obj.schema_name, obj.name))
                yield f"SELECT pg_catalog.setval({regclass}, {detail.last_value}, true);\n"

        for obj in self.plan.of_kind(ObjectKind.TABLE):
            yield from self._identity_setvals(obj)

    def table_rows(self, obj: DatabaseObject) -> Iterator[str]:
        """``INSERT`` statements for one table, one chunk per row."""
        detail: TableDetail = obj.detail
        columns = detail.insertable_columns
        name = qualified_name(obj.schema_name, obj.name)
        if columns:
            column_list = ", ".join(quote_ident(c.name) for c in columns)
            prefix = f"INSERT INTO {name} ({column_list}) "
            if detail.has_always_identity:
                prefix += "OVERRIDING SYSTEM VALUE "
        else:
            prefix = f"INSERT INTO {name} DEFAULT VALUES"

        count = 0
        for batch in self._rows(obj):
            for row in batch:
                if columns:
                    yield f"{prefix}VALUES ({encode_row(row, columns)});\n"
                else:
                    yield f"{prefix};\n"
                count += 1
        if count:
            yield "\n"
            logger.info("Dumped %d rows from %s", count, name)
        self.rows_written += count

    def _identity_setvals(self, obj: DatabaseObject) -> Iterator[str]:
        detail: TableDetail = obj.detail
        # Partitions share the identity sequence of their parent
        if detail.partition_of is not None:
            return
        table = quote_literal(qualified_name(obj.schema_name, obj.name))
        for column in detail.columns:
            if column.identity and column.identity_last_value is not None:
                yield (
                    "SELECT pg_catalog.setval(pg_catalog.pg_get_serial_sequence("
                    f"{table}, {quote_literal(column.name)}), "
                    f"{column.identity_last_value}, true);\n"
                )

    # ------------------------------------------------------------------
    # Deferred constraints
    # ------------------------------------------------------------------

    def _deferred(self) -> Iterator[str]:
        for obj in self.plan.deferred:
            yield self.constraint_statement(obj)

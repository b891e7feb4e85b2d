"""PostgreSQL catalog introspection via pg_catalog.

This module queries the live database to extract everything a dump needs:
- Roles (attributes, memberships, comments, password hashes when readable)
- Custom types (enums, domains)
- Sequences (parameters and current value)
- Tables (columns, inline constraints, partitioning, primary key)
- Foreign-key constraints and standalone indexes
- Table and sequence privileges
- Row data, streamed in bounded batches

System schemas (``pg_catalog``, ``information_schema``, ``pg_toast*``,
``pg_temp*``) and extension members are excluded. All queries are expected
to run inside ``ConnectionProvider.snapshot()``, whose ``search_path`` makes
``format_type()``, ``pg_get_expr()`` and the ``pg_get_*def()`` functions
schema-qualify user objects. Any query failure is an ``IntrospectionError``.
"""

import logging
import re
from collections.abc import Iterator

from psycopg import sql

from db_dumper.adapters.base import ConnectionProvider
from db_dumper.exceptions import IntrospectionError
from db_dumper.schema.models import (
    CatalogSnapshot,
    ColumnSchema,
    ConstraintDetail,
    ConstraintSchema,
    DatabaseObject,
    IndexDetail,
    ObjectKind,
    ObjectRef,
    Permission,
    RoleAttribute,
    RoleSchema,
    SequenceDetail,
    TableDetail,
    TypeDetail,
    ValueCategory,
)

logger = logging.getLogger(__name__)

_USER_SCHEMA = (
    "n.nspname NOT IN ('pg_catalog', 'information_schema') "
    "AND n.nspname !~ '^pg_(toast|temp_)'"
)


def _not_extension_member(catalog: str, oid: str) -> str:
    return (
        "NOT EXISTS (SELECT 1 FROM pg_catalog.pg_depend x "
        f"WHERE x.classid = '{catalog}'::regclass AND x.objid = {oid} AND x.deptype = 'e')"
    )


# ============================================================================
# Catalog queries
# ============================================================================

DATABASE_OWNER_QUERY = """
    SELECT pg_catalog.pg_get_userbyid(d.datdba)
    FROM pg_catalog.pg_database d
    WHERE d.datname = %s
"""

ROLES_QUERY = """
    SELECT
        r.rolname,
        r.rolsuper,
        r.rolinherit,
        r.rolcreaterole,
        r.rolcreatedb,
        r.rolcanlogin,
        r.rolreplication,
        r.rolbypassrls,
        r.rolconnlimit,
        ARRAY(
            SELECT b.rolname
            FROM pg_catalog.pg_auth_members m
            JOIN pg_catalog.pg_roles b ON b.oid = m.roleid
            WHERE m.member = r.oid
            ORDER BY b.rolname
        ) AS member_of,
        pg_catalog.shobj_description(r.oid, 'pg_authid') AS comment
    FROM pg_catalog.pg_roles r
    WHERE r.rolname !~ '^pg_'
    ORDER BY r.rolname
"""

PASSWORD_ACCESS_QUERY = """
    SELECT pg_catalog.has_table_privilege('pg_catalog.pg_authid', 'SELECT')
"""

PASSWORDS_QUERY = """
    SELECT a.rolname, a.rolpassword
    FROM pg_catalog.pg_authid a
    WHERE a.rolpassword IS NOT NULL
    ORDER BY a.rolname
"""

ENUMS_QUERY = f"""
    SELECT
        n.nspname,
        t.typname,
        pg_catalog.pg_get_userbyid(t.typowner),
        ARRAY(
            SELECT e.enumlabel
            FROM pg_catalog.pg_enum e
            WHERE e.enumtypid = t.oid
            ORDER BY e.enumsortorder
        ) AS labels
    FROM pg_catalog.pg_type t
    JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace
    WHERE t.typtype = 'e'
      AND {_USER_SCHEMA}
      AND {_not_extension_member('pg_catalog.pg_type', 't.oid')}
    ORDER BY n.nspname, t.typname
"""

DOMAINS_QUERY = f"""
    SELECT
        n.nspname,
        t.typname,
        pg_catalog.pg_get_userbyid(t.typowner),
        pg_catalog.format_type(t.typbasetype, t.typtypmod),
        t.typnotnull,
        t.typdefault,
        en.nspname AS base_schema,
        et.typname AS base_name,
        ARRAY(
            SELECT c.conname
            FROM pg_catalog.pg_constraint c
            WHERE c.contypid = t.oid AND c.contype = 'c'
            ORDER BY c.conname
        ) AS check_names,
        ARRAY(
            SELECT pg_catalog.pg_get_constraintdef(c.oid)
            FROM pg_catalog.pg_constraint c
            WHERE c.contypid = t.oid AND c.contype = 'c'
            ORDER BY c.conname
        ) AS check_defs
    FROM pg_catalog.pg_type t
    JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace
    JOIN pg_catalog.pg_type bt ON bt.oid = t.typbasetype
    JOIN pg_catalog.pg_type et
        ON et.oid = CASE WHEN bt.typcategory = 'A' AND bt.typelem <> 0
                         THEN bt.typelem ELSE bt.oid END
    JOIN pg_catalog.pg_namespace en ON en.oid = et.typnamespace
    WHERE t.typtype = 'd'
      AND {_USER_SCHEMA}
      AND {_not_extension_member('pg_catalog.pg_type', 't.oid')}
    ORDER BY n.nspname, t.typname
"""

SEQUENCES_QUERY = f"""
    SELECT
        n.nspname,
        c.relname,
        pg_catalog.pg_get_userbyid(c.relowner),
        pg_catalog.format_type(s.seqtypid, NULL),
        s.seqstart,
        s.seqincrement,
        s.seqmin,
        s.seqmax,
        s.seqcache,
        s.seqcycle,
        ps.last_value
    FROM pg_catalog.pg_class c
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_catalog.pg_sequence s ON s.seqrelid = c.oid
    LEFT JOIN pg_catalog.pg_sequences ps
        ON ps.schemaname = n.nspname AND ps.sequencename = c.relname
    WHERE c.relkind = 'S'
      AND {_USER_SCHEMA}
      AND {_not_extension_member('pg_catalog.pg_class', 'c.oid')}
      AND NOT EXISTS (
          SELECT 1 FROM pg_catalog.pg_depend d
          WHERE d.classid = 'pg_catalog.pg_class'::regclass
            AND d.objid = c.oid
            AND d.deptype = 'i'
      )
    ORDER BY n.nspname, c.relname
"""

TABLES_QUERY = f"""
    SELECT
        n.nspname,
        c.relname,
        pg_catalog.pg_get_userbyid(c.relowner),
        CASE WHEN c.relkind = 'p' THEN pg_catalog.pg_get_partkeydef(c.oid) END,
        pn.nspname AS parent_schema,
        pc.relname AS parent_name,
        CASE WHEN c.relispartition
             THEN pg_catalog.pg_get_expr(c.relpartbound, c.oid) END,
        ARRAY(
            SELECT a.attname
            FROM pg_catalog.pg_index i
            JOIN LATERAL unnest(i.indkey) WITH ORDINALITY AS k(attnum, ord) ON TRUE
            JOIN pg_catalog.pg_attribute a
                ON a.attrelid = i.indrelid AND a.attnum = k.attnum
            WHERE i.indrelid = c.oid AND i.indisprimary
            ORDER BY k.ord
        ) AS primary_key
    FROM pg_catalog.pg_class c
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    LEFT JOIN pg_catalog.pg_inherits inh
        ON inh.inhrelid = c.oid AND c.relispartition
    LEFT JOIN pg_catalog.pg_class pc ON pc.oid = inh.inhparent
    LEFT JOIN pg_catalog.pg_namespace pn ON pn.oid = pc.relnamespace
    WHERE c.relkind IN ('r', 'p')
      AND {_USER_SCHEMA}
      AND {_not_extension_member('pg_catalog.pg_class', 'c.oid')}
    ORDER BY n.nspname, c.relname
"""

COLUMNS_QUERY = f"""
    SELECT
        n.nspname,
        c.relname,
        a.attname,
        pg_catalog.format_type(a.atttypid, a.atttypmod),
        a.attnotnull,
        CASE WHEN a.attgenerated = ''
             THEN pg_catalog.pg_get_expr(d.adbin, d.adrelid) END AS default_expr,
        a.attidentity,
        CASE WHEN a.attgenerated <> ''
             THEN pg_catalog.pg_get_expr(d.adbin, d.adrelid) END AS generated_expr,
        t.typtype,
        t.typcategory,
        et.typtype AS elem_typtype,
        et.typname AS elem_name,
        en.nspname AS elem_schema,
        CASE WHEN a.attidentity <> '' THEN (
            SELECT ps.last_value
            FROM pg_catalog.pg_depend dep
            JOIN pg_catalog.pg_class s ON s.oid = dep.objid
            JOIN pg_catalog.pg_namespace sn ON sn.oid = s.relnamespace
            JOIN pg_catalog.pg_sequences ps
                ON ps.schemaname = sn.nspname AND ps.sequencename = s.relname
            WHERE dep.classid = 'pg_catalog.pg_class'::regclass
              AND dep.refobjid = c.oid
              AND dep.refobjsubid = a.attnum
              AND dep.deptype = 'i'
        ) END AS identity_last_value
    FROM pg_catalog.pg_attribute a
    JOIN pg_catalog.pg_class c ON c.oid = a.attrelid
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_catalog.pg_type t ON t.oid = a.atttypid
    JOIN pg_catalog.pg_type et
        ON et.oid = CASE WHEN t.typcategory = 'A' AND t.typelem <> 0
                         THEN t.typelem ELSE t.oid END
    JOIN pg_catalog.pg_namespace en ON en.oid = et.typnamespace
    LEFT JOIN pg_catalog.pg_attrdef d
        ON d.adrelid = a.attrelid AND d.adnum = a.attnum
    WHERE c.relkind IN ('r', 'p')
      AND a.attnum > 0
      AND NOT a.attisdropped
      AND {_USER_SCHEMA}
    ORDER BY n.nspname, c.relname, a.attnum
"""

SEQUENCE_DEFAULTS_QUERY = f"""
    SELECT DISTINCT n.nspname, c.relname, sn.nspname, s.relname
    FROM pg_catalog.pg_attrdef ad
    JOIN pg_catalog.pg_depend dep
        ON dep.classid = 'pg_catalog.pg_attrdef'::regclass
       AND dep.objid = ad.oid
       AND dep.refclassid = 'pg_catalog.pg_class'::regclass
    JOIN pg_catalog.pg_class s ON s.oid = dep.refobjid AND s.relkind = 'S'
    JOIN pg_catalog.pg_namespace sn ON sn.oid = s.relnamespace
    JOIN pg_catalog.pg_class c ON c.oid = ad.adrelid
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    WHERE {_USER_SCHEMA}
    ORDER BY 1, 2, 3, 4
"""

INHERITS_QUERY = f"""
    SELECT n.nspname, c.relname, pn.nspname, pc.relname
    FROM pg_catalog.pg_inherits inh
    JOIN pg_catalog.pg_class c ON c.oid = inh.inhrelid
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_catalog.pg_class pc ON pc.oid = inh.inhparent
    JOIN pg_catalog.pg_namespace pn ON pn.oid = pc.relnamespace
    WHERE c.relkind IN ('r', 'p')
      AND NOT c.relispartition
      AND {_USER_SCHEMA}
    ORDER BY n.nspname, c.relname, inh.inhseqno
"""

CONSTRAINTS_QUERY = f"""
    SELECT
        n.nspname,
        c.relname,
        con.conname,
        con.contype,
        pg_catalog.pg_get_constraintdef(con.oid),
        rn.nspname AS ref_schema,
        rc.relname AS ref_table,
        xn.nspname AS index_schema,
        xc.relname AS index_name
    FROM pg_catalog.pg_constraint con
    JOIN pg_catalog.pg_class c ON c.oid = con.conrelid
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    LEFT JOIN pg_catalog.pg_class rc ON rc.oid = con.confrelid
    LEFT JOIN pg_catalog.pg_namespace rn ON rn.oid = rc.relnamespace
    LEFT JOIN pg_catalog.pg_class xc
        ON xc.oid = con.conindid AND con.contype = 'f'
    LEFT JOIN pg_catalog.pg_namespace xn ON xn.oid = xc.relnamespace
    WHERE c.relkind IN ('r', 'p')
      AND con.contype IN ('p', 'u', 'c', 'x', 'f')
      AND con.conislocal
      AND con.conparentid = 0
      AND {_USER_SCHEMA}
    ORDER BY n.nspname, c.relname, con.conname
"""

INDEXES_QUERY = f"""
    SELECT
        n.nspname,
        ic.relname,
        c.relname,
        pg_catalog.pg_get_indexdef(i.indexrelid)
    FROM pg_catalog.pg_index i
    JOIN pg_catalog.pg_class ic ON ic.oid = i.indexrelid
    JOIN pg_catalog.pg_class c ON c.oid = i.indrelid
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    WHERE c.relkind IN ('r', 'p')
      AND NOT ic.relispartition
      AND NOT EXISTS (
          SELECT 1 FROM pg_catalog.pg_constraint con
          WHERE con.conindid = i.indexrelid AND con.contype IN ('p', 'u', 'x')
      )
      AND {_USER_SCHEMA}
    ORDER BY n.nspname, ic.relname
"""

PERMISSIONS_QUERY = f"""
    SELECT
        n.nspname,
        c.relname,
        c.relkind,
        CASE WHEN acl.grantee = 0 THEN 'PUBLIC'
             ELSE pg_catalog.pg_get_userbyid(acl.grantee) END AS grantee,
        acl.privilege_type
    FROM pg_catalog.pg_class c
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    CROSS JOIN LATERAL pg_catalog.aclexplode(c.relacl) AS acl
    WHERE c.relkind IN ('r', 'p', 'S')
      AND c.relacl IS NOT NULL
      AND acl.grantee <> c.relowner
      AND {_USER_SCHEMA}
    ORDER BY 1, 2, 4, 5
"""


# ============================================================================
# Value categories
# ============================================================================

# pg_catalog types psycopg loads natively and the encoder handles directly.
# Dates, times and timestamps travel as text: 'infinity', BC dates and
# 24:00:00 have no Python equivalent.
NATIVE_TYPES: dict[str, ValueCategory] = {
    "bool": ValueCategory.BOOLEAN,
    "int2": ValueCategory.NUMERIC,
    "int4": ValueCategory.NUMERIC,
    "int8": ValueCategory.NUMERIC,
    "float4": ValueCategory.NUMERIC,
    "float8": ValueCategory.NUMERIC,
    "numeric": ValueCategory.NUMERIC,
    "oid": ValueCategory.NUMERIC,
    "text": ValueCategory.TEXT,
    "varchar": ValueCategory.TEXT,
    "bpchar": ValueCategory.TEXT,
    "name": ValueCategory.TEXT,
    "bytea": ValueCategory.BINARY,
}

_SYSTEM_SCHEMA_RE = re.compile(r"^pg_(toast|temp_)")


def is_user_schema(name: str | None) -> bool:
    """True for schemas whose objects get dumped."""
    if not name or name in ("pg_catalog", "information_schema"):
        return False
    return not _SYSTEM_SCHEMA_RE.match(name)


def value_category(
    typtype: str,
    typcategory: str,
    elem_typtype: str,
    elem_name: str,
    elem_schema: str,
) -> ValueCategory:
    """Decide how values of a column type are fetched and encoded.

    Args:
        typtype: ``pg_type.typtype`` of the column type.
        typcategory: ``pg_type.typcategory`` of the column type.
        elem_typtype: typtype of the element type (the type itself for
            non-arrays).
        elem_name: Name of the element type.
        elem_schema: Schema of the element type.
    """
    is_array = typcategory == "A"
    if not is_array and typtype == "e":
        return ValueCategory.ENUM
    if elem_schema != "pg_catalog" or elem_typtype != "b":
        return ValueCategory.TEXT_CAST
    native = NATIVE_TYPES.get(elem_name)
    if native is None:
        return ValueCategory.TEXT_CAST
    return ValueCategory.ARRAY if is_array else native


# ============================================================================
# Introspector
# ============================================================================


class CatalogIntrospector:
    """Extracts a ``CatalogSnapshot`` and row data from one database.

    Usage:
        with conn.snapshot(statement_timeout_ms=60_000):
            introspector = CatalogIntrospector(conn, batch_size=1000)
            snapshot = introspector.introspect("mydb")
            for table in snapshot.objects_of(ObjectKind.TABLE):
                for row in introspector.iter_rows(table):
                    ...
    """

    def __init__(self, connection: ConnectionProvider, batch_size: int = 1000) -> None:
        self._conn = connection
        self._batch_size = batch_size

    def introspect(self, database: str) -> CatalogSnapshot:
        """Extract roles, objects and permissions.

        Args:
            database: Name of the database the connection is attached to.

        Returns:
            CatalogSnapshot with every extracted descriptor.

        Raises:
            IntrospectionError: If any catalog query fails or the database
                does not exist.
        """
        owner = self._get_database_owner(database)
        roles = self._get_roles()

        objects: list[DatabaseObject] = []
        objects.extend(self._get_types())
        sequences = self._get_sequences()
        objects.extend(sequences)

        tables = self._get_tables()
        self._add_columns(tables)
        self._add_sequence_defaults(tables)
        self._add_inheritance(tables)
        objects.extend(tables.values())
        indexes = self._get_indexes(tables)
        objects.extend(self._get_constraints(tables, {i.ref for i in indexes}))
        objects.extend(indexes)

        extracted = {o.ref for o in objects}
        permissions = self._get_permissions(extracted)

        logger.info(
            "Introspected %s: %d roles, %d objects, %d grants",
            database,
            len(roles),
            len(objects),
            len(permissions),
        )
        return CatalogSnapshot(
            database=database,
            database_owner=owner,
            server_version=str(self._conn.server_version),
            roles=roles,
            objects=objects,
            permissions=permissions,
        )

    # ------------------------------------------------------------------
    # Row data
    # ------------------------------------------------------------------

    def row_query(self, table: DatabaseObject) -> sql.Composed:
        """``SELECT`` for a table's insertable columns.

        Text-fetched columns are cast to ``text``; rows are ordered by the
        primary key when there is one so repeated dumps are identical.
        """
        detail = self._table_detail(table)
        fields = [
            sql.SQL("{}::text").format(sql.Identifier(c.name))
            if c.fetch_as_text
            else sql.Identifier(c.name)
            for c in detail.insertable_columns
        ]
        query = sql.SQL("SELECT {} FROM ONLY {}").format(
            sql.SQL(", ").join(fields),
            sql.Identifier(table.schema_name, table.name),
        )
        if detail.primary_key:
            query = query + sql.SQL(" ORDER BY {}").format(
                sql.SQL(", ").join(sql.Identifier(c) for c in detail.primary_key)
            )
        return query

    def iter_batches(self, table: DatabaseObject) -> Iterator[list[tuple]]:
        """Yield the table's rows in batches of at most ``batch_size``.

        Partitioned parents hold no rows of their own and yield nothing.
        """
        if self._table_detail(table).is_partitioned:
            return
        yield from self._conn.stream(self.row_query(table), batch_size=self._batch_size)

    def iter_rows(self, table: DatabaseObject) -> Iterator[tuple]:
        """Lazy, non-restartable row sequence for one table."""
        for batch in self.iter_batches(table):
            yield from batch

    def _table_detail(self, table: DatabaseObject) -> TableDetail:
        if table.kind != ObjectKind.TABLE or not isinstance(table.detail, TableDetail):
            raise IntrospectionError(f"{table.ref} is not a table")
        return table.detail

    # ------------------------------------------------------------------
    # Database and roles
    # ------------------------------------------------------------------

    def _get_database_owner(self, database: str) -> str:
        row = self._conn.fetch_one(DATABASE_OWNER_QUERY, (database,))
        if row is None:
            raise IntrospectionError(f"Database not found: {database}")
        return row[0]

    def _get_roles(self) -> dict[str, RoleSchema]:
        flags = [
            RoleAttribute.SUPERUSER,
            RoleAttribute.INHERIT,
            RoleAttribute.CREATEROLE,
            RoleAttribute.CREATEDB,
            RoleAttribute.LOGIN,
            RoleAttribute.REPLICATION,
            RoleAttribute.BYPASSRLS,
        ]
        roles: dict[str, RoleSchema] = {}
        for row in self._conn.fetch_all(ROLES_QUERY):
            name = row[0]
            enabled = row[1:8]
            conn_limit, member_of, comment = row[8:11]
            roles[name] = RoleSchema(
                name=name,
                attributes={flag for flag, on in zip(flags, enabled) if on},
                connection_limit=conn_limit,
                member_of=set(member_of or []),
                comment=comment,
            )

        access = self._conn.fetch_one(PASSWORD_ACCESS_QUERY)
        if access and access[0]:
            for name, password in self._conn.fetch_all(PASSWORDS_QUERY):
                if name in roles:
                    roles[name].password = password
        else:
            logger.info("pg_authid is not readable; role passwords are not dumped")

        return roles

    # ------------------------------------------------------------------
    # Types and sequences
    # ------------------------------------------------------------------

    def _get_types(self) -> list[DatabaseObject]:
        types: list[DatabaseObject] = []
        for schema_name, name, owner, labels in self._conn.fetch_all(ENUMS_QUERY):
            types.append(
                DatabaseObject(
                    kind=ObjectKind.TYPE,
                    schema_name=schema_name,
                    name=name,
                    owner=owner,
                    detail=TypeDetail(type_kind="enum", labels=list(labels or [])),
                )
            )

        for row in self._conn.fetch_all(DOMAINS_QUERY):
            (
                schema_name,
                name,
                owner,
                base_type,
                not_null,
                default,
                base_schema,
                base_name,
                check_names,
                check_defs,
            ) = row
            depends_on: set[ObjectRef] = set()
            if is_user_schema(base_schema):
                depends_on.add(
                    ObjectRef(kind=ObjectKind.TYPE, schema_name=base_schema, name=base_name)
                )
            types.append(
                DatabaseObject(
                    kind=ObjectKind.TYPE,
                    schema_name=schema_name,
                    name=name,
                    owner=owner,
                    depends_on=depends_on,
                    detail=TypeDetail(
                        type_kind="domain",
                        base_type=base_type,
                        not_null=not_null,
                        default=default,
                        checks=dict(zip(check_names or [], check_defs or [])),
                    ),
                )
            )
        return types

    def _get_sequences(self) -> list[DatabaseObject]:
        sequences: list[DatabaseObject] = []
        for row in self._conn.fetch_all(SEQUENCES_QUERY):
            (
                schema_name,
                name,
                owner,
                data_type,
                start,
                increment,
                min_value,
                max_value,
                cache,
                cycle,
                last_value,
            ) = row
            sequences.append(
                DatabaseObject(
                    kind=ObjectKind.SEQUENCE,
                    schema_name=schema_name,
                    name=name,
                    owner=owner,
                    detail=SequenceDetail(
                        data_type=data_type,
                        start_value=start,
                        increment_by=increment,
                        min_value=min_value,
                        max_value=max_value,
                        cache_size=cache,
                        cycle=cycle,
                        last_value=last_value,
                    ),
                )
            )
        return sequences

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def _get_tables(self) -> dict[tuple[str, str], DatabaseObject]:
        tables: dict[tuple[str, str], DatabaseObject] = {}
        for row in self._conn.fetch_all(TABLES_QUERY):
            (
                schema_name,
                name,
                owner,
                partition_key,
                parent_schema,
                parent_name,
                partition_bound,
                primary_key,
            ) = row
            depends_on: set[ObjectRef] = set()
            partition_of = None
            if parent_name is not None:
                partition_of = ObjectRef(
                    kind=ObjectKind.TABLE, schema_name=parent_schema, name=parent_name
                )
                depends_on.add(partition_of)
            tables[(schema_name, name)] = DatabaseObject(
                kind=ObjectKind.TABLE,
                schema_name=schema_name,
                name=name,
                owner=owner,
                depends_on=depends_on,
                detail=TableDetail(
                    partition_key=partition_key,
                    partition_of=partition_of,
                    partition_bound=partition_bound,
                    primary_key=list(primary_key or []),
                ),
            )
        return tables

    def _add_columns(self, tables: dict[tuple[str, str], DatabaseObject]) -> None:
        for row in self._conn.fetch_all(COLUMNS_QUERY):
            (
                schema_name,
                table_name,
                name,
                data_type,
                not_null,
                default,
                identity,
                generated,
                typtype,
                typcategory,
                elem_typtype,
                elem_name,
                elem_schema,
                identity_last_value,
            ) = row
            table = tables.get((schema_name, table_name))
            if table is None:
                # Extension-owned table; skipped with its columns
                continue
            table.detail.columns.append(
                ColumnSchema(
                    name=name,
                    data_type=data_type,
                    is_nullable=not not_null,
                    default=default,
                    identity={"a": "ALWAYS", "d": "BY DEFAULT"}.get(identity, ""),
                    generated=generated,
                    identity_last_value=identity_last_value,
                    category=value_category(
                        typtype, typcategory, elem_typtype, elem_name, elem_schema
                    ),
                )
            )
            if is_user_schema(elem_schema):
                table.depends_on.add(
                    ObjectRef(kind=ObjectKind.TYPE, schema_name=elem_schema, name=elem_name)
                )

    def _add_sequence_defaults(self, tables: dict[tuple[str, str], DatabaseObject]) -> None:
        for schema_name, table_name, seq_schema, seq_name in self._conn.fetch_all(
            SEQUENCE_DEFAULTS_QUERY
        ):
            table = tables.get((schema_name, table_name))
            if table is not None:
                table.depends_on.add(
                    ObjectRef(kind=ObjectKind.SEQUENCE, schema_name=seq_schema, name=seq_name)
                )

    def _add_inheritance(self, tables: dict[tuple[str, str], DatabaseObject]) -> None:
        for schema_name, table_name, parent_schema, parent_name in self._conn.fetch_all(
            INHERITS_QUERY
        ):
            table = tables.get((schema_name, table_name))
            if table is None:
                continue
            parent = ObjectRef(kind=ObjectKind.TABLE, schema_name=parent_schema, name=parent_name)
            table.detail.inherits.append(parent)
            table.depends_on.add(parent)

    def _get_constraints(
        self,
        tables: dict[tuple[str, str], DatabaseObject],
        indexes: set[ObjectRef],
    ) -> list[DatabaseObject]:
        """Attach inline constraints to tables; return foreign-key objects.

        A foreign key backed by a standalone unique index in ``indexes``
        depends on that index as well as on both tables.
        """
        inline_types = {
            "p": "PRIMARY KEY",
            "u": "UNIQUE",
            "c": "CHECK",
            "x": "EXCLUDE",
        }
        foreign_keys: list[DatabaseObject] = []
        for row in self._conn.fetch_all(CONSTRAINTS_QUERY):
            (
                schema_name,
                table_name,
                name,
                contype,
                definition,
                ref_schema,
                ref_table,
                index_schema,
                index_name,
            ) = row
            table = tables.get((schema_name, table_name))
            if table is None:
                continue

            if contype in inline_types:
                table.detail.constraints.append(
                    ConstraintSchema(
                        name=name,
                        constraint_type=inline_types[contype],
                        definition=definition,
                    )
                )
                continue

            references = ObjectRef(
                kind=ObjectKind.TABLE, schema_name=ref_schema, name=ref_table
            )
            # Child table depends on the table it references
            table.depends_on.add(references)
            depends_on = {table.ref, references}
            if index_name is not None:
                index = ObjectRef(kind=ObjectKind.INDEX, schema_name=index_schema, name=index_name)
                if index in indexes:
                    depends_on.add(index)
            foreign_keys.append(
                DatabaseObject(
                    kind=ObjectKind.CONSTRAINT,
                    schema_name=schema_name,
                    name=f"{table_name}.{name}",
                    owner=table.owner,
                    depends_on=depends_on,
                    detail=ConstraintDetail(
                        table=table.ref,
                        constraint_name=name,
                        references=references,
                        definition=definition,
                    ),
                )
            )
        return foreign_keys

    def _get_indexes(
        self, tables: dict[tuple[str, str], DatabaseObject]
    ) -> list[DatabaseObject]:
        indexes: list[DatabaseObject] = []
        for schema_name, name, table_name, definition in self._conn.fetch_all(INDEXES_QUERY):
            table = tables.get((schema_name, table_name))
            if table is None:
                continue
            indexes.append(
                DatabaseObject(
                    kind=ObjectKind.INDEX,
                    schema_name=schema_name,
                    name=name,
                    owner=table.owner,
                    depends_on={table.ref},
                    detail=IndexDetail(table=table.ref, definition=definition),
                )
            )
        return indexes

    # ------------------------------------------------------------------
    # Privileges
    # ------------------------------------------------------------------

    def _get_permissions(self, extracted: set[ObjectRef]) -> list[Permission]:
        grouped: dict[tuple[str, ObjectRef], set[str]] = {}
        for schema_name, name, relkind, grantee, privilege in self._conn.fetch_all(
            PERMISSIONS_QUERY
        ):
            kind = ObjectKind.SEQUENCE if relkind == "S" else ObjectKind.TABLE
            ref = ObjectRef(kind=kind, schema_name=schema_name, name=name)
            if ref not in extracted:
                continue
            grouped.setdefault((grantee, ref), set()).add(privilege)

        return [
            Permission(grantee=grantee, object=ref, privileges=privileges)
            for (grantee, ref), privileges in grouped.items()
        ]

"""Pydantic models for catalog introspection.

This module contains the descriptor models the engine passes around:
- Identity: ObjectKind, ObjectRef
- Kind-specific payloads: TypeDetail, SequenceDetail, TableDetail,
  ConstraintDetail, IndexDetail (with ColumnSchema, ConstraintSchema)
- The tagged variant itself: DatabaseObject
- Access control: RoleSchema, Permission
- The introspection result: CatalogSnapshot

All six object kinds share one ``DatabaseObject`` type. The ``kind`` field is
the discriminator, ``depends_on`` is the uniform dependency-edge accessor.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Identity
# ============================================================================


class ObjectKind(str, Enum):
    """Kinds of database objects the dump engine knows about."""

    ROLE = "role"
    TYPE = "type"
    SEQUENCE = "sequence"
    TABLE = "table"
    CONSTRAINT = "constraint"
    INDEX = "index"


# Final tie-break when two objects share (schema, name)
KIND_RANK: dict[ObjectKind, int] = {
    ObjectKind.ROLE: 0,
    ObjectKind.TYPE: 1,
    ObjectKind.SEQUENCE: 2,
    ObjectKind.TABLE: 3,
    ObjectKind.CONSTRAINT: 4,
    ObjectKind.INDEX: 5,
}


class ObjectRef(BaseModel):
    """Hashable reference to a database object.

    Roles are global, so they use an empty ``schema_name``. Constraint names
    are only unique per table, so foreign-key objects are named
    ``<table>.<constraint>`` to keep the ``(schema, kind, name)`` identity
    unique.

    Example:
        >>> ref = ObjectRef(kind=ObjectKind.TABLE, schema_name="public", name="users")
        >>> str(ref)
        'table public.users'
    """

    model_config = ConfigDict(frozen=True)

    kind: ObjectKind
    schema_name: str = ""
    name: str

    @property
    def sort_key(self) -> tuple[str, str, int]:
        """Deterministic ordering key: schema, name, then kind."""
        return (self.schema_name, self.name, KIND_RANK[self.kind])

    def __str__(self) -> str:
        if self.schema_name:
            return f"{self.kind.value} {self.schema_name}.{self.name}"
        return f"{self.kind.value} {self.name}"


# ============================================================================
# Kind-specific payloads
# ============================================================================


class ValueCategory(str, Enum):
    """How a column's values are fetched and encoded."""

    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    TEXT = "text"
    BINARY = "binary"
    ARRAY = "array"
    TEMPORAL = "temporal"
    ENUM = "enum"
    TEXT_CAST = "text_cast"  # fetched as ::text, cast back on import


class ColumnSchema(BaseModel):
    """Schema for a table column.

    Example:
        >>> col = ColumnSchema(name="id", data_type="integer")
        >>> col.is_nullable
        True
    """

    name: str
    data_type: str  # format_type() output, schema-qualified for user types
    is_nullable: bool = True
    default: str | None = None
    identity: Literal["", "ALWAYS", "BY DEFAULT"] = ""
    generated: str | None = None  # expression of a STORED generated column
    identity_last_value: int | None = None  # state of the identity sequence
    category: ValueCategory = ValueCategory.TEXT_CAST

    @property
    def fetch_as_text(self) -> bool:
        """True when row values are selected as ``::text``."""
        return self.category == ValueCategory.TEXT_CAST

    @property
    def is_insertable(self) -> bool:
        """Generated columns are recomputed on import, never inserted."""
        return self.generated is None


class ConstraintSchema(BaseModel):
    """A constraint rendered inline in ``CREATE TABLE``."""

    name: str
    constraint_type: str  # PRIMARY KEY, UNIQUE, CHECK, EXCLUDE
    definition: str  # pg_get_constraintdef() output


class TypeDetail(BaseModel):
    """Custom type payload: enum labels or domain definition."""

    type_kind: Literal["enum", "domain"]
    labels: list[str] = Field(default_factory=list)
    base_type: str | None = None
    not_null: bool = False
    default: str | None = None
    checks: dict[str, str] = Field(default_factory=dict)  # name -> definition


class SequenceDetail(BaseModel):
    """Sequence parameters and current state."""

    data_type: str = "bigint"
    start_value: int = 1
    increment_by: int = 1
    min_value: int = 1
    max_value: int = 9223372036854775807
    cache_size: int = 1
    cycle: bool = False
    last_value: int | None = None  # None until nextval() was first called


class TableDetail(BaseModel):
    """Table payload: columns, inline constraints, partitioning."""

    columns: list[ColumnSchema] = Field(default_factory=list)
    constraints: list[ConstraintSchema] = Field(default_factory=list)
    partition_key: str | None = None  # set for partitioned parents
    partition_of: ObjectRef | None = None
    partition_bound: str | None = None
    inherits: list[ObjectRef] = Field(default_factory=list)  # plain inheritance parents
    primary_key: list[str] = Field(default_factory=list)  # row order for data

    @property
    def is_partitioned(self) -> bool:
        return self.partition_key is not None

    @property
    def insertable_columns(self) -> list[ColumnSchema]:
        return [c for c in self.columns if c.is_insertable]

    @property
    def has_always_identity(self) -> bool:
        return any(c.identity == "ALWAYS" for c in self.columns)


class ConstraintDetail(BaseModel):
    """Foreign-key payload, emitted as ``ALTER TABLE ... ADD CONSTRAINT``."""

    table: ObjectRef
    constraint_name: str
    references: ObjectRef | None = None
    constraint_type: str = "FOREIGN KEY"
    definition: str


class IndexDetail(BaseModel):
    """Standalone index payload."""

    table: ObjectRef
    definition: str  # pg_get_indexdef() output


ObjectDetail = TypeDetail | SequenceDetail | TableDetail | ConstraintDetail | IndexDetail


# ============================================================================
# Tagged variant
# ============================================================================


class DatabaseObject(BaseModel):
    """One extracted object of any kind.

    Example:
        >>> obj = DatabaseObject(kind=ObjectKind.TABLE, schema_name="public", name="users")
        >>> obj.ref.sort_key
        ('public', 'users', 3)
    """

    kind: ObjectKind
    schema_name: str = ""
    name: str
    owner: str | None = None
    depends_on: set[ObjectRef] = Field(default_factory=set)
    detail: ObjectDetail | None = None

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(kind=self.kind, schema_name=self.schema_name, name=self.name)

    def dependencies(self) -> list[ObjectRef]:
        """Dependency edges in deterministic order."""
        return sorted(self.depends_on, key=lambda r: r.sort_key)


# ============================================================================
# Access control
# ============================================================================


class RoleAttribute(str, Enum):
    """Role flags, rendered as ``X`` / ``NOX`` keywords."""

    SUPERUSER = "SUPERUSER"
    INHERIT = "INHERIT"
    CREATEROLE = "CREATEROLE"
    CREATEDB = "CREATEDB"
    LOGIN = "LOGIN"
    REPLICATION = "REPLICATION"
    BYPASSRLS = "BYPASSRLS"


class RoleSchema(BaseModel):
    """A server role and its memberships."""

    name: str
    attributes: set[RoleAttribute] = Field(default_factory=set)
    connection_limit: int = -1
    member_of: set[str] = Field(default_factory=set)
    password: str | None = None  # stored hash, only when pg_authid is readable
    comment: str | None = None


class Permission(BaseModel):
    """Privileges held by a grantee (role name or PUBLIC) on one object."""

    grantee: str
    object: ObjectRef
    privileges: set[str] = Field(default_factory=set)


# ============================================================================
# Introspection result
# ============================================================================


class CatalogSnapshot(BaseModel):
    """Everything extracted from one database in one snapshot."""

    database: str
    database_owner: str
    server_version: str = ""
    roles: dict[str, RoleSchema] = Field(default_factory=dict)
    objects: list[DatabaseObject] = Field(default_factory=list)
    permissions: list[Permission] = Field(default_factory=list)

    def objects_of(self, kind: ObjectKind) -> list[DatabaseObject]:
        """Objects of one kind, sorted by their reference key."""
        return sorted(
            (o for o in self.objects if o.kind == kind),
            key=lambda o: o.ref.sort_key,
        )

    def owners(self) -> set[str]:
        """Owners of extracted types, sequences and tables."""
        owned_kinds = {ObjectKind.TYPE, ObjectKind.SEQUENCE, ObjectKind.TABLE}
        return {o.owner for o in self.objects if o.kind in owned_kinds and o.owner}

    def permissions_for(self, ref: ObjectRef) -> list[Permission]:
        """Grants on one object, sorted by grantee."""
        return sorted(
            (p for p in self.permissions if p.object == ref),
            key=lambda p: p.grantee,
        )

"""Catalog introspection, dependency ordering, and script rendering.

Provides live database introspection (``CatalogIntrospector``), the
dependency graph and emission order (``DependencyGraphBuilder``), role
selection (``RoleExporter``), value encoding (``encode_value``) and the
script renderer (``Serializer``).

Usage:
    from db_dumper.schema import CatalogIntrospector, DependencyGraphBuilder
    from db_dumper.schema import RoleExporter, Serializer
"""

from db_dumper.schema.encoding import (
    encode_array,
    encode_row,
    encode_scalar,
    encode_value,
    qualified_name,
    quote_ident,
    quote_literal,
)
from db_dumper.schema.graph import DependencyGraph, DependencyGraphBuilder, DumpPlan
from db_dumper.schema.introspector import CatalogIntrospector
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
from db_dumper.schema.roles import RoleExport, RoleExporter
from db_dumper.schema.serializer import Serializer

__all__ = [
    "CatalogIntrospector",
    "DependencyGraph",
    "DependencyGraphBuilder",
    "DumpPlan",
    "RoleExport",
    "RoleExporter",
    "Serializer",
    "encode_value",
    "encode_row",
    "encode_array",
    "encode_scalar",
    "quote_ident",
    "quote_literal",
    "qualified_name",
    "CatalogSnapshot",
    "DatabaseObject",
    "ObjectKind",
    "ObjectRef",
    "ValueCategory",
    "ColumnSchema",
    "ConstraintSchema",
    "TypeDetail",
    "SequenceDetail",
    "TableDetail",
    "ConstraintDetail",
    "IndexDetail",
    "RoleAttribute",
    "RoleSchema",
    "Permission",
]

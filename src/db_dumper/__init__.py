"""db-dumper: Dependency-ordered PostgreSQL dumps as plain SQL scripts.

Extracts roles, types, sequences, tables, constraints, indexes, grants and
row data from one database in a single consistent snapshot and writes a
script that recreates them in dependency order.

Usage:
    from db_dumper import ConnectionOptions, DumpSettings, dump_database
    from db_dumper import DumpOrchestrator, PostgresConnection, FileSink
    from db_dumper import CatalogIntrospector, DependencyGraphBuilder, Serializer
"""

__version__ = "0.1.0"

# Collaborators
from db_dumper.adapters.base import ConnectionProvider, OutputSink
from db_dumper.adapters.postgres import PostgresConnection
from db_dumper.adapters.sink import FileSink

# Config
from db_dumper.config.loader import load_dump_settings
from db_dumper.config.models import ConnectionOptions, DumpSettings

# Errors
from db_dumper.exceptions import (
    ConfigError,
    DumpConnectionError,
    DumpError,
    GraphError,
    IntrospectionError,
    SerializationError,
)

# Orchestration
from db_dumper.orchestrator import DumpOrchestrator, DumpResult, DumpState, dump_database

# Engine
from db_dumper.schema.graph import DependencyGraphBuilder, DumpPlan
from db_dumper.schema.introspector import CatalogIntrospector
from db_dumper.schema.models import CatalogSnapshot, DatabaseObject, ObjectKind, ObjectRef
from db_dumper.schema.roles import RoleExport, RoleExporter
from db_dumper.schema.serializer import Serializer

__all__ = [
    # Collaborators
    "ConnectionProvider",
    "OutputSink",
    "PostgresConnection",
    "FileSink",
    # Config
    "load_dump_settings",
    "ConnectionOptions",
    "DumpSettings",
    # Errors
    "DumpError",
    "DumpConnectionError",
    "IntrospectionError",
    "GraphError",
    "SerializationError",
    "ConfigError",
    # Orchestration
    "DumpOrchestrator",
    "DumpResult",
    "DumpState",
    "dump_database",
    # Engine
    "CatalogIntrospector",
    "DependencyGraphBuilder",
    "DumpPlan",
    "RoleExporter",
    "RoleExport",
    "Serializer",
    "CatalogSnapshot",
    "DatabaseObject",
    "ObjectKind",
    "ObjectRef",
]

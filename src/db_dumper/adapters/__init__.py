"""Collaborators package.

Provides the ``ConnectionProvider`` and ``OutputSink`` protocols and their
concrete implementations: ``PostgresConnection`` (psycopg) and
``FileSink`` (atomic file output).

Usage:
    from db_dumper.adapters import ConnectionProvider, PostgresConnection
    from db_dumper.adapters import FileSink, OutputSink
"""

from db_dumper.adapters.base import ConnectionProvider, OutputSink
from db_dumper.adapters.postgres import PostgresConnection
from db_dumper.adapters.sink import FileSink

__all__ = [
    "ConnectionProvider",
    "OutputSink",
    "PostgresConnection",
    "FileSink",
]

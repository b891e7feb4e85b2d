"""Error taxonomy for the dump engine.

Every fatal error derives from ``DumpError`` so callers (the CLI, the
orchestrator) can catch one type and still tell the categories apart.
"""


class DumpError(Exception):
    """Base class for all db-dumper errors."""

    pass


class DumpConnectionError(DumpError):
    """Raised when the database is unreachable or authentication fails."""

    pass


class IntrospectionError(DumpError):
    """Raised when a catalog or row query fails.

    Partial catalog state is never combined with complete state, so any
    introspection failure aborts the whole dump.
    """

    pass


class GraphError(DumpError):
    """Raised when the descriptor set cannot form a dependency graph.

    Dangling references are not errors -- they are dropped and recorded on
    the plan. This is raised for inconsistent input such as two objects
    sharing one ``(schema, kind, name)`` identity.
    """

    pass


class SerializationError(DumpError):
    """Raised when a value or object cannot be rendered as valid SQL."""

    pass


class ConfigError(DumpError):
    """Raised when configuration values are invalid."""

    pass

"""Role selection for a single-database dump.

Unlike a cluster-wide role dump, only roles the target database actually
needs are exported: the database owner and the owners of extracted types,
sequences and tables. The owner comes first, the rest alphabetically, and
memberships follow once every exported role is defined, so later
``OWNER TO`` and ``GRANT`` statements never reference an undefined role.
"""

import logging
from dataclasses import dataclass, field

from db_dumper.exceptions import IntrospectionError
from db_dumper.schema.models import CatalogSnapshot, RoleSchema

logger = logging.getLogger(__name__)


@dataclass
class RoleExport:
    """Roles to define, in order, and the memberships between them.

    Attributes:
        roles: Exported roles, database owner first.
        memberships: ``(group_role, member_role)`` pairs, sorted.
    """

    roles: list[RoleSchema] = field(default_factory=list)
    memberships: list[tuple[str, str]] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [r.name for r in self.roles]

    def includes(self, role_name: str) -> bool:
        return any(r.name == role_name for r in self.roles)


class RoleExporter:
    """Selects and orders the roles relevant to one database."""

    def select(self, snapshot: CatalogSnapshot) -> set[str]:
        """Names of the roles the dump must define."""
        return {snapshot.database_owner} | snapshot.owners()

    def export(self, snapshot: CatalogSnapshot) -> RoleExport:
        """Build the ordered role export for ``snapshot``.

        Raises:
            IntrospectionError: If the database owner or an object owner is
                missing from the extracted role set.
        """
        selected = self.select(snapshot)
        missing = sorted(name for name in selected if name not in snapshot.roles)
        if missing:
            raise IntrospectionError(
                f"Roles not found in catalog: {', '.join(missing)}"
            )

        owner = snapshot.database_owner
        others = sorted(name for name in selected if name != owner)
        roles = [snapshot.roles[owner]] + [snapshot.roles[name] for name in others]

        memberships: list[tuple[str, str]] = []
        for role in roles:
            for group in sorted(role.member_of):
                if group in selected:
                    memberships.append((group, role.name))
                else:
                    logger.info(
                        "Skipping membership of %s in unexported role %s",
                        role.name,
                        group,
                    )
        memberships.sort()

        logger.debug("Exporting %d roles: %s", len(roles), ", ".join(r.name for r in roles))
        return RoleExport(roles=roles, memberships=memberships)

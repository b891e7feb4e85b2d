"""Dependency graph and emission order.

Builds a directed graph over extracted objects and linearizes it so that
every object is emitted after the objects it depends on.

Edges (dependent -> dependency):
- Table -> Type (column type use), Type -> Type (domain base type)
- Table -> Sequence (default value reference)
- Table -> Table (foreign key, partition parent)
- Constraint -> Table (owning table and referenced table)
- Index -> Table

Ordering is Kahn's algorithm with a heap keyed on ``(schema, name, kind)``,
so an unchanged snapshot always yields the same order. When no object is
ready but objects remain, the remaining graph holds a foreign-key cycle: the
table on a cycle with the fewest unresolved dependencies is picked, and every
foreign key inside its strongly connected component is moved to the deferred
queue (emitted after all tables and data exist).

Usage:
    from db_dumper.schema.graph import DependencyGraphBuilder

    plan = DependencyGraphBuilder().build(snapshot.objects)
    for obj in plan.ordered:
        ...
    for constraint in plan.deferred:
        ...
"""

import heapq
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from db_dumper.exceptions import GraphError
from db_dumper.schema.models import (
    ConstraintDetail,
    DatabaseObject,
    ObjectKind,
    ObjectRef,
)

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Plan and graph data classes
# ------------------------------------------------------------------


@dataclass
class DumpPlan:
    """Emission order produced by ``DependencyGraphBuilder``.

    Attributes:
        ordered: Objects in emission order (types, sequences, tables,
            non-deferred constraints, indexes).
        deferred: Foreign-key constraints emitted in a separate pass after
            all tables and row data.
        dropped_edges: Dangling ``(dependent, dependency)`` edges whose
            target was not in the extracted set.
        broken_edges: Edges discarded to terminate on a cycle that no
            foreign key could break.
    """

    ordered: list[DatabaseObject] = field(default_factory=list)
    deferred: list[DatabaseObject] = field(default_factory=list)
    dropped_edges: list[tuple[ObjectRef, ObjectRef]] = field(default_factory=list)
    broken_edges: list[tuple[ObjectRef, ObjectRef]] = field(default_factory=list)

    def of_kind(self, *kinds: ObjectKind) -> list[DatabaseObject]:
        """Ordered objects of the given kinds, keeping plan order."""
        return [o for o in self.ordered if o.kind in kinds]

    def position(self, ref: ObjectRef) -> int:
        """Index of ``ref`` in the ordered list.

        Raises:
            ValueError: If ``ref`` is not in the ordered list.
        """
        for i, obj in enumerate(self.ordered):
            if obj.ref == ref:
                return i
        raise ValueError(f"{ref} is not in the ordered plan")

    def is_deferred(self, ref: ObjectRef) -> bool:
        return any(o.ref == ref for o in self.deferred)


@dataclass
class DependencyGraph:
    """Flat node table; edges are index references into ``nodes``.

    ``edges[i]`` holds the indices node ``i`` depends on.
    """

    nodes: list[DatabaseObject]
    index: dict[ObjectRef, int]
    edges: list[set[int]]
    dropped: list[tuple[ObjectRef, ObjectRef]] = field(default_factory=list)

    @classmethod
    def from_objects(cls, objects: Iterable[DatabaseObject]) -> "DependencyGraph":
        """Index objects and resolve their ``depends_on`` references.

        Raises:
            GraphError: If two objects share one identity.
        """
        nodes = sorted(objects, key=lambda o: o.ref.sort_key)
        index: dict[ObjectRef, int] = {}
        for i, obj in enumerate(nodes):
            if obj.ref in index:
                raise GraphError(f"Duplicate object identity: {obj.ref}")
            index[obj.ref] = i

        edges: list[set[int]] = []
        dropped: list[tuple[ObjectRef, ObjectRef]] = []
        for obj in nodes:
            targets: set[int] = set()
            for dep in obj.dependencies():
                if dep not in index:
                    logger.warning("Dropping dangling reference %s -> %s", obj.ref, dep)
                    dropped.append((obj.ref, dep))
                    continue
                targets.add(index[dep])
            edges.append(targets)

        return cls(nodes=nodes, index=index, edges=edges, dropped=dropped)

    def dependents(self) -> list[set[int]]:
        """Reverse adjacency: ``result[i]`` holds the nodes depending on ``i``."""
        reverse: list[set[int]] = [set() for _ in self.nodes]
        for i, targets in enumerate(self.edges):
            for j in targets:
                reverse[j].add(i)
        return reverse

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form for inspection and tests."""
        return {
            "nodes": [str(n.ref) for n in self.nodes],
            "edges": [sorted(e) for e in self.edges],
        }


# ------------------------------------------------------------------
# Builder
# ------------------------------------------------------------------


class DependencyGraphBuilder:
    """Produces a deterministic, cycle-safe ``DumpPlan``.

    Roles are ordered separately by ``RoleExporter``; passing them here is
    harmless (they have no edges) but they would appear in ``ordered``.
    """

    def build(self, objects: Iterable[DatabaseObject]) -> DumpPlan:
        graph = DependencyGraph.from_objects(objects)
        state = _SortState(graph)
        plan = DumpPlan(dropped_edges=list(graph.dropped))

        while state.remaining:
            if not state.heap:
                self._break_cycle(state, plan)
                continue
            _, i = heapq.heappop(state.heap)
            if state.done[i]:
                continue
            state.emit(i)
            plan.ordered.append(graph.nodes[i])

        plan.deferred.sort(key=lambda o: o.ref.sort_key)
        logger.debug(
            "Ordered %d objects, deferred %d constraints, dropped %d edges",
            len(plan.ordered),
            len(plan.deferred),
            len(plan.dropped_edges),
        )
        return plan

    def _break_cycle(self, state: "_SortState", plan: DumpPlan) -> None:
        graph = state.graph
        candidates = [
            i
            for i in range(len(graph.nodes))
            if not state.done[i]
            and graph.nodes[i].kind == ObjectKind.TABLE
            and state.on_cycle(i)
        ]

        if candidates:
            chosen = min(candidates, key=lambda i: (len(state.pending[i]), state.key(i)))
            component = state.component(chosen)
            deferred_any = False
            for c in sorted(state.foreign_keys_within(component)):
                obj = graph.nodes[c]
                detail = obj.detail
                owner = graph.index[detail.table]
                target = graph.index[detail.references]
                logger.info("Deferring %s to break a reference cycle", obj.ref)
                state.remove(c)
                plan.deferred.append(obj)
                state.release(owner, target)
                deferred_any = True
            if deferred_any:
                return
        else:
            remaining = [i for i in range(len(graph.nodes)) if not state.done[i]]
            chosen = min(remaining, key=lambda i: (len(state.pending[i]), state.key(i)))

        # No foreign key closes this cycle: drop the chosen node's edges
        for target in sorted(state.pending[chosen]):
            edge = (graph.nodes[chosen].ref, graph.nodes[target].ref)
            logger.warning("Breaking non-deferrable cycle edge %s -> %s", *edge)
            plan.broken_edges.append(edge)
            state.release(chosen, target)


class _SortState:
    """Mutable bookkeeping for one Kahn pass over a ``DependencyGraph``."""

    def __init__(self, graph: DependencyGraph) -> None:
        self.graph = graph
        self.pending: list[set[int]] = [set(e) for e in graph.edges]
        self.reverse = graph.dependents()
        self.done = [False] * len(graph.nodes)
        self.remaining = len(graph.nodes)
        self.heap: list[tuple[tuple[str, str, int], int]] = [
            (self.key(i), i) for i in range(len(graph.nodes)) if not self.pending[i]
        ]
        heapq.heapify(self.heap)

        # Foreign-key constraint nodes, grouped by owning table
        self.fk_by_table: dict[int, list[int]] = {}
        for i, node in enumerate(graph.nodes):
            detail = node.detail
            if (
                node.kind == ObjectKind.CONSTRAINT
                and isinstance(detail, ConstraintDetail)
                and detail.table in graph.index
                and detail.references in graph.index
            ):
                self.fk_by_table.setdefault(graph.index[detail.table], []).append(i)

    def key(self, i: int) -> tuple[str, str, int]:
        return self.graph.nodes[i].ref.sort_key

    def emit(self, i: int) -> None:
        self.done[i] = True
        self.remaining -= 1
        for j in self.reverse[i]:
            if not self.done[j]:
                self.release(j, i)

    def remove(self, i: int) -> None:
        """Take a node out of the main order without emitting it."""
        self.done[i] = True
        self.remaining -= 1

    def release(self, dependent: int, dependency: int) -> None:
        """Resolve one edge; queue the dependent once it has none left."""
        pending = self.pending[dependent]
        if dependency not in pending:
            return
        pending.discard(dependency)
        if not pending and not self.done[dependent]:
            heapq.heappush(self.heap, (self.key(dependent), dependent))

    def _reach(self, start: int, adjacency: list[set[int]]) -> set[int]:
        seen: set[int] = set()
        stack = [start]
        while stack:
            node = stack.pop()
            for nxt in adjacency[node]:
                if nxt not in seen and not self.done[nxt]:
                    seen.add(nxt)
                    stack.append(nxt)
        return seen

    def on_cycle(self, i: int) -> bool:
        return i in self._reach(i, self.pending)

    def component(self, i: int) -> set[int]:
        """Strongly connected component of ``i`` among unfinished nodes."""
        forward = self._reach(i, self.pending)
        backward = self._reach(i, self.reverse)
        return (forward & backward) | {i}

    def foreign_keys_within(self, component: set[int]) -> list[int]:
        """Unfinished foreign keys whose both ends lie in ``component``."""
        result: list[int] = []
        index = self.graph.index
        for table in component:
            for c in self.fk_by_table.get(table, []):
                detail = self.graph.nodes[c].detail
                if not self.done[c] and index[detail.references] in component:
                    result.append(c)
        return result

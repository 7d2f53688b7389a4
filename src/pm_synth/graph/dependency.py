"""
Dependency graph over non-nullable foreign keys.

Handles:
- Graph construction from introspected schema metadata
- Cycle detection with the concrete cycle path
- Topological ordering (Kahn's algorithm) for insertion
- Validation of a hand-maintained insertion order against the graph

Nullable foreign keys are left out of the graph: they are optional
relationships that can be populated in a second pass and never force an
ordering between tables.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from pm_synth.exceptions import DependencyCycleError
from pm_synth.models import CyclePolicy, DatabaseSchema

logger = logging.getLogger(__name__)


@dataclass
class TableNode:
    """A table and its non-nullable foreign-key neighbours."""
    name: str
    dependencies: Set[str] = field(default_factory=set)  # Tables this one references
    dependents: Set[str] = field(default_factory=set)    # Tables referencing this one


@dataclass
class DependencyGraph:
    """Table name -> TableNode, in table discovery order."""
    nodes: Dict[str, TableNode] = field(default_factory=dict)

    def add_table(self, name: str) -> TableNode:
        """Add a table node if missing and return it."""
        if name not in self.nodes:
            self.nodes[name] = TableNode(name=name)
        return self.nodes[name]

    def add_edge(self, dependent: str, target: str) -> None:
        """Record that ``dependent`` must be inserted after ``target``."""
        self.add_table(dependent).dependencies.add(target)
        self.add_table(target).dependents.add(dependent)

    @classmethod
    def from_edges(
        cls,
        tables: Iterable[str],
        edges: Iterable[Tuple[str, str]],
    ) -> DependencyGraph:
        """Build a graph from table names and (dependent, target) pairs."""
        graph = cls()
        for name in tables:
            graph.add_table(name)
        for dependent, target in edges:
            graph.add_edge(dependent, target)
        return graph

    def __getitem__(self, name: str) -> TableNode:
        return self.nodes[name]

    def __contains__(self, name: object) -> bool:
        return name in self.nodes

    def __iter__(self) -> Iterator[str]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def edges(self) -> List[Tuple[str, str]]:
        """All (dependent, target) edges in deterministic order."""
        return [
            (name, target)
            for name, node in self.nodes.items()
            for target in sorted(node.dependencies)
        ]


def build_dependency_graph(schema: DatabaseSchema) -> DependencyGraph:
    """
    Build the dependency graph for a database schema.

    Every table gets a node. A foreign key adds an edge only when its local
    column is NOT nullable; targets outside the schema still get a node.
    """
    graph = DependencyGraph()

    for table_name in schema:
        graph.add_table(table_name)

    for table_name, table in schema.items():
        for fk in table.foreign_keys:
            column = table.get_column(fk.column_name)
            if column is None:
                logger.warning(
                    f"Foreign key {fk.constraint_name} references unknown column "
                    f"{table_name}.{fk.column_name}"
                )
                continue
            if column.is_nullable:
                continue
            graph.add_edge(table_name, fk.target_table)

    logger.debug(f"Built dependency graph: {len(graph)} tables, {len(graph.edges())} edges")
    return graph


def detect_cycle(graph: DependencyGraph) -> Optional[List[str]]:
    """
    Find a cycle in the graph.

    Depth-first traversal with three states per node (unvisited, in progress,
    done), iterative so deep schemas do not hit the recursion limit.

    Returns:
        The cycle as a path starting and ending at the same table
        (e.g. ``["a", "b", "a"]``), or None if the graph is acyclic.
    """
    in_progress: Set[str] = set()
    done: Set[str] = set()

    for root in graph:
        if root in done:
            continue

        path: List[str] = [root]
        in_progress.add(root)
        stack = [iter(sorted(graph[root].dependencies))]

        while stack:
            dep = next(stack[-1], None)
            if dep is None:
                finished = path.pop()
                in_progress.discard(finished)
                done.add(finished)
                stack.pop()
                continue

            if dep in in_progress:
                return path[path.index(dep):] + [dep]
            if dep in done:
                continue

            path.append(dep)
            in_progress.add(dep)
            deps = graph[dep].dependencies if dep in graph else set()
            stack.append(iter(sorted(deps)))

    return None


def topological_order(graph: DependencyGraph) -> List[str]:
    """
    Order tables so every table follows the tables it depends on.

    Kahn's algorithm. The queue is seeded in graph order and dependents are
    released in sorted order, so the result is deterministic for a fixed
    schema. Tables on (or behind) a cycle never reach in-degree zero and are
    left out of the result.
    """
    cycle = detect_cycle(graph)
    if cycle:
        logger.warning(f"Cycle detected in dependency graph: {' -> '.join(cycle)}")
        logger.warning(
            "Consider inserting with NULL foreign keys and updating after initial seeding."
        )

    in_degree: Dict[str, int] = {name: len(node.dependencies) for name, node in graph.nodes.items()}
    queue = deque(name for name in graph if in_degree[name] == 0)
    result: List[str] = []

    while queue:
        table = queue.popleft()
        result.append(table)

        for dependent in sorted(graph[table].dependents):
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    return result


def resolve_insertion_order(
    graph: DependencyGraph,
    policy: CyclePolicy = CyclePolicy.FAIL,
) -> List[str]:
    """
    Derive an insertion order, applying a policy when the graph is cyclic.

    Args:
        graph: Dependency graph
        policy: FAIL raises, APPEND appends the unordered tables after the
            ordered ones, TRUNCATE returns Kahn's partial order unchanged

    Raises:
        DependencyCycleError: With policy FAIL and a cycle present
    """
    cycle = detect_cycle(graph)
    if cycle and policy == CyclePolicy.FAIL:
        raise DependencyCycleError(cycle)

    order = topological_order(graph)
    if len(order) == len(graph):
        return order

    ordered = set(order)
    omitted = [name for name in graph if name not in ordered]
    if policy == CyclePolicy.APPEND:
        logger.warning(f"Appending {len(omitted)} tables on or behind a cycle: {omitted}")
        return order + omitted

    logger.warning(f"Omitting {len(omitted)} tables on or behind a cycle: {omitted}")
    return order


def validate_insertion_order(
    order: List[str],
    graph: DependencyGraph,
) -> List[Tuple[str, str]]:
    """
    Check a hand-maintained insertion order against the graph.

    Returns:
        (table, dependency) pairs where ``table`` appears before a table it
        non-nullably depends on. Dependencies missing from the order, and
        self-references, are not reported.
    """
    position = {name: i for i, name in enumerate(order)}
    violations: List[Tuple[str, str]] = []

    for name in order:
        if name not in graph:
            continue
        for dep in sorted(graph[name].dependencies):
            if dep != name and dep in position and position[dep] > position[name]:
                violations.append((name, dep))

    return violations

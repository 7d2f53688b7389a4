"""
Dependency graph module.

Derives a safe table processing order from non-nullable foreign keys.
"""

from pm_synth.graph.dependency import (
    DependencyGraph,
    TableNode,
    build_dependency_graph,
    detect_cycle,
    resolve_insertion_order,
    topological_order,
    validate_insertion_order,
)

__all__ = [
    "DependencyGraph",
    "TableNode",
    "build_dependency_graph",
    "detect_cycle",
    "resolve_insertion_order",
    "topological_order",
    "validate_insertion_order",
]

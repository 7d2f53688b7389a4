"""Tests for dependency graph construction and ordering."""

import random

import pytest

from conftest import make_table
from pm_synth.exceptions import DependencyCycleError
from pm_synth.graph import (
    DependencyGraph,
    build_dependency_graph,
    detect_cycle,
    resolve_insertion_order,
    topological_order,
    validate_insertion_order,
)
from pm_synth.models import CyclePolicy, freeze_schema


def has_cycle(names, edges):
    """Recursive reference check: does any table reach itself?"""
    targets = {name: [b for a, b in edges if a == name] for name in names}

    def reaches(start, node, seen):
        for target in targets[node]:
            if target == start:
                return True
            if target not in seen:
                seen.add(target)
                if reaches(start, target, seen):
                    return True
        return False

    return any(reaches(name, name, set()) for name in names)


class TestBuildDependencyGraph:
    """Tests for build_dependency_graph."""

    def test_only_non_nullable_keys_create_edges(self, plane_schema):
        graph = build_dependency_graph(plane_schema)

        assert set(graph) == {"users", "workspaces", "projects", "issues"}
        # workspaces.owner_id and issues.parent_id are nullable
        assert graph["workspaces"].dependencies == set()
        assert graph["issues"].dependencies == {"projects"}
        assert graph["projects"].dependencies == {"workspaces"}
        assert graph["workspaces"].dependents == {"projects"}

    def test_unknown_column_is_ignored(self, caplog):
        schema = freeze_schema({
            "a": make_table([("id", "uuid", False)], [("ghost_id", "b", "id")]),
            "b": make_table([("id", "uuid", False)]),
        })
        graph = build_dependency_graph(schema)

        assert graph.edges() == []
        assert "unknown column" in caplog.text

    def test_target_outside_schema_gets_node(self):
        schema = freeze_schema({
            "a": make_table([("id", "uuid", False), ("b_id", "uuid", False)], [("b_id", "b", "id")]),
        })
        graph = build_dependency_graph(schema)
        assert "b" in graph
        assert topological_order(graph) == ["b", "a"]


class TestTopologicalOrder:
    """Tests for ordering acyclic graphs."""

    def test_chain(self, plane_schema):
        order = topological_order(build_dependency_graph(plane_schema))

        assert len(order) == 4
        assert order.index("workspaces") < order.index("projects") < order.index("issues")

    def test_deterministic(self):
        edges = [("c", "a"), ("c", "b"), ("d", "c")]
        first = topological_order(DependencyGraph.from_edges("abcd", edges))
        second = topological_order(DependencyGraph.from_edges("abcd", edges))
        assert first == second == ["a", "b", "c", "d"]

    @pytest.mark.parametrize("seed", range(10))
    def test_random_dag_respects_every_edge(self, seed):
        rng = random.Random(seed)
        names = [f"t{i}" for i in range(30)]
        # Edges only point to earlier names, so the graph is acyclic
        edges = [
            (names[i], names[j])
            for i in range(len(names))
            for j in range(i)
            if rng.random() < 0.15
        ]
        shuffled = names[:]
        rng.shuffle(shuffled)
        graph = DependencyGraph.from_edges(shuffled, edges)

        order = topological_order(graph)
        position = {name: i for i, name in enumerate(order)}

        assert sorted(order) == sorted(names)
        for dependent, target in edges:
            assert position[target] < position[dependent]
        assert validate_insertion_order(order, graph) == []


class TestCycles:
    """Tests for cycle detection and cycle policies."""

    @pytest.fixture
    def cyclic_graph(self):
        # a <-> b, c depends on a, d is independent
        return DependencyGraph.from_edges("abcd", [("a", "b"), ("b", "a"), ("c", "a")])

    def test_detect_cycle_path(self, cyclic_graph):
        assert detect_cycle(cyclic_graph) == ["a", "b", "a"]

    def test_self_reference_is_a_cycle(self):
        graph = DependencyGraph.from_edges(["a"], [("a", "a")])
        assert detect_cycle(graph) == ["a", "a"]

    def test_acyclic_graph(self, plane_schema):
        assert detect_cycle(build_dependency_graph(plane_schema)) is None

    def test_kahn_omits_cyclic_tables(self, cyclic_graph):
        assert topological_order(cyclic_graph) == ["d"]

    def test_fail_policy(self, cyclic_graph):
        with pytest.raises(DependencyCycleError) as exc_info:
            resolve_insertion_order(cyclic_graph, CyclePolicy.FAIL)
        assert exc_info.value.cycle == ["a", "b", "a"]
        assert "a -> b -> a" in str(exc_info.value)

    def test_append_policy(self, cyclic_graph):
        assert resolve_insertion_order(cyclic_graph, CyclePolicy.APPEND) == ["d", "a", "b", "c"]

    def test_truncate_policy(self, cyclic_graph):
        assert resolve_insertion_order(cyclic_graph, CyclePolicy.TRUNCATE) == ["d"]

    @pytest.mark.parametrize("seed", range(50))
    def test_random_edge_sets(self, seed):
        rng = random.Random(seed)
        names = [f"t{i}" for i in range(8)]
        edges = [(a, b) for a in names for b in names if rng.random() < 0.2]
        graph = DependencyGraph.from_edges(names, edges)

        path = detect_cycle(graph)

        assert (path is not None) == has_cycle(names, edges)
        if path is not None:
            assert path[0] == path[-1]
            for dependent, target in zip(path, path[1:]):
                assert target in graph[dependent].dependencies

    def test_cycle_broken_by_nullable_key(self):
        schema = freeze_schema({
            "a": make_table([("id", "uuid", False), ("b_id", "uuid", False)], [("b_id", "b", "id")]),
            "b": make_table([("id", "uuid", False), ("a_id", "uuid", True)], [("a_id", "a", "id")]),
        })
        assert resolve_insertion_order(build_dependency_graph(schema)) == ["b", "a"]


class TestValidateInsertionOrder:
    """Tests for checking a hand-maintained order."""

    def test_reports_violations(self, plane_schema):
        graph = build_dependency_graph(plane_schema)
        violations = validate_insertion_order(["users", "projects", "workspaces", "issues"], graph)
        assert violations == [("projects", "workspaces")]

    def test_ignores_unknown_and_missing_tables(self, plane_schema):
        graph = build_dependency_graph(plane_schema)
        assert validate_insertion_order(["transaction_log", "projects", "issues"], graph) == []

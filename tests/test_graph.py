"""
Tests for the graph module.

Tests DependencyGraph registration, lookups, blast radius, traversal and
serialization.
"""

import json
import threading

import pytest
from unitgraph.errors import GraphDataError, GraphFrozenError, InvalidUnitError
from unitgraph.graph import DependencyGraph, GraphAnalyzer
from unitgraph.models import Dependency, Unit

from tests.fixtures import (
    ORDER,
    PRODUCT,
    USER,
    USER_SERVICE,
    USERS_CONTROLLER,
    build_graph,
    order_graph,
    unit,
    user_chain_graph,
)


class TestRegistration:
    """Tests for registering units."""

    def test_register_and_retrieve_node(self):
        """Test registering a unit and reading it back."""
        graph = DependencyGraph()
        graph.register(unit("User", "model", "app/models/user.rb", namespace="App"))

        node = graph.get_node("User")
        assert node is not None
        assert node.type == "model"
        assert node.file_path == "app/models/user.rb"
        assert node.namespace == "App"
        assert graph.node_count == 1

    def test_register_accepts_mapping(self):
        """Test that plain extractor dicts are accepted."""
        graph = DependencyGraph()
        graph.register(
            {
                "identifier": "UserService",
                "type": "service",
                "dependencies": [{"type": "association", "target": "User", "via": "x"}],
            }
        )

        assert graph.dependencies_of("UserService") == ["User"]

    @pytest.mark.parametrize("identifier", ["", None, 42])
    def test_register_rejects_bad_identifier(self, identifier):
        """Test that malformed identifiers fail fast."""
        graph = DependencyGraph()

        with pytest.raises(InvalidUnitError):
            graph.register({"identifier": identifier, "type": "model"})

        assert graph.node_count == 0

    def test_register_rejects_non_unit(self):
        """Test that arbitrary objects are rejected."""
        with pytest.raises(InvalidUnitError):
            DependencyGraph().register("User")

    @pytest.mark.parametrize("target", ["", None])
    def test_register_rejects_bad_dependency_target(self, target):
        """Test that a blank or missing target never reaches the graph."""
        graph = DependencyGraph()

        with pytest.raises(InvalidUnitError):
            graph.register(
                {"identifier": "A", "type": "model", "dependencies": [{"target": target}]}
            )

        assert graph.node_count == 0
        assert graph.edge_count == 0

    def test_reregister_is_idempotent(self):
        """Test that registering the same unit twice equals registering it once."""
        once = user_chain_graph()
        twice = user_chain_graph()
        twice.register(USER_SERVICE)

        assert twice.node_count == once.node_count
        assert twice.edge_count == once.edge_count
        for identifier in once.identifiers:
            assert twice.dependencies_of(identifier) == once.dependencies_of(identifier)
            assert twice.dependents_of(identifier) == once.dependents_of(identifier)
        assert twice.units_of_type("service") == once.units_of_type("service")

    def test_reregister_replaces_edges_and_metadata(self):
        """Test that a re-registration upserts type, file and edges."""
        graph = build_graph(unit("A", "model", "a.rb", deps=["B", "C"]))
        graph.register(unit("A", "service", "a2.rb", deps=["C"]))

        assert graph.dependencies_of("A") == ["C"]
        assert graph.dependents_of("B") == []
        assert graph.units_of_type("model") == []
        assert graph.units_of_type("service") == ["A"]
        assert graph.nodes_in_file("a.rb") == []
        assert graph.nodes_in_file("a2.rb") == ["A"]
        # The unreferenced placeholder for B is gone
        assert "B" not in graph.graph

    def test_duplicate_targets_collapse_first_kind_wins(self):
        """Test that edges are deduplicated per ordered pair."""
        graph = build_graph(
            unit(
                "Order",
                deps=[
                    Dependency("User", type="association"),
                    Dependency("User", type="method_call"),
                ],
            )
        )

        assert graph.dependencies_of("Order") == ["User"]
        assert graph.edge_count == 1
        assert graph.edge_kind("Order", "User") == "association"

    def test_frozen_graph_rejects_register(self):
        """Test that a frozen graph cannot be mutated."""
        graph = user_chain_graph().freeze()

        assert graph.frozen
        with pytest.raises(GraphFrozenError):
            graph.register(PRODUCT)

    def test_copy_is_independent_and_unfrozen(self):
        """Test that copy() yields a separate mutable graph."""
        graph = user_chain_graph().freeze()
        copy = graph.copy()
        copy.register(PRODUCT)

        assert not copy.frozen
        assert copy.node_exists("Product")
        assert not graph.node_exists("Product")


class TestLookups:
    """Tests for forward, reverse and type lookups."""

    def test_symmetry(self):
        """Test that every edge is visible from both ends."""
        graph = order_graph()

        for source, target, _kind in graph.edges():
            assert target in graph.dependencies_of(source)
            assert source in graph.dependents_of(target)

    def test_dependencies_keep_insertion_order(self):
        """Test that forward edges come back in declaration order."""
        graph = build_graph(unit("A", deps=["C", "B", "D"]))

        assert graph.dependencies_of("A") == ["C", "B", "D"]

    def test_dependents_are_sorted(self):
        """Test that dependents come back in a deterministic order."""
        graph = build_graph(unit("Z", deps=["T"]), unit("A", deps=["T"]), unit("M", deps=["T"]))

        assert graph.dependents_of("T") == ["A", "M", "Z"]

    def test_unknown_identifier_returns_empty(self):
        """Test that lookups for unknown identifiers are not errors."""
        graph = order_graph()

        assert graph.dependencies_of("Nope") == []
        assert graph.dependents_of("Nope") == []
        assert graph.units_of_type("mailer") == []
        assert graph.get_node("Nope") is None

    def test_dangling_edge_resolution(self):
        """Test that an edge registered before its target resolves later."""
        graph = DependencyGraph()
        graph.register(unit("A", deps=["B"]))

        assert graph.dependents_of("B") == ["A"]
        assert not graph.node_exists("B")

        graph.register(unit("B"))

        assert graph.node_exists("B")
        assert graph.dependents_of("B") == ["A"]
        assert graph.node_count == 2

    def test_units_of_type(self):
        """Test filtering identifiers by type tag."""
        graph = order_graph()

        assert graph.units_of_type("model") == ["Order", "Product", "User"]
        assert graph.units_of_type("service") == ["UserService"]
        assert graph.type_counts() == {"model": 3, "service": 1}

    def test_find_node_by_suffix(self):
        """Test suffix lookup over namespaced identifiers."""
        graph = build_graph(
            unit("Order::Update"),
            unit("Invoice::Update"),
            unit("Update"),
        )

        assert graph.find_node_by_suffix("Update") == "Order::Update"
        assert graph.find_node_by_suffix("Missing") is None
        assert graph.node_exists("Update")

    def test_edge_count_includes_dangling(self):
        """Test that dangling edges are counted but not as nodes."""
        graph = build_graph(unit("A", deps=["B", "C"]))

        assert graph.node_count == 1
        assert graph.edge_count == 2


class TestBlastRadius:
    """Tests for affected_by."""

    def test_end_to_end_scenario(self):
        """Test the User -> UserService -> UsersController chain."""
        graph = user_chain_graph()

        assert graph.affected_by(["app/models/user.rb"]) == {
            "User",
            "UserService",
            "UsersController",
        }
        assert graph.affected_by(["app/models/user.rb"], max_depth=1) == {
            "User",
            "UserService",
        }

    def test_seeds_included_at_depth_zero(self):
        """Test that seeds are always part of the result."""
        graph = user_chain_graph()

        assert graph.affected_by(["app/models/user.rb"], max_depth=0) == {"User"}

    def test_monotonic_in_depth(self):
        """Test that a deeper search never loses units."""
        graph = user_chain_graph()
        graph.register(unit("Admin", "controller", "admin.rb", deps=["UsersController"]))
        files = ["app/models/user.rb"]

        previous = graph.affected_by(files, max_depth=0)
        full = graph.affected_by(files)
        for depth in range(1, 5):
            current = graph.affected_by(files, max_depth=depth)
            assert previous <= current <= full
            previous = current

    def test_cycle_safe(self):
        """Test that cycles do not cause infinite traversal."""
        graph = build_graph(
            unit("A", file_path="a.rb", deps=["B"]),
            unit("B", file_path="b.rb", deps=["A"]),
        )

        assert graph.affected_by(["a.rb"]) == {"A", "B"}

    def test_unmatched_files_yield_empty(self):
        """Test that unknown files contribute no seeds."""
        graph = user_chain_graph()

        assert graph.affected_by(["README.md"]) == set()
        assert graph.affected_by([]) == set()

    def test_single_path_string(self):
        """Test that a bare path is treated as one file."""
        graph = user_chain_graph()

        assert graph.affected_by("app/models/user.rb", max_depth=0) == {"User"}

    def test_negative_depth_rejected(self):
        """Test that a negative depth is a precondition error."""
        with pytest.raises(ValueError):
            user_chain_graph().affected_by(["app/models/user.rb"], max_depth=-1)

    def test_dependent_registered_after_target(self):
        """Test blast radius over edges registered out of order."""
        graph = build_graph(USERS_CONTROLLER, USER_SERVICE, USER)

        assert graph.affected_by(["app/models/user.rb"]) == {
            "User",
            "UserService",
            "UsersController",
        }


class TestTraversal:
    """Tests for bounded neighbourhood traversal."""

    def test_forward_traversal(self):
        """Test walking dependencies with depths recorded."""
        graph = user_chain_graph()

        result = graph.traverse_dependencies("UsersController", depth=2)

        assert result.found
        assert result.nodes["UsersController"].depth == 0
        assert result.nodes["UserService"].depth == 1
        assert result.nodes["User"].depth == 2
        assert result.nodes["UsersController"].neighbors == ["UserService"]

    def test_reverse_traversal_respects_depth(self):
        """Test walking dependents stops at the depth bound."""
        graph = user_chain_graph()

        result = graph.traverse_dependents("User", depth=1)

        assert set(result.nodes) == {"User", "UserService"}

    def test_type_filter(self):
        """Test that neighbours outside the type filter are skipped."""
        graph = order_graph()

        result = graph.traverse_dependents("User", depth=1, types=["service"])

        assert result.nodes["User"].neighbors == ["UserService"]
        assert "Order" not in result.nodes

    def test_unknown_root(self):
        """Test traversal from an unregistered identifier."""
        result = order_graph().traverse("Nope")

        assert not result.found
        assert result.nodes == {}

    def test_invalid_direction(self):
        """Test that an unknown direction is rejected."""
        with pytest.raises(ValueError):
            order_graph().traverse("User", direction="sideways")


class TestSerialization:
    """Tests for to_h / from_h."""

    def test_round_trip_answers_identically(self):
        """Test that a JSON round-trip preserves every query."""
        graph = build_graph(
            USERS_CONTROLLER,
            ORDER,
            USER_SERVICE,
            USER,
            PRODUCT,
            unit("Ghost", deps=["Missing"]),
        )
        graph.register(unit("Order", "model", "app/models/order.rb", deps=["Product", "User"]))

        restored = DependencyGraph.from_h(json.loads(json.dumps(graph.to_h())))

        assert restored.identifiers == graph.identifiers
        for identifier in graph.identifiers + ["Missing"]:
            assert restored.dependencies_of(identifier) == graph.dependencies_of(identifier)
            assert restored.dependents_of(identifier) == graph.dependents_of(identifier)
        for type_ in ("model", "service", "controller"):
            assert restored.units_of_type(type_) == graph.units_of_type(type_)
        assert restored.pagerank() == graph.pagerank()
        assert restored.affected_by(["app/models/user.rb"]) == graph.affected_by(
            ["app/models/user.rb"]
        )

    def test_round_trip_preserves_analysis(self):
        """Test that the structural report is unchanged after a JSON round-trip."""
        graph = build_graph(
            unit("A", deps=["B"]),
            unit("B", deps=["C", "External"]),
            unit("C", deps=["A"]),
            unit("D", deps=["C"]),
            unit("E", deps=["D", "D"]),
            unit("Rails", "framework_source"),
        )

        restored = DependencyGraph.from_h(json.loads(json.dumps(graph.to_h())))

        original = GraphAnalyzer(graph).analyze()
        assert original.cycles == [["A", "B", "C", "A"]]
        assert original.bridges == [("D", "C"), ("E", "D")]
        assert GraphAnalyzer(restored).analyze().to_dict() == original.to_dict()

    def test_to_h_format(self):
        """Test the persisted structure."""
        data = order_graph().to_h(include_pagerank=True)

        assert data["nodes"]["User"] == {
            "type": "model",
            "file_path": "app/models/user.rb",
            "namespace": None,
        }
        assert data["edges"]["Order"] == ["User"]
        assert data["edges"]["Product"] == []
        assert data["edge_kinds"]["Order"] == {"User": "association"}
        assert data["stats"]["node_count"] == 4
        assert data["stats"]["edge_count"] == 2
        assert set(data["pagerank"]) == {"Order", "User", "UserService", "Product"}

    def test_edge_kinds_survive_round_trip(self):
        """Test that edge kinds are restored."""
        restored = DependencyGraph.from_h(order_graph().to_h())

        assert restored.edge_kind("Order", "User") == "association"

    def test_from_h_without_optional_sections(self):
        """Test loading the minimal format."""
        graph = DependencyGraph.from_h(
            {
                "nodes": {"A": {"type": "model", "file_path": None}, "B": {"type": "model"}},
                "edges": {"A": ["B"]},
            }
        )

        assert graph.dependencies_of("A") == ["B"]
        assert graph.dependencies_of("B") == []

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {},
            {"nodes": {}},
            {"edges": {}},
            {"nodes": [], "edges": {}},
            {"nodes": {"A": "model"}, "edges": {}},
            {"nodes": {"A": {"file_path": "a.rb"}}, "edges": {}},
            {"nodes": {"A": {"type": "model"}}, "edges": {"A": "B"}},
            {"nodes": {"A": {"type": "model"}}, "edges": {"A": [1]}},
            {"nodes": {"A": {"type": "model"}}, "edges": {"X": ["A"]}},
            {"nodes": {"": {"type": "model"}}, "edges": {}},
            {"nodes": {"A": {"type": "model"}}, "edges": {}, "pagerank": [0.1]},
            {"nodes": {"A": {"type": ["model"]}}, "edges": {}},
            {"nodes": {"A": {"type": "model", "file_path": 3}}, "edges": {}},
            {"nodes": {"A": {"type": "model", "namespace": ["Admin"]}}, "edges": {}},
            {
                "nodes": {"A": {"type": "model"}},
                "edges": {"A": ["B"]},
                "edge_kinds": {"A": {"B": ["association"]}},
            },
        ],
    )
    def test_from_h_rejects_malformed_data(self, data):
        """Test that structurally invalid data fails fast."""
        with pytest.raises(GraphDataError):
            DependencyGraph.from_h(data)


class TestCaching:
    """Tests for derived-view caching."""

    def test_mutation_invalidates_pagerank(self):
        """Test that a registration drops cached scores."""
        graph = build_graph(ORDER, USER)
        before = graph.pagerank()

        graph.register(PRODUCT)
        after = graph.pagerank()

        assert "Product" not in before
        assert "Product" in after

    def test_cached_computes_once_under_concurrency(self):
        """Test single-flight semantics for concurrent first access."""
        graph = order_graph().freeze()
        calls = []
        barrier = threading.Barrier(8)
        results = []

        def compute():
            calls.append(1)
            return {"value": 42}

        def reader():
            barrier.wait()
            results.append(graph.cached("expensive", compute))

        threads = [threading.Thread(target=reader) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert all(result is results[0] for result in results)

    def test_returned_scores_are_copies(self):
        """Test that callers cannot corrupt the cache."""
        graph = order_graph()
        scores = graph.pagerank()
        scores["User"] = 99.0

        assert graph.pagerank()["User"] != 99.0

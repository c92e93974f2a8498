"""
Adaptive Learning Engine - Prerequisite Graph Tests
"""
import pytest

from learning_engine.core.errors import ConfigurationError, ResourceExhaustedError
from learning_engine.schemas.common import ContentType
from learning_engine.schemas.content import ContentMetadata, PrerequisiteEdgeSchema
from learning_engine.services.prerequisite_graph import PrerequisiteGraph


def _graph(edges: list[tuple[str, str]], topics: dict[str, list[str]] | None = None) -> PrerequisiteGraph:
    topics = topics or {}
    ids = sorted({n for edge in edges for n in edge} | set(topics))
    content = {
        cid: ContentMetadata(
            content_id=cid,
            content_type=ContentType.LESSON,
            title=cid,
            topics=topics.get(cid, []),
        )
        for cid in ids
    }
    return PrerequisiteGraph(
        content,
        [PrerequisiteEdgeSchema(content_id=a, requires_content_id=b) for a, b in edges],
    )


def test_cycle_is_rejected():
    with pytest.raises(ConfigurationError, match="cycle"):
        _graph([("a", "b"), ("b", "c"), ("c", "a")])


def test_self_loop_is_rejected():
    with pytest.raises(ConfigurationError):
        _graph([("a", "a")])


def test_edge_to_unknown_content_is_rejected():
    content = {
        "a": ContentMetadata(content_id="a", content_type=ContentType.LESSON, title="a"),
    }
    with pytest.raises(ConfigurationError, match="unknown content"):
        PrerequisiteGraph(content, [PrerequisiteEdgeSchema(content_id="a", requires_content_id="ghost")])


def test_dependents_and_requirements():
    graph = _graph([("b", "a"), ("c", "a"), ("d", "b")])
    assert graph.requires_ids("d") == ["b"]
    assert graph.dependents("a") == ["b", "c"]
    assert graph.dependents("d") == []


def test_downstream_count_is_transitive():
    graph = _graph([("b", "a"), ("c", "b"), ("d", "c"), ("e", "a")])
    assert graph.downstream_count(["a"]) == 4
    assert graph.downstream_count(["c"]) == 1
    assert graph.downstream_count(["b", "c"]) == 1


def test_tagged_with():
    graph = _graph([], topics={"x": ["algebra"], "y": ["geometry"], "z": ["algebra", "geometry"]})
    assert graph.tagged_with("algebra") == ["x", "z"]


def test_ancestors_stop_at_completed_nodes():
    graph = _graph([("d", "c"), ("c", "b"), ("b", "a")])
    assert graph.ancestors(["d"], max_nodes=10) == {"a", "b", "c", "d"}
    assert graph.ancestors(["d"], max_nodes=10, stop=lambda n: n == "c") == {"c", "d"}


def test_ancestors_respect_node_budget():
    edges = [(f"n{i + 1}", f"n{i}") for i in range(20)]
    graph = _graph(edges)
    with pytest.raises(ResourceExhaustedError):
        graph.ancestors(["n20"], max_nodes=5)


def test_topological_order_puts_prerequisites_first():
    graph = _graph([("c", "a"), ("c", "b"), ("d", "c")])
    order = graph.topological_order({"a", "b", "c", "d"}, priority=lambda n: (n,))
    assert order == ["a", "b", "c", "d"]

    # Priority only reorders nodes that are ready at the same time
    reversed_order = graph.topological_order({"a", "b", "c", "d"}, priority=lambda n: (-ord(n),))
    assert reversed_order == ["b", "a", "c", "d"]

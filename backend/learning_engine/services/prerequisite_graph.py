"""
Adaptive Learning Engine - Prerequisite Graph
Explicit adjacency structure over content items. Acyclic by construction.
"""
import heapq
from collections import defaultdict, deque
from typing import Callable, Iterable, Optional

from learning_engine.core.errors import ConfigurationError, ResourceExhaustedError
from learning_engine.repositories.content import ContentRepository
from learning_engine.schemas.content import ContentMetadata, PrerequisiteEdgeSchema


class PrerequisiteGraph:
    """
    Directed graph where an edge A -> B means "A requires B".

    Built once per request from the content repository; construction fails
    with ConfigurationError when the edges form a cycle or reference content
    the catalog does not know.
    """

    def __init__(
        self,
        content: dict[str, ContentMetadata],
        edges: Iterable[PrerequisiteEdgeSchema],
    ):
        self.content = content
        self._requires: dict[str, list[PrerequisiteEdgeSchema]] = defaultdict(list)
        self._dependents: dict[str, set[str]] = defaultdict(set)

        for edge in edges:
            for endpoint in (edge.content_id, edge.requires_content_id):
                if endpoint not in content:
                    raise ConfigurationError(
                        f"Prerequisite edge {edge.content_id} -> {edge.requires_content_id} "
                        f"references unknown content {endpoint}"
                    )
            self._requires[edge.content_id].append(edge)
            self._dependents[edge.requires_content_id].add(edge.content_id)

        self._check_acyclic()

    @classmethod
    async def load(cls, repository: ContentRepository) -> "PrerequisiteGraph":
        content = await repository.list_content(published_only=False)
        edges = await repository.list_edges()
        return cls({item.content_id: item for item in content}, edges)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _check_acyclic(self) -> None:
        WHITE, GREY, BLACK = 0, 1, 2
        color = {node: WHITE for node in self.content}

        for root in sorted(self.content):
            if color[root] != WHITE:
                continue
            stack = [(root, iter(self.requires_ids(root)))]
            path = [root]
            color[root] = GREY
            while stack:
                node, children = stack[-1]
                child = next(children, None)
                if child is None:
                    color[node] = BLACK
                    stack.pop()
                    path.pop()
                elif color[child] == GREY:
                    cycle = path[path.index(child):] + [child]
                    raise ConfigurationError(f"Prerequisite cycle detected: {' -> '.join(cycle)}")
                elif color[child] == WHITE:
                    color[child] = GREY
                    stack.append((child, iter(self.requires_ids(child))))
                    path.append(child)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, content_id: str) -> Optional[ContentMetadata]:
        return self.content.get(content_id)

    def prerequisites(self, content_id: str) -> list[PrerequisiteEdgeSchema]:
        return sorted(self._requires.get(content_id, []), key=lambda e: e.requires_content_id)

    def requires_ids(self, content_id: str) -> list[str]:
        return [edge.requires_content_id for edge in self.prerequisites(content_id)]

    def dependents(self, content_id: str) -> list[str]:
        return sorted(self._dependents.get(content_id, ()))

    def tagged_with(self, topic: str) -> list[str]:
        return sorted(cid for cid, item in self.content.items() if topic in item.topics)

    def downstream_count(self, content_ids: Iterable[str]) -> int:
        """Number of distinct items that transitively depend on any of content_ids."""
        sources = set(content_ids)
        seen: set[str] = set()
        queue = deque(sources)
        while queue:
            for dependent in self.dependents(queue.popleft()):
                if dependent not in seen:
                    seen.add(dependent)
                    queue.append(dependent)
        return len(seen - sources)

    def ancestors(
        self,
        targets: Iterable[str],
        max_nodes: int,
        stop: Optional[Callable[[str], bool]] = None,
    ) -> set[str]:
        """
        Targets plus everything they transitively require.

        Nodes for which `stop` returns True are included but not expanded.

        Raises:
            ResourceExhaustedError: more than max_nodes nodes were explored
        """
        found: set[str] = set()
        queue = deque(sorted(set(targets)))
        while queue:
            node = queue.popleft()
            if node in found:
                continue
            found.add(node)
            if len(found) > max_nodes:
                raise ResourceExhaustedError(
                    f"Prerequisite search explored more than {max_nodes} nodes"
                )
            if stop is not None and stop(node):
                continue
            queue.extend(r for r in self.requires_ids(node) if r not in found)
        return found

    def topological_order(
        self,
        nodes: Iterable[str],
        priority: Callable[[str], tuple],
    ) -> list[str]:
        """
        Kahn's algorithm restricted to `nodes`; among ready nodes the smallest
        priority key goes first.
        """
        subset = set(nodes)
        indegree = {node: 0 for node in subset}
        for node in subset:
            for required in self.requires_ids(node):
                if required in subset:
                    indegree[node] += 1

        ready = [(priority(node), node) for node, degree in indegree.items() if degree == 0]
        heapq.heapify(ready)
        order = []
        while ready:
            _, node = heapq.heappop(ready)
            order.append(node)
            for dependent in self.dependents(node):
                if dependent in subset:
                    indegree[dependent] -= 1
                    if indegree[dependent] == 0:
                        heapq.heappush(ready, (priority(dependent), dependent))
        return order

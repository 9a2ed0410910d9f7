"""Dependency graph between tool names.

``resolve()`` returns a deterministic topological order (lexicographic
among ready nodes) after checking the graph for cycles with a depth-first
walk. ``layers()`` groups the same order into sets that can run together.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple
import heapq

from .errors import CyclicDependencyError


def _ordered_unique(names: Iterable[str]) -> Tuple[str, ...]:
    seen: Set[str] = set()
    out = []
    for name in names:
        if name not in seen:
            seen.add(name)
            out.append(name)
    return tuple(out)


@dataclass(frozen=True)
class ToolDependency:
    """``tool`` must wait until every tool in ``depends_on`` is done."""
    tool: str
    depends_on: Tuple[str, ...] = ()

    def __post_init__(self):
        if isinstance(self.depends_on, str):
            raise TypeError(f"Dependencies of {self.tool!r} must be a collection of names, not a string")
        object.__setattr__(self, "depends_on", _ordered_unique(self.depends_on))


class DependencyGraph:
    """Mapping of tool name to :class:`ToolDependency` for a single run."""

    def __init__(self, dependencies: Optional[Iterable[ToolDependency]] = None):
        self._deps: Dict[str, ToolDependency] = {}
        for dep in dependencies or ():
            self.add(dep.tool, dep.depends_on)

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Iterable[str]]]) -> "DependencyGraph":
        graph = cls()
        for tool in sorted(mapping or {}):
            graph.add(tool, mapping[tool])
        return graph

    def add(self, tool: str, depends_on: Iterable[str] = ()) -> None:
        """Add a node, merging with any dependencies already recorded for it."""
        if not tool:
            raise ValueError("Dependency graph node name must not be empty")
        if isinstance(depends_on, str):
            raise TypeError(f"Dependencies of {tool!r} must be a collection of names, not a string")
        existing = self._deps.get(tool)
        merged = tuple(existing.depends_on) if existing else ()
        self._deps[tool] = ToolDependency(tool, merged + tuple(depends_on))

    def dependencies_of(self, tool: str) -> Tuple[str, ...]:
        dep = self._deps.get(tool)
        return dep.depends_on if dep else ()

    @property
    def nodes(self) -> List[str]:
        names: Set[str] = set(self._deps)
        for dep in self._deps.values():
            names.update(dep.depends_on)
        return sorted(names)

    def __contains__(self, tool: str) -> bool:
        return tool in self._deps

    def __len__(self) -> int:
        return len(self.nodes)

    def to_mapping(self) -> Dict[str, List[str]]:
        return {name: list(dep.depends_on) for name, dep in sorted(self._deps.items()) if dep.depends_on}

    def check_acyclic(self) -> None:
        """Raise ``CyclicDependencyError`` naming the tool that closes a cycle."""
        visited: Set[str] = set()
        visiting: Set[str] = set()
        path: List[str] = []

        def visit(node: str) -> None:
            if node in visiting:
                start = path.index(node)
                raise CyclicDependencyError(node, path[start:] + [node])
            if node in visited:
                return
            visiting.add(node)
            path.append(node)
            for dep in self.dependencies_of(node):
                visit(dep)
            path.pop()
            visiting.discard(node)
            visited.add(node)

        for node in self.nodes:
            visit(node)

    def resolve(self) -> List[str]:
        """Topological order: every tool appears after all of its dependencies."""
        self.check_acyclic()
        return [name for layer in self._layers() for name in layer]

    def layers(self) -> List[List[str]]:
        """Topological layers; each layer depends only on earlier ones."""
        self.check_acyclic()
        return self._layers()

    def _layers(self) -> List[List[str]]:
        nodes = self.nodes
        indegree = {name: len(self.dependencies_of(name)) for name in nodes}
        dependents: Dict[str, List[str]] = {name: [] for name in nodes}
        for name in nodes:
            for dep in self.dependencies_of(name):
                dependents[dep].append(name)

        ready = [name for name in nodes if indegree[name] == 0]
        heapq.heapify(ready)
        layers: List[List[str]] = []
        while ready:
            layer = [heapq.heappop(ready) for _ in range(len(ready))]
            layers.append(layer)
            for name in layer:
                for child in dependents[name]:
                    indegree[child] -= 1
                    if indegree[child] == 0:
                        heapq.heappush(ready, child)
        return layers


def graph_for_calls(names: Sequence[str], dependencies=None) -> DependencyGraph:
    """Graph covering every call name plus the given dependencies."""
    if isinstance(dependencies, DependencyGraph):
        graph = DependencyGraph()
        for node in dependencies.nodes:
            graph.add(node, dependencies.dependencies_of(node))
    else:
        graph = DependencyGraph.from_mapping(dependencies)
    for name in names:
        graph.add(name)
    return graph

"""Turn a set of pinned candidates into an installable dependency graph."""

from __future__ import annotations

import collections
import heapq
from typing import Any, Iterable, Iterator, Mapping, Sequence

from .exceptions import CycleDetected
from .structs import DirectedGraph, PackageCandidate, split_identifier
from .versions import Version

Node = collections.namedtuple("Node", ["name", "version", "candidate"])


class ResolutionGraph(object):
    """The immutable result of a successful resolution.

    Nodes are stored once each, sorted by name, and referred to by index:
    `edges` holds ``(dependent, dependency)`` index pairs, `roots` the nodes
    the root project asked for, and `install_order` every node with each
    dependency before its dependents.
    """

    def __init__(
        self,
        nodes: Iterable[Node],
        edges: Iterable[tuple[int, int]],
        roots: Iterable[int],
        install_order: Iterable[int],
    ) -> None:
        self._nodes = tuple(nodes)
        self._edges = tuple(sorted(edges))
        self._roots = tuple(roots)
        self._install_order = tuple(install_order)
        self._index = {node.name: i for i, node in enumerate(self._nodes)}
        self._children = collections.defaultdict(list)
        self._parents = collections.defaultdict(list)
        for f, t in self._edges:
            self._children[f].append(t)
            self._parents[t].append(f)

    def __repr__(self) -> str:
        pins = ", ".join(f"{n.name}=={n.version}" for n in self._nodes)
        return f"ResolutionGraph({pins})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResolutionGraph):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __getitem__(self, name: str) -> Node:
        return self._nodes[self._index[name]]

    @property
    def nodes(self) -> tuple[Node, ...]:
        return self._nodes

    @property
    def edges(self) -> tuple[tuple[int, int], ...]:
        return self._edges

    @property
    def roots(self) -> tuple[int, ...]:
        return self._roots

    @property
    def install_order(self) -> tuple[int, ...]:
        return self._install_order

    @property
    def mapping(self) -> dict[str, Version]:
        return {node.name: node.version for node in self._nodes}

    def iter_edges(self) -> Iterator[tuple[str, str]]:
        for f, t in self._edges:
            yield self._nodes[f].name, self._nodes[t].name

    def iter_children(self, name: str) -> Iterator[str]:
        return (self._nodes[t].name for t in self._children[self._index[name]])

    def iter_parents(self, name: str) -> Iterator[str]:
        return (self._nodes[f].name for f in self._parents[self._index[name]])

    def iter_install_order(self) -> Iterator[Node]:
        return (self._nodes[i] for i in self._install_order)

    def to_dict(self) -> dict[str, Any]:
        """A JSON-serializable, deterministic rendition of the graph."""
        return {
            "nodes": [
                {
                    "name": node.name,
                    "version": str(node.version),
                    "dependencies": list(self.iter_children(node.name)),
                }
                for node in self._nodes
            ],
            "roots": [self._nodes[i].name for i in self._roots],
            "install_order": [
                self._nodes[i].name for i in self._install_order
            ],
        }


def _strongly_connected(graph: DirectedGraph) -> list[list[str]]:
    """Tarjan's algorithm, without recursion.

    Each component is sorted by name.
    """
    index: dict[str, int] = {}
    low: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    components = []

    def _visit(node):
        index[node] = low[node] = len(index)
        stack.append(node)
        on_stack.add(node)
        return node, graph.iter_children(node)

    for root in graph:
        if root in index:
            continue
        work = [_visit(root)]
        while work:
            node, children = work[-1]
            for child in children:
                if child not in index:
                    work.append(_visit(child))
                    break
                if child in on_stack:
                    low[node] = min(low[node], index[child])
            else:
                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])
                if low[node] == index[node]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    components.append(sorted(component))
    return components


def _trace_cycle(graph: DirectedGraph, component: Sequence[str]) -> list[str]:
    members = set(component)
    path: list[str] = []
    position: dict[str, int] = {}
    node = component[0]
    while node not in position:
        position[node] = len(path)
        path.append(node)
        node = next(c for c in graph.iter_children(node) if c in members)
    return path[position[node]:]


def _install_order(graph: DirectedGraph, allow_cycles: bool) -> list[str]:
    components = _strongly_connected(graph)
    if not allow_cycles:
        for component in components:
            if len(component) > 1:
                raise CycleDetected(_trace_cycle(graph, component))

    group_of = {
        member: i
        for i, component in enumerate(components)
        for member in component
    }
    pending = {}
    dependents = collections.defaultdict(set)
    for i, component in enumerate(components):
        pending[i] = {
            group_of[child]
            for member in component
            for child in graph.iter_children(member)
        }
        pending[i].discard(i)
        for dep in pending[i]:
            dependents[dep].add(i)

    ready = [(components[i][0], i) for i, deps in pending.items() if not deps]
    heapq.heapify(ready)
    order = []
    while ready:
        _, i = heapq.heappop(ready)
        order.extend(components[i])
        for j in dependents[i]:
            pending[j].discard(i)
            if not pending[j]:
                heapq.heappush(ready, (components[j][0], j))
    return order


def materialize(
    assignment: Mapping[str, PackageCandidate],
    roots: Iterable[str] | None = None,
    environment: Mapping[str, str] | None = None,
    allow_cycles: bool = False,
) -> ResolutionGraph:
    """Build the dependency graph of pinned candidates.

    :param assignment: Pinned candidates keyed by identifier. Extras
        candidates share the node of their package.
    :param roots: Identifiers the root project requires. If given, packages
        not reachable from them are left out. Otherwise every package
        nothing depends on is a root.
    :param environment: Marker variables used to decide which requirements
        of each candidate apply.
    :param allow_cycles: Install each group of mutually dependent packages
        together instead of raising `CycleDetected`.
    """
    pins: dict[str, PackageCandidate] = {}
    for candidate in assignment.values():
        pinned = pins.get(candidate.name)
        if pinned is not None and pinned.version != candidate.version:
            raise ValueError(
                f"{candidate.name} is pinned to both "
                f"{pinned.version} and {candidate.version}"
            )
        if pinned is None or (pinned.extras and not candidate.extras):
            pins[candidate.name] = candidate

    graph = DirectedGraph()
    for name in sorted(pins):
        graph.add(name)
    for candidate in assignment.values():
        for requirement in candidate.iter_dependencies(environment):
            # A package depending on itself is already installed.
            if requirement.name == candidate.name:
                continue
            if requirement.name in pins:
                graph.connect(candidate.name, requirement.name)

    if roots is None:
        root_names = [
            name
            for name in graph
            if next(graph.iter_parents(name), None) is None
        ]
    else:
        root_names = sorted(
            {split_identifier(r)[0] for r in roots}.intersection(pins)
        )
        reachable = set(root_names)
        queue = collections.deque(root_names)
        while queue:
            for child in graph.iter_children(queue.popleft()):
                if child not in reachable:
                    reachable.add(child)
                    queue.append(child)
        for name in list(graph):
            if name not in reachable:
                graph.remove(name)

    names = list(graph)
    positions = {name: i for i, name in enumerate(names)}
    return ResolutionGraph(
        nodes=[
            Node(name, pins[name].version, pins[name]) for name in names
        ],
        edges=[(positions[f], positions[t]) for f, t in graph.iter_edges()],
        roots=[positions[name] for name in root_names],
        install_order=[
            positions[name] for name in _install_order(graph, allow_cycles)
        ],
    )

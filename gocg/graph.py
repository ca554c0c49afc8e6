"""Call graphs: functions, calls, ID allocation, traversal and node filters."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

ExclusionFunc = Callable[["Function", int], bool]


@dataclass
class Function:
    """A call-graph node. Times are in nanoseconds."""

    id: int
    name: str
    function_time: int = 0
    total_time: int = 0


@dataclass(frozen=True)
class Call:
    """A weighted call edge. ``call_time`` is in nanoseconds."""

    from_node: Function
    to_node: Function
    call_time: int = 0

    def reversed(self) -> Call:
        """The same call with caller and callee swapped."""
        return Call(self.to_node, self.from_node, self.call_time)

    def weight(self) -> float:
        return float(self.call_time)


class IDer:
    """Hands out stable integer IDs for function names, starting at 0."""

    def __init__(self) -> None:
        self._count = 0
        self._id_to_name: dict[int, str] = {}
        self._name_to_id: dict[str, int] = {}
        self._lock = threading.Lock()

    def id(self, name: str) -> int:
        """ID of ``name`` (surrounding whitespace ignored), allocating one if new."""
        name = name.strip()
        with self._lock:
            existing = self._name_to_id.get(name)
            if existing is not None:
                return existing
            new_id = self._count
            self._count += 1
            self._id_to_name[new_id] = name
            self._name_to_id[name] = new_id
            return new_id

    def name(self, node_id: int) -> str:
        """Name registered for ``node_id``; raises ``KeyError`` if unknown."""
        with self._lock:
            try:
                return self._id_to_name[node_id]
            except KeyError:
                raise KeyError(f"unknown id {node_id}") from None

    def copy(self) -> IDer:
        with self._lock:
            other = IDer()
            other._count = self._count
            other._id_to_name = dict(self._id_to_name)
            other._name_to_id = dict(self._name_to_id)
            return other


def new_function(ider: IDer, name: str) -> Function:
    """Create a function node whose ID comes from ``ider``."""
    return Function(id=ider.id(name), name=name)


class CallGraph:
    """A directed graph of functions connected by weighted calls."""

    def __init__(self) -> None:
        self._nodes: dict[int, Function] = {}
        self._out: dict[int, dict[int, Call]] = {}
        self._in: dict[int, dict[int, Call]] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def add_node(self, node: Function) -> None:
        """Add ``node``; raises ``ValueError`` if its ID is already present."""
        if node.id in self._nodes:
            raise ValueError(f"node ID collision: {node.id}")
        self._nodes[node.id] = node
        self._out[node.id] = {}
        self._in[node.id] = {}

    def node(self, node_id: int) -> Function | None:
        return self._nodes.get(node_id)

    def nodes(self) -> list[Function]:
        return list(self._nodes.values())

    def set_edge(self, edge: Call) -> None:
        """Add or replace ``edge``, adding (or replacing) its end nodes."""
        from_id = edge.from_node.id
        to_id = edge.to_node.id
        if from_id == to_id:
            raise ValueError(f"adding self edge: {from_id}")
        for n in (edge.from_node, edge.to_node):
            if n.id in self._nodes:
                self._nodes[n.id] = n
            else:
                self.add_node(n)
        self._out[from_id][to_id] = edge
        self._in[to_id][from_id] = edge

    def edges(self) -> list[Call]:
        return [e for targets in self._out.values() for e in targets.values()]

    def _edge(self, from_id: int, to_id: int) -> Call | None:
        return self._out.get(from_id, {}).get(to_id)

    def callees(self, node_id: int) -> list[Function]:
        """Functions called by ``node_id``."""
        return [self._nodes[t] for t in self._out.get(node_id, {})]

    def callers(self, node_id: int) -> list[Function]:
        """Functions that call ``node_id``."""
        return [self._nodes[f] for f in self._in.get(node_id, {})]

    def copy(self) -> CallGraph:
        """A new graph sharing the node and edge objects."""
        g = CallGraph()
        for n in self._nodes.values():
            g.add_node(n)
        for e in self.edges():
            g.set_edge(e)
        return g


def breadth_first(
    graph: CallGraph,
    start: Function,
    until: Callable[[Function, int], bool] | None = None,
    traverse: Callable[[Call], bool] | None = None,
) -> Function | None:
    """Walk ``graph`` breadth first from ``start``.

    ``until(node, depth)`` is called for each dequeued node; the walk stops
    and returns that node when it answers true. ``traverse(edge)`` is asked
    about every outgoing edge, visited target or not; a false answer skips it.
    """
    visited = {start.id}
    queue: deque[Function] = deque([start])
    depth = 0
    children = 0
    until_next = 1

    while queue:
        current = queue.popleft()
        if until is not None and until(current, depth):
            return current
        for n in graph.callees(current.id):
            if traverse is not None and not traverse(graph._edge(current.id, n.id)):
                continue
            if n.id in visited:
                continue
            visited.add(n.id)
            children += 1
            queue.append(n)
        until_next -= 1
        if until_next == 0:
            depth += 1
            until_next = children
            children = 0
    return None


def root_nodes(graph: CallGraph) -> list[Function]:
    """Nodes without callers."""
    return [n for n in graph.nodes() if not graph.callers(n.id)]


@dataclass
class NodeLevels:
    """Nodes grouped by breadth-first depth from a set of start nodes."""

    by_level: list[list[Function]] = field(default_factory=list)
    level_to_nodes: dict[int, list[Function]] = field(default_factory=dict)
    node_to_level: dict[int, int] = field(default_factory=dict)


def levels(graph: CallGraph, froms: Sequence[Function], exclude: ExclusionFunc) -> NodeLevels:
    """Levels of all nodes reachable from ``froms`` that ``exclude`` lets through.

    Excluded nodes are still traversed, only not recorded. ``node_to_level``
    keeps the lowest level seen for a node.
    """
    result = NodeLevels()
    if not froms:
        return result

    def record(node: Function, depth: int) -> bool:
        while len(result.by_level) <= depth:
            result.level_to_nodes[len(result.by_level)] = []
            result.by_level.append([])
        if not exclude(node, depth):
            result.by_level[depth].append(node)
            result.level_to_nodes[depth].append(node)
            previous = result.node_to_level.get(node.id)
            if previous is None or previous > depth:
                result.node_to_level[node.id] = depth
        return False

    for start in froms:
        breadth_first(graph, start, record)
    return result


def exclusion_and(f1: ExclusionFunc, f2: ExclusionFunc) -> ExclusionFunc:
    return lambda n, level: f1(n, level) and f2(n, level)


def exclusion_or(f1: ExclusionFunc, f2: ExclusionFunc) -> ExclusionFunc:
    return lambda n, level: f1(n, level) or f2(n, level)


def exclusion_not(f: ExclusionFunc) -> ExclusionFunc:
    return lambda n, level: not f(n, level)


def is_project(project: str) -> ExclusionFunc:
    """True for functions whose name starts with ``project``."""
    return lambda n, level: n.name.startswith(project)


def is_projects(projects: Iterable[str]) -> ExclusionFunc:
    """True for functions whose name starts with any of ``projects``."""
    prefixes = tuple(projects)
    return lambda n, level: n.name.startswith(prefixes)
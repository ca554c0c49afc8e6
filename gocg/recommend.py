"""Recommendation of new micro benchmarks for uncovered parts of a system call graph."""

from __future__ import annotations

import csv
from collections import deque
from dataclasses import dataclass, field
from itertools import chain
from typing import IO, Callable, Sequence

from gocg.construct import CGResult
from gocg.graph import (
    Call,
    CallGraph,
    ExclusionFunc,
    Function,
    breadth_first,
    exclusion_not,
    exclusion_or,
    is_projects,
    levels,
    root_nodes,
)
from gocg.overlap import SystemOverlap, is_overlapping
from gocg.profile import OutConfig

HEADER = [
    "project",
    "system",
    "config_node_count",
    "config_node_fraction",
    "requested_recs",
    "actual_recs",
    "func_name",
    "func_time",
    "func_total_time",
    "additional_nodes",
]

# Number of functions the root-node breadth-first strategy picks.
ROOT_NODE_BFS_PICKS = 3


@dataclass
class RecommendedFunction:
    """A function recommended for benchmarking and the project nodes it adds."""

    function: Function
    additional_nodes: int


StrategyFunc = Callable[
    [Sequence[str], CGResult, SystemOverlap, int], "list[RecommendedFunction]"
]


@dataclass
class RecResult:
    """A call-graph result extended by one micro call graph per recommendation."""

    old_cg: CGResult
    cg: CGResult
    recommended_functions: list[RecommendedFunction] = field(default_factory=list)
    nr_benchs: int = 0


def _config_values(config: OutConfig | None) -> tuple[int, float, float]:
    if config is None:
        return 0, 0.0, 0.0
    return config.node_count, config.node_fraction, config.edge_fraction


def _system_graph(cg_result: CGResult) -> CallGraph:
    return cg_result.system_cg if cg_result.system_cg is not None else CallGraph()


# applying recommendations


def apply(
    projects: Sequence[str],
    cg_result: CGResult,
    overlaps: SystemOverlap,
    strategy: StrategyFunc,
    nr_benchs: int,
) -> RecResult:
    """Recommend functions with ``strategy`` and add a micro call graph for each."""
    recs = strategy(projects, cg_result, overlaps, nr_benchs)
    new_cg = cg_result.copy()
    _add_rec_funcs(new_cg, recs)
    return RecResult(
        old_cg=cg_result,
        cg=new_cg,
        recommended_functions=list(recs),
        nr_benchs=nr_benchs,
    )


def apply_all(
    projects: Sequence[str],
    cg_results: Sequence[CGResult],
    overlaps: Sequence[SystemOverlap],
    strategy: StrategyFunc,
    nr_benchs: int,
) -> list[RecResult]:
    """Apply :func:`apply` to each result with the overlap at the same index."""
    if len(cg_results) != len(overlaps):
        raise ValueError(
            f"cgRes and overlaps lengths unequal: {len(cg_results)} != {len(overlaps)}"
        )
    results: list[RecResult] = []
    for i, (cgr, ovl) in enumerate(zip(cg_results, overlaps)):
        try:
            results.append(apply(projects, cgr, ovl, strategy, nr_benchs))
        except ValueError as err:
            raise ValueError(f"could not apply recommendation for index {i}: {err}") from err
    return results


def _reachable_subgraph(system_cg: CallGraph, start: Function) -> CallGraph:
    subgraph = CallGraph()
    subgraph.add_node(start)

    def keep(edge: Call) -> bool:
        subgraph.set_edge(edge)
        return True

    breadth_first(system_cg, start, traverse=keep)
    return subgraph


def _add_rec_funcs(cg_result: CGResult, recs: Sequence[RecommendedFunction]) -> None:
    system_cg = _system_graph(cg_result)
    node_count, node_fraction, edge_fraction = _config_values(cg_result.config)
    for rec in recs:
        f = rec.function
        key = (
            f"rec-bench_{f.id}_{f.name}__{node_count}"
            f"__{node_fraction:.5f}__{edge_fraction:.5f}.dot"
        )
        cg_result.micro_cgs[key] = _reachable_subgraph(system_cg, f)


# greedy additional strategy


@dataclass
class _Reachabilities:
    function: Function
    level: int = 0
    reachable_project: set[int] = field(default_factory=set)
    reachable_other: set[int] = field(default_factory=set)

    def rank(self) -> tuple[int, int, int, str]:
        # more project nodes, then lower level, then more other nodes, then name
        return (
            len(self.reachable_project),
            -self.level,
            len(self.reachable_other),
            self.function.name,
        )

    def without(self, chosen: _Reachabilities) -> _Reachabilities:
        """What remains to be covered once ``chosen`` is benchmarked."""
        return _Reachabilities(
            function=self.function,
            level=self.level,
            reachable_project=self.reachable_project
            - chosen.reachable_project
            - {chosen.function.id},
            reachable_other=self.reachable_other - chosen.reachable_other,
        )


def strategy_greedy_additional(
    projects: Sequence[str],
    callgraphs: CGResult,
    overlaps: SystemOverlap,
    count: int,
) -> list[RecommendedFunction]:
    """Pick up to ``count`` project functions that each reach the most uncovered project nodes.

    After each pick, the nodes it reaches no longer count for the others.
    """
    system_cg = _system_graph(callgraphs)
    is_proj = is_projects(projects)
    is_ovl = is_overlapping(overlaps)

    candidates = _reachabilities_all(system_cg, is_proj, is_ovl)
    exclude = exclusion_or(exclusion_not(is_proj), is_ovl)
    _add_level_from_root(system_cg, candidates, exclude)

    recs: list[RecommendedFunction] = []
    while len(recs) < count and candidates:
        candidates.sort(key=_Reachabilities.rank, reverse=True)
        best = candidates.pop(0)
        additional = len(best.reachable_project)
        # a function that covers nothing new is not recommended
        if additional == 0:
            continue
        recs.append(RecommendedFunction(function=best.function, additional_nodes=additional))
        candidates = [c.without(best) for c in candidates]
    return recs


def _add_level_from_root(
    graph: CallGraph, candidates: Sequence[_Reachabilities], excluded: ExclusionFunc
) -> None:
    node_to_level = levels(graph, root_nodes(graph), excluded).node_to_level
    for c in candidates:
        try:
            c.level = node_to_level[c.function.id]
        except KeyError:
            raise RuntimeError(f"could not retrieve level for node {c.function}") from None


def _reachabilities_all(
    graph: CallGraph, is_project_fn: ExclusionFunc, excluded: ExclusionFunc
) -> list[_Reachabilities]:
    return [
        _reachabilities_of(graph, is_project_fn, excluded, f)
        for f in graph.nodes()
        if not excluded(f, -1) and is_project_fn(f, -1)
    ]


def _reachabilities_of(
    graph: CallGraph, is_project_fn: ExclusionFunc, excluded: ExclusionFunc, start: Function
) -> _Reachabilities:
    result = _Reachabilities(function=start)

    def record(node: Function, depth: int) -> bool:
        if not excluded(node, depth):
            target = (
                result.reachable_project if is_project_fn(node, depth) else result.reachable_other
            )
            target.add(node.id)
        return False

    breadth_first(graph, start, record)
    return result


# root node breadth-first strategy


def strategy_root_node_bfs_non_overlapping(
    projects: Sequence[str],
    callgraphs: CGResult,
    overlaps: SystemOverlap,
    count: int,
) -> list[RecommendedFunction]:
    """Pick non-overlapping project functions level by level from the root nodes.

    A function is skipped when an already picked function calls it, directly
    or indirectly. At most ``ROOT_NODE_BFS_PICKS`` functions are picked,
    whatever ``count`` is; additional nodes are reported as -1.
    """
    system_cg = _system_graph(callgraphs)
    exclude = exclusion_or(
        exclusion_not(is_projects(projects)),
        is_overlapping(overlaps),
    )
    by_level = levels(system_cg, root_nodes(system_cg), exclude).by_level
    picked = _pick(system_cg, by_level, ROOT_NODE_BFS_PICKS)
    return [RecommendedFunction(function=f, additional_nodes=-1) for f in picked]


def _pick(graph: CallGraph, by_level: Sequence[Sequence[Function]], limit: int) -> list[Function]:
    picked: list[Function] = []
    for node in chain.from_iterable(by_level):
        if not _called_by_picked(graph, picked, node):
            picked.append(node)
        if len(picked) == limit:
            break
    return picked


def _called_by_picked(graph: CallGraph, picked: Sequence[Function], node: Function) -> bool:
    if not picked:
        return False

    picked_ids: set[int] = set()
    for p in picked:
        if p.id in picked_ids:
            raise RuntimeError(f"picked functions contain a function multiple times: {p}")
        picked_ids.add(p.id)

    seen = {node.id}
    queue: deque[Function] = deque([node])
    while queue:
        current = queue.popleft()
        for caller in graph.callers(current.id):
            if caller.id in picked_ids:
                return True
            if caller.id not in seen:
                seen.add(caller.id)
                queue.append(caller)
    return False


# CSV output


def write_all(
    projects: Sequence[str], results: Sequence[RecResult], nr_benchs: int, out: IO[str]
) -> None:
    """Write a header and the recommendations of all results to ``out`` as CSV."""
    writer = csv.writer(out, delimiter=";", lineterminator="\n")
    writer.writerow(HEADER)
    for result in results:
        write(projects, result, nr_benchs, writer)


def write(projects: Sequence[str], result: RecResult, nr_benchs: int, writer) -> None:
    """Write one CSV row per recommended function of ``result`` with ``writer``."""
    node_count, node_fraction, _ = _config_values(result.cg.config)
    actual = len(result.recommended_functions)
    for rec in result.recommended_functions:
        f = rec.function
        writer.writerow(
            [
                ",".join(projects),
                result.cg.system,
                str(node_count),
                f"{node_fraction:.5f}",
                str(nr_benchs),
                str(actual),
                f.name,
                str(f.function_time),
                str(f.total_time),
                str(rec.additional_nodes),
            ]
        )
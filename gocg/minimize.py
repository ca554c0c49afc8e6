"""Greedy minimization of micro benchmark suites."""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from typing import IO, Callable, Sequence

from gocg.construct import CGResult
from gocg.graph import CallGraph, ExclusionFunc
from gocg.overlap import NodesSelector, SystemOverlap

HEADER = [
    "project",
    "system",
    "config_node_count",
    "config_node_fraction",
    "project_only",
    "total",
    "rank",
    "name",
    "additional_nodes",
    "appBenchTime(ms)",
]


@dataclass
class Selected:
    """A selected micro benchmark and the number of nodes it adds.

    ``app_bench_time`` is in nanoseconds.
    """

    benchmark: str
    additional_nodes: int
    app_bench_time: int = 0


StrategyFunc = Callable[[CGResult, SystemOverlap, ExclusionFunc], "list[Selected]"]


@dataclass
class MinResult:
    """A minimized call-graph result with the benchmarks kept, in selection order."""

    cg: CGResult
    old_cg: CGResult
    selected: list[Selected] = field(default_factory=list)


@dataclass
class _GreedyMicro:
    micro_key: str
    micro_name: str
    nodes: set[int]
    app_bench_time: int = 0


def greedy_micro(
    cg_result: CGResult | None, overlaps: SystemOverlap, excl: ExclusionFunc
) -> list[Selected]:
    """Greedy selection covering the micro benchmarks' nodes."""
    return _greedy(cg_result, overlaps, NodesSelector.MICRO_NODES, excl)


def greedy_system(
    cg_result: CGResult | None, overlaps: SystemOverlap, excl: ExclusionFunc
) -> list[Selected]:
    """Greedy selection covering the nodes overlapping with the system benchmark."""
    return _greedy(cg_result, overlaps, NodesSelector.OVERLAPPING_NODES, excl)


def _greedy(
    cg_result: CGResult | None,
    overlaps: SystemOverlap,
    selector: NodesSelector,
    excl: ExclusionFunc,
) -> list[Selected]:
    remaining = _greedy_micros_from(cg_result, overlaps, selector, excl)

    def by_size(m: _GreedyMicro) -> int:
        return len(m.nodes)

    remaining.sort(key=by_size, reverse=True)
    selected: list[Selected] = []

    while remaining and remaining[0].nodes:
        chosen = remaining.pop(0)
        selected.append(
            Selected(
                benchmark=chosen.micro_key,
                additional_nodes=len(chosen.nodes),
                app_bench_time=chosen.app_bench_time,
            )
        )
        for m in remaining:
            m.nodes -= chosen.nodes
        remaining.sort(key=by_size, reverse=True)

    return selected


def _greedy_micros_from(
    cg_result: CGResult | None,
    overlaps: SystemOverlap,
    selector: NodesSelector,
    excl: ExclusionFunc,
) -> list[_GreedyMicro]:
    micros: list[_GreedyMicro] = []
    for key, ovl in overlaps.micros.items():
        graph = cg_result.micro_cgs[key]
        app_graph = cg_result.system_cg if cg_result.system_cg is not None else CallGraph()
        micros.append(_new_greedy_micro(graph, app_graph, key, ovl.micro_name, ovl.nodes(selector), excl))
    return micros


def _new_greedy_micro(
    graph: CallGraph,
    app_graph: CallGraph,
    key: str,
    name: str,
    nodes: dict[int, int],
    excl: ExclusionFunc,
) -> _GreedyMicro:
    gm = _GreedyMicro(micro_key=key, micro_name=name, nodes=set())
    app_nodes = app_graph.nodes()
    for node_id in nodes:
        node = graph.node(node_id)
        if node is None:
            raise ValueError(f"node {node_id} missing in call graph of '{key}'")
        if not excl(node, -1):
            gm.nodes.add(node_id)
        gm.app_bench_time += sum(a.function_time for a in app_nodes if a.name == node.name)
    return gm


def apply(
    projects: Sequence[str],
    cg_result: CGResult,
    overlaps: SystemOverlap,
    strategy: StrategyFunc,
    excl: ExclusionFunc,
) -> MinResult:
    """Minimize ``cg_result`` to the micro benchmarks that ``strategy`` selects."""
    selected = strategy(cg_result, overlaps, excl)
    copied = cg_result.copy()
    copied.micro_cgs = {}
    for sel in selected:
        bench_cg = cg_result.micro_cgs.get(sel.benchmark)
        if bench_cg is None:
            raise ValueError(f"could not get CG for bench '{sel.benchmark}'")
        copied.micro_cgs[sel.benchmark] = bench_cg
    return MinResult(cg=copied, old_cg=cg_result, selected=selected)


def apply_all(
    projects: Sequence[str],
    cg_results: Sequence[CGResult],
    overlaps: Sequence[SystemOverlap],
    strategy: StrategyFunc,
    excl: ExclusionFunc,
) -> list[MinResult]:
    """Apply :func:`apply` to each result with the overlap at the same index."""
    if len(cg_results) != len(overlaps):
        raise ValueError(
            f"cgRes and overlaps lengths unequal: {len(cg_results)} != {len(overlaps)}"
        )
    results: list[MinResult] = []
    for i, (cgr, ovl) in enumerate(zip(cg_results, overlaps)):
        try:
            results.append(apply(projects, cgr, ovl, strategy, excl))
        except ValueError as err:
            raise ValueError(f"could not apply minimization for index {i}: {err}") from err
    return results


def write_all(
    projects: Sequence[str],
    results: Sequence[MinResult],
    out: IO[str],
    project_only: bool,
    write_header: bool,
) -> None:
    """Write the selections of all results to ``out`` as ``;``-separated CSV."""
    writer = csv.writer(out, delimiter=";", lineterminator="\n")
    if write_header:
        writer.writerow(HEADER)
    for result in results:
        write(projects, result, writer, project_only)


def _milliseconds(ns: int) -> int:
    return ns // 1_000_000 if ns >= 0 else -((-ns) // 1_000_000)


def write(projects: Sequence[str], result: MinResult, writer, project_only: bool) -> None:
    """Write one CSV row per selected benchmark of ``result`` with ``writer``."""
    config = result.cg.config
    total = len(result.selected)
    for rank, sel in enumerate(result.selected, start=1):
        writer.writerow(
            [
                ",".join(projects),
                result.cg.system,
                str(config.node_count),
                f"{config.node_fraction:.5f}",
                "true" if project_only else "false",
                str(total),
                str(rank),
                sel.benchmark,
                str(sel.additional_nodes),
                str(_milliseconds(sel.app_bench_time)),
            ]
        )
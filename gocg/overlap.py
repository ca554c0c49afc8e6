"""Structural overlap between system and micro benchmark call graphs."""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import IO, Sequence

from gocg.construct import CGResult
from gocg.filenames import parse_file_name_config
from gocg.graph import CallGraph, ExclusionFunc, Function
from gocg.profile import OutConfig

BENCH_NAME_ALL = "ALL"

HEADER = [
    "project",
    "system",
    "micro",
    "config_node_count",
    "config_node_fraction",
    "project_only",
    "system_nodes",
    "micro_nodes",
    "overlap_type",
    "overlap_nodes",
    "overlap_perc",
]


class NodesSelector(Enum):
    """Which node set of a :class:`NodeResult` to use."""

    SYSTEM_NODES = auto()
    MICRO_NODES = auto()
    OVERLAPPING_NODES = auto()


class OverlapType(Enum):
    """Kind of structural overlap."""

    NODE = "node"
    EDGE = "edge"


def _merge_sets(s1: dict[int, int], s2: dict[int, int]) -> dict[int, int]:
    out = dict(s1)
    for node_id, count in s2.items():
        out[node_id] = out.get(node_id, 0) + count
    return out


@dataclass
class NodeResult:
    """Node sets of a system benchmark, a micro benchmark and their overlap.

    The sets map node IDs to occurrence counts.
    """

    system_name: str = ""
    micro_name: str = ""
    system_nodes: dict[int, int] = field(default_factory=dict)
    micro_nodes: dict[int, int] = field(default_factory=dict)
    overlapping_nodes: dict[int, int] = field(default_factory=dict)
    overlapping_perc: float = 0.0

    def calc_perc(self) -> None:
        """Set the share of system nodes that overlap."""
        if not self.system_nodes:
            self.overlapping_perc = 0.0
        else:
            self.overlapping_perc = len(self.overlapping_nodes) / len(self.system_nodes)

    def add_result(self, other: NodeResult) -> None:
        """Merge the node sets of ``other`` into this result, summing counts."""
        self.system_nodes = _merge_sets(self.system_nodes, other.system_nodes)
        self.micro_nodes = _merge_sets(self.micro_nodes, other.micro_nodes)
        self.overlapping_nodes = _merge_sets(self.overlapping_nodes, other.overlapping_nodes)

    def nodes(self, selector: NodesSelector) -> dict[int, int]:
        """The node set chosen by ``selector``."""
        if selector is NodesSelector.SYSTEM_NODES:
            return self.system_nodes
        if selector is NodesSelector.MICRO_NODES:
            return self.micro_nodes
        if selector is NodesSelector.OVERLAPPING_NODES:
            return self.overlapping_nodes
        raise ValueError(f"invalid NodesSelector {selector!r}")


@dataclass
class SystemOverlap:
    """Overlaps of one system benchmark with each micro benchmark and in total."""

    name: str = ""
    micros: dict[str, NodeResult] = field(default_factory=dict)
    total: NodeResult | None = None


def is_overlapping(overlaps: SystemOverlap) -> ExclusionFunc:
    """True for nodes in the total overlap of ``overlaps``."""
    return lambda n, level: n.id in overlaps.total.overlapping_nodes


def structurals_write(
    projects: Sequence[str],
    cg_results: Sequence[CGResult],
    project_only: bool,
    out: IO[str],
    write_header: bool,
) -> None:
    """Compute the overlaps of all results and write them to ``out`` as CSV."""
    overlaps = structurals(projects, cg_results, project_only)
    for i, (cgr, ovl) in enumerate(zip(cg_results, overlaps)):
        try:
            _structural_write(
                projects, ovl, project_only, out, write_header and i == 0, cgr.config
            )
        except ValueError as err:
            raise ValueError(
                f"could not get structural overlap of config {cgr.config}: {err}"
            ) from err


def _structural_write(
    projects: Sequence[str],
    overlap: SystemOverlap,
    project_only: bool,
    out: IO[str],
    write_header: bool,
    config: OutConfig,
) -> None:
    writer = _csv_writer(out, write_header)
    for micro in overlap.micros.values():
        _csv_write_micro(writer, projects, project_only, OverlapType.NODE, micro)
    total = overlap.total
    _csv_write(
        writer,
        projects,
        total.system_name,
        total.micro_name,
        config,
        project_only,
        OverlapType.NODE,
        total,
    )


def structurals(
    projects: Sequence[str], cg_results: Sequence[CGResult], project_only: bool
) -> list[SystemOverlap]:
    """Structural overlaps of all results, in the same order as ``cg_results``."""
    result: list[SystemOverlap] = []
    for cgr in cg_results:
        overlap = structural(projects, cgr, project_only)
        if cgr.system != overlap.name:
            raise RuntimeError(f"System names do not match: {cgr.system} != {overlap.name}")
        result.append(overlap)
    return result


def structural(projects: Sequence[str], cg_result: CGResult, project_only: bool) -> SystemOverlap:
    """Overlap of the system benchmark in ``cg_result`` with all its micro benchmarks."""
    system = cg_result.system
    system_cg = cg_result.system_cg if cg_result.system_cg is not None else CallGraph()
    total = NodeResult(system_name=system, micro_name=BENCH_NAME_ALL)
    micro_overlaps: dict[str, NodeResult] = {}

    for micro, micro_cg in cg_result.micro_cgs.items():
        node_result = _system_micro_bench_node(
            projects, system, micro, system_cg, micro_cg, project_only
        )
        total.add_result(node_result)
        micro_overlaps[micro] = node_result

    total.calc_perc()
    return SystemOverlap(name=system, micros=micro_overlaps, total=total)


def _system_micro_bench_node(
    projects: Sequence[str],
    system: str,
    micro: str,
    system_cg: CallGraph,
    micro_cg: CallGraph,
    project_only: bool,
) -> NodeResult:
    system_nodes = _valid_nodes(projects, project_only, system_cg)
    micro_nodes = _valid_nodes(projects, project_only, micro_cg)
    overlapping = {node_id: 1 for node_id in system_nodes if node_id in micro_nodes}
    result = NodeResult(
        system_name=system,
        micro_name=micro,
        system_nodes=system_nodes,
        micro_nodes=micro_nodes,
        overlapping_nodes=overlapping,
    )
    result.calc_perc()
    return result


def _valid_nodes(projects: Sequence[str], project_only: bool, graph: CallGraph) -> dict[int, int]:
    prefixes = tuple(projects)

    def valid(node: Function) -> bool:
        return not project_only or node.name.startswith(prefixes)

    return {node.id: 1 for node in graph.nodes() if valid(node)}


def _csv_write_micro(
    writer,
    projects: Sequence[str],
    project_only: bool,
    overlap_type: OverlapType,
    res: NodeResult,
) -> None:
    micro_bench, config = parse_file_name_config(res.micro_name)
    _csv_write(
        writer, projects, res.system_name, micro_bench, config, project_only, overlap_type, res
    )


def _csv_write(
    writer,
    projects: Sequence[str],
    system: str,
    micro: str,
    config: OutConfig,
    project_only: bool,
    overlap_type: OverlapType,
    res: NodeResult,
) -> None:
    writer.writerow(
        [
            ",".join(projects),
            system,
            micro,
            str(config.node_count),
            f"{config.node_fraction:.5f}",
            "true" if project_only else "false",
            str(len(res.system_nodes)),
            str(len(res.micro_nodes)),
            overlap_type.value,
            str(len(res.overlapping_nodes)),
            f"{res.overlapping_perc:.5f}",
        ]
    )


def _csv_writer(out: IO[str], write_header: bool):
    writer = csv.writer(out, delimiter=";", lineterminator="\n")
    if write_header:
        writer.writerow(HEADER)
    return writer
"""Building call graphs from pprof dot files."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from gocg.filenames import parse_file_name_config
from gocg.graph import Call, CallGraph, Function, IDer, new_function
from gocg.profile import OutConfig


class CallGraphError(Exception):
    """A call graph could not be built from its dot files."""


@dataclass
class CGResult:
    """The system call graph of one configuration with its micro call graphs.

    ``micro_cgs`` maps dot file names to their call graphs; all graphs share
    the node IDs handed out by ``ider``.
    """

    config: OutConfig | None = None
    system: str = ""
    system_cg: CallGraph | None = field(default_factory=CallGraph)
    micro_cgs: dict[str, CallGraph] = field(default_factory=dict)
    ider: IDer = field(default_factory=IDer)

    def copy(self) -> CGResult:
        """A copy with new graphs and a new IDer; nodes and edges are shared."""
        return CGResult(
            config=self.config,
            system=self.system,
            system_cg=self.system_cg.copy() if self.system_cg is not None else CallGraph(),
            micro_cgs={name: g.copy() for name, g in self.micro_cgs.items()},
            ider=self.ider.copy(),
        )


def _dir_entries(directory: Path, what: str) -> list[Path]:
    try:
        return sorted(directory.iterdir())
    except OSError as err:
        raise CallGraphError(f"could not open {what}: {err}") from err


def from_dots_system_micro(system_dir: str | os.PathLike, micro_dir: str | os.PathLike) -> list[CGResult]:
    """One result for every system ``.dot`` file, each with its matching micro graphs."""
    system_dir = Path(system_dir)
    results: list[CGResult] = []

    for entry in _dir_entries(system_dir, "system dir"):
        if entry.is_dir() or not entry.name.endswith(".dot"):
            continue
        try:
            _, config = parse_file_name_config(entry.name)
        except ValueError as err:
            raise CallGraphError(f"could not get system filename/config: {err}") from err
        try:
            result = from_dots_system_micro_config(system_dir, entry.name, micro_dir, config)
        except CallGraphError as err:
            raise CallGraphError(f"could not get call graphs for config {config}: {err}") from err
        results.append(result)

    return results


def from_dots_system_micro_config(
    system_dir: str | os.PathLike,
    system_file: str | os.PathLike,
    micro_dir: str | os.PathLike,
    config: OutConfig,
) -> CGResult:
    """Build the system graph from ``system_file`` and the micro graphs of ``config``."""
    ider = IDer()
    file_name = Path(system_file).name

    try:
        system, file_config = parse_file_name_config(file_name)
    except ValueError as err:
        raise CallGraphError(f"could not get system filename/config: {err}") from err
    if config != file_config:
        raise CallGraphError(f"configs do not match: {config} != {file_config}")

    try:
        system_cg = from_dot(Path(system_dir) / file_name, ider)
    except CallGraphError as err:
        raise CallGraphError(f"could not get system call graph: {err}") from err

    try:
        micro_cgs, _ = from_dots_config([micro_dir], ider, config)
    except CallGraphError as err:
        raise CallGraphError(f"could not get micro call graphs: {err}") from err

    return CGResult(
        config=config,
        system=system,
        system_cg=system_cg,
        micro_cgs=micro_cgs,
        ider=ider,
    )


def from_dots_config(
    dirs: Iterable[str | os.PathLike], ider: IDer | None, config: OutConfig
) -> tuple[dict[str, CallGraph], IDer]:
    """Call graphs of all ``.dot`` files in ``dirs`` whose name ends with the config's suffix."""
    if ider is None:
        ider = IDer()

    suffix = config.file_suffix()
    cgs: dict[str, CallGraph] = {}
    for directory in dirs:
        for entry in _dir_entries(Path(directory), "dots dir"):
            name = entry.name
            if entry.is_dir() or not name.endswith(".dot") or not name.endswith(suffix):
                continue
            try:
                cgs[name] = from_dot(entry, ider)
            except CallGraphError as err:
                raise CallGraphError(f"could not get cg for dot file '{name}': {err}") from err

    return cgs, ider


def from_dot(path: str | os.PathLike, ider: IDer) -> CallGraph:
    """Read the call graph in the pprof dot file at ``path``."""
    graph = CallGraph()
    try:
        text = Path(path).read_bytes().decode("utf-8", errors="replace")
    except OSError as err:
        raise CallGraphError(f"could not open dot file '{path}': {err}") from err

    dot_id_to_id: dict[str, int] = {}

    # A trailing line without a newline is not part of the graph.
    for line in text.split("\n")[:-1]:
        if not line.startswith("N"):
            continue

        # generic function names
        line = line.replace("[…]", "").replace("[...]", "")
        parts = line.split("[")
        if len(parts) < 2:
            raise CallGraphError(f"invalid line: {line}")

        node_edge = parts[0].strip()
        args = parts[1].strip()

        if "->" in node_edge:
            try:
                edge = _edge_from(graph, dot_id_to_id, node_edge, args)
            except CallGraphError as err:
                raise CallGraphError(f"could not get edge: {err}") from err
            graph.set_edge(edge)
        elif "tooltip" in args:
            try:
                node = _node_from(ider, args)
            except CallGraphError as err:
                raise CallGraphError(f"could not get node: {err}") from err
            dot_id_to_id[node_edge] = node.id
            graph.add_node(node)
        else:
            print(f"Error in file {path}")

    return graph


# nodes (functions)


def _node_from(ider: IDer, args: str) -> Function:
    name = _name_from_dot(args)
    node = new_function(ider, name)
    try:
        node.function_time, node.total_time = _node_weight_from_dot(args)
    except CallGraphError as err:
        raise CallGraphError(f"could not parse function '{name}' times: {err}") from err
    return node


def _node_weight_from_dot(args: str) -> tuple[int, int]:
    # label="runtime\nsystemstack\n0.06s (0.14%)\nof 12.99s (30.20%)"
    parts = _attribute_from_dot(args, "label").replace("\\n", " ").split(" ")
    if len(parts) < 3:
        raise CallGraphError(f"label has too few elements: {parts}")

    if parts[-3] == "of":
        total_str = parts[-2]
        try:
            total = _parse_duration(total_str)
        except ValueError as err:
            raise CallGraphError(f"could not parse total time '{total_str}': {err}") from err

        if len(parts) < 4:
            raise CallGraphError(f"label has too few elements: {parts}")
        function_str = parts[-4]
        if function_str.startswith("("):
            if len(parts) < 5:
                raise CallGraphError(f"label has too few elements: {parts}")
            function_str = parts[-5]
        try:
            function = _parse_duration(function_str)
        except ValueError as err:
            raise CallGraphError(f"could not parse function time '{function_str}': {err}") from err
        return function, total

    time_str = parts[-2]
    try:
        leaf = _parse_duration(time_str)
    except ValueError as err:
        raise CallGraphError(f"leaf node - could not parse time '{time_str}': {err}") from err
    return leaf, leaf


# edges (calls)


def _edge_from(graph: CallGraph, dot_id_to_id: dict[str, int], node_edge: str, args: str) -> Call:
    ends = node_edge.split("->")
    if len(ends) != 2:
        raise CallGraphError(
            f"could not get from to IDs from '{node_edge}': length expected 2 was {len(ends)}"
        )
    from_dot_id, to_dot_id = (e.strip() for e in ends)

    try:
        from_node = _node_from_dot_id(graph, dot_id_to_id, from_dot_id, "from")
    except CallGraphError as err:
        raise CallGraphError(f"could not get from Node: {err}") from err
    try:
        to_node = _node_from_dot_id(graph, dot_id_to_id, to_dot_id, "to")
    except CallGraphError as err:
        raise CallGraphError(f"could not get to Node: {err}") from err

    try:
        weight = _edge_weight_from_dot(args)
    except (CallGraphError, ValueError) as err:
        raise CallGraphError(f"could not parse edge time: {err}") from err

    return Call(from_node, to_node, weight)


def _node_from_dot_id(
    graph: CallGraph, dot_id_to_id: dict[str, int], dot_id: str, node_type: str
) -> Function:
    node_id = dot_id_to_id.get(dot_id)
    if node_id is None:
        raise CallGraphError(f"{node_type} dot ID '{dot_id}' unknown")
    node = graph.node(node_id)
    if node is None:
        raise CallGraphError(f"ID '{node_id}' does not exist in graph")
    return node


def _edge_weight_from_dot(args: str) -> int:
    # label=" 25.55s"
    value = _attribute_from_dot(args, "label").strip()
    return _parse_duration(value.replace("\\n", " ").split(" ")[0])


# attributes


def _name_from_dot(args: str) -> str:
    start = args.find("tooltip")
    chars: list[str] = []
    adding = False
    for c in args[start:]:
        if c == '"':
            adding = True
            continue
        if c == " ":
            break
        if adding:
            chars.append(c)
    return "".join(chars)


def _attribute_from_dot(args: str, attribute: str) -> str:
    start = args.find(f"{attribute}=")
    if start < 0:
        raise CallGraphError(f"attribute '{attribute}' missing in '{args}'")
    chars: list[str] = []
    adding = False
    for c in args[start:]:
        if c == '"':
            if adding:
                break
            adding = True
            continue
        if adding:
            chars.append(c)
    return "".join(chars)


# durations

_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_MAX_DURATION = (1 << 63) - 1
_DURATION_PART = re.compile(r"([0-9]*)(?:\.([0-9]*))?([^0-9.]*)")


def _parse_duration(s: str) -> int:
    """Parse a duration such as ``1.5s`` or ``300ms`` into nanoseconds."""
    orig = s
    negative = False
    if s and s[0] in "+-":
        negative = s[0] == "-"
        s = s[1:]
    if s == "0":
        return 0
    if not s:
        raise ValueError(f'invalid duration "{orig}"')

    total = 0
    while s:
        if s[0] != "." and not s[0].isascii() or not (s[0] == "." or s[0].isdigit()):
            raise ValueError(f'invalid duration "{orig}"')
        m = _DURATION_PART.match(s)
        int_part, frac_part, unit_name = m.groups()
        if not int_part and not frac_part:
            raise ValueError(f'invalid duration "{orig}"')
        if not unit_name:
            raise ValueError(f'missing unit in duration "{orig}"')
        unit = _UNITS.get(unit_name)
        if unit is None:
            raise ValueError(f'unknown unit "{unit_name}" in duration "{orig}"')

        value = int(int_part or "0") * unit
        if frac_part:
            fraction = int(frac_part)
            if fraction > 0:
                value += int(float(fraction) * (float(unit) / 10 ** len(frac_part)))
        total += value
        if total > _MAX_DURATION:
            raise ValueError(f'invalid duration "{orig}"')
        s = s[m.end():]

    return -total if negative else total
"""Command-line entry points: overlap, minimization, recommendation and profile conversion."""

from __future__ import annotations

import os
import re
import sys
import time
from pathlib import Path
from typing import IO, Sequence

from gocg import minimize, overlap, recommend
from gocg.construct import CallGraphError, CGResult, from_dots_system_micro
from gocg.filenames import directory_from_path
from gocg.graph import exclusion_not, is_projects
from gocg.profile import OutConfig, out_type_from, transform_all

_INT_RE = re.compile(r"[+-]?[0-9]+")

# Strategies used by the minimization command, with the names used in output files.
_MIN_STRATEGIES = (
    ("GreedyMicro", minimize.greedy_micro),
    ("GreedySystem", minimize.greedy_system),
)


class _Exit(Exception):
    """Stops a command with an exit code and a message for stderr."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class _NegativeCountError(ValueError):
    """A benchmark count below zero."""


def _parse_int(s: str) -> int:
    if not _INT_RE.fullmatch(s):
        raise ValueError(f"invalid syntax: {s!r}")
    return int(s)


def _parse_float(s: str) -> float:
    if not s or s != s.strip() or "_" in s:
        raise ValueError(f"invalid syntax: {s!r}")
    try:
        return float(s)
    except ValueError:
        raise ValueError(f"invalid syntax: {s!r}") from None


def parse_nr_benchs(arg: str) -> list[int]:
    """Parse a comma-separated list of non-negative benchmark counts; blanks are skipped."""
    counts: list[int] = []
    for part in arg.strip().split(","):
        part = part.strip()
        if not part:
            continue
        try:
            value = _parse_int(part)
        except ValueError as err:
            raise ValueError(f"could not parse nrBenchs into int: {err}") from None
        if value < 0:
            raise _NegativeCountError(
                f"invalid nrBenchs value: must be positive but was {value}"
            )
        counts.append(value)
    return counts


def parse_out_config(s: str) -> OutConfig:
    """Parse ``type:node_count:node_fraction:edge_fraction`` into an :class:`OutConfig`."""
    parts = s.split(":")
    if len(parts) != 4:
        raise ValueError(f"out config does not have 4 elements, has {len(parts)}")
    type_str, count_str, node_frac_str, edge_frac_str = parts

    try:
        out_type = out_type_from(type_str)
    except ValueError as err:
        raise ValueError(f"invalid out type: {err}") from None
    try:
        node_count = _parse_int(count_str)
    except ValueError as err:
        raise ValueError(f"invalid node count: {err}") from None
    try:
        node_fraction = _parse_float(node_frac_str)
    except ValueError as err:
        raise ValueError(f"invalid node fraction: {err}") from None
    try:
        edge_fraction = _parse_float(edge_frac_str)
    except ValueError as err:
        raise ValueError(f"invalid edge fraction: {err}") from None

    return OutConfig(
        out_type=out_type,
        node_count=node_count,
        node_fraction=node_fraction,
        edge_fraction=edge_fraction,
    )


# helpers


def _args(argv: Sequence[str] | None) -> list[str]:
    return list(sys.argv[1:] if argv is None else argv)


def _check_count(args: Sequence[str], expected: int) -> None:
    if len(args) != expected:
        raise _Exit(2, f"invalid argument number: expected {expected} was {len(args)}")


def _directory(path: str, path_type: str) -> Path:
    try:
        return directory_from_path(path, path_type)
    except NotADirectoryError as err:
        raise _Exit(4, str(err)) from None
    except OSError as err:
        raise _Exit(3, str(err)) from None


def _common_args(args: Sequence[str]) -> tuple[list[str], Path, Path, Path]:
    projects = args[0].split(",")
    system = _directory(args[1], "system")
    micro = _directory(args[2], "micro")
    out = _directory(args[3], "out")
    return projects, system, micro, out


def _load(system: Path, micro: Path) -> list[CGResult]:
    try:
        return from_dots_system_micro(system, micro)
    except CallGraphError as err:
        raise _Exit(1, f"could not transform dot files to CGs: {err}") from None


def _format_projects(projects: Sequence[str]) -> str:
    return "[" + " ".join(projects) + "]"


def _elapsed(start: float) -> str:
    return f"{time.monotonic() - start:.6f}s"


def _open_append(path: Path) -> IO[str]:
    fd = os.open(path, os.O_CREAT | os.O_APPEND | os.O_WRONLY, 0o600)
    return os.fdopen(fd, "a", newline="", encoding="utf-8")


def _run(body, argv: Sequence[str] | None) -> int:
    try:
        body(_args(argv))
    except _Exit as stop:
        print(stop.message, file=sys.stderr)
        return stop.code
    return 0


_ERRORS = (ValueError, RuntimeError, OSError, KeyError)


# overlap


def overlap_main(argv: Sequence[str] | None = None) -> int:
    """Write the structural node overlaps of all system/micro call graphs.

    Arguments: projects (comma separated), system dir, micro dir, out dir.
    """
    return _run(_overlap, argv)


def _overlap(args: list[str]) -> None:
    _check_count(args, 4)
    projects, system, micro, out = _common_args(args)
    print(f"# Transform dot files into callgraphs of project(s) {_format_projects(projects)}")
    start = time.monotonic()
    cg_results = _load(system, micro)

    path = out / "struct_node_overlap.csv"
    try:
        handle = open(path, "w", newline="", encoding="utf-8")
    except OSError as err:
        raise _Exit(1, f"could not create structural node overlap file '{path}': {err}") from None

    with handle:
        try:
            overlap.structurals_write(projects, cg_results, False, handle, True)
        except _ERRORS as err:
            raise _Exit(1, f"all: could not get structural overlap for all nodes: {err}") from None
        try:
            overlap.structurals_write(projects, cg_results, True, handle, False)
        except _ERRORS as err:
            raise _Exit(
                1, f"project-only: could not get structural overlap for project nodes: {err}"
            ) from None

    print(f"# Finished overlaps in {_elapsed(start)}")


# minimization


def minimization_main(argv: Sequence[str] | None = None) -> int:
    """Minimize the micro benchmark suites with each greedy strategy.

    Arguments: projects (comma separated), system dir, micro dir, out dir.
    """
    return _run(_minimization, argv)


def _minimization(args: list[str]) -> None:
    _check_count(args, 4)
    projects, system, micro, out = _common_args(args)
    print(f"# Minimize microbenchmarks for project '{_format_projects(projects)}'")
    start = time.monotonic()
    scenario = system.name
    cg_results = _load(system, micro)

    for name, strategy in _MIN_STRATEGIES:
        _minimize_with(projects, scenario, cg_results, out, name, strategy, True, True)
        _minimize_with(projects, scenario, cg_results, out, name, strategy, False, False)

    print(f"# Finished minimization in {_elapsed(start)}")


def _minimize_with(
    projects: list[str],
    scenario: str,
    cg_results: list[CGResult],
    out_dir: Path,
    name: str,
    strategy,
    project_only: bool,
    write_header: bool,
) -> None:
    try:
        overlaps = overlap.structurals(projects, cg_results, project_only)
    except _ERRORS as err:
        raise _Exit(1, f"could not get overlaps: {err}") from None

    excl = exclusion_not(is_projects(projects))
    try:
        results = minimize.apply_all(projects, cg_results, overlaps, strategy, excl)
    except _ERRORS as err:
        print(f"strat={name}: could not apply minimization: {err}", file=sys.stderr)
        return

    min_path = out_dir / f"{scenario}_minFile_{name}.csv"
    try:
        min_file = _open_append(min_path)
    except OSError as err:
        print(
            f"strat={name}: could not create minimization file '{min_path}': {err}",
            file=sys.stderr,
        )
        return
    with min_file:
        try:
            minimize.write_all(projects, results, min_file, project_only, write_header)
        except _ERRORS as err:
            print(f"strat={name}: could not write minimizations: {err}", file=sys.stderr)
            return

    overlap_path = out_dir / f"{scenario}_struct_node_overlap_mins-{name}.csv"
    try:
        overlap_file = _open_append(overlap_path)
    except OSError as err:
        print(
            f"strat={name}: could not create structural node overlap file "
            f"'{overlap_path}': {err}",
            file=sys.stderr,
        )
        return
    with overlap_file:
        try:
            overlap.structurals_write(
                projects, [r.cg for r in results], project_only, overlap_file, write_header
            )
        except _ERRORS as err:
            print(
                f"strat={name}: could not get structural overlap for all nodes: {err}",
                file=sys.stderr,
            )


# recommendation


def recommendation_main(argv: Sequence[str] | None = None) -> int:
    """Recommend new micro benchmarks for each requested count.

    Arguments: projects (comma separated), system dir, micro dir, out dir,
    benchmark counts (comma separated).
    """
    return _run(_recommendation, argv)


def _recommendation(args: list[str]) -> None:
    _check_count(args, 5)
    projects, system, micro, out = _common_args(args)
    try:
        counts = parse_nr_benchs(args[4])
    except _NegativeCountError as err:
        raise _Exit(4, str(err)) from None
    except ValueError as err:
        raise _Exit(3, str(err)) from None

    print(f"# Recommend microbenchmarks for project '{_format_projects(projects)}'")
    start = time.monotonic()
    scenario = system.name
    cg_results = _load(system, micro)

    try:
        overlaps = overlap.structurals(projects, cg_results, True)
    except _ERRORS as err:
        raise _Exit(1, f"could not get overlaps: {err}") from None

    for count in counts:
        _recommend_for(projects, scenario, cg_results, overlaps, out, count)

    print(f"# Finished recommendation in {_elapsed(start)}")


def _recommend_for(
    projects: list[str],
    scenario: str,
    cg_results: list[CGResult],
    overlaps: list[overlap.SystemOverlap],
    out_dir: Path,
    count: int,
) -> None:
    try:
        results = recommend.apply_all(
            projects, cg_results, overlaps, recommend.strategy_greedy_additional, count
        )
    except _ERRORS as err:
        print(f"nrBenchs={count}: could not apply recommendations: {err}", file=sys.stderr)
        return

    rec_path = out_dir / f"{scenario}_recFile_recs-{count}.csv"
    try:
        rec_file = open(rec_path, "w", newline="", encoding="utf-8")
    except OSError as err:
        print(
            f"nrBenchs={count}: could not create recommendation file '{rec_path}': {err}",
            file=sys.stderr,
        )
        return
    with rec_file:
        try:
            recommend.write_all(projects, results, count, rec_file)
        except _ERRORS as err:
            print(f"nrBenchs={count}: could not write recommendations: {err}", file=sys.stderr)
            return

    overlap_path = out_dir / f"{scenario}_struct_node_overlap_recs-{count}.csv"
    try:
        overlap_file = open(overlap_path, "w", newline="", encoding="utf-8")
    except OSError as err:
        print(
            f"nrBenchs={count}: could not create structural node overlap file "
            f"'{overlap_path}': {err}",
            file=sys.stderr,
        )
        return
    with overlap_file:
        try:
            overlap.structurals_write(projects, [r.cg for r in results], True, overlap_file, True)
        except _ERRORS as err:
            print(
                f"nrBenchs={count}: could not get structural overlap for all nodes: {err}",
                file=sys.stderr,
            )


# profile conversion


def transform_profiles_main(argv: Sequence[str] | None = None) -> int:
    """Convert all pprof profiles of a directory for each output configuration.

    Arguments: input dir, output dir, then one or more configurations of the
    form ``type:node_count:node_fraction:edge_fraction``.
    """
    return _run(_transform_profiles, argv)


def _transform_profiles(args: list[str]) -> None:
    if len(args) < 3:
        raise _Exit(2, f"invalid argument number: expected min 3 was {len(args)}")

    in_dir = _directory(args[0], "input")
    out_dir = _directory(args[1], "out")

    configs: list[OutConfig] = []
    for raw in args[2:]:
        try:
            configs.append(parse_out_config(raw))
        except ValueError as err:
            raise _Exit(3, f"could not parse out config '{raw}': {err}") from None

    try:
        transform_all(in_dir, out_dir, configs)
    except OSError as err:
        raise _Exit(1, f"Error executing profile transformation: {err}") from None
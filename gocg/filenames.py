"""Parsing of call-graph file names and checking of directory arguments."""

from __future__ import annotations

import os
import re
import stat
from pathlib import Path

from gocg.profile import OutConfig, out_type_from

_INT_RE = re.compile(r"[+-]?[0-9]+")


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


def parse_file_name_config(filename: str) -> tuple[str, OutConfig]:
    """Split ``name__<count>__<nodefrac>__<edgefrac>.<type>`` into name and config."""
    parts = filename.split("__")
    if len(parts) < 4:
        raise ValueError(
            f"could not parse micro string '{filename}': expected 4 elements, got {len(parts)}"
        )

    try:
        node_count = _parse_int(parts[-3])
    except ValueError as err:
        raise ValueError(f"could not parse node count in micro string: {err}") from None

    try:
        node_fraction = _parse_float(parts[-2].replace("_", "."))
    except ValueError as err:
        raise ValueError(f"could not parse node fraction in micro string: {err}") from None

    last = parts[-1]
    dot = last.rfind(".")
    if dot < 0:
        raise ValueError(f"could not parse edge fraction in micro string: no type in '{last}'")

    try:
        edge_fraction = _parse_float(last[:dot].replace("_", "."))
    except ValueError as err:
        raise ValueError(f"could not parse edge fraction in micro string: {err}") from None

    try:
        out_type = out_type_from(last[dot + 1:])
    except ValueError as err:
        raise ValueError(f"could not parse out type in micro string: {err}") from None

    return "__".join(parts[:-3]), OutConfig(
        out_type=out_type,
        node_count=node_count,
        node_fraction=node_fraction,
        edge_fraction=edge_fraction,
    )


def directory_from_path(path: str | os.PathLike, path_type: str) -> Path:
    """Return the absolute path of an existing directory.

    Raises ``OSError`` if the path cannot be accessed and
    ``NotADirectoryError`` if it is not a directory.
    """
    abs_path = Path(os.path.abspath(path))
    try:
        info = abs_path.stat()
    except OSError as err:
        raise type(err)(err.errno, f"{path_type} file error: {err.strerror}", str(abs_path)) from None
    if not stat.S_ISDIR(info.st_mode):
        raise NotADirectoryError(f"{path_type} file is not a directory")
    return abs_path
"""Profile output types, output configurations and pprof conversion."""

from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable

NODE_COUNT_DEFAULT = 80
NODE_FRACTION_DEFAULT = 0.005
EDGE_FRACTION_DEFAULT = 0.001


class OutType(Enum):
    """Output file types that pprof can produce."""

    DOT = "dot"
    SVG = "svg"
    TEXT = "text"
    GV = "gv"
    PS = "ps"
    GIF = "gif"


def out_type_from(name: str) -> OutType:
    """Return the output type called ``name``."""
    try:
        return OutType(name)
    except ValueError:
        raise ValueError(f"invalid OutType {name}") from None


def _underscore_dots(s: str) -> str:
    return s.replace(".", "_")


@dataclass(frozen=True)
class OutConfig:
    """How a profile is rendered: type, node count and node/edge fractions."""

    out_type: OutType
    node_count: int = NODE_COUNT_DEFAULT
    node_fraction: float = NODE_FRACTION_DEFAULT
    edge_fraction: float = EDGE_FRACTION_DEFAULT

    def file_suffix(self) -> str:
        """File-name suffix encoding this configuration, e.g. ``80__0_00500__0_00100.dot``."""
        numbers = _underscore_dots(
            f"{self.node_count}__{self.node_fraction:.5f}__{self.edge_fraction:.5f}"
        )
        return f"{numbers}.{self.out_type.value}"


def out_file_name(in_file_name: str, config: OutConfig) -> str:
    """Name of the converted file: ``<in_file_name>__<suffix>`` with dots replaced."""
    return f"{_underscore_dots(in_file_name)}__{config.file_suffix()}"


def transform(pprof_file: str | Path, out_file: str | Path, config: OutConfig) -> None:
    """Convert one pprof profile with ``go tool pprof`` and write the output to ``out_file``."""
    cmd = [
        "go",
        "tool",
        "pprof",
        f"-nodecount={config.node_count}",
        f"-nodefraction={config.node_fraction:f}",
        f"-edgefraction={config.edge_fraction:f}",
        f"-{config.out_type.value}",
        str(pprof_file),
    ]
    try:
        proc = subprocess.run(cmd, capture_output=True, check=True)
    except subprocess.CalledProcessError as err:
        stdout = (err.stdout or b"").decode(errors="replace")
        stderr = (err.stderr or b"").decode(errors="replace")
        print(f"execution error: {err}", file=sys.stderr)
        print(f"stdout:\n{stdout}", end="", file=sys.stderr)
        print(f"stderr:\n{stderr}", end="", file=sys.stderr)
        raise
    except OSError as err:
        print(f"execution error: {err}", file=sys.stderr)
        raise

    Path(out_file).write_bytes(proc.stdout)


def transform_all(
    profile_dir: str | Path, out_dir: str | Path, configs: Iterable[OutConfig]
) -> None:
    """Convert every ``.pprof`` file in ``profile_dir`` for every configuration.

    Failures are reported on stderr and counted; they do not stop the run.
    """
    profile_dir = Path(profile_dir)
    out_dir = Path(out_dir)
    entries = sorted(profile_dir.iterdir())

    for config in configs:
        type_name = config.out_type.value
        total = failed = 0
        for entry in entries:
            if entry.is_dir() or not entry.name.endswith(".pprof"):
                continue
            total += 1
            target = out_dir / out_file_name(entry.name, config)
            try:
                transform(entry, target, config)
            except (subprocess.CalledProcessError, OSError) as err:
                failed += 1
                print(
                    f"# error transform '{entry}' -> {type_name} file: {err}",
                    file=sys.stderr,
                )
        print(
            f"# {type_name} transformations: {total - failed}/{total} profiles",
            file=sys.stderr,
        )
# gocg

gocg compares the call graphs of system benchmarks with the call graphs of
microbenchmarks. It builds the graphs from CPU profiles. With them it can:

- measure how much of a system benchmark the microbenchmarks cover;
- shrink a microbenchmark suite while keeping the same coverage;
- recommend project functions that no benchmark covers yet.

gocg needs nothing outside the standard library. Only the profile conversion
step calls an outside program, `go tool pprof`.

## Installation

```
pip install .
```

To also install the test dependency (pytest), run:

```
pip install .[test]
```

## Workflow

There are four commands. Every CSV file they write uses `;` as the separator.

### 1. Turn profiles into call graphs

```
gocg-transform-profiles <input-dir> <output-dir> <type:node_count:node_fraction:edge_fraction> ...
```

The command renders each `*.pprof` file in the input directory with
`go tool pprof`, once for every configuration given. The Go toolchain must be
on `PATH`.

Each output file is named
`<profile>__<node_count>__<node_fraction>__<edge_fraction>.<type>`. The dots
in the profile name are replaced by underscores, and both fractions are written
with five decimals, also with underscores for dots. For example, `cpu.pprof`
with `dot:80:0.005:0.001` becomes `cpu_pprof__80__0_00500__0_00100.dot`.

The valid types are `dot`, `svg`, `text`, `gv`, `ps` and `gif`. The commands
below read only `dot` files.

If a single profile fails to convert, the error goes to stderr and the command
moves on to the next one. After each configuration it prints a count in the
form `# dot transformations: 3/4 profiles`.

### 2. Structural overlap

```
gocg-overlap <projects> <system-dir> <micro-dir> <out-dir>
```

`<projects>` is a comma-separated list of function-name prefixes that belong to
the project under study, for example `example.com/acme/db`.

The system and micro directories hold dot files named as in step 1. Each system
file is paired with the micro files that have the same configuration suffix.

The command writes `struct_node_overlap.csv` to the output directory. It has
one row for each microbenchmark of each system benchmark, plus a total row
whose micro name is `ALL`. The rows are written twice: once counting all nodes,
and once counting only nodes whose names start with one of the project
prefixes. The columns are:

`project;system;micro;config_node_count;config_node_fraction;project_only;system_nodes;micro_nodes;overlap_type;overlap_nodes;overlap_perc`

### 3. Minimize the microbenchmark suite

```
gocg-minimization <projects> <system-dir> <micro-dir> <out-dir>
```

The command runs two greedy strategies, and each one runs once for project
nodes only and once for all nodes:

- `GreedyMicro` covers the microbenchmarks' own nodes.
- `GreedySystem` covers the nodes the microbenchmarks share with the system
  benchmark.

Non-project nodes never count towards coverage. At each step the strategy picks
the benchmark that adds the most uncovered nodes. It stops when no remaining
benchmark adds anything.

Rows are appended to two files:

- `<scenario>_minFile_<strategy>.csv`, with the columns
  `project;system;config_node_count;config_node_fraction;project_only;total;rank;name;additional_nodes;appBenchTime(ms)`
- `<scenario>_struct_node_overlap_mins-<strategy>.csv`, which holds the overlap
  of the reduced suite.

`<scenario>` is the base name of the system directory. A header row is written
only with the project-only run. The files are appended to, so running the
command again adds more rows.

### 4. Recommend new microbenchmarks

```
gocg-recommendation <projects> <system-dir> <micro-dir> <out-dir> <counts>
```

`<counts>` is a comma-separated list of non-negative integers, such as
`1,3,5`. Blank entries are skipped.

For each count, the greedy-additional strategy picks up to that many project
functions from the system call graph that the existing microbenchmarks do not
cover. It prefers functions that reach the most uncovered project nodes. Ties
go first to functions closer to a root, then to functions that reach more other
nodes, and last by name.

For each count the command writes two files:

- `<scenario>_recFile_recs-<n>.csv`, with the columns
  `project;system;config_node_count;config_node_fraction;requested_recs;actual_recs;func_name;func_time;func_total_time;additional_nodes`.
  The times are in nanoseconds.
- `<scenario>_struct_node_overlap_recs-<n>.csv`, which holds the overlap once
  each recommended function is added as a new microbenchmark. That
  microbenchmark's call graph is the part of the system graph reachable from
  the function.

### Exit status

Every command prints its errors on stderr and exits with one of these codes:

| Code | Meaning |
| ---- | ------- |
| 0 | Success |
| 1 | Call graphs or overlaps could not be built, or an output file could not be created |
| 2 | Wrong number of arguments |
| 3 | A path cannot be accessed, or a count or configuration cannot be parsed |
| 4 | A path is not a directory, or a count is negative |

In the minimization and recommendation commands, a failure inside a single
strategy or count is reported on stderr. The command then carries on with the
next strategy or count.

## Library use

The same steps can be run from Python:

```python
from gocg.construct import from_dots_system_micro
from gocg.graph import exclusion_not, is_projects
from gocg.minimize import apply_all, greedy_micro
from gocg.overlap import structurals

projects = ["example.com/acme/db"]
results = from_dots_system_micro("system", "micro")
overlaps = structurals(projects, results, True)
minimized = apply_all(projects, results, overlaps, greedy_micro,
                      exclusion_not(is_projects(projects)))
```

The modules are:

- `gocg.profile`: `OutType`, `OutConfig`, `out_file_name`, `transform` and
  `transform_all`. These handle output naming and pprof conversion.
- `gocg.filenames`: `parse_file_name_config` and `directory_from_path`.
- `gocg.graph`: `Function`, `Call`, `IDer` and `CallGraph`, with
  `breadth_first`, `root_nodes` and `levels`. It also has the node filters
  `is_project`, `is_projects`, `exclusion_and`, `exclusion_or` and
  `exclusion_not`.
- `gocg.construct`: `from_dot`, `from_dots_config`,
  `from_dots_system_micro_config` and `from_dots_system_micro`, plus
  `CGResult`. Errors are raised as `CallGraphError`.
- `gocg.overlap`: `structural`, `structurals`, `structurals_write`,
  `is_overlapping`, `NodeResult` and `SystemOverlap`.
- `gocg.minimize`: `greedy_micro`, `greedy_system`, `apply`, `apply_all`,
  `write` and `write_all`.
- `gocg.recommend`: `strategy_greedy_additional`, `apply`, `apply_all`,
  `write` and `write_all`. It also has
  `strategy_root_node_bfs_non_overlapping`, which is not used by any command.
  That strategy picks at most three project functions, level by level from the
  root nodes, and skips any function that an earlier pick already calls.
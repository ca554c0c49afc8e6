from pathlib import Path

import pytest

from gocg.construct import (
    CallGraphError,
    CGResult,
    from_dot,
    from_dots_config,
    from_dots_system_micro,
    from_dots_system_micro_config,
)
from gocg.graph import IDer
from gocg.profile import OutConfig, OutType

SUFFIX = "80__0_00500__0_00100.dot"

SYSTEM_DOT = """digraph "unnamed" {
node [style=filled fillcolor="#f8f8f8"]
N1 [label="runtime\\nsystemstack\\n1s (10.00%)\\nof 3s (30.00%)" id="node1" fontsize=9 shape=box tooltip="runtime.systemstack (3s)" color="#b23100"]
N2 [label="runtime\\nmemmove\\n0.5s (5.00%)" id="node2" fontsize=10 shape=box tooltip="runtime.memmove (0.5s)" color="#b2b0aa"]
N3 [label="proj\\nwork\\n500ms (5.00%)" id="node3" fontsize=10 shape=box tooltip="proj.work (500ms)" color="#b2b0aa"]
N1 -> N2 [label=" 2s" weight=66 tooltip="runtime.systemstack -> runtime.memmove (2s)"]
N1 -> N3 [label=" 0.5s" weight=10 tooltip="runtime.systemstack -> proj.work (0.5s)"]
}
"""

MICRO_DOT = """digraph "unnamed" {
N1 [label="proj\\nwork\\n500ms (5.00%)" id="node1" fontsize=10 shape=box tooltip="proj.work (500ms)" color="#b2b0aa"]
N2 [label="proj\\nhelper\\n0.5s (5.00%)" id="node2" fontsize=10 shape=box tooltip="proj.helper (0.5s)" color="#b2b0aa"]
N1 -> N2 [label=" 0.5s" weight=10]
}
"""


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def _by_name(graph):
    return {n.name: n for n in graph.nodes()}


@pytest.fixture
def dirs(tmp_path):
    system = tmp_path / "system"
    micro = tmp_path / "micro"
    system.mkdir()
    micro.mkdir()
    _write(system / f"sys__{SUFFIX}", SYSTEM_DOT)
    _write(system / "readme.txt", "not a graph")
    _write(micro / f"bench__{SUFFIX}", MICRO_DOT)
    _write(micro / "bench__10__0_00500__0_00100.dot", MICRO_DOT)
    _write(micro / "notes.txt", "ignored")
    (micro / f"sub__{SUFFIX}").mkdir()
    return system, micro


def test_from_dot_nodes_and_times(tmp_path):
    ider = IDer()
    g = from_dot(_write(tmp_path / "g.dot", SYSTEM_DOT), ider)
    nodes = _by_name(g)
    assert set(nodes) == {"runtime.systemstack", "runtime.memmove", "proj.work"}
    stack = nodes["runtime.systemstack"]
    assert stack.function_time == 1_000_000_000
    assert stack.total_time == 3_000_000_000
    memmove = nodes["runtime.memmove"]
    work = nodes["proj.work"]
    assert memmove.function_time == memmove.total_time
    assert work.function_time == memmove.function_time
    for name, node in nodes.items():
        assert ider.name(node.id) == name


def test_from_dot_edges(tmp_path):
    ider = IDer()
    g = from_dot(_write(tmp_path / "g.dot", SYSTEM_DOT), ider)
    nodes = _by_name(g)
    stack = nodes["runtime.systemstack"]
    callees = {n.name for n in g.callees(stack.id)}
    assert callees == {"runtime.memmove", "proj.work"}
    assert g.callers(stack.id) == []
    edges = {e.to_node.name: e for e in g.edges()}
    assert edges["runtime.memmove"].call_time == 2_000_000_000
    assert edges["proj.work"].call_time == nodes["proj.work"].total_time


def test_from_dot_generic_names(tmp_path):
    text = (
        'N1 [label="pkg\\nGet\\n1s (1%)" shape=box tooltip="pkg.Map[...].Get (1s)"]\n'
        'N2 [label="pkg\\nPut\\n1s (1%)" shape=box tooltip="pkg.Map[…].Put (1s)"]\n'
    )
    g = from_dot(_write(tmp_path / "g.dot", text), IDer())
    assert set(_by_name(g)) == {"pkg.Map.Get", "pkg.Map.Put"}


def test_from_dot_shared_ider_gives_same_ids(tmp_path):
    ider = IDer()
    system = from_dot(_write(tmp_path / "s.dot", SYSTEM_DOT), ider)
    micro = from_dot(_write(tmp_path / "m.dot", MICRO_DOT), ider)
    assert _by_name(system)["proj.work"].id == _by_name(micro)["proj.work"].id


def test_from_dot_ignores_non_node_lines_and_unterminated_last_line(tmp_path):
    text = SYSTEM_DOT + 'N9 [label="x\\ny\\n1s (1%)" tooltip="late.node (1s)"]'
    g = from_dot(_write(tmp_path / "g.dot", text), IDer())
    assert len(g) == 3
    assert "late.node" not in _by_name(g)


def test_from_dot_unknown_edge_target(tmp_path):
    text = (
        'N1 [label="a\\nb\\n1s (1%)" tooltip="a.b (1s)"]\n'
        'N1 -> N7 [label=" 1s"]\n'
    )
    with pytest.raises(CallGraphError, match="unknown"):
        from_dot(_write(tmp_path / "g.dot", text), IDer())


def test_from_dot_line_without_bracket(tmp_path):
    with pytest.raises(CallGraphError, match="invalid line"):
        from_dot(_write(tmp_path / "g.dot", "N1 no attributes\n"), IDer())


def test_from_dot_bad_duration(tmp_path):
    text = 'N1 [label="a\\nb\\nsoon (1%)" tooltip="a.b (1s)"]\n'
    with pytest.raises(CallGraphError, match="could not get node"):
        from_dot(_write(tmp_path / "g.dot", text), IDer())


def test_from_dot_missing_file(tmp_path):
    with pytest.raises(CallGraphError):
        from_dot(tmp_path / "missing.dot", IDer())


def test_from_dots_config_filters_by_suffix(dirs):
    _, micro = dirs
    config = OutConfig(OutType.DOT, 80, 0.005, 0.001)
    cgs, ider = from_dots_config([micro], None, config)
    assert set(cgs) == {f"bench__{SUFFIX}"}
    names = {n.name for n in cgs[f"bench__{SUFFIX}"].nodes()}
    assert names == {"proj.work", "proj.helper"}
    assert {ider.name(n.id) for n in cgs[f"bench__{SUFFIX}"].nodes()} == names


def test_from_dots_config_missing_dir(tmp_path):
    with pytest.raises(CallGraphError):
        from_dots_config([tmp_path / "nope"], IDer(), OutConfig(OutType.DOT))


def test_from_dots_system_micro(dirs):
    system, micro = dirs
    results = from_dots_system_micro(system, micro)
    assert len(results) == 1
    res = results[0]
    assert res.system == "sys"
    assert res.config == OutConfig(OutType.DOT, 80, 0.005, 0.001)
    assert set(res.micro_cgs) == {f"bench__{SUFFIX}"}
    sys_work = _by_name(res.system_cg)["proj.work"]
    micro_work = _by_name(res.micro_cgs[f"bench__{SUFFIX}"])["proj.work"]
    assert sys_work.id == micro_work.id
    assert res.ider.name(sys_work.id) == "proj.work"


def test_from_dots_system_micro_bad_system_name(tmp_path):
    system = tmp_path / "system"
    micro = tmp_path / "micro"
    system.mkdir()
    micro.mkdir()
    _write(system / "bad.dot", SYSTEM_DOT)
    with pytest.raises(CallGraphError, match="filename/config"):
        from_dots_system_micro(system, micro)


def test_from_dots_system_micro_config_mismatch(dirs):
    system, micro = dirs
    other = OutConfig(OutType.DOT, 10, 0.005, 0.001)
    with pytest.raises(CallGraphError, match="configs do not match"):
        from_dots_system_micro_config(system, f"sys__{SUFFIX}", micro, other)


def test_cgresult_copy_is_independent(dirs):
    system, micro = dirs
    res = from_dots_system_micro(system, micro)[0]
    copied = res.copy()
    assert copied.system == res.system
    assert copied.config == res.config
    assert copied.system_cg is not res.system_cg
    assert {n.id for n in copied.system_cg.nodes()} == {n.id for n in res.system_cg.nodes()}
    assert len(copied.system_cg.edges()) == len(res.system_cg.edges())

    copied.micro_cgs.clear()
    assert set(res.micro_cgs) == {f"bench__{SUFFIX}"}

    before = res.ider.id("proj.work")
    new_id = copied.ider.id("only.in.copy")
    assert res.ider.id("proj.work") == before
    with pytest.raises(KeyError):
        res.ider.name(new_id)


def test_cgresult_defaults_copy():
    res = CGResult(system="TestSystem")
    copied = res.copy()
    assert copied.system == "TestSystem"
    assert len(copied.system_cg) == 0
    assert copied.micro_cgs == {}
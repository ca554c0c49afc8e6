import pytest

from gocg.graph import (
    Call,
    CallGraph,
    Function,
    IDer,
    NodeLevels,
    breadth_first,
    exclusion_and,
    exclusion_not,
    exclusion_or,
    is_project,
    is_projects,
    levels,
    new_function,
    root_nodes,
)


def build(names, edges):
    ider = IDer()
    g = CallGraph()
    fs = {n: new_function(ider, n) for n in names}
    for f in fs.values():
        g.add_node(f)
    for a, b in edges:
        g.set_edge(Call(fs[a], fs[b], 1000))
    return g, fs


def test_ider_sequential_and_stripped():
    ider = IDer()
    assert ider.id("a") == 0
    assert ider.id("b") == 1
    assert ider.id("  a ") == 0
    assert ider.name(1) == "b"


def test_ider_unknown():
    with pytest.raises(KeyError):
        IDer().name(7)


def test_call_reversed_and_weight():
    a = Function(0, "a")
    b = Function(1, "b")
    c = Call(a, b, 1000)
    r = c.reversed()
    assert (r.from_node, r.to_node, r.call_time) == (b, a, 1000)
    assert c.weight() == 1000.0


def test_add_node_collision():
    g = CallGraph()
    g.add_node(Function(0, "a"))
    with pytest.raises(ValueError):
        g.add_node(Function(0, "b"))


def test_self_edge_rejected():
    a = Function(0, "a")
    with pytest.raises(ValueError):
        CallGraph().set_edge(Call(a, a))


def test_set_edge_adds_nodes_and_neighbours():
    g = CallGraph()
    a, b = Function(0, "a"), Function(1, "b")
    g.set_edge(Call(a, b, 5))
    assert g.node(0) is a and g.node(1) is b
    assert g.callees(0) == [b]
    assert g.callers(1) == [a]
    assert g.callers(0) == []
    assert len(g.edges()) == 1
    assert g.node(9) is None


def test_copy_independent():
    g, fs = build(["a", "b", "c"], [("a", "b")])
    h = g.copy()
    h.set_edge(Call(fs["b"], fs["c"]))
    assert len(g.edges()) == 1
    assert len(h.edges()) == 2
    assert {n.name for n in h.nodes()} == {"a", "b", "c"}


def test_breadth_first_depths():
    g, fs = build(["a", "b", "c"], [("a", "b"), ("b", "c")])
    seen = []
    result = breadth_first(g, fs["a"], lambda n, d: seen.append((n.name, d)) or False)
    assert result is None
    assert seen == [("a", 0), ("b", 1), ("c", 2)]


def test_breadth_first_until_stops():
    g, fs = build(["a", "b", "c"], [("a", "b"), ("b", "c")])
    assert breadth_first(g, fs["a"], lambda n, d: n.name == "b") is fs["b"]


def test_breadth_first_traverse_sees_all_edges():
    g, fs = build(["a", "b", "c", "d"], [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")])
    seen_edges = []
    visited = []

    def traverse(e):
        seen_edges.append((e.from_node.name, e.to_node.name))
        return True

    result = breadth_first(g, fs["a"], lambda n, d: visited.append((n.name, d)) or False, traverse)
    assert result is None
    assert sorted(visited) == [("a", 0), ("b", 1), ("c", 1), ("d", 2)]
    assert sorted(seen_edges) == sorted([("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")])


def test_breadth_first_traverse_blocks():
    g, fs = build(["a", "b"], [("a", "b")])
    seen = []
    breadth_first(g, fs["a"], lambda n, d: seen.append(n.name) or False, lambda e: False)
    assert seen == ["a"]


def test_root_nodes():
    g, fs = build(["a", "b", "c", "d"], [("a", "b"), ("c", "b")])
    assert {n.name for n in root_nodes(g)} == {"a", "c", "d"}


def test_levels_empty():
    g, _ = build(["a"], [])
    result = levels(g, [], lambda n, l: False)
    assert result == NodeLevels()


def test_levels_minimum_and_exclusion():
    g, fs = build(
        ["r1", "r2", "x", "y"],
        [("r1", "x"), ("x", "y"), ("r2", "y")],
    )
    result = levels(g, [fs["r1"], fs["r2"]], lambda n, l: n.name == "x")
    assert fs["x"].id not in result.node_to_level
    assert result.node_to_level[fs["y"].id] == 1
    assert result.node_to_level[fs["r1"].id] == 0
    assert len(result.by_level) == len(result.level_to_nodes)
    for depth, nodes in enumerate(result.by_level):
        assert result.level_to_nodes[depth] == nodes


def test_exclusion_combinators():
    n = Function(0, "proj/a")
    yes = lambda node, level: True
    no = lambda node, level: False
    assert exclusion_and(yes, yes)(n, 0) is True
    assert exclusion_and(yes, no)(n, 0) is False
    assert exclusion_or(no, yes)(n, 0) is True
    assert exclusion_or(no, no)(n, 0) is False
    assert exclusion_not(no)(n, 0) is True


def test_is_project_and_projects():
    a = Function(0, "proj/a")
    b = Function(1, "other/b")
    assert is_project("proj/")(a, -1) is True
    assert is_project("proj/")(b, -1) is False
    check = is_projects(["x/", "other/"])
    assert check(b, -1) is True
    assert check(a, -1) is False
    assert is_projects([])(a, -1) is False
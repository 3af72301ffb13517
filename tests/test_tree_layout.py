import pytest

from corporate_structure import parse_ownership_tree, count_nodes
from tree_layout import build_tree_layout, compute_subtree_width, child_slot_widths


def _leaf(name, **extra):
    return {"name": name, **extra}


def _assert_links_step_one_level(layout):
    for link in layout.links:
        source = layout.node(link.source)
        target = layout.node(link.target)
        assert target.depth == source.depth + 1


def test_n_nodes_and_n_minus_one_links():
    tree = parse_ownership_tree({
        "company_name": "Root Ltd",
        "shareholders": [
            {"name": "A Ltd", "percentage": 50, "shareholders": [_leaf("A1", percentage=10), _leaf("A2", percentage=90)]},
            {"name": "B Ltd", "percentage": 50},
        ],
    })
    layout = build_tree_layout(tree)

    assert len(layout.nodes) == count_nodes(tree) == 5
    assert len(layout.links) == 4
    _assert_links_step_one_level(layout)
    # every non-root node has exactly one incoming link
    targets = [link.target for link in layout.links]
    assert len(targets) == len(set(targets))


def test_root_position_and_level_spacing(simple_chain):
    layout = build_tree_layout(parse_ownership_tree(simple_chain))
    root, y_ltd, bob = layout.nodes

    assert layout.width == 250
    assert (root.x, root.y) == (125, 50)
    assert (y_ltd.x, y_ltd.y) == (125, 200)
    assert bob.y == 350
    assert [n.depth for n in layout.nodes] == [0, 1, 2]


def test_more_than_six_children_get_compact_slots():
    tree = parse_ownership_tree({
        "company_name": "Wide Ltd",
        "shareholders": [
            {"name": f"Holder {i}", "shareholders": [_leaf("deep a"), _leaf("deep b")]}
            for i in range(7)
        ],
    })

    assert child_slot_widths(tree) == [200] * 7
    assert compute_subtree_width(tree) == 1400

    layout = build_tree_layout(tree)
    children = [n for n in layout.nodes if n.depth == 1]
    assert [c.x for c in children] == [100 + 200 * i for i in range(7)]


def test_six_or_fewer_children_use_subtree_widths():
    tree = parse_ownership_tree({
        "company_name": "Root Ltd",
        "shareholders": [
            {"name": "A Ltd", "shareholders": [_leaf("A1"), _leaf("A2")]},
            _leaf("B"),
        ],
    })

    assert child_slot_widths(tree) == [500, 250]
    assert compute_subtree_width(tree) == sum(child_slot_widths(tree)) == 750

    layout = build_tree_layout(tree)
    a, b = [n for n in layout.nodes if n.depth == 1]
    assert a.x == 250
    assert b.x == 625


def test_leaf_width_floor():
    tree = parse_ownership_tree({"company_name": "Solo Ltd"})
    assert compute_subtree_width(tree) == 250
    layout = build_tree_layout(tree)
    assert len(layout.nodes) == 1
    assert layout.links == []


def test_effective_percentage_accumulates(simple_chain):
    layout = build_tree_layout(parse_ownership_tree(simple_chain))
    root, y_ltd, bob = layout.nodes

    assert root.percentage == 100
    assert root.effective_percentage == 100
    assert y_ltd.percentage == 60
    assert y_ltd.effective_percentage == pytest.approx(60)
    assert bob.percentage == 50
    assert bob.effective_percentage == pytest.approx(30)


def test_unknown_percentage_is_kept_unknown_but_weighs_zero():
    tree = parse_ownership_tree({
        "company_name": "Root Ltd",
        "shareholders": [{"name": "Someone", "is_company": False}],
    })
    layout = build_tree_layout(tree)
    someone = layout.nodes[1]

    assert someone.percentage is None
    assert someone.effective_percentage == 0


def test_repeated_company_is_emitted_once_in_first_position():
    shared = {"name": "Shared Holdings Ltd", "company_number": "SC000001", "percentage": 100}
    tree = parse_ownership_tree({
        "company_name": "Root Ltd",
        "company_number": "00000001",
        "shareholders": [
            {"name": "Parent One Ltd", "company_number": "P1", "percentage": 50, "shareholders": [shared]},
            {"name": "Parent Two Ltd", "company_number": "P2", "percentage": 50, "shareholders": [dict(shared)]},
        ],
    })
    layout = build_tree_layout(tree)

    shared_nodes = [n for n in layout.nodes if n.company_number == "SC000001"]
    assert len(shared_nodes) == 1
    parent_one = next(n for n in layout.nodes if n.company_number == "P1")
    assert shared_nodes[0].x == parent_one.x
    assert len(layout.nodes) == 4
    assert len(layout.links) == 3


def test_cycle_back_to_root_is_cut():
    tree = parse_ownership_tree({
        "company_name": "Loop Ltd",
        "company_number": "L1",
        "shareholders": [
            {"name": "Middle Ltd", "company_number": "M1", "percentage": 100, "shareholders": [
                {"name": "Loop Ltd", "company_number": "L1", "percentage": 100, "shareholders": [
                    {"name": "Middle Ltd", "company_number": "M1", "percentage": 100},
                ]},
            ]},
        ],
    })
    layout = build_tree_layout(tree)

    assert [n.company_number for n in layout.nodes] == ["L1", "M1"]
    assert len(layout.links) == 1


def test_inverted_layout_promotes_ubo(simple_chain):
    layout = build_tree_layout(parse_ownership_tree(simple_chain), inverted=True)

    assert layout.inverted
    assert [n.name for n in layout.nodes] == ["Bob", "Y Ltd", "X Ltd"]
    bob = layout.nodes[0]
    assert bob.depth == 0
    assert bob.y == 50
    assert bob.percentage == pytest.approx(30)
    assert bob.effective_percentage == pytest.approx(30)
    assert "Ultimate Beneficial Owners" not in [n.name for n in layout.nodes]
    assert len(layout.links) == 2
    _assert_links_step_one_level(layout)


def test_inverted_chains_have_no_parent_link():
    tree = parse_ownership_tree({
        "company_name": "Root Ltd",
        "shareholders": [
            _leaf("Alice", percentage=40, is_company=False),
            _leaf("Bob", percentage=60, is_company=False),
        ],
    })
    layout = build_tree_layout(tree, inverted=True)

    ubos = [n for n in layout.nodes if n.depth == 0]
    assert [n.name for n in ubos] == ["Alice", "Bob"]
    targets = {link.target for link in layout.links}
    assert not any(u.id in targets for u in ubos)


def test_missing_tree_gives_empty_layout():
    layout = build_tree_layout(None)
    assert layout.is_empty
    assert layout.links == []

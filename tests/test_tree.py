import copy

from evotree.services.tree import (
    build_node_label,
    clone_tree,
    count_species,
    create_empty_tree,
    merge_into_tree,
    normalize_legacy_tree,
    tree_depth,
)


def make_path(*names, common=None):
    path = [{"name": n, "rank": "X", "key": i} for i, n in enumerate(names)]
    if common:
        path[-1]["commonName"] = common
    return path


def test_merge_is_idempotent():
    path = make_path("Eukaryota", "Animalia", "Chordata", common="Chordates")
    once = merge_into_tree(create_empty_tree(), path)
    twice = merge_into_tree(copy.deepcopy(once), path)
    assert once == twice


def test_shared_prefix_branches_once():
    tree = create_empty_tree()
    merge_into_tree(tree, make_path("Eukaryota", "Animalia", "Felidae", "Panthera leo"))
    merge_into_tree(tree, make_path("Eukaryota", "Animalia", "Felidae", "Felis catus"))

    felidae = tree["children"][0]["children"][0]["children"][0]
    assert [c["name"] for c in felidae["children"]] == ["Panthera leo", "Felis catus"]
    assert count_species(tree) == 2


def test_merge_backfills_common_name_only_when_missing():
    tree = merge_into_tree(create_empty_tree(), make_path("Panthera leo"))
    merge_into_tree(tree, make_path("Panthera leo", common="Lion"))
    assert tree["children"][0]["commonName"] == "Lion"
    merge_into_tree(tree, make_path("Panthera leo", common="African lion"))
    assert tree["children"][0]["commonName"] == "Lion"


def test_merge_is_case_sensitive():
    tree = merge_into_tree(create_empty_tree(), make_path("Animalia"))
    merge_into_tree(tree, make_path("animalia"))
    assert [c["name"] for c in tree["children"]] == ["Animalia", "animalia"]


def test_clone_is_deep_and_tolerates_none():
    tree = merge_into_tree(create_empty_tree(), make_path("A", "B"))
    clone = clone_tree(tree)
    clone["children"][0]["children"].clear()
    assert tree["children"][0]["children"]
    assert clone_tree(None) == {"name": "Life", "children": []}


def test_legacy_kingdoms_move_under_domain():
    legacy = {"name": "Life", "children": [
        {"name": "Animalia", "children": []},
        {"name": "Plantae", "children": []},
    ]}
    fixed = normalize_legacy_tree(legacy)

    assert fixed == {"name": "Life", "children": [
        {"name": "Eukaryota", "children": [
            {"name": "Animalia", "children": []},
            {"name": "Plantae", "children": []},
        ]},
    ]}
    # entrada intacta
    assert [c["name"] for c in legacy["children"]] == ["Animalia", "Plantae"]
    assert normalize_legacy_tree(fixed) == fixed


def test_legacy_collisions_merge_case_insensitively():
    legacy = {"name": "Life", "children": [
        {"name": "Eukaryota", "children": [
            {"name": "Animalia", "children": [{"name": "Chordata", "children": []}]},
        ]},
        {"name": "animalia", "children": [
            {"name": "Arthropoda", "children": []},
            {"name": "chordata", "commonName": "Chordates", "children": [{"name": "Mammalia", "children": []}]},
        ]},
    ]}
    fixed = normalize_legacy_tree(legacy)

    assert len(fixed["children"]) == 1
    animalia = fixed["children"][0]["children"][0]
    assert animalia["name"] == "Animalia"
    assert [c["name"] for c in animalia["children"]] == ["Chordata", "Arthropoda"]
    chordata = animalia["children"][0]
    assert chordata["commonName"] == "Chordates"
    assert [c["name"] for c in chordata["children"]] == ["Mammalia"]
    assert normalize_legacy_tree(fixed) == fixed


def test_non_legacy_trees_are_untouched():
    tree = {"name": "Life", "children": [{"name": "Bacteria", "children": []}]}
    assert normalize_legacy_tree(tree) == tree
    assert normalize_legacy_tree(create_empty_tree()) == create_empty_tree()


def test_node_label():
    assert build_node_label({"name": "Panthera leo", "commonName": "Lion"}) == "Panthera leo (Lion)"
    assert build_node_label({"name": "Felidae", "commonName": "felidae"}) == "Felidae"
    assert build_node_label({"name": "Felidae"}) == "Felidae"


def test_counts_on_empty_tree():
    assert count_species(create_empty_tree()) == 0
    assert tree_depth(create_empty_tree()) == 0


def test_node_label_unknown_rules():
    assert build_node_label({"name": "Felidae", "commonName": "Unknown"}) == "Felidae"
    assert build_node_label({"commonName": "Lion"}) == "Unknown (Lion)"
    assert build_node_label({}) == "Unknown"


def test_normalize_drops_null_children():
    tree = {"name": "Life", "children": [None, {"name": "Bacteria", "children": [None]}]}
    assert normalize_legacy_tree(tree) == {"name": "Life", "children": [{"name": "Bacteria", "children": []}]}

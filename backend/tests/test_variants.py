"""
Variant tree arithmetic (no database).
"""

import pytest

from warehouse import variants as vt
from warehouse.validation import ValidationError


NESTED_DOC = [
    {"attribute": "Size", "values": [
        {"value": "Large", "quantity": 0, "subVariants": [
            {"attribute": "Color", "values": [
                {"value": "Red", "quantity": 3, "subVariants": []},
                {"value": "Blue", "quantity": 4, "subVariants": []},
            ]},
        ]},
        {"value": "Small", "quantity": 5, "subVariants": []},
    ]},
]


@pytest.fixture
def tree():
    return vt.parse_variants(NESTED_DOC)


def test_total_counts_only_leaves(tree):
    assert vt.total_quantity(tree) == 12
    assert vt.total_quantity(()) == 0
    assert vt.has_nested_variants(tree) is True


def test_branch_own_quantity_is_ignored():
    doc = [{"attribute": "Size", "values": [
        {"value": "Large", "quantity": 99, "subVariants": [
            {"attribute": "Color", "values": [{"value": "Red", "quantity": 2}]},
        ]},
    ]}]
    assert vt.total_quantity(vt.parse_variants(doc)) == 2


def test_flatten_keeps_input_order(tree):
    assert list(vt.flatten_to_paths(tree).items()) == [
        ("Size: Large → Color: Red", 3),
        ("Size: Large → Color: Blue", 4),
        ("Size: Small", 5),
    ]


def test_document_shape_is_preserved(tree):
    assert vt.to_document(tree) == NESTED_DOC


def test_decrement_branch_drains_leaves_in_order(tree):
    updated = vt.decrement_leaf_quantity(tree, " size ", "LARGE", 5)
    assert vt.flatten_to_paths(updated)["Size: Large → Color: Red"] == 0
    assert vt.flatten_to_paths(updated)["Size: Large → Color: Blue"] == 2
    assert vt.total_quantity(updated) == 7
    # input untouched
    assert vt.total_quantity(tree) == 12


def test_decrement_finds_nested_match(tree):
    updated = vt.decrement_leaf_quantity(tree, "Color", "Blue", 1)
    assert vt.leaf_quantity(updated, "Size: Large → Color: Blue") == 3


def test_decrement_clamps_at_zero(tree):
    updated = vt.decrement_leaf_quantity(tree, "Size", "Small", 9)
    assert vt.leaf_quantity(updated, "Size: Small") == 0


def test_decrement_without_match_is_noop(tree):
    assert vt.decrement_leaf_quantity(tree, "Size", "Medium", 2) == tree


def test_decrement_rejects_negative_amount(tree):
    with pytest.raises(ValueError):
        vt.decrement_leaf_quantity(tree, "Size", "Small", -1)


def test_set_leaf_quantity_by_path(tree):
    updated = vt.set_leaf_quantity(tree, "Size: Large -> Color: Red", 10)
    assert vt.leaf_quantity(updated, "Size: Large → Color: Red") == 10
    assert vt.total_quantity(updated) == 19


def test_set_leaf_quantity_on_branch_is_noop(tree):
    assert vt.set_leaf_quantity(tree, "Size: Large", 10) == tree
    assert vt.leaf_quantity(tree, "Size: Large") is None


def test_clone_zeroes_every_leaf(tree):
    clone = vt.clone_with_zeroed_quantities(tree)
    assert vt.total_quantity(clone) == 0
    assert list(vt.flatten_to_paths(clone)) == list(vt.flatten_to_paths(tree))


MIXED_DEPTH_DOC = NESTED_DOC + [
    {"attribute": "Material", "values": [
        {"value": "Cotton", "quantity": 2, "subVariants": []},
        {"value": "Wool", "quantity": 0, "subVariants": [
            {"attribute": "Weave", "values": [
                {"value": "Knit", "quantity": 0, "subVariants": [
                    {"attribute": "Color", "values": [
                        {"value": "Grey", "quantity": 6, "subVariants": []},
                    ]},
                ]},
                {"value": "Twill", "quantity": 1, "subVariants": []},
            ]},
        ]},
    ]},
]


@pytest.mark.parametrize("document", [[], NESTED_DOC, MIXED_DEPTH_DOC])
def test_zeroed_clone_refilled_leaf_by_leaf_matches_original(document):
    original = vt.parse_variants(document)
    clone = vt.clone_with_zeroed_quantities(original)

    for path, leaf in vt.iter_leaves(original):
        clone = vt.set_leaf_quantity(clone, path, leaf.quantity)

    assert clone == original
    assert vt.total_quantity(clone) == vt.total_quantity(original)


def test_parse_variant_path():
    assert vt.parse_variant_path("Size: Large → Color: Red") == (("Size", "Large"), ("Color", "Red"))
    assert vt.parse_variant_path("Large") == (("", "Large"),)
    assert vt.parse_variant_path("  ") == ()


def test_locate_is_preorder(tree):
    assert vt.locate(tree, "color", "red") == (("Size", "Large"), ("Color", "Red"))
    assert vt.locate(tree, "Color", "Green") is None


@pytest.mark.parametrize("document, message", [
    ([{"attribute": " ", "values": [{"value": "A"}]}], "Attribute name is required"),
    ([{"attribute": "Size", "values": []}], "At least one value is required"),
    ([{"attribute": "Size", "values": [{"value": ""}]}], "cannot be empty"),
    ([{"attribute": "Size", "values": [{"value": "L", "quantity": -1}]}], "0 or greater"),
])
def test_validate_rejects_malformed(document, message):
    with pytest.raises(ValidationError, match=message):
        vt.validate_variants(document)


def test_variant_issues_are_distinct():
    doc = [
        {},
        {"attribute": "Size", "values": [{"value": ""}, {"value": " "}]},
    ]
    assert vt.variant_issues(doc) == ["Empty variant object", "Empty variant value"]
    assert vt.variant_issues(NESTED_DOC) == []


def test_clean_variants_repairs_labels():
    doc = [
        {},
        {"attribute": "", "values": [{"value": " ", "quantity": 2}, 5, "XL"]},
        {"attribute": "Color", "values": []},
    ]
    assert vt.clean_variants(doc) == [
        {"attribute": "Variant", "values": [
            {"value": "Unnamed", "quantity": 2, "subVariants": []},
            {"value": "XL", "quantity": 0, "subVariants": []},
        ]},
    ]

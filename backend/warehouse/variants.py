# backend/warehouse/variants.py
"""
Variant quantity trees.

A product's variants form an arbitrary-depth attribute/value hierarchy, e.g.
Size -> Color -> Material. Quantity lives ONLY at leaves; every other level is
derived by summation.

TREE SHAPE:
- VariantNode:   attribute label + ordered values
- VariantLeaf:   value label + quantity (no children)
- VariantBranch: value label + sub_variants (no quantity of its own)

A tree is a tuple of top-level VariantNode objects. Trees are immutable: every
update returns a new tree and leaves the input untouched.

PERSISTED SHAPE (products.variants JSON column):
    [{"attribute": "Size", "values": [
        {"value": "Large", "quantity": 12, "subVariants": []},
        {"value": "Small", "quantity": 0, "subVariants": [...]}]}]

MATCHING:
Lookups by (attribute, value) are case-insensitive and whitespace-trimmed
because upstream data entry is inconsistent. A lookup that matches nothing is
a no-op, not an error.

This module has no Flask or database dependency.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Iterator, Sequence, Tuple, Union

from .validation import ValidationError

PATH_SEPARATOR = " → "
_PATH_SPLITTERS = ("→", "->")

DEFAULT_ATTRIBUTE = "Variant"
DEFAULT_VALUE = "Unnamed"


@dataclass(frozen=True)
class VariantLeaf:
    value: str
    quantity: int = 0
    minimum_quantity: int | None = None


@dataclass(frozen=True)
class VariantBranch:
    value: str
    sub_variants: Tuple["VariantNode", ...] = ()
    minimum_quantity: int | None = None


VariantValue = Union[VariantLeaf, VariantBranch]


@dataclass(frozen=True)
class VariantNode:
    attribute: str
    values: Tuple[VariantValue, ...] = ()
    sku: str | None = None


VariantTree = Tuple[VariantNode, ...]
Segment = Tuple[str, str]
VariantPath = Tuple[Segment, ...]


def _norm(label: str | None) -> str:
    return (label or "").strip().lower()


def _matches(attribute: str, value: str, segment: Segment) -> bool:
    return _norm(attribute) == _norm(segment[0]) and _norm(value) == _norm(segment[1])


# =============================================================================
# AGGREGATION
# =============================================================================

def value_quantity(value: VariantValue) -> int:
    """Leaf quantity, or the recursive sum beneath a branch."""
    if isinstance(value, VariantBranch):
        return sum(node_quantity(node) for node in value.sub_variants)
    return value.quantity


def node_quantity(node: VariantNode) -> int:
    return sum(value_quantity(value) for value in node.values)


def total_quantity(tree: Iterable[VariantNode]) -> int:
    """
    Sum of every leaf quantity in the tree.

    An empty tree is 0; a node with no values contributes 0; a branch never
    contributes a quantity of its own.
    """
    return sum(node_quantity(node) for node in tree)


def has_nested_variants(tree: Iterable[VariantNode]) -> bool:
    return any(
        isinstance(value, VariantBranch) and value.sub_variants
        for node in tree
        for value in node.values
    )


# =============================================================================
# TRAVERSAL
# =============================================================================

def iter_leaves(tree: Iterable[VariantNode], parent: VariantPath = ()) -> Iterator[tuple[VariantPath, VariantLeaf]]:
    """Yield (path, leaf) pairs root-to-leaf, in document order."""
    for node in tree:
        for value in node.values:
            path = parent + ((node.attribute, value.value),)
            if isinstance(value, VariantBranch):
                yield from iter_leaves(value.sub_variants, path)
            else:
                yield path, value


def format_path(path: Sequence[Segment]) -> str:
    return PATH_SEPARATOR.join(f"{attribute}: {value}" for attribute, value in path)


def parse_variant_path(text: str | None) -> VariantPath:
    """
    Split "Size: Large → Color: Red" into (("Size", "Large"), ("Color", "Red")).

    A segment without a colon is read as a bare value with an empty attribute.
    """
    if not text or not text.strip():
        return ()
    parts = [text]
    for splitter in _PATH_SPLITTERS:
        parts = [piece for part in parts for piece in part.split(splitter)]

    segments = []
    for part in parts:
        part = part.strip()
        if not part:
            continue
        if ":" in part:
            attribute, value = part.split(":", 1)
            segments.append((attribute.strip(), value.strip()))
        else:
            segments.append(("", part))
    return tuple(segments)


def flatten_to_paths(tree: Iterable[VariantNode]) -> dict[str, int]:
    """
    One entry per leaf: "Attribute: Value → Attribute: Value" -> quantity.

    Insertion order follows the input tree (not sorted). Identical sibling
    paths are summed into the first occurrence.
    """
    breakdown: dict[str, int] = {}
    for path, leaf in iter_leaves(tree):
        key = format_path(path)
        breakdown[key] = breakdown.get(key, 0) + leaf.quantity
    return breakdown


def leaf_quantity(tree: Iterable[VariantNode], path: str | Sequence[Segment]) -> int | None:
    """Quantity at the leaf `path` resolves to, or None when it is not a leaf."""
    segments = parse_variant_path(path) if isinstance(path, str) else tuple(path)
    if not segments:
        return None
    for leaf_path, leaf in iter_leaves(tree):
        if len(leaf_path) == len(segments) and all(
            _matches(attribute, value, segment)
            for (attribute, value), segment in zip(leaf_path, segments)
        ):
            return leaf.quantity
    return None


def locate(tree: Iterable[VariantNode], attribute: str, value: str) -> VariantPath | None:
    """Path to the first (attribute, value) pair at any depth, pre-order."""
    segment = (attribute, value)
    for node in tree:
        for candidate in node.values:
            path = ((node.attribute, candidate.value),)
            if _matches(node.attribute, candidate.value, segment):
                return path
            if isinstance(candidate, VariantBranch):
                inner = locate(candidate.sub_variants, attribute, value)
                if inner is not None:
                    return path + inner
    return None


# =============================================================================
# UPDATES (return new trees)
# =============================================================================

def _replace_value(tree: VariantTree, node_index: int, value_index: int, new_value: VariantValue) -> VariantTree:
    node = tree[node_index]
    values = node.values[:value_index] + (new_value,) + node.values[value_index + 1:]
    return tree[:node_index] + (replace(node, values=values),) + tree[node_index + 1:]


def clone_with_zeroed_quantities(tree: Iterable[VariantNode]) -> VariantTree:
    """Same labels and nesting, every leaf quantity set to 0."""
    cloned = []
    for node in tree:
        values = []
        for value in node.values:
            if isinstance(value, VariantBranch):
                values.append(replace(value, sub_variants=clone_with_zeroed_quantities(value.sub_variants)))
            else:
                values.append(replace(value, quantity=0))
        cloned.append(replace(node, values=tuple(values)))
    return tuple(cloned)


def _set_along(tree: VariantTree, path: VariantPath, quantity: int) -> VariantTree | None:
    head, rest = path[0], path[1:]
    for node_index, node in enumerate(tree):
        for value_index, value in enumerate(node.values):
            if not _matches(node.attribute, value.value, head):
                continue
            if not rest and isinstance(value, VariantLeaf):
                return _replace_value(tree, node_index, value_index, replace(value, quantity=quantity))
            if rest and isinstance(value, VariantBranch):
                inner = _set_along(value.sub_variants, rest, quantity)
                if inner is not None:
                    return _replace_value(tree, node_index, value_index, replace(value, sub_variants=inner))
    return None


def set_leaf_quantity(tree: Iterable[VariantNode], path: str | Sequence[Segment], new_quantity: int) -> VariantTree:
    """
    Set the quantity of the leaf at `path` (clamped at 0).

    `path` is a path string or a sequence of (attribute, value) segments.
    Returns the tree unchanged when the path does not resolve to a leaf.
    """
    tree = tuple(tree)
    segments = parse_variant_path(path) if isinstance(path, str) else tuple(path)
    if not segments:
        return tree
    updated = _set_along(tree, segments, max(0, int(new_quantity)))
    return tree if updated is None else updated


def _drain(value: VariantValue, amount: int) -> tuple[VariantValue, int]:
    """Take up to `amount` from a value's leaves in document order."""
    if isinstance(value, VariantLeaf):
        taken = min(value.quantity, amount)
        return replace(value, quantity=value.quantity - taken), amount - taken

    nodes = []
    for node in value.sub_variants:
        values = []
        for sub in node.values:
            if amount > 0:
                sub, amount = _drain(sub, amount)
            values.append(sub)
        nodes.append(replace(node, values=tuple(values)))
    return replace(value, sub_variants=tuple(nodes)), amount


def _decrement_first(tree: VariantTree, segment: Segment, amount: int) -> VariantTree | None:
    for node_index, node in enumerate(tree):
        for value_index, value in enumerate(node.values):
            if _matches(node.attribute, value.value, segment):
                drained, _ = _drain(value, amount)
                return _replace_value(tree, node_index, value_index, drained)
            if isinstance(value, VariantBranch):
                inner = _decrement_first(value.sub_variants, segment, amount)
                if inner is not None:
                    return _replace_value(tree, node_index, value_index, replace(value, sub_variants=inner))
    return None


def decrement_leaf_quantity(tree: Iterable[VariantNode], attribute: str, value: str, amount: int) -> VariantTree:
    """
    Deduct `amount` from the first (attribute, value) match at any depth.

    Quantities never go below 0. When the match is a branch, the amount is drawn
    from its leaves in document order. No match returns the tree unchanged.
    """
    if amount < 0:
        raise ValueError("amount cannot be negative")
    tree = tuple(tree)
    updated = _decrement_first(tree, (attribute, value), amount)
    return tree if updated is None else updated


# =============================================================================
# PERSISTENCE SHAPE
# =============================================================================

def _loose_int(raw: Any) -> int:
    if isinstance(raw, bool):
        return 0
    try:
        return max(0, int(raw or 0))
    except (TypeError, ValueError):
        return 0


def _optional_int(raw: Any) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def parse_variants(document: Any) -> VariantTree:
    """
    Tolerant parse of the persisted JSON list into a tree.

    Non-dict nodes are dropped, bare string values become zero-quantity leaves
    and unreadable quantities read as 0. Empty labels are kept so their
    quantities still count.
    """
    if not isinstance(document, list):
        return ()

    nodes = []
    for raw_node in document:
        if not isinstance(raw_node, dict):
            continue
        values = []
        raw_values = raw_node.get("values")
        for raw_value in raw_values if isinstance(raw_values, list) else []:
            if isinstance(raw_value, str):
                values.append(VariantLeaf(value=raw_value))
                continue
            if not isinstance(raw_value, dict):
                continue
            label = raw_value.get("value")
            label = "" if label is None else str(label)
            minimum = _optional_int(raw_value.get("minimumQuantity"))
            children = parse_variants(raw_value.get("subVariants"))
            if children:
                values.append(VariantBranch(value=label, sub_variants=children, minimum_quantity=minimum))
            else:
                values.append(VariantLeaf(
                    value=label,
                    quantity=_loose_int(raw_value.get("quantity")),
                    minimum_quantity=minimum,
                ))
        attribute = raw_node.get("attribute")
        nodes.append(VariantNode(
            attribute="" if attribute is None else str(attribute),
            values=tuple(values),
            sku=raw_node.get("sku"),
        ))
    return tuple(nodes)


def to_document(tree: Iterable[VariantNode]) -> list[dict]:
    """Inverse of parse_variants. Branch "quantity" is written as 0."""
    document = []
    for node in tree:
        values = []
        for value in node.values:
            if isinstance(value, VariantBranch):
                entry = {"value": value.value, "quantity": 0, "subVariants": to_document(value.sub_variants)}
            else:
                entry = {"value": value.value, "quantity": value.quantity, "subVariants": []}
            if value.minimum_quantity is not None:
                entry["minimumQuantity"] = value.minimum_quantity
            values.append(entry)
        raw_node = {"attribute": node.attribute, "values": values}
        if node.sku:
            raw_node["sku"] = node.sku
        document.append(raw_node)
    return document


# =============================================================================
# DATA QUALITY
# =============================================================================

def validate_variants(document: Any, *, label: str = "Variant") -> VariantTree:
    """
    Strict validation for submissions (check-in requests, product creation).

    Raises ValidationError on the first malformed entry: empty attribute,
    node without values, empty value, negative or non-integer quantity.
    """
    if document is None:
        return ()
    if not isinstance(document, list):
        raise ValidationError("variants must be a list")

    for i, raw_node in enumerate(document, start=1):
        if not isinstance(raw_node, dict):
            raise ValidationError(f"{label} {i}: must be an object")
        attribute = raw_node.get("attribute")
        if not isinstance(attribute, str) or not attribute.strip():
            raise ValidationError(f"{label} {i}: Attribute name is required")
        raw_values = raw_node.get("values")
        if not isinstance(raw_values, list) or not raw_values:
            raise ValidationError(f'{label} "{attribute}": At least one value is required')
        for j, raw_value in enumerate(raw_values, start=1):
            text = raw_value if isinstance(raw_value, str) else (
                raw_value.get("value") if isinstance(raw_value, dict) else None
            )
            if not isinstance(text, str) or not text.strip():
                raise ValidationError(f'{label} "{attribute}": Value {j} cannot be empty')
            if isinstance(raw_value, dict):
                quantity = raw_value.get("quantity", 0)
                if isinstance(quantity, bool) or not isinstance(quantity, int):
                    raise ValidationError(f'{label} "{attribute}: {text}": quantity must be an integer')
                if quantity < 0:
                    raise ValidationError(f'{label} "{attribute}: {text}": Quantity must be 0 or greater')
                validate_variants(raw_value.get("subVariants") or [], label=f"{label} {attribute}: {text} ->")
    return parse_variants(document)


def variant_issues(document: Any) -> list[str]:
    """Distinct data-quality issues found anywhere in a persisted variant list."""
    issues: list[str] = []

    def _walk(nodes: Any) -> None:
        if not isinstance(nodes, list):
            return
        for raw_node in nodes:
            if not isinstance(raw_node, dict):
                continue
            if not raw_node:
                issues.append("Empty variant object")
                continue
            attribute = raw_node.get("attribute")
            if not isinstance(attribute, str) or not attribute.strip():
                issues.append("Empty variant attribute")
            for raw_value in raw_node.get("values") or []:
                text = raw_value if isinstance(raw_value, str) else (
                    raw_value.get("value") if isinstance(raw_value, dict) else None
                )
                if not isinstance(text, str) or not text.strip():
                    issues.append("Empty variant value")
                if isinstance(raw_value, dict):
                    _walk(raw_value.get("subVariants"))

    _walk(document)
    return list(dict.fromkeys(issues))


def clean_variants(document: Any) -> list[dict]:
    """
    Repair a persisted variant list for the cleanup utility.

    - empty objects and non-dicts are dropped
    - blank attributes become "Variant", blank values become "Unnamed"
    - values that are neither strings nor objects with a "value" key are dropped
    - nodes left without values are dropped
    """
    if not isinstance(document, list):
        return []

    cleaned = []
    for raw_node in document:
        if not isinstance(raw_node, dict) or not raw_node:
            continue
        attribute = raw_node.get("attribute")
        attribute = attribute.strip() if isinstance(attribute, str) else ""
        values = []
        for raw_value in raw_node.get("values") or []:
            if isinstance(raw_value, str):
                if raw_value.strip():
                    values.append({"value": raw_value.strip(), "quantity": 0, "subVariants": []})
                continue
            if not isinstance(raw_value, dict) or raw_value.get("value") is None:
                continue
            text = str(raw_value.get("value")).strip()
            values.append({
                "value": text or DEFAULT_VALUE,
                "quantity": _loose_int(raw_value.get("quantity")),
                "subVariants": clean_variants(raw_value.get("subVariants")),
            })
        if not values:
            continue
        node = {"attribute": attribute or DEFAULT_ATTRIBUTE, "values": values}
        if raw_node.get("sku"):
            node["sku"] = raw_node["sku"]
        cleaned.append(node)
    return cleaned

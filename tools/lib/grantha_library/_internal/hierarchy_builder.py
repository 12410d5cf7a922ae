"""Commentary forest building utilities.

This module assembles the nested commentary view of a verse from the flat
list of stored Commentary records. Records only reference their parent by
id, so the forest is built from an adjacency map rather than object links.
"""

from collections import defaultdict
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Set

from grantha_library.models import DEFAULT_COMMENTARY_ORDER, Commentary

SUB_COMMENTARIES_KEY = 'subCommentaries'


def build_commentary_forest(
    commentaries: Sequence[Commentary],
    commentary_order: Optional[Mapping[str, int]] = None
) -> List[Dict[str, Any]]:
    """Builds a nested forest from a flat list of commentaries.

    Siblings are ordered by the grantha's declared commentary order;
    undeclared names sort last, keeping their input order among themselves.
    A node only carries a subCommentaries list when it has children.

    Args:
        commentaries: All Commentary records of one verse.
        commentary_order: Declared order by commentary name.

    Returns:
        List of root nodes as JSON-ready dictionaries.
    """
    order = commentary_order or {}
    children_by_parent = _group_by_parent(commentaries)
    visited: Set[str] = set()

    forest = _assemble(None, children_by_parent, order, visited)
    forest.extend(
        _assemble_unreached(commentaries, children_by_parent, order, visited)
    )
    return forest


def _group_by_parent(
    commentaries: Sequence[Commentary]
) -> Dict[Optional[str], List[Commentary]]:
    """Groups commentaries by parent id.

    Parents that are not part of the set are treated as absent, so the
    orphaned node is promoted to a root.
    """
    known_ids = {c.commentary_id for c in commentaries}
    children_by_parent: Dict[Optional[str], List[Commentary]] = defaultdict(list)
    for commentary in commentaries:
        parent_id = commentary.parent_commentary_id
        if parent_id not in known_ids or parent_id == commentary.commentary_id:
            parent_id = None
        children_by_parent[parent_id].append(commentary)
    return children_by_parent


def _assemble(
    parent_id: Optional[str],
    children_by_parent: Dict[Optional[str], List[Commentary]],
    order: Mapping[str, int],
    visited: Set[str]
) -> List[Dict[str, Any]]:
    """Recursively assembles the children of parent_id."""
    nodes = []
    for commentary in sort_siblings(children_by_parent.get(parent_id, []), order):
        if commentary.commentary_id in visited:
            continue
        visited.add(commentary.commentary_id)
        nodes.append(
            _build_node(commentary, children_by_parent, order, visited)
        )
    return nodes


def _build_node(
    commentary: Commentary,
    children_by_parent: Dict[Optional[str], List[Commentary]],
    order: Mapping[str, int],
    visited: Set[str]
) -> Dict[str, Any]:
    """Converts one commentary and its subtree to a dictionary."""
    node = commentary.to_json()
    sub_commentaries = _assemble(
        commentary.commentary_id, children_by_parent, order, visited
    )
    if sub_commentaries:
        node[SUB_COMMENTARIES_KEY] = sub_commentaries
    return node


def _assemble_unreached(
    commentaries: Sequence[Commentary],
    children_by_parent: Dict[Optional[str], List[Commentary]],
    order: Mapping[str, int],
    visited: Set[str]
) -> List[Dict[str, Any]]:
    """Promotes nodes caught in a parent cycle to roots."""
    nodes = []
    for commentary in commentaries:
        if commentary.commentary_id in visited:
            continue
        visited.add(commentary.commentary_id)
        nodes.append(
            _build_node(commentary, children_by_parent, order, visited)
        )
    return nodes


def sort_siblings(
    commentaries: Sequence[Commentary],
    order: Mapping[str, int]
) -> List[Commentary]:
    """Sorts siblings by declared commentary order (stable).

    Args:
        commentaries: Sibling commentaries.
        order: Declared order by commentary name.

    Returns:
        Sorted list.
    """
    return sorted(
        commentaries,
        key=lambda c: order.get(c.commentary_name, DEFAULT_COMMENTARY_ORDER)
    )


def iter_forest(forest: Sequence[Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
    """Yields every node of a forest, parents before their children.

    Args:
        forest: Output of build_commentary_forest.

    Yields:
        Node dictionaries in depth-first order.
    """
    for node in forest:
        yield node
        yield from iter_forest(node.get(SUB_COMMENTARIES_KEY, []))


def count_forest_nodes(forest: Sequence[Dict[str, Any]]) -> int:
    """Counts every node at every depth of a forest."""
    return sum(1 for _ in iter_forest(forest))

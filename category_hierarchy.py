"""
Category hierarchy helpers.

Builds the per-type category forest used by the report, and answers
descendant/ancestry questions against the full category snapshot.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set

from models import Category, CategoryNode, CategoryType

logger = logging.getLogger(__name__)


def build_category_tree(
    categories: Iterable[Category],
    category_type: Optional[CategoryType] = None,
    active_only: bool = True
) -> List[CategoryNode]:
    """
    Turn a flat category list into an ordered forest of CategoryNodes.

    Only categories matching ``category_type`` (when given) and, by default,
    only Active categories take part. A category whose parent is absent from
    the filtered set is promoted to a root rather than dropped. Input order is
    preserved for roots and for each node's children.

    Args:
        categories: Flat category list
        category_type: Income or Expense filter; None keeps every type
        active_only: When True, inactive categories are left out

    Returns:
        Root nodes in input order
    """
    selected = [
        category for category in categories
        if (category_type is None or category.type == category_type)
        and (not active_only or category.is_active)
    ]

    nodes: Dict[str, CategoryNode] = {}
    for category in selected:
        nodes[category.id] = CategoryNode(category=category)

    roots: List[CategoryNode] = []
    orphans = 0
    for category in selected:
        node = nodes[category.id]
        if category.parent_id:
            parent = nodes.get(category.parent_id)
            if parent is not None:
                parent.children.append(node)
                continue
            orphans += 1
        roots.append(node)

    if orphans:
        logger.debug("Promoted %s orphaned categories to roots", orphans)
    return roots


def _children_index(categories: Iterable[Category]) -> Dict[str, List[Category]]:
    index: Dict[str, List[Category]] = {}
    for category in categories:
        if category.parent_id:
            index.setdefault(category.parent_id, []).append(category)
    return index


def get_category_descendants(category_id: str, categories: Sequence[Category]) -> List[Category]:
    """
    Return every descendant of ``category_id`` (children, grandchildren, ...).

    Descendants are found in the full list regardless of type or status.
    A category already visited is not expanded again, so a cyclic snapshot
    terminates instead of recursing forever.
    """
    index = _children_index(categories)
    descendants: List[Category] = []
    seen: Set[str] = {category_id}
    pending = list(index.get(category_id, []))
    while pending:
        child = pending.pop(0)
        if child.id in seen:
            continue
        seen.add(child.id)
        descendants.append(child)
        pending.extend(index.get(child.id, []))
    return descendants


def get_category_and_descendant_ids(category_id: str, categories: Sequence[Category]) -> Set[str]:
    """Return ``category_id`` together with the ids of all its descendants."""
    ids = {category_id}
    ids.update(descendant.id for descendant in get_category_descendants(category_id, categories))
    return ids


def get_section_scope_ids(
    category_id: str,
    categories: Sequence[Category],
    category_type: CategoryType,
    row_ids: Set[str]
) -> Set[str]:
    """
    Ids whose figures belong to the row of ``category_id`` itself.

    Walks the full snapshot below ``category_id``. Descendants listed in
    ``row_ids`` hold a row of their own and are neither included nor walked
    into. Descendants of another type are walked through but not included,
    since they are reported in the other section. Everything else (inactive
    categories in particular) is included.

    Args:
        category_id: Category owning the row
        categories: Full category list
        category_type: Section the row belongs to
        row_ids: Ids of every category shown as a row in that section

    Returns:
        ``category_id`` plus the descendants it answers for
    """
    index = _children_index(categories)
    ids = {category_id}
    seen: Set[str] = {category_id}
    pending = list(index.get(category_id, []))
    while pending:
        child = pending.pop(0)
        if child.id in seen or child.id in row_ids:
            continue
        seen.add(child.id)
        if child.type == category_type:
            ids.add(child.id)
        pending.extend(index.get(child.id, []))
    return ids


def validate_category_hierarchy(
    category_id: str,
    parent_id: Optional[str],
    categories: Sequence[Category]
) -> bool:
    """
    Check that giving ``category_id`` the parent ``parent_id`` keeps the graph acyclic.

    Args:
        category_id: Category being (re)parented
        parent_id: Proposed parent, or None for a root
        categories: Current category list

    Returns:
        False if the category would become its own ancestor, True otherwise
    """
    if not parent_id:
        return True
    if category_id == parent_id:
        return False
    descendants = get_category_descendants(category_id, categories)
    return not any(descendant.id == parent_id for descendant in descendants)


def find_cyclic_categories(categories: Sequence[Category]) -> List[str]:
    """
    Return ids of categories that are their own ancestor.

    Snapshot sources call this to warn about data the tree builder does not
    handle; the engine itself assumes an acyclic hierarchy.
    """
    parents = {category.id: category.parent_id for category in categories}
    cyclic: List[str] = []
    for category in categories:
        seen: Set[str] = set()
        current = category.parent_id
        while current and current in parents and current not in seen:
            if current == category.id:
                cyclic.append(category.id)
                break
            seen.add(current)
            current = parents[current]
    return cyclic

"""
Tests for category tree building and hierarchy helpers.
"""

from category_hierarchy import (
    build_category_tree,
    find_cyclic_categories,
    get_category_and_descendant_ids,
    get_category_descendants,
    get_section_scope_ids,
    validate_category_hierarchy,
)
from models import Category, CategoryType, RecordStatus


class TestBuildCategoryTree:
    """Tests for the per-type forest."""

    def test_filters_by_type(self, categories):
        roots = build_category_tree(categories, CategoryType.INCOME)
        assert [root.id for root in roots] == ["inc-salary"]
        assert [child.id for child in roots[0].children] == ["inc-bonus"]

    def test_nests_three_levels(self, categories):
        roots = build_category_tree(categories, CategoryType.EXPENSE)
        housing = roots[0]
        assert housing.id == "exp-home"
        assert housing.children[0].id == "exp-util"
        assert housing.children[0].children[0].id == "exp-power"

    def test_inactive_left_out_by_default(self, categories):
        ids = [node.id for root in build_category_tree(categories, CategoryType.EXPENSE) for node in root.walk()]
        assert "exp-travel" not in ids

    def test_inactive_kept_when_requested(self, categories):
        roots = build_category_tree(categories, CategoryType.EXPENSE, active_only=False)
        assert "exp-travel" in [root.id for root in roots]

    def test_child_of_inactive_parent_becomes_root(self):
        categories = [
            Category(id="a", name="A", type=CategoryType.EXPENSE, status=RecordStatus.INACTIVE),
            Category(id="b", name="B", type=CategoryType.EXPENSE, parent_id="a"),
        ]
        roots = build_category_tree(categories, CategoryType.EXPENSE)
        assert [root.id for root in roots] == ["b"]

    def test_child_listed_before_parent_is_attached(self):
        """Attachment does not depend on input order."""
        categories = [
            Category(id="child", name="Child", type=CategoryType.EXPENSE, parent_id="parent"),
            Category(id="parent", name="Parent", type=CategoryType.EXPENSE),
        ]
        roots = build_category_tree(categories, CategoryType.EXPENSE)
        assert [root.id for root in roots] == ["parent"]
        assert [child.id for child in roots[0].children] == ["child"]

    def test_parent_of_other_type_is_treated_as_missing(self):
        categories = [
            Category(id="inc", name="Income", type=CategoryType.INCOME),
            Category(id="exp", name="Expense", type=CategoryType.EXPENSE, parent_id="inc"),
        ]
        roots = build_category_tree(categories, CategoryType.EXPENSE)
        assert [root.id for root in roots] == ["exp"]

    def test_empty_input(self):
        assert build_category_tree([], CategoryType.EXPENSE) == []


class TestDescendants:
    """Tests for descendant lookups."""

    def test_all_levels(self, categories):
        ids = [category.id for category in get_category_descendants("exp-home", categories)]
        assert ids == ["exp-util", "exp-power"]

    def test_includes_self(self, categories):
        assert get_category_and_descendant_ids("exp-util", categories) == {"exp-util", "exp-power"}

    def test_includes_inactive_descendants(self, categories):
        extended = categories + [
            Category(
                id="exp-old-gas",
                name="Gas",
                type=CategoryType.EXPENSE,
                parent_id="exp-util",
                status=RecordStatus.INACTIVE,
            )
        ]
        assert "exp-old-gas" in get_category_and_descendant_ids("exp-home", extended)

    def test_leaf_has_no_descendants(self, categories):
        assert get_category_descendants("exp-power", categories) == []

    def test_cycle_terminates(self):
        categories = [
            Category(id="a", name="A", type=CategoryType.EXPENSE, parent_id="b"),
            Category(id="b", name="B", type=CategoryType.EXPENSE, parent_id="a"),
        ]
        assert get_category_and_descendant_ids("a", categories) == {"a", "b"}


class TestSectionScope:
    """Tests for the ids a row answers for itself."""

    def test_rows_below_are_left_out(self, categories):
        row_ids = {"exp-home", "exp-util", "exp-power", "exp-food"}
        assert get_section_scope_ids("exp-home", categories, CategoryType.EXPENSE, row_ids) == {"exp-home"}

    def test_inactive_and_hidden_descendants_are_kept(self, categories):
        extended = categories + [
            Category(
                id="exp-old-gas",
                name="Gas",
                type=CategoryType.EXPENSE,
                parent_id="exp-util",
                status=RecordStatus.INACTIVE,
            ),
            Category(id="exp-meter", name="Meter", type=CategoryType.EXPENSE, parent_id="exp-old-gas"),
        ]
        row_ids = {"exp-home", "exp-util", "exp-power", "exp-food", "exp-meter"}
        scope = get_section_scope_ids("exp-util", extended, CategoryType.EXPENSE, row_ids)
        assert scope == {"exp-util", "exp-old-gas"}

    def test_other_type_is_walked_through_but_not_counted(self):
        categories = [
            Category(id="e", name="E", type=CategoryType.EXPENSE),
            Category(id="i", name="I", type=CategoryType.INCOME, parent_id="e"),
            Category(
                id="x",
                name="X",
                type=CategoryType.EXPENSE,
                parent_id="i",
                status=RecordStatus.INACTIVE,
            ),
        ]
        assert get_section_scope_ids("e", categories, CategoryType.EXPENSE, {"e"}) == {"e", "x"}
        assert get_section_scope_ids("i", categories, CategoryType.INCOME, {"i"}) == {"i"}


class TestHierarchyValidation:
    """Tests for cycle checks."""

    def test_root_is_always_valid(self, categories):
        assert validate_category_hierarchy("exp-home", None, categories) is True

    def test_self_parent_is_invalid(self, categories):
        assert validate_category_hierarchy("exp-home", "exp-home", categories) is False

    def test_descendant_as_parent_is_invalid(self, categories):
        assert validate_category_hierarchy("exp-home", "exp-power", categories) is False

    def test_unrelated_parent_is_valid(self, categories):
        assert validate_category_hierarchy("exp-food", "exp-home", categories) is True

    def test_find_cyclic_categories(self, categories):
        cyclic = categories + [
            Category(id="x", name="X", type=CategoryType.EXPENSE, parent_id="y"),
            Category(id="y", name="Y", type=CategoryType.EXPENSE, parent_id="x"),
        ]
        assert find_cyclic_categories(cyclic) == ["x", "y"]
        assert find_cyclic_categories(categories) == []

"""Tests for canonical categories and the category resolver."""

import pytest

from puldar.categories import (
    CANONICAL_KEYS,
    CategoryResolver,
    ExpenseCategory,
    keyword_category,
    normalize,
)
from puldar.models.ledger import BudgetBucket, CategoryState, CustomCategory


class TestCanonicalCategories:
    """Tests for the built-in category table."""

    def test_twenty_eight_categories(self):
        """Test the canonical set size and bucket split."""
        assert len(CANONICAL_KEYS) == 28
        buckets = [category.bucket for category in ExpenseCategory]
        assert buckets.count(BudgetBucket.FUNDAMENTALS) == 10
        assert buckets.count(BudgetBucket.FUN) == 11
        assert buckets.count(BudgetBucket.FUTURE) == 7

    def test_other_is_fun(self):
        """Test uncategorised spending counts as a want."""
        assert ExpenseCategory.OTHER.bucket is BudgetBucket.FUN

    @pytest.mark.parametrize("raw, expected", [
        ("Groceries", ExpenseCategory.GROCERIES),
        ("BTC", ExpenseCategory.INVESTMENTS),
        ("theme park", ExpenseCategory.TRAVEL),
        ("comic books", ExpenseCategory.ENTERTAINMENT),
        ("snacks", ExpenseCategory.DINING),
        ("sushi dinner", ExpenseCategory.DINING),
        ("shoes", ExpenseCategory.SHOPPING),
        ("something odd", ExpenseCategory.OTHER),
        ("", ExpenseCategory.OTHER),
        (None, ExpenseCategory.OTHER),
    ])
    def test_resolve(self, raw, expected):
        """Test exact, alias, keyword and fallback resolution."""
        assert ExpenseCategory.resolve(raw) is expected

    def test_keyword_priority(self):
        """Test investments outrank travel when both match."""
        assert keyword_category("crypto vacation fund") is ExpenseCategory.INVESTMENTS

    def test_normalize(self):
        """Test punctuation is dropped and whitespace collapsed."""
        assert normalize("  S&P   500! ") == "sp 500"
        assert normalize(None) == ""


class TestResolver:
    """Tests for label resolution with context."""

    def test_fundamentals_to_fun_override(self):
        """Test a fun context overrides a needs label."""
        resolved = CategoryResolver().resolve("groceries", context="bought a disneyland ticket")
        assert resolved.storage_key == "travel"
        assert resolved.bucket is BudgetBucket.FUN

    def test_investment_inference(self):
        """Test a non-canonical label is inferred from context."""
        resolved = CategoryResolver().resolve("invest", context="put 200 into bitcoin")
        assert resolved.storage_key == "investments"
        assert resolved.bucket is BudgetBucket.FUTURE

    def test_canonical_label_kept_without_signal(self):
        """Test a canonical label with neutral context is unchanged."""
        resolved = CategoryResolver().resolve("groceries", context="spent 45 at whole foods")
        assert resolved.storage_key == "groceries"
        assert resolved.bucket is BudgetBucket.FUNDAMENTALS

    def test_fun_label_not_overridden_by_fun_context(self):
        """Test only needs labels are pulled to fun-side keywords."""
        resolved = CategoryResolver().resolve("shopping", context="movie tickets")
        assert resolved.storage_key == "shopping"

    def test_investment_overrides_any_label(self):
        """Test investment context beats a fun label."""
        resolved = CategoryResolver().resolve("entertainment", context="bought some stock")
        assert resolved.storage_key == "investments"

    def test_unknown_label_falls_back_to_other(self):
        """Test resolution never fails."""
        resolved = CategoryResolver().resolve("zzz", context="at the place")
        assert resolved.storage_key == "other"
        assert resolved.bucket is BudgetBucket.FUN

    def test_custom_category_wins(self):
        """Test a custom category matches by display name."""
        resolver = CategoryResolver()
        assert resolver.add_custom_category("Pet Care", BudgetBucket.FUNDAMENTALS)
        resolved = resolver.resolve("pet care", context="dinner for the dog")
        assert resolved.storage_key == "pet care"
        assert resolved.bucket is BudgetBucket.FUNDAMENTALS

    def test_renamed_label_resolves_to_canonical(self):
        """Test a display rename is accepted as a label."""
        resolver = CategoryResolver()
        resolver.set_display_name("Food Shop", "groceries")
        resolved = resolver.resolve("Food Shop")
        assert resolved.storage_key == "groceries"

    def test_bucket_for_key(self):
        """Test canonical, custom, income and unknown keys."""
        resolver = CategoryResolver()
        resolver.add_custom_category("Pets", BudgetBucket.FUNDAMENTALS)
        assert resolver.bucket_for_key("coffee") is BudgetBucket.FUN
        assert resolver.bucket_for_key("pets") is BudgetBucket.FUNDAMENTALS
        assert resolver.bucket_for_key("income") is BudgetBucket.FUTURE
        assert resolver.bucket_for_key("nope") is None


class TestCustomCategories:
    """Tests for adding, editing and removing custom categories."""

    @pytest.mark.parametrize("name", ["", "   ", "Groceries", "income", "!!!"])
    def test_rejected_names(self, name):
        """Test empty, canonical and reserved names are rejected."""
        resolver = CategoryResolver()
        assert resolver.add_custom_category(name, BudgetBucket.FUN) is False
        assert resolver.custom_categories == []

    def test_duplicate_rejected(self):
        """Test a second category with the same key is rejected."""
        resolver = CategoryResolver()
        assert resolver.add_custom_category("Board Games", BudgetBucket.FUN)
        assert not resolver.add_custom_category("board  games!", BudgetBucket.FUTURE)
        assert len(resolver.custom_categories) == 1

    def test_add_trims_and_normalizes(self):
        """Test the stored key is normalized and the name trimmed."""
        resolver = CategoryResolver()
        resolver.add_custom_category("  Board Games  ", BudgetBucket.FUN)
        custom = resolver.custom_categories[0]
        assert custom.name == "Board Games"
        assert custom.key == "board games"

    def test_update_keeps_key(self):
        """Test renaming and re-bucketing keeps the storage key."""
        resolver = CategoryResolver()
        resolver.add_custom_category("Pets", BudgetBucket.FUN)
        category_id = resolver.custom_categories[0].id

        assert resolver.update_custom_category(
            category_id, name="Pet Care", bucket=BudgetBucket.FUNDAMENTALS
        )

        custom = resolver.custom_categories[0]
        assert custom.key == "pets"
        assert custom.name == "Pet Care"
        assert resolver.bucket_for_key("pets") is BudgetBucket.FUNDAMENTALS
        assert resolver.display_name_for_stored("pets") == "Pet Care"

    def test_remove(self):
        """Test removal by id."""
        resolver = CategoryResolver()
        resolver.add_custom_category("Pets", BudgetBucket.FUN)
        category_id = resolver.custom_categories[0].id
        assert resolver.remove_custom_category(category_id)
        assert not resolver.remove_custom_category(category_id)


class TestDisplayNames:
    """Tests for renames and prompt labels."""

    def test_default_display_name(self):
        """Test canonical keys are title-cased."""
        assert CategoryResolver().display_name_for_canonical("groceries") == "Groceries"

    def test_rename_and_clear(self):
        """Test an empty rename or the key itself clears the override."""
        resolver = CategoryResolver()
        resolver.set_display_name("  Food  ", "groceries")
        assert resolver.display_name_for_canonical("groceries") == "Food"
        resolver.set_display_name("Groceries", "groceries")
        assert resolver.renamed_categories == {}
        resolver.set_display_name("Food", "groceries")
        resolver.set_display_name("", "groceries")
        assert resolver.renamed_categories == {}

    def test_rename_unknown_key_ignored(self):
        """Test only canonical keys can be renamed."""
        resolver = CategoryResolver()
        resolver.set_display_name("Whatever", "not a key")
        assert resolver.renamed_categories == {}

    def test_prompt_categories(self):
        """Test prompt labels use renames and include custom names once."""
        resolver = CategoryResolver()
        resolver.set_display_name("Food", "groceries")
        resolver.add_custom_category("Pets", BudgetBucket.FUN)
        labels = resolver.prompt_categories
        assert "food" in labels
        assert "groceries" not in labels
        assert labels[-1] == "pets"
        assert len(labels) == len(set(labels)) == 29

    def test_state_round_trip(self):
        """Test the persistable snapshot restores the same behaviour."""
        resolver = CategoryResolver()
        resolver.add_custom_category("Pets", BudgetBucket.FUNDAMENTALS)
        resolver.set_display_name("Food", "groceries")

        restored = CategoryResolver.from_state(
            CategoryState.model_validate_json(resolver.state.model_dump_json())
        )

        assert restored.display_name_for_canonical("groceries") == "Food"
        assert restored.bucket_for_key("pets") is BudgetBucket.FUNDAMENTALS

    def test_load_state_replaces_customizations(self):
        """Test load_state() swaps state in place."""
        resolver = CategoryResolver()
        resolver.add_custom_category("Old", BudgetBucket.FUN)
        resolver.load_state(CategoryState(custom_categories=[
            CustomCategory(key="new", name="New", bucket=BudgetBucket.FUTURE),
        ]))
        assert [c.key for c in resolver.custom_categories] == ["new"]

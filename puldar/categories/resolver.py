"""
Category Resolver

Maps a raw category label (usually from the model, sometimes typed by
the user) to a storage key and a budget bucket.

The resolver holds the user's customizations:
- custom categories (own key, display name, bucket)
- a rename table (canonical key -> display name override; the stored
  key and bucket mapping are unaffected)

Resolution order for resolve(raw_label, context):
1. Custom category by key or display name
2. Canonical key or renamed display label, with keyword overrides for
   obvious misclassifications
3. Keyword inference over label + context
4. Canonical resolution of the label (alias table, keywords, "other")

IMPORTANT: Resolution is deterministic and side-effect free.
Only the explicit add/update/remove/rename methods mutate state.
"""

from typing import Optional
from uuid import UUID

from puldar.categories.canonical import (
    CANONICAL_KEYS,
    ExpenseCategory,
    keyword_category,
    normalize,
)
from puldar.models.ledger import (
    INCOME_CATEGORY_KEY,
    BudgetBucket,
    CategoryState,
    CustomCategory,
    ResolvedCategory,
)


RESERVED_KEYS = frozenset({INCOME_CATEGORY_KEY})


class CategoryResolver:
    """
    Resolves labels against canonical and user-defined categories.

    Not thread-safe: callers serialize mutations relative to reads.
    """

    def __init__(self, state: Optional[CategoryState] = None):
        state = state or CategoryState()
        self._custom: list[CustomCategory] = list(state.custom_categories)
        self._renamed: dict[str, str] = dict(state.renamed_categories)

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def custom_categories(self) -> list[CustomCategory]:
        return list(self._custom)

    @property
    def renamed_categories(self) -> dict[str, str]:
        return dict(self._renamed)

    @property
    def state(self) -> CategoryState:
        """Snapshot suitable for persistence."""
        return CategoryState(
            custom_categories=list(self._custom),
            renamed_categories=dict(self._renamed),
        )

    @classmethod
    def from_state(cls, state: CategoryState) -> "CategoryResolver":
        return cls(state)

    def load_state(self, state: CategoryState) -> None:
        """Replace all customizations with a stored snapshot."""
        self._custom = list(state.custom_categories)
        self._renamed = dict(state.renamed_categories)

    @property
    def canonical_keys(self) -> list[str]:
        return list(CANONICAL_KEYS)

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def resolve(
        self,
        raw_label: str,
        context: Optional[str] = None,
    ) -> ResolvedCategory:
        """
        Resolve a raw label to a storage key and bucket.

        Args:
            raw_label: Category label as returned by the model
            context: Merchant and/or original utterance, used for
                     keyword overrides

        Returns:
            ResolvedCategory; never fails (falls back to "other")
        """
        label = normalize(raw_label)
        normalized_context = normalize(context)
        inferred = keyword_category(f"{label} {normalized_context}")

        custom = self._custom_matching(label)
        if custom is not None:
            return ResolvedCategory(storage_key=custom.key, bucket=custom.bucket)

        canonical_key = self._canonical_key_for_label(label)
        if canonical_key is not None:
            canonical = ExpenseCategory(canonical_key)
            if inferred is not None and self._should_override(canonical, inferred):
                return ResolvedCategory(
                    storage_key=inferred.value,
                    bucket=inferred.bucket,
                )
            return ResolvedCategory(storage_key=canonical.value, bucket=canonical.bucket)

        if inferred is not None:
            return ResolvedCategory(storage_key=inferred.value, bucket=inferred.bucket)

        fallback = ExpenseCategory.resolve(label)
        return ResolvedCategory(storage_key=fallback.value, bucket=fallback.bucket)

    @staticmethod
    def _should_override(
        canonical: ExpenseCategory,
        inferred: ExpenseCategory,
    ) -> bool:
        if canonical is inferred:
            return False
        if inferred is ExpenseCategory.INVESTMENTS:
            return True
        # A strict "needs" label with clear fun-side context
        return (
            canonical.bucket is BudgetBucket.FUNDAMENTALS
            and inferred.bucket is BudgetBucket.FUN
        )

    def bucket_for_key(self, storage_key: str) -> Optional[BudgetBucket]:
        """
        Bucket for a stored category key.

        Returns None when the key is neither canonical, custom nor the
        income pseudo-category.
        """
        key = normalize(storage_key)
        if key == INCOME_CATEGORY_KEY:
            return BudgetBucket.FUTURE

        canonical = ExpenseCategory.from_key(key)
        if canonical is not None:
            return canonical.bucket

        for custom in self._custom:
            if custom.key == key:
                return custom.bucket

        return None

    # =========================================================================
    # DISPLAY NAMES
    # =========================================================================

    def display_name_for_canonical(self, key: str) -> str:
        """User-visible name for a canonical category key."""
        renamed = self._renamed.get(key)
        if renamed and renamed.strip():
            return renamed
        return key.title()

    def display_name_for_stored(self, stored_key: str) -> str:
        """User-visible name for the category key stored on an entry."""
        key = normalize(stored_key)

        if key in CANONICAL_KEYS:
            return self.display_name_for_canonical(key)

        custom = self._custom_matching(key)
        if custom is not None:
            return custom.name

        canonical_key = self._canonical_key_for_label(key)
        if canonical_key is not None:
            return self.display_name_for_canonical(canonical_key)

        return key.title()

    def set_display_name(self, name: str, canonical_key: str) -> None:
        """
        Rename a canonical category for display.

        An empty name, or one that normalizes back to the key, removes
        the override.
        """
        if canonical_key not in CANONICAL_KEYS:
            return
        trimmed = name.strip()
        if not trimmed or normalize(trimmed) == canonical_key:
            self._renamed.pop(canonical_key, None)
        else:
            self._renamed[canonical_key] = trimmed

    @property
    def prompt_categories(self) -> list[str]:
        """Labels offered to the model: normalized, de-duplicated."""
        result: list[str] = []
        seen: set[str] = set()

        def append(value: str) -> None:
            normalized = normalize(value)
            if normalized and normalized not in seen:
                seen.add(normalized)
                result.append(normalized)

        for key in CANONICAL_KEYS:
            append(self.display_name_for_canonical(key))
        for custom in self._custom:
            append(custom.name)

        return result or list(CANONICAL_KEYS)

    # =========================================================================
    # CUSTOM CATEGORIES
    # =========================================================================

    def add_custom_category(self, name: str, bucket: BudgetBucket) -> bool:
        """
        Add a user-defined category.

        Returns False (and changes nothing) when the name is empty or its
        normalized key collides with a canonical, reserved or existing
        custom key.
        """
        trimmed = name.strip()
        key = normalize(trimmed)
        if not trimmed or not key:
            return False
        if key in CANONICAL_KEYS or key in RESERVED_KEYS:
            return False
        if any(custom.key == key for custom in self._custom):
            return False

        self._custom.append(CustomCategory(key=key, name=trimmed, bucket=bucket))
        return True

    def update_custom_category(
        self,
        category_id: UUID,
        name: Optional[str] = None,
        bucket: Optional[BudgetBucket] = None,
    ) -> bool:
        """
        Rename and/or re-bucket a custom category.

        The storage key never changes, so existing entries keep resolving.
        Returns False if no category has that id.
        """
        for index, custom in enumerate(self._custom):
            if custom.id != category_id:
                continue
            updates = {}
            if name is not None and name.strip():
                updates["name"] = name.strip()
            if bucket is not None:
                updates["bucket"] = bucket
            self._custom[index] = custom.model_copy(update=updates)
            return True
        return False

    def remove_custom_category(self, category_id: UUID) -> bool:
        before = len(self._custom)
        self._custom = [c for c in self._custom if c.id != category_id]
        return len(self._custom) != before

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _canonical_key_for_label(self, normalized_label: str) -> Optional[str]:
        if normalized_label in CANONICAL_KEYS:
            return normalized_label

        for key, label in self._renamed.items():
            if normalize(label) == normalized_label:
                return key

        return None

    def _custom_matching(self, normalized_label: str) -> Optional[CustomCategory]:
        if not normalized_label:
            return None
        for custom in self._custom:
            if custom.key == normalized_label or normalize(custom.name) == normalized_label:
                return custom
        return None

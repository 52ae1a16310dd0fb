"""
Canonical Expense Categories

Every category the model is allowed to return, statically mapped to a
budget bucket. ALL bucket assignment is deterministic; the model only
proposes a label.

Resolution of a raw label (ExpenseCategory.resolve):
1. Exact canonical key
2. Alias table (e.g. "btc" -> investments, "disneyland" -> travel)
3. Keyword groups, in priority order:
   investments > travel > entertainment > dining > shopping
4. Fallback: "other" (Fun bucket)
"""

import re
from enum import Enum
from typing import Optional

from puldar.models.ledger import BudgetBucket


_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9 ]")
_WHITESPACE_RUN = re.compile(r"\s+")


def normalize(value: Optional[str]) -> str:
    """
    Normalize a label for comparison.

    Trim, lowercase, drop everything outside [a-z0-9 ], collapse runs of
    whitespace to a single space.
    """
    if not value:
        return ""
    cleaned = _NON_ALPHANUMERIC.sub("", value.strip().lower())
    return _WHITESPACE_RUN.sub(" ", cleaned).strip()


class ExpenseCategory(str, Enum):
    """The fixed set of built-in categories."""

    # Fundamentals (50 %)
    RENT = "rent"
    MORTGAGE = "mortgage"
    UTILITIES = "utilities"
    GROCERIES = "groceries"
    INSURANCE = "insurance"
    HEALTHCARE = "healthcare"
    TRANSPORTATION = "transportation"
    GAS = "gas"
    PHONE = "phone"
    INTERNET = "internet"

    # Fun (30 %)
    DINING = "dining"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    CLOTHING = "clothing"
    SUBSCRIPTIONS = "subscriptions"
    HOBBIES = "hobbies"
    TRAVEL = "travel"
    COFFEE = "coffee"
    ALCOHOL = "alcohol"
    GIFTS = "gifts"

    # Future You (20 %)
    SAVINGS = "savings"
    INVESTMENTS = "investments"
    RETIREMENT = "retirement"
    DEBT = "debt"
    EDUCATION = "education"
    EMERGENCY = "emergency"
    CHARITY = "charity"

    # Fallback
    OTHER = "other"

    @property
    def bucket(self) -> BudgetBucket:
        return CATEGORY_BUCKETS[self]

    @classmethod
    def from_key(cls, key: str) -> Optional["ExpenseCategory"]:
        """Exact lookup by canonical key; None when not canonical."""
        try:
            return cls(key)
        except ValueError:
            return None

    @classmethod
    def resolve(cls, raw: Optional[str]) -> "ExpenseCategory":
        """Resolve any raw string to a canonical category."""
        key = normalize(raw)
        if not key:
            return cls.OTHER

        exact = cls.from_key(key)
        if exact is not None:
            return exact

        alias = ALIASES.get(key)
        if alias is not None:
            return alias

        keyword_match = keyword_category(key)
        if keyword_match is not None:
            return keyword_match

        return cls.OTHER


CATEGORY_BUCKETS: dict[ExpenseCategory, BudgetBucket] = {
    ExpenseCategory.RENT: BudgetBucket.FUNDAMENTALS,
    ExpenseCategory.MORTGAGE: BudgetBucket.FUNDAMENTALS,
    ExpenseCategory.UTILITIES: BudgetBucket.FUNDAMENTALS,
    ExpenseCategory.GROCERIES: BudgetBucket.FUNDAMENTALS,
    ExpenseCategory.INSURANCE: BudgetBucket.FUNDAMENTALS,
    ExpenseCategory.HEALTHCARE: BudgetBucket.FUNDAMENTALS,
    ExpenseCategory.TRANSPORTATION: BudgetBucket.FUNDAMENTALS,
    ExpenseCategory.GAS: BudgetBucket.FUNDAMENTALS,
    ExpenseCategory.PHONE: BudgetBucket.FUNDAMENTALS,
    ExpenseCategory.INTERNET: BudgetBucket.FUNDAMENTALS,

    ExpenseCategory.DINING: BudgetBucket.FUN,
    ExpenseCategory.ENTERTAINMENT: BudgetBucket.FUN,
    ExpenseCategory.SHOPPING: BudgetBucket.FUN,
    ExpenseCategory.CLOTHING: BudgetBucket.FUN,
    ExpenseCategory.SUBSCRIPTIONS: BudgetBucket.FUN,
    ExpenseCategory.HOBBIES: BudgetBucket.FUN,
    ExpenseCategory.TRAVEL: BudgetBucket.FUN,
    ExpenseCategory.COFFEE: BudgetBucket.FUN,
    ExpenseCategory.ALCOHOL: BudgetBucket.FUN,
    ExpenseCategory.GIFTS: BudgetBucket.FUN,

    ExpenseCategory.SAVINGS: BudgetBucket.FUTURE,
    ExpenseCategory.INVESTMENTS: BudgetBucket.FUTURE,
    ExpenseCategory.RETIREMENT: BudgetBucket.FUTURE,
    ExpenseCategory.DEBT: BudgetBucket.FUTURE,
    ExpenseCategory.EDUCATION: BudgetBucket.FUTURE,
    ExpenseCategory.EMERGENCY: BudgetBucket.FUTURE,
    ExpenseCategory.CHARITY: BudgetBucket.FUTURE,

    # Uncategorised spending counts as a "want"
    ExpenseCategory.OTHER: BudgetBucket.FUN,
}

CANONICAL_KEYS: list[str] = [category.value for category in ExpenseCategory]


# =============================================================================
# ALIASES - exact normalized string -> category
# =============================================================================

ALIASES: dict[str, ExpenseCategory] = {
    "btc": ExpenseCategory.INVESTMENTS,
    "bitcoin": ExpenseCategory.INVESTMENTS,
    "crypto": ExpenseCategory.INVESTMENTS,
    "cryptocurrency": ExpenseCategory.INVESTMENTS,
    "sp500": ExpenseCategory.INVESTMENTS,
    "s p 500": ExpenseCategory.INVESTMENTS,
    "s and p 500": ExpenseCategory.INVESTMENTS,
    "sandp 500": ExpenseCategory.INVESTMENTS,
    "etf": ExpenseCategory.INVESTMENTS,
    "index fund": ExpenseCategory.INVESTMENTS,
    "index funds": ExpenseCategory.INVESTMENTS,
    "stock": ExpenseCategory.INVESTMENTS,
    "stocks": ExpenseCategory.INVESTMENTS,
    "mutual fund": ExpenseCategory.INVESTMENTS,
    "mutual funds": ExpenseCategory.INVESTMENTS,
    "401k": ExpenseCategory.INVESTMENTS,
    "roth ira": ExpenseCategory.INVESTMENTS,
    "ira": ExpenseCategory.INVESTMENTS,
    "brokerage": ExpenseCategory.INVESTMENTS,

    "comic": ExpenseCategory.ENTERTAINMENT,
    "comic books": ExpenseCategory.ENTERTAINMENT,
    "comicbook": ExpenseCategory.ENTERTAINMENT,
    "comicbook shop": ExpenseCategory.ENTERTAINMENT,
    "comic shop": ExpenseCategory.ENTERTAINMENT,

    "disney": ExpenseCategory.TRAVEL,
    "disneyland": ExpenseCategory.TRAVEL,
    "disney land": ExpenseCategory.TRAVEL,
    "theme park": ExpenseCategory.TRAVEL,
    "amusement park": ExpenseCategory.TRAVEL,

    "snack": ExpenseCategory.DINING,
    "snacks": ExpenseCategory.DINING,
    "snack shop": ExpenseCategory.DINING,
    "snack bar": ExpenseCategory.DINING,
}


# =============================================================================
# KEYWORD GROUPS - substring match, first group wins
# =============================================================================

INVESTMENT_KEYWORDS = (
    "invest", "investment", "investing", "bitcoin", "btc", "crypto",
    "cryptocurrency", "sp500", "s p 500", "s and p 500", "sandp 500",
    "etf", "index fund", "stock", "stocks", "mutual fund", "brokerage",
    "roth ira", "401k", "retirement account",
)

TRAVEL_KEYWORDS = (
    "travel", "trip", "flight", "airfare", "hotel", "vacation", "disney",
    "disneyland", "disney land", "theme park", "amusement park",
)

ENTERTAINMENT_KEYWORDS = (
    "comic", "comic book", "comicbook", "movie", "cinema", "theater",
    "concert", "festival", "game", "gaming", "arcade", "museum", "show",
)

DINING_KEYWORDS = (
    "snack", "snacks", "snack shop", "snack bar", "restaurant", "dinner",
    "lunch", "breakfast", "pizza", "sushi", "burger", "cafe", "coffee",
    "boba", "dessert", "ice cream", "treat", "treats",
)

SHOPPING_KEYWORDS = (
    "shopping", "mall", "retail", "clothes", "clothing", "shoes",
    "bookstore",
)

KEYWORD_GROUPS: tuple[tuple[ExpenseCategory, tuple[str, ...]], ...] = (
    (ExpenseCategory.INVESTMENTS, INVESTMENT_KEYWORDS),
    (ExpenseCategory.TRAVEL, TRAVEL_KEYWORDS),
    (ExpenseCategory.ENTERTAINMENT, ENTERTAINMENT_KEYWORDS),
    (ExpenseCategory.DINING, DINING_KEYWORDS),
    (ExpenseCategory.SHOPPING, SHOPPING_KEYWORDS),
)


def keyword_category(text: Optional[str]) -> Optional[ExpenseCategory]:
    """
    Infer a category from high-signal keywords in free text.

    Returns the category of the first group (in priority order) with any
    substring match, or None.
    """
    normalized = normalize(text)
    if not normalized:
        return None

    for category, keywords in KEYWORD_GROUPS:
        if any(keyword in normalized for keyword in keywords):
            return category

    return None

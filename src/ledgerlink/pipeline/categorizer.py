"""Assign categories to transactions.

Resolution order, first match wins:

1. The user's categorization rules, in stored order (case-insensitive
   substring of the description).
2. The built-in keyword table below. A keyword hit returns the mapped
   system category, or None if that category does not exist.
3. The system ``Other`` category, or None if it does not exist.

Category ids for steps 2 and 3 come from a :class:`CategoryCache` built once
from the system categories and shared across sync runs.
"""

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ledgerlink.ledger.models import CategorizationRule, Category

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "Other"

# Ordered (keywords, category name) pairs. More specific keywords come first.
DEFAULT_KEYWORD_RULES: list[tuple[tuple[str, ...], str]] = [
    (("payroll", "direct deposit"), "Paychecks"),
    (("refund", "return"), "Refunds"),
    (("fee", "charge"), "Fees"),
    (("amazon", "walmart", "target", "costco", "best buy"), "Shopping"),
    (("rent",), "Rent"),
    (
        ("uber", "lyft", "gas", "exxon", "shell", "chevron", "parking", "transit"),
        "Auto & Transport",
    ),
    (("electric", "water", "internet", "comcast", "verizon", "at&t"), "Utilities"),
    (("starbucks", "coffee", "restaurant", "bar", "dining"), "Drinks & Dining"),
    (("grocery", "safeway", "kroger"), "Groceries"),
    (("pharmacy", "cvs", "walgreens"), "Personal Care"),
    (("hospital", "doctor", "clinic", "dental"), "Healthcare"),
    (("netflix", "spotify", "hulu", "disney+", "movies"), "Entertainment"),
    (("tax", "irs"), "Taxes"),
    (("airline", "hotel", "airbnb", "expedia"), "Travel & Vacation"),
]

SYSTEM_CATEGORY_NAMES: list[str] = [
    *dict.fromkeys(name for _, name in DEFAULT_KEYWORD_RULES),
    FALLBACK_CATEGORY,
]


class CategoryCache:
    """Process-lifetime map of system category name → id.

    The map is filled by :meth:`load`, normally once at startup. A lookup
    against an empty map reloads it first, so calls that race ahead of
    startup population do not return None forever.
    """

    def __init__(self, loader: Callable[[], Sequence[Category]]):
        """Initialize the cache.

        Args:
            loader: Returns the current system-scoped categories
        """
        self._loader = loader
        self._ids: dict[str, str] = {}
        self._lock = threading.Lock()

    def load(self) -> None:
        """(Re)populate the map from the loader."""
        categories = self._loader()
        ids = {c.name: c.id for c in categories}
        with self._lock:
            self._ids = ids
        logger.debug(f"Loaded {len(ids)} system categories into cache")

    def get(self, name: str) -> str | None:
        """Return the id of system category ``name``, or None if it does not exist."""
        if not self._ids:
            self.load()
        return self._ids.get(name)

    def __len__(self) -> int:
        return len(self._ids)


@dataclass(frozen=True)
class CategoryAssignment:
    """Category (and optional sub-category) chosen for a transaction."""

    category_id: str | None
    sub_category_id: str | None = None


class CategorizationResolver:
    """Priority-ordered categorization policy."""

    def __init__(
        self,
        cache: CategoryCache,
        keyword_rules: Sequence[tuple[tuple[str, ...], str]] = tuple(
            DEFAULT_KEYWORD_RULES
        ),
        fallback_category: str = FALLBACK_CATEGORY,
    ):
        self.cache = cache
        self.keyword_rules = [
            (tuple(k.lower() for k in keywords), name) for keywords, name in keyword_rules
        ]
        self.fallback_category = fallback_category

    @staticmethod
    def match_rule(
        description: str, rules: Sequence[CategorizationRule]
    ) -> CategorizationRule | None:
        """Return the first user rule whose pattern occurs in ``description``."""
        lowered = description.lower()
        for rule in rules:
            pattern = rule.description_contains.lower()
            if pattern and pattern in lowered:
                return rule
        return None

    def match_keyword(self, description: str) -> str | None:
        """Return the category name of the first built-in keyword found in ``description``."""
        lowered = description.lower()
        for keywords, category_name in self.keyword_rules:
            if any(keyword in lowered for keyword in keywords):
                return category_name
        return None

    def assign(
        self, description: str, rules: Sequence[CategorizationRule]
    ) -> CategoryAssignment:
        """Resolve the full category assignment for ``description``."""
        rule = self.match_rule(description, rules)
        if rule is not None:
            return CategoryAssignment(rule.category_id, rule.sub_category_id)

        category_name = self.match_keyword(description)
        if category_name is not None:
            return CategoryAssignment(self.cache.get(category_name))

        return CategoryAssignment(self.cache.get(self.fallback_category))

    def resolve(
        self, description: str, rules: Sequence[CategorizationRule]
    ) -> str | None:
        """Return the category id for ``description``, or None if uncategorized."""
        return self.assign(description, rules).category_id

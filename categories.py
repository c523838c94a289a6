from typing import Optional

from rapidfuzz.distance import Levenshtein

from models import TransactionType

SAVINGS_CATEGORY = "savings"
DEBT_CATEGORY = "credit-cards"

CATEGORIES: dict[TransactionType, tuple[str, ...]] = {
    TransactionType.income: ("salary", "freelance", "investment", "business", "other"),
    TransactionType.expense: (
        "food",
        "transport",
        "shopping",
        "utilities",
        "entertainment",
        "healthcare",
        "education",
        "housing",
        SAVINGS_CATEGORY,
        DEBT_CATEGORY,
        "other",
    ),
    TransactionType.transfer: (SAVINGS_CATEGORY, "checking", "investment", "other"),
}


class CategoryNotFound(ValueError):
    pass


class CategoryAmbiguous(ValueError):
    pass


def resolve_category(txn_type: TransactionType, raw: Optional[str]) -> str:
    """Map free-text input onto the closed category set for ``txn_type``.

    Exact matches are case-insensitive; otherwise a single candidate within
    one edit is accepted.
    """
    value = (raw or "").strip().lower()
    if not value:
        raise CategoryNotFound("Category is required")
    allowed = CATEGORIES[txn_type]
    if value in allowed:
        return value

    best_distance: Optional[int] = None
    best: list[str] = []
    for name in allowed:
        dist = int(Levenshtein.distance(value, name))
        if best_distance is None or dist < best_distance:
            best_distance = dist
            best = [name]
        elif dist == best_distance:
            best.append(name)

    if best_distance is not None and best_distance <= 1:
        if len(best) > 1:
            options = ", ".join(sorted(best))
            raise CategoryAmbiguous(
                f"Category '{raw}' is ambiguous; matches: {options}"
            )
        return best[0]
    raise CategoryNotFound(
        f"Unknown {txn_type.value} category '{raw}'; expected one of: "
        + ", ".join(allowed)
    )

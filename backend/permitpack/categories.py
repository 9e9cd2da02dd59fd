from __future__ import annotations

import unicodedata

from permitpack.models import Category, DocumentRecord

REQUIRED_CATEGORIES: frozenset[Category] = frozenset(
    {
        Category.SITE_PLAN,
        Category.FACILITY_PLAN,
        Category.EGRESS_PLAN,
        Category.STRUCTURAL_PLANS,
        Category.COMMODITIES,
        Category.FIRE_PROTECTION,
        Category.SPECIAL_INSPECTION,
    }
)
REQUIRED_CATEGORY_COUNT = 7

_CATEGORY_ALIASES = {
    "structural_analysis": Category.STRUCTURAL_PLANS,
}

# Package order handed to the authority. Categories not listed share the last bucket.
_PACKAGE_ORDER: dict[Category, int] = {
    Category.SITE_PLAN: 0,
    Category.FACILITY_PLAN: 1,
    Category.EGRESS_PLAN: 2,
    Category.SPECIAL_INSPECTION: 3,
    Category.STRUCTURAL_PLANS: 4,
    Category.FIRE_PROTECTION: 5,
}
FALLBACK_ORDER = len(_PACKAGE_ORDER)

_CATEGORY_DESCRIPTIONS: dict[Category, str] = {
    Category.SITE_PLAN: (
        "Dimensioned site plan showing streets, building location, fire hydrants, "
        "and fire department access roadways."
    ),
    Category.FACILITY_PLAN: (
        "Dimensioned floor plan showing proposed and existing racking, fire department access doors, etc."
    ),
    Category.EGRESS_PLAN: (
        "Floor plan showing means of egress components (aisles, exit access doors, exit doors, etc)."
    ),
    Category.STRUCTURAL_PLANS: (
        "Racking plan, shelf dimensions, structural calculations stamped by a licensed engineer."
    ),
    Category.COMMODITIES: "Description of commodities stored and their placement method.",
    Category.FIRE_PROTECTION: (
        "Information about existing fire protection systems including type of sprinkler system."
    ),
    Category.SPECIAL_INSPECTION: (
        "Special Inspection Agreement with 'Storage Racks' marked as requiring inspection."
    ),
    Category.COVER_LETTER: "Auto-generated comprehensive overview for municipal submission.",
}


def normalize_category(value: object) -> Category | None:
    if isinstance(value, Category):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    if key in _CATEGORY_ALIASES:
        return _CATEGORY_ALIASES[key]
    try:
        return Category(key)
    except ValueError:
        return None


def category_order(category: object) -> int:
    """Position of a category in a submission package; unknown input sorts last."""
    normalized = normalize_category(category)
    if normalized is None:
        return FALLBACK_ORDER
    return _PACKAGE_ORDER.get(normalized, FALLBACK_ORDER)


def collation_key(value: str) -> str:
    return unicodedata.normalize("NFKD", value).casefold()


def document_sort_key(document: DocumentRecord) -> tuple[int, str, str, str]:
    return (
        category_order(document.category),
        collation_key(document.file_name),
        document.file_name,
        str(document.id),
    )


def sort_documents(documents: list[DocumentRecord] | tuple[DocumentRecord, ...]) -> list[DocumentRecord]:
    return sorted(documents, key=document_sort_key)


def category_label(category: object) -> str:
    normalized = normalize_category(category)
    raw = normalized.value if normalized is not None else str(category or "other")
    return " ".join(word.capitalize() for word in raw.split("_") if word)


def category_description(category: object) -> str:
    normalized = normalize_category(category)
    if normalized is None:
        return "Document for High-Piled Storage Permit"
    return _CATEGORY_DESCRIPTIONS[normalized]

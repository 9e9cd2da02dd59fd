from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from permitpack.categories import REQUIRED_CATEGORIES, REQUIRED_CATEGORY_COUNT, normalize_category
from permitpack.models import Category, DocumentRecord, Status


@dataclass(frozen=True)
class SubmissionProgress:
    percent: int
    eligible: bool
    approved_categories: tuple[Category, ...]
    missing_categories: tuple[Category, ...]
    has_cover_letter: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "percent": self.percent,
            "eligible": self.eligible,
            "approved_categories": [category.value for category in self.approved_categories],
            "missing_categories": [category.value for category in self.missing_categories],
            "has_cover_letter": self.has_cover_letter,
        }


def current_documents(documents: Iterable[DocumentRecord]) -> dict[Category, DocumentRecord]:
    current: dict[Category, DocumentRecord] = {}
    for document in documents:
        category = normalize_category(document.category)
        if category is None:
            continue
        existing = current.get(category)
        if existing is None or document.version > existing.version:
            current[category] = document
    return current


def round_half_up_percent(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        return 0
    # floor(100 * n / d + 0.5) in integer arithmetic
    return (200 * numerator + denominator) // (2 * denominator)


def progress(documents: Iterable[DocumentRecord]) -> SubmissionProgress:
    current = current_documents(documents)
    approved = tuple(
        sorted(
            (
                category
                for category in REQUIRED_CATEGORIES
                if category in current and current[category].status == Status.APPROVED.value
            ),
            key=lambda item: item.value,
        )
    )
    missing = tuple(
        sorted((category for category in REQUIRED_CATEGORIES if category not in approved), key=lambda item: item.value)
    )
    percent = round_half_up_percent(len(approved), REQUIRED_CATEGORY_COUNT)
    has_cover_letter = Category.COVER_LETTER in current
    return SubmissionProgress(
        percent=percent,
        eligible=percent == 100 and has_cover_letter,
        approved_categories=approved,
        missing_categories=missing,
        has_cover_letter=has_cover_letter,
    )


def select_documents(documents: Iterable[DocumentRecord], document_scope: str = "latest") -> list[DocumentRecord]:
    """Pick the records an export packages.

    ``latest`` keeps the current version of each known category plus records
    of unknown categories; ``all`` keeps every version. Stored cover letters
    are never selected.
    """
    records = [
        record for record in documents if normalize_category(record.category) is not Category.COVER_LETTER
    ]
    if document_scope == "all":
        return records
    unknown = [record for record in records if normalize_category(record.category) is None]
    return [*current_documents(records).values(), *unknown]

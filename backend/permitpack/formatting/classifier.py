from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from permitpack.formatting.policy import (
    DEFAULT_PROFILE,
    ORDINAL_PATTERN,
    YEAR_PATTERN,
    LetterProfile,
    clean_line,
    has_file_extension,
)
from permitpack.models import ClassifiedLine, LineRole

logger = logging.getLogger("permitpack.formatting")


def classify_line(raw: str, raw_index: int, profile: LetterProfile = DEFAULT_PROFILE) -> ClassifiedLine | None:
    cleaned = clean_line(raw)
    text = cleaned.text
    if not text:
        return None

    role = _match_role(text, raw_index, cleaned.indented, profile)
    if role is None:
        logger.debug(
            "line_defaulted_to_body",
            extra={"event": "line_defaulted_to_body", "raw_index": raw_index, "line_length": len(text)},
        )
        role = LineRole.BODY
    return ClassifiedLine(role=role, text=text, raw_index=raw_index)


def _match_role(text: str, raw_index: int, indented: bool, profile: LetterProfile) -> LineRole | None:
    if raw_index == 0 and text == profile.letterhead:
        return LineRole.HEADER
    if YEAR_PATTERN.search(text):
        return LineRole.DATE
    if text.startswith("Subject:") or text.startswith("RE:"):
        return LineRole.SUBJECT
    if text.startswith("Dear "):
        return LineRole.SALUTATION
    if ORDINAL_PATTERN.match(text):
        return LineRole.CATEGORY_HEADING
    if text == "Files Submitted:":
        return LineRole.FILES_HEADER
    if indented and has_file_extension(text):
        return LineRole.FILE_ENTRY
    if text.startswith("Email:") or text.startswith("Phone:"):
        return LineRole.CONTACT_LABEL_VALUE
    if text == "Sincerely," or profile.signature_phrase in text:
        return LineRole.CLOSING
    if text.startswith(profile.footer_prefix):
        return LineRole.FOOTER
    return None


def classify(lines: Sequence[str], profile: LetterProfile = DEFAULT_PROFILE) -> list[ClassifiedLine]:
    """Assign a role to every non-blank line of a generated cover letter.

    Blank lines are dropped; their positions stay visible as gaps in
    ``raw_index`` so the renderer can put spacers back where they were.
    """
    classified: list[ClassifiedLine] = []
    for index, raw in enumerate(lines):
        line = classify_line(raw, index, profile)
        if line is not None:
            classified.append(line)
    return classified


def classify_text(text: str, profile: LetterProfile = DEFAULT_PROFILE) -> list[ClassifiedLine]:
    return classify(text.replace("\r\n", "\n").split("\n"), profile)


def classified_from_blocks(blocks: Iterable[Mapping[str, object]]) -> list[ClassifiedLine]:
    """Build classified lines from a generator that already knows each line's role."""
    classified: list[ClassifiedLine] = []
    for index, block in enumerate(blocks):
        text = str(block.get("text") or "").strip()
        if not text:
            continue
        try:
            role = LineRole(str(block.get("role") or LineRole.BODY.value))
        except ValueError:
            role = LineRole.BODY
        classified.append(ClassifiedLine(role=role, text=text, raw_index=index))
    return classified


def role_sequence(classified: Iterable[ClassifiedLine]) -> list[LineRole]:
    return [line.role for line in classified]

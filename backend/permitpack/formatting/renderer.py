from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from permitpack.formatting.policy import DEFAULT_PROFILE, INDENT, LetterProfile, split_label_value
from permitpack.models import Alignment, ClassifiedLine, LineRole, RenderedParagraph, Run

TIMES_NEW_ROMAN = "Times New Roman"
FOOTER_COLOR = "666666"
SPACER_SIZE_PT = 11


@dataclass(frozen=True)
class RoleStyle:
    size_pt: float
    font: str | None = None
    bold: bool = False
    italic: bool = False
    alignment: Alignment = Alignment.LEFT
    indent_left_pt: float = 0
    color: str | None = None


STYLE_TABLE: dict[LineRole, RoleStyle] = {
    LineRole.HEADER: RoleStyle(size_pt=14, bold=True, alignment=Alignment.CENTER),
    LineRole.DATE: RoleStyle(size_pt=11, alignment=Alignment.RIGHT),
    LineRole.SUBJECT: RoleStyle(size_pt=11, bold=True),
    LineRole.SALUTATION: RoleStyle(size_pt=11),
    LineRole.CATEGORY_HEADING: RoleStyle(size_pt=11, font=TIMES_NEW_ROMAN, bold=True),
    LineRole.FILES_HEADER: RoleStyle(size_pt=11, font=TIMES_NEW_ROMAN),
    # Every file name line uses this style, whichever category heading it sits under.
    LineRole.FILE_ENTRY: RoleStyle(size_pt=10, font=TIMES_NEW_ROMAN, indent_left_pt=9),
    LineRole.CONTACT_LABEL_VALUE: RoleStyle(size_pt=11),
    LineRole.CLOSING: RoleStyle(size_pt=11),
    LineRole.FOOTER: RoleStyle(size_pt=9, italic=True, alignment=Alignment.CENTER, color=FOOTER_COLOR),
    LineRole.BODY: RoleStyle(size_pt=11, font=TIMES_NEW_ROMAN),
}


def style_for(role: object) -> RoleStyle:
    if isinstance(role, LineRole):
        return STYLE_TABLE.get(role, STYLE_TABLE[LineRole.BODY])
    try:
        return STYLE_TABLE[LineRole(str(role))]
    except ValueError:
        return STYLE_TABLE[LineRole.BODY]


def _run(text: str, style: RoleStyle, *, bold: bool | None = None) -> Run:
    return Run(
        text=text,
        size_pt=style.size_pt,
        bold=style.bold if bold is None else bold,
        italic=style.italic,
        font=style.font,
        color=style.color,
    )


def spacer_paragraph() -> RenderedParagraph:
    return RenderedParagraph(runs=(Run(text="", size_pt=SPACER_SIZE_PT),))


def render_line(line: ClassifiedLine, profile: LetterProfile = DEFAULT_PROFILE) -> RenderedParagraph:
    role = line.role if isinstance(line.role, LineRole) and line.role in STYLE_TABLE else LineRole.BODY
    style = style_for(role)

    if role is LineRole.CONTACT_LABEL_VALUE:
        label, value = split_label_value(line.text)
        runs = (_run(label, style, bold=True), _run(value, style, bold=False))
    elif role is LineRole.CLOSING:
        runs = (_run(line.text, style, bold=profile.signature_phrase in line.text),)
    else:
        runs = (_run(line.text, style),)

    return RenderedParagraph(
        runs=tuple(run for run in runs if run.text or len(runs) == 1),
        alignment=style.alignment,
        indent_left_pt=style.indent_left_pt,
        role=role,
    )


def render(classified: Sequence[ClassifiedLine], profile: LetterProfile = DEFAULT_PROFILE) -> list[RenderedParagraph]:
    """Turn classified lines into styled paragraphs.

    Gaps between consecutive ``raw_index`` values were blank lines in the
    source text and come back as spacer paragraphs, so the plain-text
    projection of the output lines up with the original line numbers.
    """
    paragraphs: list[RenderedParagraph] = []
    expected_index = 0
    for line in classified:
        for _ in range(max(0, line.raw_index - expected_index)):
            paragraphs.append(spacer_paragraph())
        paragraphs.append(render_line(line, profile))
        expected_index = max(expected_index, line.raw_index) + 1
    return paragraphs


def plain_text_lines(paragraphs: Iterable[RenderedParagraph]) -> list[str]:
    lines: list[str] = []
    for paragraph in paragraphs:
        text = paragraph.text
        if paragraph.indent_left_pt > 0 and text:
            text = f"{INDENT}{text}"
        lines.append(text)
    return lines


def plain_text(paragraphs: Iterable[RenderedParagraph]) -> str:
    return "\n".join(plain_text_lines(paragraphs))

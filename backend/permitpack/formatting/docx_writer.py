from __future__ import annotations

import io
from typing import Sequence

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Inches, Pt, RGBColor

from permitpack.formatting.classifier import classify_text
from permitpack.formatting.policy import DEFAULT_PROFILE, LetterProfile
from permitpack.formatting.renderer import plain_text, render
from permitpack.models import Alignment, ClassifiedLine, LineRole, RenderedParagraph

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
COVER_LETTER_DOCX_NAME = "00_Cover_Letter.docx"
COVER_LETTER_TEXT_NAME = "00_Cover_Letter.txt"
PAGE_MARGIN = Inches(0.5)

_ALIGNMENTS = {
    Alignment.LEFT: WD_ALIGN_PARAGRAPH.LEFT,
    Alignment.CENTER: WD_ALIGN_PARAGRAPH.CENTER,
    Alignment.RIGHT: WD_ALIGN_PARAGRAPH.RIGHT,
}


def write_docx(paragraphs: Sequence[RenderedParagraph]) -> bytes:
    document = Document()
    for section in document.sections:
        section.top_margin = PAGE_MARGIN
        section.bottom_margin = PAGE_MARGIN
        section.left_margin = PAGE_MARGIN
        section.right_margin = PAGE_MARGIN

    for rendered in paragraphs:
        paragraph = document.add_paragraph()
        paragraph.alignment = _ALIGNMENTS.get(rendered.alignment, WD_ALIGN_PARAGRAPH.LEFT)
        paragraph_format = paragraph.paragraph_format
        if rendered.indent_left_pt:
            paragraph_format.left_indent = Pt(rendered.indent_left_pt)
            paragraph_format.first_line_indent = Pt(0)
        if rendered.role is LineRole.FILE_ENTRY:
            paragraph_format.space_before = Pt(0)
            paragraph_format.space_after = Pt(0)

        for source in rendered.runs:
            run = paragraph.add_run(source.text)
            run.font.size = Pt(source.size_pt)
            run.bold = source.bold
            run.italic = source.italic
            if source.font:
                run.font.name = source.font
            if source.color:
                run.font.color.rgb = RGBColor.from_string(source.color)

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def render_cover_letter(
    cover_letter: str | Sequence[ClassifiedLine],
    *,
    fmt: str = "docx",
    profile: LetterProfile = DEFAULT_PROFILE,
) -> tuple[str, bytes]:
    """Render a cover letter to ``(entry name, bytes)`` in the requested format."""
    classified = classify_text(cover_letter, profile) if isinstance(cover_letter, str) else list(cover_letter)
    paragraphs = render(classified, profile)
    if fmt.strip().lower() == "txt":
        return COVER_LETTER_TEXT_NAME, plain_text(paragraphs).encode("utf-8")
    return COVER_LETTER_DOCX_NAME, write_docx(paragraphs)

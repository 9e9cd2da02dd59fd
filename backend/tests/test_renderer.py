from __future__ import annotations

import io

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt, RGBColor

from permitpack.formatting import classify, plain_text, render, render_cover_letter, write_docx
from permitpack.formatting.docx_writer import COVER_LETTER_DOCX_NAME, COVER_LETTER_TEXT_NAME
from permitpack.formatting.renderer import STYLE_TABLE, render_line, style_for
from permitpack.models import Alignment, ClassifiedLine, LineRole

LETTER = [
    "Intralog Permit Services",
    "",
    "March 3, 2025",
    "**1. Site Plan**",
    "Files Submitted:",
    "    site_plan_final.pdf",
    "**4. Special Inspection**",
    "Files Submitted:",
    "    specialinspection_v3 (2 copies).pdf",
    "Email: permits@intralog.io",
    "Sincerely,",
    "Intralog Permit Services Team",
    "Generated by PainlessPermit",
]


def _by_role(paragraphs, role: LineRole):
    return [paragraph for paragraph in paragraphs if paragraph.role is role]


def test_style_table_matches_role_contract() -> None:
    header = STYLE_TABLE[LineRole.HEADER]
    assert (header.size_pt, header.bold, header.alignment) == (14, True, Alignment.CENTER)
    assert STYLE_TABLE[LineRole.DATE].alignment is Alignment.RIGHT
    assert STYLE_TABLE[LineRole.SUBJECT].bold is True
    assert STYLE_TABLE[LineRole.CATEGORY_HEADING].font == "Times New Roman"
    assert STYLE_TABLE[LineRole.FILES_HEADER].bold is False
    footer = STYLE_TABLE[LineRole.FOOTER]
    assert (footer.size_pt, footer.italic, footer.alignment, footer.color) == (9, True, Alignment.CENTER, "666666")
    body = STYLE_TABLE[LineRole.BODY]
    assert (body.size_pt, body.font, body.bold) == (11, "Times New Roman", False)


def test_file_entries_are_uniform_across_categories() -> None:
    paragraphs = render(classify(LETTER))
    entries = _by_role(paragraphs, LineRole.FILE_ENTRY)
    assert [paragraph.text for paragraph in entries] == ["site_plan_final.pdf", "specialinspection_v3.pdf"]
    for paragraph in entries:
        assert paragraph.indent_left_pt == 9
        assert paragraph.alignment is Alignment.LEFT
        for run in paragraph.runs:
            assert run.size_pt == 10
            assert run.font == "Times New Roman"
            assert run.bold is False


def test_category_heading_renders_bold_without_markers() -> None:
    heading = _by_role(render(classify(["**2. Facility Plan**"])), LineRole.CATEGORY_HEADING)[0]
    assert heading.text == "2. Facility Plan"
    assert heading.runs[0].bold is True
    assert heading.runs[0].size_pt == 11


def test_contact_line_has_bold_label_and_plain_value() -> None:
    paragraph = render_line(ClassifiedLine(LineRole.CONTACT_LABEL_VALUE, "Email: permits@intralog.io", 4))
    assert [(run.text, run.bold) for run in paragraph.runs] == [("Email:", True), (" permits@intralog.io", False)]


def test_closing_is_bold_only_with_signature() -> None:
    paragraphs = render(classify(LETTER))
    closings = {paragraph.text: paragraph.runs[0].bold for paragraph in _by_role(paragraphs, LineRole.CLOSING)}
    assert closings == {"Sincerely,": False, "Intralog Permit Services Team": True}


def test_blank_lines_become_spacers() -> None:
    paragraphs = render(classify(["Intralog Permit Services", "", "", "Dear Staff,"]))
    assert len(paragraphs) == 4
    assert paragraphs[1].is_spacer and paragraphs[2].is_spacer
    assert len(paragraphs[1].runs) == 1 and paragraphs[1].runs[0].text == ""


def test_leading_blank_lines_become_spacers() -> None:
    paragraphs = render(classify(["", "Dear Staff,"]))
    assert paragraphs[0].is_spacer
    assert paragraphs[1].role is LineRole.SALUTATION


def test_unknown_role_falls_back_to_body() -> None:
    assert style_for("mystery") == STYLE_TABLE[LineRole.BODY]
    paragraph = render_line(ClassifiedLine("mystery", "text", 0))  # type: ignore[arg-type]
    assert paragraph.role is LineRole.BODY
    assert paragraph.runs[0].font == "Times New Roman"


def test_plain_text_reindents_file_entries() -> None:
    text = plain_text(render(classify(LETTER)))
    assert "\n    site_plan_final.pdf\n" in text
    assert text.splitlines()[1] == ""


def test_docx_output_carries_typography() -> None:
    data = write_docx(render(classify(LETTER)))
    document = Document(io.BytesIO(data))
    paragraphs = {paragraph.text: paragraph for paragraph in document.paragraphs if paragraph.text}

    header = paragraphs["Intralog Permit Services"]
    assert header.alignment == WD_ALIGN_PARAGRAPH.CENTER
    assert header.runs[0].bold is True
    assert header.runs[0].font.size == Pt(14)

    assert paragraphs["March 3, 2025"].alignment == WD_ALIGN_PARAGRAPH.RIGHT

    for name in ("site_plan_final.pdf", "specialinspection_v3.pdf"):
        entry = paragraphs[name]
        assert entry.paragraph_format.left_indent == Pt(9)
        assert entry.runs[0].font.size == Pt(10)
        assert entry.runs[0].font.name == "Times New Roman"

    footer = paragraphs["Generated by PainlessPermit"]
    assert footer.runs[0].italic is True
    assert footer.runs[0].font.color.rgb == RGBColor(0x66, 0x66, 0x66)

    section = document.sections[0]
    assert section.left_margin == Pt(36)


def test_render_cover_letter_formats() -> None:
    name, data = render_cover_letter("\n".join(LETTER))
    assert name == COVER_LETTER_DOCX_NAME
    assert data[:2] == b"PK"

    name, data = render_cover_letter("\n".join(LETTER), fmt="txt")
    assert name == COVER_LETTER_TEXT_NAME
    assert data.decode("utf-8").startswith("Intralog Permit Services\n")

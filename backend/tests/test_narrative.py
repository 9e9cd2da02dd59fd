from __future__ import annotations

from datetime import date
import logging

import pytest

from permitpack.formatting import classify_text
from permitpack.formatting.classifier import role_sequence
from permitpack.models import DocumentRecord, LineRole
from permitpack.narrative import (
    NarrativeProviderError,
    ProjectDetails,
    StaticNarrativeProvider,
    TemplateNarrativeProvider,
    blocks_to_text,
    build_template_blocks,
    fill_placeholders,
    format_letter_date,
    resolve_narrative,
)

TODAY = date(2025, 3, 3)
PROJECT = ProjectDetails(
    name="Warehouse 9",
    facility_address="400 Industrial Rd",
    jurisdiction="City of Mesa",
    permit_number="HPS-104",
    contact_email="ops@example.com",
)


def _documents() -> list[DocumentRecord]:
    return [
        DocumentRecord(id="1", category="fire_protection", file_name="sprinklers.pdf"),
        DocumentRecord(id="2", category="site_plan", file_name="site.pdf"),
        DocumentRecord(id="3", category="special_inspection", file_name="special (2 copies).pdf"),
        DocumentRecord(id="4", category="site_plan", file_name="aerial.jpg"),
        DocumentRecord(id="5", category="cover_letter", file_name="cover.docx"),
    ]


def _template() -> TemplateNarrativeProvider:
    return TemplateNarrativeProvider(contact_email="permits@intralog.io", contact_phone="(801) 441-8992", today=lambda: TODAY)


def test_template_blocks_group_documents_in_package_order() -> None:
    blocks = build_template_blocks(PROJECT, _documents(), today=TODAY, contact_phone="(801) 441-8992")
    headings = [block["text"] for block in blocks if block["role"] == "category_heading"]
    assert headings == ["1. Site Plan", "2. Special Inspection", "3. Fire Protection"]
    entries = [block["text"] for block in blocks if block["role"] == "file_entry"]
    assert entries == ["aerial.jpg", "site.pdf", "special (2 copies).pdf", "sprinklers.pdf"]
    assert blocks[0] == {"role": "header", "text": "Intralog Permit Services"}
    assert {"role": "date", "text": "March 3, 2025"} in blocks
    assert {"role": "contact_label_value", "text": "Email: ops@example.com"} in blocks
    assert blocks[-1] == {"role": "footer", "text": "Generated by PainlessPermit"}


def test_template_text_classifies_like_its_blocks() -> None:
    provider = _template()
    blocks = provider.blocks(PROJECT, _documents())
    expected = [LineRole(block["role"]) for block in blocks if block["text"]]
    assert role_sequence(classify_text(provider.generate(PROJECT, _documents()))) == expected


def test_blocks_to_text_indents_file_entries() -> None:
    text = blocks_to_text([{"role": "file_entry", "text": "a.pdf"}, {"role": "", "text": ""}, {"role": "body", "text": "b"}])
    assert text == "    a.pdf\n\nb"


def test_resolve_uses_template_without_provider() -> None:
    resolved = resolve_narrative(None, PROJECT, _documents(), fallback=_template())
    assert resolved.source == "template"
    assert resolved.blocks
    assert resolved.classified()[0].role is LineRole.HEADER


def test_resolve_falls_back_when_provider_raises(caplog: pytest.LogCaptureFixture) -> None:
    class BrokenProvider:
        def generate(self, project: ProjectDetails, documents) -> str:
            raise NarrativeProviderError("model unavailable")

    with caplog.at_level(logging.WARNING, logger="permitpack.narrative"):
        resolved = resolve_narrative(BrokenProvider(), PROJECT, _documents(), fallback=_template())

    assert resolved.source == "template"
    assert any(getattr(record, "event", None) == "narrative_provider_failed" for record in caplog.records)


def test_resolve_falls_back_on_empty_text() -> None:
    resolved = resolve_narrative(StaticNarrativeProvider("   \n"), PROJECT, _documents(), fallback=_template())
    assert resolved.source == "template"


def test_resolve_fills_placeholders_in_provider_text() -> None:
    provider = StaticNarrativeProvider("Intralog Permit Services\n[Date]\nEmail: [Your Email]\n[Your Name]")
    resolved = resolve_narrative(provider, PROJECT, _documents(), fallback=_template())
    assert resolved.source == "provider"
    assert resolved.blocks == ()
    assert resolved.text == "Intralog Permit Services\nMarch 3, 2025\nEmail: ops@example.com\nIntralog Permit Services Team"
    assert role_sequence(resolved.classified()) == [
        LineRole.HEADER,
        LineRole.DATE,
        LineRole.CONTACT_LABEL_VALUE,
        LineRole.CLOSING,
    ]


def test_fill_placeholders_defaults() -> None:
    project = ProjectDetails(name="P")
    text = "[Company Address] [City, State ZIP] [Phone Number] [Email Address] [Something Else] [Current Date]"
    assert fill_placeholders(text, project, TODAY) == (
        "123 Permit Way, Suite 100 Phoenix, AZ 85001 (800) 555-1234 permits@intralog.com "
        "Intralog Permit Services March 3, 2025"
    )


def test_format_letter_date_has_no_zero_padding() -> None:
    assert format_letter_date(date(2026, 1, 5)) == "January 5, 2026"

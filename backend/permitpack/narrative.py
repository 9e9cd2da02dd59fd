from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
import re
from typing import Callable, Iterable, Protocol, Sequence

from permitpack.categories import category_description, category_label, category_order, normalize_category, sort_documents
from permitpack.formatting.classifier import classified_from_blocks, classify_text
from permitpack.formatting.policy import DEFAULT_PROFILE, INDENT, LetterProfile
from permitpack.models import Category, ClassifiedLine, DocumentRecord, LineRole

logger = logging.getLogger("permitpack.narrative")

NarrativeBlock = dict[str, str]

DEFAULT_JURISDICTION = "Local Authority Having Jurisdiction"
DEFAULT_PERMIT_NUMBER = "To be assigned"
DEFAULT_SENDER_ADDRESS = "123 Permit Way, Suite 100"
DEFAULT_SENDER_CITY = "Phoenix, AZ 85001"
DEFAULT_PLACEHOLDER_EMAIL = "permits@intralog.com"
DEFAULT_PLACEHOLDER_PHONE = "(800) 555-1234"

_PLACEHOLDER_PATTERN = re.compile(r"\[(.*?)\]")


class NarrativeProviderError(RuntimeError):
    """Raised by a narrative provider that could not produce a letter."""


@dataclass(frozen=True)
class ProjectDetails:
    name: str
    facility_address: str = ""
    jurisdiction: str = ""
    jurisdiction_address: str = ""
    client_name: str = ""
    permit_number: str = ""
    contact_email: str = ""
    contact_phone: str = ""


class NarrativeProvider(Protocol):
    def generate(self, project: ProjectDetails, documents: Sequence[DocumentRecord]) -> str:
        ...


class StaticNarrativeProvider:
    """Returns a letter that was written elsewhere, e.g. uploaded with the request."""

    def __init__(self, text: str) -> None:
        self.text = text

    def generate(self, project: ProjectDetails, documents: Sequence[DocumentRecord]) -> str:
        del project, documents
        return self.text


@dataclass(frozen=True)
class ResolvedNarrative:
    text: str
    source: str  # provider|template
    blocks: tuple[NarrativeBlock, ...] = ()

    def classified(self, profile: LetterProfile = DEFAULT_PROFILE) -> list[ClassifiedLine]:
        if self.blocks:
            return classified_from_blocks(self.blocks)
        return classify_text(self.text, profile)


def format_letter_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def _block(role: LineRole | None, text: str = "") -> NarrativeBlock:
    return {"role": role.value if role is not None else "", "text": text}


def _supporting_documents(documents: Iterable[DocumentRecord]) -> list[DocumentRecord]:
    return sort_documents(
        [document for document in documents if normalize_category(document.category) is not Category.COVER_LETTER]
    )


def build_template_blocks(
    project: ProjectDetails,
    documents: Sequence[DocumentRecord],
    *,
    today: date,
    profile: LetterProfile = DEFAULT_PROFILE,
    contact_email: str = "",
    contact_phone: str = "",
) -> list[NarrativeBlock]:
    """Lay out the standard permit cover letter as ``{role, text}`` blocks.

    Blocks with an empty role are blank lines. Supporting documents are grouped
    under numbered category headings in package order.
    """
    blocks: list[NarrativeBlock] = [
        _block(LineRole.HEADER, profile.letterhead),
        _block(None),
        _block(LineRole.DATE, format_letter_date(today)),
        _block(None),
        _block(LineRole.BODY, f"To: {project.jurisdiction or DEFAULT_JURISDICTION}"),
    ]
    if project.jurisdiction_address:
        blocks.append(_block(LineRole.BODY, project.jurisdiction_address))
    blocks.extend(
        [
            _block(None),
            _block(LineRole.SUBJECT, f"Subject: High-Piled Storage Permit Application for {project.name}"),
            _block(LineRole.BODY, f"Permit Number: {project.permit_number or DEFAULT_PERMIT_NUMBER}"),
        ]
    )
    if project.facility_address:
        blocks.append(_block(LineRole.BODY, f"Facility Address: {project.facility_address}"))
    if project.client_name:
        blocks.append(_block(LineRole.BODY, f"Client: {project.client_name}"))
    blocks.extend(
        [
            _block(None),
            _block(LineRole.SALUTATION, "Dear Permit Review Staff,"),
            _block(None),
            _block(
                LineRole.BODY,
                "Please find attached the complete set of documents for the High-Piled Storage Permit "
                f"application for {project.name}. The documents are organized by category below.",
            ),
            _block(None),
        ]
    )

    groups: dict[int, list[DocumentRecord]] = {}
    labels: dict[int, tuple[str, str]] = {}
    for document in _supporting_documents(documents):
        order = category_order(document.category)
        groups.setdefault(order, []).append(document)
        labels.setdefault(order, (category_label(document.category), category_description(document.category)))

    for number, order in enumerate(sorted(groups), start=1):
        label, description = labels[order]
        blocks.append(_block(LineRole.CATEGORY_HEADING, f"{number}. {label}"))
        blocks.append(_block(LineRole.BODY, description))
        blocks.append(_block(LineRole.FILES_HEADER, "Files Submitted:"))
        for document in groups[order]:
            blocks.append(_block(LineRole.FILE_ENTRY, document.file_name))
        blocks.append(_block(None))

    blocks.extend(
        [
            _block(
                LineRole.BODY,
                "If you require any additional information or clarification, please contact us:",
            ),
            _block(LineRole.CONTACT_LABEL_VALUE, f"Email: {project.contact_email or contact_email}"),
            _block(LineRole.CONTACT_LABEL_VALUE, f"Phone: {project.contact_phone or contact_phone}"),
            _block(None),
            _block(LineRole.CLOSING, "Sincerely,"),
            _block(LineRole.CLOSING, f"{profile.letterhead} Team"),
            _block(None),
            _block(LineRole.FOOTER, profile.footer_prefix),
        ]
    )
    return blocks


def blocks_to_text(blocks: Iterable[NarrativeBlock]) -> str:
    lines: list[str] = []
    for block in blocks:
        text = block.get("text", "")
        if block.get("role") == LineRole.FILE_ENTRY.value and text:
            text = f"{INDENT}{text}"
        lines.append(text)
    return "\n".join(lines)


class TemplateNarrativeProvider:
    """Deterministic cover letter used when no generator is configured or it fails."""

    def __init__(
        self,
        *,
        profile: LetterProfile = DEFAULT_PROFILE,
        contact_email: str = "",
        contact_phone: str = "",
        today: Callable[[], date] = date.today,
    ) -> None:
        self.profile = profile
        self.contact_email = contact_email
        self.contact_phone = contact_phone
        self._today = today

    def today(self) -> date:
        return self._today()

    def blocks(self, project: ProjectDetails, documents: Sequence[DocumentRecord]) -> list[NarrativeBlock]:
        return build_template_blocks(
            project,
            documents,
            today=self.today(),
            profile=self.profile,
            contact_email=self.contact_email,
            contact_phone=self.contact_phone,
        )

    def generate(self, project: ProjectDetails, documents: Sequence[DocumentRecord]) -> str:
        return blocks_to_text(self.blocks(project, documents))


def resolve_narrative(
    provider: NarrativeProvider | None,
    project: ProjectDetails,
    documents: Sequence[DocumentRecord],
    *,
    fallback: TemplateNarrativeProvider,
) -> ResolvedNarrative:
    if provider is not None:
        try:
            text = provider.generate(project, documents)
        except Exception as exc:
            logger.warning(
                "narrative_provider_failed",
                extra={"event": "narrative_provider_failed", "error_type": type(exc).__name__, "error": str(exc)},
            )
        else:
            if text and text.strip():
                filled = fill_placeholders(
                    text,
                    project,
                    fallback.today(),
                    default_email=fallback.contact_email or DEFAULT_PLACEHOLDER_EMAIL,
                    default_phone=fallback.contact_phone or DEFAULT_PLACEHOLDER_PHONE,
                    profile=fallback.profile,
                )
                return ResolvedNarrative(text=filled, source="provider")
            logger.warning("narrative_provider_empty", extra={"event": "narrative_provider_empty"})

    blocks = fallback.blocks(project, documents)
    logger.info(
        "narrative_template_used",
        extra={"event": "narrative_template_used", "block_count": len(blocks)},
    )
    return ResolvedNarrative(text=blocks_to_text(blocks), source="template", blocks=tuple(blocks))


def fill_placeholders(
    text: str,
    project: ProjectDetails,
    today: date,
    *,
    default_email: str = DEFAULT_PLACEHOLDER_EMAIL,
    default_phone: str = DEFAULT_PLACEHOLDER_PHONE,
    profile: LetterProfile = DEFAULT_PROFILE,
) -> str:
    """Replace bracketed ``[...]`` placeholders a generator left in the letter."""

    def replacement(match: re.Match[str]) -> str:
        placeholder = match.group(0).lower()
        if "email" in placeholder:
            return project.contact_email or default_email
        if "phone" in placeholder:
            return project.contact_phone or default_phone
        if "name" in placeholder or "contact" in placeholder:
            return f"{profile.letterhead} Team"
        if "address" in placeholder:
            return DEFAULT_SENDER_ADDRESS
        if "city" in placeholder or "state" in placeholder or "zip" in placeholder:
            return DEFAULT_SENDER_CITY
        if "date" in placeholder:
            return format_letter_date(today)
        return profile.letterhead

    return _PLACEHOLDER_PATTERN.sub(replacement, text)

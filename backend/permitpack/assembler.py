from __future__ import annotations

import logging
import re
from typing import Iterable, Sequence

from permitpack.categories import normalize_category, sort_documents
from permitpack.formatting.classifier import classify_text
from permitpack.formatting.docx_writer import render_cover_letter
from permitpack.formatting.policy import DEFAULT_PROFILE, LetterProfile
from permitpack.models import (
    Category,
    ClassifiedLine,
    DocumentRecord,
    ManifestEntry,
    PackageManifest,
    SkippedDocument,
)

logger = logging.getLogger("permitpack.assembler")

_UNSAFE_FILE_NAME_PATTERN = re.compile(r'[<>:"/\\|?*]')
_NON_ALPHANUMERIC_PATTERN = re.compile(r"[^A-Za-z0-9]")
DEFAULT_ARCHIVE_STEM = "Project"


def sanitize_file_name(name: str) -> str:
    return _UNSAFE_FILE_NAME_PATTERN.sub("_", name or "").strip()


def sanitize_project_name(name: str) -> str:
    stem = _NON_ALPHANUMERIC_PATTERN.sub("_", (name or "").strip())
    return stem or DEFAULT_ARCHIVE_STEM


def sequence_prefix(position: int) -> str:
    return f"{position:02d}"


def _is_cover_letter(document: DocumentRecord) -> bool:
    return normalize_category(document.category) is Category.COVER_LETTER


def packaged_documents(documents: Iterable[DocumentRecord]) -> list[DocumentRecord]:
    """Supporting documents that will be written into the archive, in package order."""
    return sort_documents(
        [document for document in documents if not _is_cover_letter(document) and document.content is not None]
    )


def build_document_entries(
    documents: Iterable[DocumentRecord],
) -> tuple[list[ManifestEntry], list[SkippedDocument]]:
    """Number supporting documents in package order and name each archive entry."""
    snapshot = tuple(documents)
    candidates = [document for document in snapshot if not _is_cover_letter(document)]

    entries: list[ManifestEntry] = []
    skipped: list[SkippedDocument] = []
    position = 0
    for document in sort_documents(candidates):
        if document.content is None:
            skipped.append(
                SkippedDocument(
                    document_id=str(document.id),
                    file_name=document.file_name,
                    reason="content unavailable",
                )
            )
            continue
        position += 1
        safe_name = sanitize_file_name(document.file_name) or f"document_{sanitize_file_name(str(document.id))}"
        entries.append(ManifestEntry(name=f"{sequence_prefix(position)}_{safe_name}", data=document.content))
    return entries, skipped


def assemble_classified(
    classified: Sequence[ClassifiedLine],
    documents: Iterable[DocumentRecord],
    project_name: str,
    *,
    profile: LetterProfile = DEFAULT_PROFILE,
    cover_letter_format: str = "docx",
) -> PackageManifest:
    cover_name, cover_bytes = render_cover_letter(list(classified), fmt=cover_letter_format, profile=profile)
    entries, skipped = build_document_entries(documents)

    if skipped:
        logger.warning(
            "package_documents_skipped",
            extra={
                "event": "package_documents_skipped",
                "skipped_files": [item.file_name for item in skipped],
                "skipped_count": len(skipped),
            },
        )

    manifest = PackageManifest(
        project_name=project_name,
        archive_stem=sanitize_project_name(project_name),
        entries=(ManifestEntry(name=cover_name, data=cover_bytes), *entries),
        skipped=tuple(skipped),
    )
    logger.info(
        "package_assembled",
        extra={
            "event": "package_assembled",
            "archive_stem": manifest.archive_stem,
            "entry_count": manifest.entry_count,
            "total_bytes": manifest.total_bytes,
        },
    )
    return manifest


def assemble(
    cover_letter_raw: str,
    documents: Iterable[DocumentRecord],
    project_name: str,
    *,
    profile: LetterProfile = DEFAULT_PROFILE,
    cover_letter_format: str = "docx",
) -> PackageManifest:
    """Combine the rendered cover letter and supporting documents into a manifest.

    The cover letter always occupies entry 0. Supporting documents are taken
    from a snapshot of ``documents``, stored cover letters are dropped in
    favour of the generated one, and the rest are numbered ``01``, ``02``...
    in package order. Documents without bytes are left out and reported in
    ``PackageManifest.skipped``.
    """
    return assemble_classified(
        classify_text(cover_letter_raw or "", profile),
        documents,
        project_name,
        profile=profile,
        cover_letter_format=cover_letter_format,
    )


def skipped_warning(manifest: PackageManifest) -> str | None:
    if not manifest.skipped:
        return None
    names = ", ".join(item.file_name for item in manifest.skipped)
    return f"{len(manifest.skipped)} document(s) were left out because their content could not be retrieved: {names}"

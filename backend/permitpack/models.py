from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum


class Category(str, Enum):
    SITE_PLAN = "site_plan"
    FACILITY_PLAN = "facility_plan"
    EGRESS_PLAN = "egress_plan"
    STRUCTURAL_PLANS = "structural_plans"
    COMMODITIES = "commodities"
    FIRE_PROTECTION = "fire_protection"
    SPECIAL_INSPECTION = "special_inspection"
    COVER_LETTER = "cover_letter"


class Status(str, Enum):
    NOT_SUBMITTED = "not_submitted"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class LineRole(str, Enum):
    HEADER = "header"
    DATE = "date"
    SUBJECT = "subject"
    SALUTATION = "salutation"
    CATEGORY_HEADING = "category_heading"
    FILES_HEADER = "files_header"
    FILE_ENTRY = "file_entry"
    CONTACT_LABEL_VALUE = "contact_label_value"
    CLOSING = "closing"
    FOOTER = "footer"
    BODY = "body"


class Alignment(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass(frozen=True)
class DocumentRecord:
    id: str
    category: str
    file_name: str
    status: str = Status.NOT_SUBMITTED.value
    version: int = 1
    content: bytes | None = None
    storage_path: str | None = None

    def with_content(self, content: bytes | None) -> DocumentRecord:
        return replace(self, content=content)


@dataclass(frozen=True)
class ClassifiedLine:
    role: LineRole
    text: str
    raw_index: int


@dataclass(frozen=True)
class Run:
    text: str
    size_pt: float
    bold: bool = False
    italic: bool = False
    font: str | None = None
    color: str | None = None


@dataclass(frozen=True)
class RenderedParagraph:
    runs: tuple[Run, ...]
    alignment: Alignment = Alignment.LEFT
    indent_left_pt: float = 0
    role: LineRole | None = None

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)

    @property
    def is_spacer(self) -> bool:
        return self.role is None


@dataclass(frozen=True)
class ManifestEntry:
    name: str
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class SkippedDocument:
    document_id: str
    file_name: str
    reason: str


@dataclass(frozen=True)
class PackageManifest:
    project_name: str
    archive_stem: str
    entries: tuple[ManifestEntry, ...]
    skipped: tuple[SkippedDocument, ...] = field(default_factory=tuple)

    @property
    def cover_letter(self) -> ManifestEntry:
        return self.entries[0]

    @property
    def entry_count(self) -> int:
        return len(self.entries)

    @property
    def total_bytes(self) -> int:
        return sum(entry.size_bytes for entry in self.entries)

    @property
    def container_name(self) -> str:
        return f"{self.archive_stem}_Documents.zip"

    @property
    def download_name(self) -> str:
        return f"{self.archive_stem}_Submission.zip"

    @property
    def folder_name(self) -> str:
        return f"{self.archive_stem}_Documents"

    @property
    def manifest_text_name(self) -> str:
        return f"{self.archive_stem}_Manifest.txt"

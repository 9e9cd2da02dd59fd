from __future__ import annotations

import base64
import binascii

from pydantic import BaseModel, Field, field_validator

from permitpack.models import DocumentRecord
from permitpack.narrative import ProjectDetails


class DocumentPayload(BaseModel):
    id: str = Field(..., min_length=1, max_length=120)
    category: str = Field(..., min_length=1, max_length=60)
    file_name: str = Field(..., min_length=1, max_length=255)
    status: str = Field(default="not_submitted", pattern="^(not_submitted|pending_review|approved|rejected)$")
    version: int = Field(default=1, ge=1)
    content_base64: str | None = None
    storage_path: str | None = Field(default=None, max_length=1024)

    @field_validator("content_base64")
    @classmethod
    def _validate_base64(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("content_base64 must be valid base64") from exc
        return value

    def to_record(self) -> DocumentRecord:
        content = base64.b64decode(self.content_base64) if self.content_base64 is not None else None
        return DocumentRecord(
            id=self.id,
            category=self.category,
            file_name=self.file_name,
            status=self.status,
            version=self.version,
            content=content,
            storage_path=self.storage_path,
        )


class ProjectPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=160)
    facility_address: str = Field(default="", max_length=300)
    jurisdiction: str = Field(default="", max_length=160)
    jurisdiction_address: str = Field(default="", max_length=300)
    client_name: str = Field(default="", max_length=160)
    permit_number: str = Field(default="", max_length=80)
    contact_email: str = Field(default="", max_length=160)
    contact_phone: str = Field(default="", max_length=40)

    def to_details(self) -> ProjectDetails:
        return ProjectDetails(**self.model_dump())


class ProgressRequest(BaseModel):
    documents: list[DocumentPayload] = Field(default_factory=list)


class ClassifyRequest(BaseModel):
    text: str = Field(..., max_length=100_000)


class CoverLetterRequest(BaseModel):
    project: ProjectPayload
    narrative: str | None = Field(default=None, max_length=100_000)
    documents: list[DocumentPayload] = Field(default_factory=list)
    document_scope: str = Field(default="latest", pattern="^(latest|all)$")
    format: str | None = Field(default=None, pattern="^(docx|txt)$")


class ExportRequest(BaseModel):
    project: ProjectPayload
    narrative: str | None = Field(default=None, max_length=100_000)
    documents: list[DocumentPayload] = Field(default_factory=list)
    document_scope: str = Field(default="latest", pattern="^(latest|all)$")
    cover_letter_format: str | None = Field(default=None, pattern="^(docx|txt)$")

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse, Response

from permitpack.api.contracts import (
    ClassifyRequest,
    CoverLetterRequest,
    DocumentPayload,
    ExportRequest,
    ProgressRequest,
    ProjectPayload,
)
from permitpack.archive import (
    ArchiveBackend,
    AssemblyFailure,
    MemoryDownloadSink,
    NotificationCenter,
    PersistStatus,
    PlatformCapabilities,
    ZipCompressor,
)
from permitpack.assembler import assemble_classified, packaged_documents, skipped_warning
from permitpack.config import settings
from permitpack.formatting import render_cover_letter
from permitpack.formatting.docx_writer import DOCX_MEDIA_TYPE
from permitpack.formatting.classifier import classify_text
from permitpack.models import DocumentRecord, PackageManifest
from permitpack.narrative import (
    NarrativeProvider,
    ResolvedNarrative,
    StaticNarrativeProvider,
    TemplateNarrativeProvider,
    resolve_narrative,
)
from permitpack.observability import export_scope
from permitpack.progress import progress, select_documents
from permitpack.storage import fetch_document_contents, storage_loader

logger = logging.getLogger("permitpack.api")

NarrativeProviderGetter = Callable[[], NarrativeProvider | None]
NotificationCenterGetter = Callable[[], NotificationCenter]


def _to_records(documents: list[DocumentPayload]) -> list[DocumentRecord]:
    if len(documents) > settings.max_documents_per_export:
        raise HTTPException(
            status_code=413,
            detail=f"Too many documents in one request (max {settings.max_documents_per_export}).",
        )
    return [document.to_record() for document in documents]


def _template_provider() -> TemplateNarrativeProvider:
    return TemplateNarrativeProvider(
        profile=settings.letter_profile,
        contact_email=settings.default_contact_email,
        contact_phone=settings.default_contact_phone,
    )


def build_packages_router(
    *,
    get_narrative_provider: NarrativeProviderGetter,
    get_notification_center: NotificationCenterGetter,
) -> APIRouter:
    router = APIRouter()

    def narrative_for(
        narrative: str | None,
        payload_project: ProjectPayload,
        records: list[DocumentRecord],
    ) -> ResolvedNarrative:
        provider = StaticNarrativeProvider(narrative) if narrative and narrative.strip() else get_narrative_provider()
        return resolve_narrative(provider, payload_project.to_details(), records, fallback=_template_provider())

    @router.post("/packages/progress")
    def package_progress(payload: ProgressRequest) -> dict[str, object]:
        return progress(_to_records(payload.documents)).to_dict()

    @router.post("/packages/classify")
    def classify_cover_letter(payload: ClassifyRequest) -> dict[str, object]:
        lines = classify_text(payload.text, settings.letter_profile)
        return {
            "lines": [{"role": line.role.value, "text": line.text, "raw_index": line.raw_index} for line in lines],
            "line_count": len(lines),
        }

    @router.post("/packages/cover-letter")
    def cover_letter(payload: CoverLetterRequest) -> Response:
        records = select_documents(_to_records(payload.documents), payload.document_scope)
        resolved = narrative_for(payload.narrative, payload.project, records)
        fmt = payload.format or settings.cover_letter_format
        name, data = render_cover_letter(
            resolved.classified(settings.letter_profile),
            fmt=fmt,
            profile=settings.letter_profile,
        )
        media_type = DOCX_MEDIA_TYPE if name.endswith(".docx") else "text/plain; charset=utf-8"
        return Response(
            content=data,
            media_type=media_type,
            headers={
                "Content-Disposition": f'attachment; filename="{name}"',
                "X-Narrative-Source": resolved.source,
            },
        )

    def compose_package(
        payload: ExportRequest,
        fetched: list[DocumentRecord],
    ) -> tuple[ResolvedNarrative, PackageManifest]:
        # The letter lists exactly the documents the archive will hold.
        resolved = narrative_for(payload.narrative, payload.project, packaged_documents(fetched))
        manifest = assemble_classified(
            resolved.classified(settings.letter_profile),
            fetched,
            payload.project.name,
            profile=settings.letter_profile,
            cover_letter_format=payload.cover_letter_format or settings.cover_letter_format,
        )
        return resolved, manifest

    @router.post("/packages/export", response_model=None)
    async def export_package(payload: ExportRequest) -> Response:
        records = _to_records(payload.documents)
        gate = progress(records)
        if not gate.eligible:
            raise HTTPException(
                status_code=409,
                detail={
                    "message": "Project is not eligible for submission yet.",
                    **gate.to_dict(),
                },
            )

        with export_scope():
            fetched = await fetch_document_contents(
                select_documents(records, payload.document_scope),
                storage_loader(settings),
                max_in_flight=settings.fetch_max_in_flight,
            )
            resolved, manifest = await asyncio.to_thread(compose_package, payload, fetched)

            sink = MemoryDownloadSink()
            compressor = (
                ZipCompressor(compression_level=settings.zip_compression_level)
                if settings.archive_compression_enabled
                else None
            )
            backend = ArchiveBackend(
                platform=PlatformCapabilities(
                    download_sink=sink,
                    compressor=compressor,
                    restricted=settings.restricted_context,
                ),
                notifier=get_notification_center(),
                notification_ttl_seconds=settings.notification_ttl_seconds,
            )
            try:
                result = await asyncio.to_thread(backend.persist, manifest)
            except AssemblyFailure as exc:
                raise HTTPException(
                    status_code=500,
                    detail={
                        "message": f"{exc} Retry the export or download the documents individually.",
                        "attempts": exc.attempts,
                    },
                ) from exc

            if result.status is PersistStatus.CANCELLED:
                return JSONResponse(status_code=409, content={"status": "cancelled"})

            delivered = sink.last
            if delivered is None:
                raise HTTPException(status_code=500, detail="Export produced no downloadable artifact.")

            headers = {
                "Content-Disposition": f'attachment; filename="{delivered.file_name}"',
                "X-Persist-Method": str(result.method or ""),
                "X-Entry-Count": str(manifest.entry_count),
                "X-Skipped-Files": str(len(manifest.skipped)),
                "X-Narrative-Source": resolved.source,
            }
            warning = skipped_warning(manifest)
            if warning:
                logger.warning(
                    "export_incomplete",
                    extra={"event": "export_incomplete", "skipped_count": len(manifest.skipped), "warning": warning},
                )
            return Response(content=delivered.data, media_type=delivered.media_type, headers=headers)

    @router.get("/notifications")
    def notifications() -> dict[str, object]:
        active = get_notification_center().active()
        return {
            "notifications": [
                {
                    "title": item.title,
                    "message": item.message,
                    "artifact_name": item.artifact_name,
                    "entry_count": item.entry_count,
                    "location": item.location,
                    "ttl_seconds": item.ttl_seconds,
                }
                for item in active
            ]
        }

    return router

"""Command line entry point for checking progress and exporting submission packages."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Sequence, TextIO

from pydantic import ValidationError

from permitpack.api.contracts import DocumentPayload
from permitpack.archive import (
    ArchiveBackend,
    AssemblyFailure,
    FixedDirectoryPicker,
    FixedPathSaveDialog,
    FolderDownloadSink,
    JsonFilePreferenceStore,
    Notification,
    PersistStatus,
    PlatformCapabilities,
    PromptDirectoryPicker,
    PromptSaveDialog,
    ZipCompressor,
)
from permitpack.assembler import assemble_classified, packaged_documents, skipped_warning
from permitpack.config import Settings, settings
from permitpack.models import DocumentRecord
from permitpack.narrative import ProjectDetails, StaticNarrativeProvider, TemplateNarrativeProvider, resolve_narrative
from permitpack.observability import configure_logging, export_scope
from permitpack.progress import progress, select_documents
from permitpack.storage import fetch_document_contents, storage_loader

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NOT_ELIGIBLE = 2
EXIT_CANCELLED = 3


class ConsoleNotifier:
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def notify(self, notification: Notification) -> None:
        print(f"{notification.title}: {notification.message}", file=self._stream or sys.stdout)
        print(f"Saved to {notification.location}", file=self._stream or sys.stdout)


def load_documents(path: Path) -> list[DocumentRecord]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SystemExit(f"Could not read documents from {path}: {exc}") from exc

    items = payload.get("documents") if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        raise SystemExit(f"{path} must contain a JSON list of documents or an object with a 'documents' list.")
    try:
        return [DocumentPayload.model_validate(item).to_record() for item in items]
    except ValidationError as exc:
        raise SystemExit(f"Invalid document entry in {path}: {exc}") from exc


def _effective_settings(args: argparse.Namespace) -> Settings:
    updates: dict[str, object] = {}
    if getattr(args, "storage_root", None):
        updates["storage_root"] = args.storage_root
    if getattr(args, "preferences", None):
        updates["preferences_path"] = args.preferences
    if getattr(args, "format", None):
        updates["cover_letter_format"] = args.format
    if getattr(args, "restricted", False):
        updates["restricted_context"] = True
    if getattr(args, "no_compression", False):
        updates["archive_compression_enabled"] = False
    return settings.model_copy(update=updates) if updates else settings


def build_platform(args: argparse.Namespace, config: Settings) -> PlatformCapabilities:
    save_dialog = None
    directory_picker = None
    if args.interactive:
        save_dialog = PromptSaveDialog()
        directory_picker = PromptDirectoryPicker()
    if args.output:
        save_dialog = FixedPathSaveDialog(args.output)
    if args.output_dir:
        directory_picker = FixedDirectoryPicker(args.output_dir)

    downloads_dir = Path(args.downloads_dir) if args.downloads_dir else Path.home() / "Downloads"
    compressor = (
        ZipCompressor(compression_level=config.zip_compression_level) if config.archive_compression_enabled else None
    )
    return PlatformCapabilities(
        save_dialog=save_dialog,
        directory_picker=directory_picker,
        download_sink=FolderDownloadSink(downloads_dir),
        compressor=compressor,
        restricted=config.restricted_context,
    )


def run_progress(args: argparse.Namespace) -> int:
    result = progress(load_documents(Path(args.documents)))
    print(json.dumps(result.to_dict(), indent=2))
    return EXIT_OK


def run_export(args: argparse.Namespace) -> int:
    config = _effective_settings(args)
    records = load_documents(Path(args.documents))
    gate = progress(records)
    if not gate.eligible:
        missing = ", ".join(category.value for category in gate.missing_categories) or "none"
        print(
            f"Project is not eligible for submission ({gate.percent}% approved; "
            f"missing: {missing}; cover letter: {'yes' if gate.has_cover_letter else 'no'}).",
            file=sys.stderr,
        )
        return EXIT_NOT_ELIGIBLE

    provider = None
    if args.narrative:
        provider = StaticNarrativeProvider(Path(args.narrative).read_text(encoding="utf-8"))
    fallback = TemplateNarrativeProvider(
        profile=config.letter_profile,
        contact_email=config.default_contact_email,
        contact_phone=config.default_contact_phone,
    )
    project = ProjectDetails(
        name=args.project_name,
        facility_address=args.facility_address or "",
        jurisdiction=args.jurisdiction or "",
        permit_number=args.permit_number or "",
    )

    with export_scope():
        fetched = asyncio.run(
            fetch_document_contents(
                select_documents(records, args.document_scope),
                storage_loader(config),
                max_in_flight=config.fetch_max_in_flight,
            )
        )
        narrative = resolve_narrative(provider, project, packaged_documents(fetched), fallback=fallback)
        manifest = assemble_classified(
            narrative.classified(config.letter_profile),
            fetched,
            project.name,
            profile=config.letter_profile,
            cover_letter_format=config.cover_letter_format,
        )
        warning = skipped_warning(manifest)
        if warning:
            print(f"Warning: {warning}", file=sys.stderr)

        backend = ArchiveBackend(
            platform=build_platform(args, config),
            preferences=JsonFilePreferenceStore(config.preferences_path),
            notifier=ConsoleNotifier(),
            notification_ttl_seconds=config.notification_ttl_seconds,
        )
        try:
            result = backend.persist(manifest)
        except AssemblyFailure as exc:
            print(f"Export failed: {exc}", file=sys.stderr)
            for attempt in exc.attempts:
                detail = f"- {attempt.get('method')}: {attempt.get('outcome')} {attempt.get('error', '')}"
                print(detail.rstrip(), file=sys.stderr)
            return EXIT_FAILED

    if result.status is PersistStatus.CANCELLED:
        print("Export cancelled.", file=sys.stderr)
        return EXIT_CANCELLED
    if result.status is PersistStatus.FELL_BACK:
        print(f"Used fallback method '{result.method}'.")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="permitpack", description="Build permit submission packages.")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL for this run.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    progress_parser = subparsers.add_parser("progress", help="Show approval progress and eligibility.")
    progress_parser.add_argument("--documents", required=True, help="JSON file listing the project documents.")
    progress_parser.set_defaults(handler=run_progress)

    export_parser = subparsers.add_parser("export", help="Assemble and save a submission package.")
    export_parser.add_argument("--documents", required=True, help="JSON file listing the project documents.")
    export_parser.add_argument("--project-name", required=True)
    export_parser.add_argument("--narrative", default=None, help="Text file with a pre-written cover letter.")
    export_parser.add_argument("--facility-address", default=None)
    export_parser.add_argument("--jurisdiction", default=None)
    export_parser.add_argument("--permit-number", default=None)
    export_parser.add_argument("--document-scope", default="latest", choices=["latest", "all"])
    export_parser.add_argument("--format", default=None, choices=["docx", "txt"], help="Cover letter format.")
    target = export_parser.add_mutually_exclusive_group()
    target.add_argument("--output", default=None, help="Write the zip archive to this path.")
    target.add_argument("--output-dir", default=None, help="Write individual files into this directory.")
    target.add_argument("--interactive", action="store_true", help="Prompt for the save location.")
    export_parser.add_argument("--downloads-dir", default=None, help="Fallback download folder.")
    export_parser.add_argument("--storage-root", default=None, help="Base directory for relative storage paths.")
    export_parser.add_argument("--preferences", default=None, help="Preferences file (last used directory).")
    export_parser.add_argument("--restricted", action="store_true", help="Disable the save dialog step.")
    export_parser.add_argument("--no-compression", action="store_true", help="Skip zip archives.")
    export_parser.set_defaults(handler=run_export)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level or settings.log_level)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import io
import zipfile

from permitpack.archive.base import AssemblyFailure
from permitpack.models import PackageManifest

ZIP_MEDIA_TYPE = "application/zip"
TEXT_MEDIA_TYPE = "text/plain"


class ZipCompressor:
    def __init__(self, compression_level: int = 6) -> None:
        self.compression_level = max(0, min(9, compression_level))

    def compress(self, manifest: PackageManifest) -> bytes:
        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(
                buffer,
                mode="w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self.compression_level,
            ) as archive:
                for entry in manifest.entries:
                    archive.writestr(entry.name, entry.data)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, OSError) as exc:
            raise AssemblyFailure(f"Failed to build archive '{manifest.container_name}': {exc}") from exc
        return buffer.getvalue()


def _format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


def build_manifest_text(manifest: PackageManifest) -> str:
    lines = [
        f"SUBMISSION PACKAGE: {manifest.project_name or manifest.archive_stem}",
        "=" * 60,
        "",
        "Package Contents:",
    ]
    for entry in manifest.entries:
        lines.append(f"  {entry.name}  ({_format_size(entry.size_bytes)})")
    lines.append("")
    lines.append(f"Total: {manifest.entry_count} file(s)")
    if manifest.skipped:
        lines.append("")
        lines.append("Not included (content unavailable):")
        for item in manifest.skipped:
            lines.append(f"  {item.file_name}")
    lines.extend(
        [
            "",
            "Instructions:",
            "  Archive compression is not available in this environment.",
            "  Download each file listed above individually and keep the numbered",
            "  prefixes so the authority receives the documents in this order.",
            f"  Place them together in a folder named {manifest.folder_name}.",
        ]
    )
    return "\n".join(lines) + "\n"

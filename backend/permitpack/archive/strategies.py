from __future__ import annotations

from pathlib import Path

from permitpack.archive.base import StrategyOutcome, UnsupportedCapability
from permitpack.archive.compression import TEXT_MEDIA_TYPE, ZIP_MEDIA_TYPE, ZipCompressor, build_manifest_text
from permitpack.archive.platform import DirectoryPicker, DownloadSink, SaveDialog, write_atomically
from permitpack.archive.preferences import LAST_DIRECTORY_KEY, PreferenceStore
from permitpack.models import PackageManifest


class NativeSaveStrategy:
    method = "native_save"

    def __init__(self, dialog: SaveDialog | None, compressor: ZipCompressor | None, *, restricted: bool = False) -> None:
        self._dialog = dialog
        self._compressor = compressor
        self._restricted = restricted

    def available(self) -> bool:
        return self._dialog is not None and self._compressor is not None and not self._restricted

    def attempt(self, manifest: PackageManifest, suggested_name: str) -> StrategyOutcome:
        if self._dialog is None or self._compressor is None or self._restricted:
            raise UnsupportedCapability("Native save dialog is not available.")
        destination = self._dialog.choose_save_path(suggested_name)
        data = self._compressor.compress(manifest)
        write_atomically(destination, data)
        return StrategyOutcome(location=str(destination), artifact_name=destination.name)


class DirectoryWriteStrategy:
    """Writes every manifest entry as its own file inside a chosen directory."""

    method = "directory"

    def __init__(self, picker: DirectoryPicker | None, preferences: PreferenceStore) -> None:
        self._picker = picker
        self._preferences = preferences

    def available(self) -> bool:
        return self._picker is not None

    def attempt(self, manifest: PackageManifest, suggested_name: str) -> StrategyOutcome:
        del suggested_name
        if self._picker is None:
            raise UnsupportedCapability("Directory picker is not available.")
        directory = self._picker.choose_directory(self._preferences.get(LAST_DIRECTORY_KEY))
        target = directory / manifest.folder_name
        created_target = not target.exists()

        staged: list[Path] = []
        placed: list[tuple[Path, Path | None]] = []
        try:
            target.mkdir(parents=True, exist_ok=True)
            for entry in manifest.entries:
                partial_path = target / f".{entry.name}.partial"
                staged.append(partial_path)
                partial_path.write_bytes(entry.data)
            for entry, partial_path in zip(manifest.entries, staged):
                final_path = target / entry.name
                backup_path = None
                if final_path.exists():
                    backup_path = target / f".{entry.name}.previous"
                    final_path.replace(backup_path)
                placed.append((final_path, backup_path))
                partial_path.replace(final_path)
        except BaseException:
            _roll_back(target, staged, placed, remove_target=created_target)
            raise

        for _, backup_path in placed:
            if backup_path is not None:
                backup_path.unlink(missing_ok=True)
        self._preferences.set(LAST_DIRECTORY_KEY, str(directory))
        return StrategyOutcome(location=str(target), artifact_name=manifest.folder_name)


def _roll_back(
    target: Path,
    staged: list[Path],
    placed: list[tuple[Path, Path | None]],
    *,
    remove_target: bool,
) -> None:
    """Undo a directory write: drop moved entries, restore replaced files, delete staged partials."""
    for final_path, backup_path in reversed(placed):
        final_path.unlink(missing_ok=True)
        if backup_path is not None and backup_path.exists():
            backup_path.replace(final_path)
    for partial_path in staged:
        partial_path.unlink(missing_ok=True)
    if remove_target and target.is_dir() and not any(target.iterdir()):
        target.rmdir()


class DownloadStrategy:
    method = "download"

    def __init__(self, sink: DownloadSink | None, compressor: ZipCompressor | None) -> None:
        self._sink = sink
        self._compressor = compressor

    def available(self) -> bool:
        return self._sink is not None and self._compressor is not None

    def attempt(self, manifest: PackageManifest, suggested_name: str) -> StrategyOutcome:
        del suggested_name
        if self._sink is None or self._compressor is None:
            raise UnsupportedCapability("Compressed download is not available.")
        data = self._compressor.compress(manifest)
        location = self._sink.deliver(manifest.download_name, data, ZIP_MEDIA_TYPE)
        return StrategyOutcome(location=location, artifact_name=manifest.download_name)


class ManifestTextStrategy:
    method = "manifest"

    def __init__(self, sink: DownloadSink | None) -> None:
        self._sink = sink

    def available(self) -> bool:
        return self._sink is not None

    def attempt(self, manifest: PackageManifest, suggested_name: str) -> StrategyOutcome:
        del suggested_name
        if self._sink is None:
            raise UnsupportedCapability("No download sink for the manifest listing.")
        text = build_manifest_text(manifest)
        location = self._sink.deliver(manifest.manifest_text_name, text.encode("utf-8"), TEXT_MEDIA_TYPE)
        return StrategyOutcome(location=location, artifact_name=manifest.manifest_text_name)

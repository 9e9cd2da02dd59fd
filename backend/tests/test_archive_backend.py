from __future__ import annotations

import io
import json
from pathlib import Path
import zipfile

import pytest

from permitpack.archive import (
    ArchiveBackend,
    AssemblyFailure,
    FixedDirectoryPicker,
    FixedPathSaveDialog,
    FolderDownloadSink,
    InMemoryPreferenceStore,
    JsonFilePreferenceStore,
    MemoryDownloadSink,
    NotificationCenter,
    PersistStatus,
    PlatformCapabilities,
    PromptDirectoryPicker,
    PromptSaveDialog,
    UserCancelled,
    ZipCompressor,
    build_manifest_text,
)
from permitpack.archive.preferences import LAST_DIRECTORY_KEY
from permitpack.models import ManifestEntry, PackageManifest, SkippedDocument


def _manifest() -> PackageManifest:
    return PackageManifest(
        project_name="Warehouse 9",
        archive_stem="Warehouse_9",
        entries=(
            ManifestEntry(name="00_Cover_Letter.txt", data=b"cover"),
            ManifestEntry(name="01_site.pdf", data=b"site"),
            ManifestEntry(name="02_facility.pdf", data=b"facility"),
        ),
        skipped=(SkippedDocument(document_id="9", file_name="egress.pdf", reason="content unavailable"),),
    )


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class CancellingDialog:
    def choose_save_path(self, suggested_name: str) -> Path:
        raise UserCancelled("dismissed")


class CancellingPicker:
    def choose_directory(self, start_in: str | None) -> Path:
        raise UserCancelled("dismissed")


class BrokenCompressor(ZipCompressor):
    def compress(self, manifest: PackageManifest) -> bytes:
        raise AssemblyFailure("stream closed mid-write")


class FailingSink:
    def deliver(self, file_name: str, data: bytes, media_type: str) -> str:
        raise OSError("disk full")


def test_native_save_writes_zip(tmp_path: Path) -> None:
    center = NotificationCenter()
    target = tmp_path / "out" / "package.zip"
    backend = ArchiveBackend(
        platform=PlatformCapabilities(save_dialog=FixedPathSaveDialog(target)),
        notifier=center,
    )

    result = backend.persist(_manifest())

    assert result.status is PersistStatus.SAVED
    assert result.method == "native_save"
    assert result.location == str(target)
    with zipfile.ZipFile(target) as archive:
        assert archive.namelist() == ["00_Cover_Letter.txt", "01_site.pdf", "02_facility.pdf"]
    assert [path.name for path in target.parent.iterdir()] == ["package.zip"]
    [notification] = center.active()
    assert notification.title == "Export Complete"
    assert notification.entry_count == 3
    assert notification.artifact_name == "package.zip"


def test_save_dialog_into_directory_uses_suggested_name(tmp_path: Path) -> None:
    backend = ArchiveBackend(platform=PlatformCapabilities(save_dialog=FixedPathSaveDialog(tmp_path)))
    result = backend.persist(_manifest())
    assert result.location == str(tmp_path / "Warehouse_9_Documents.zip")


def test_restricted_context_skips_native_save(tmp_path: Path) -> None:
    sink = MemoryDownloadSink()
    backend = ArchiveBackend(
        platform=PlatformCapabilities(
            save_dialog=FixedPathSaveDialog(tmp_path / "never.zip"),
            download_sink=sink,
            restricted=True,
        )
    )

    result = backend.persist(_manifest())

    assert result.status is PersistStatus.FELL_BACK
    assert result.method == "download"
    assert not (tmp_path / "never.zip").exists()
    assert sink.last is not None
    assert sink.last.file_name == "Warehouse_9_Submission.zip"
    assert zipfile.ZipFile(io.BytesIO(sink.last.data)).namelist()[0] == "00_Cover_Letter.txt"


def test_directory_write_creates_entries_and_remembers_directory(tmp_path: Path) -> None:
    preferences = InMemoryPreferenceStore()
    backend = ArchiveBackend(
        platform=PlatformCapabilities(directory_picker=FixedDirectoryPicker(tmp_path)),
        preferences=preferences,
    )

    result = backend.persist(_manifest())

    folder = tmp_path / "Warehouse_9_Documents"
    assert result.status is PersistStatus.FELL_BACK
    assert result.method == "directory"
    assert sorted(path.name for path in folder.iterdir()) == ["00_Cover_Letter.txt", "01_site.pdf", "02_facility.pdf"]
    assert (folder / "01_site.pdf").read_bytes() == b"site"
    assert preferences.get(LAST_DIRECTORY_KEY) == str(tmp_path)


def test_directory_failure_leaves_nothing_behind(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    original = Path.write_bytes
    calls = {"count": 0}

    def flaky_write(self: Path, data: bytes) -> int:
        calls["count"] += 1
        if calls["count"] == 2:
            raise OSError("device went away")
        return original(self, data)

    monkeypatch.setattr(Path, "write_bytes", flaky_write)
    sink = MemoryDownloadSink()
    backend = ArchiveBackend(
        platform=PlatformCapabilities(directory_picker=FixedDirectoryPicker(tmp_path), download_sink=sink),
    )

    result = backend.persist(_manifest())

    assert result.method == "download"
    assert list(tmp_path.iterdir()) == []


def test_cancel_is_terminal(tmp_path: Path) -> None:
    sink = MemoryDownloadSink()
    center = NotificationCenter()
    backend = ArchiveBackend(
        platform=PlatformCapabilities(save_dialog=CancellingDialog(), download_sink=sink),
        notifier=center,
    )

    result = backend.persist(_manifest())

    assert result.status is PersistStatus.CANCELLED
    assert result.succeeded is False
    assert sink.delivered == []
    assert center.active() == []


def test_cancel_in_directory_picker_is_terminal(tmp_path: Path) -> None:
    sink = MemoryDownloadSink()
    backend = ArchiveBackend(platform=PlatformCapabilities(directory_picker=CancellingPicker(), download_sink=sink))
    assert backend.persist(_manifest()).status is PersistStatus.CANCELLED
    assert sink.delivered == []


def test_prompt_dialogs_treat_cancel_words_and_eof_as_cancellation(tmp_path: Path) -> None:
    dialog = PromptSaveDialog(input_fn=lambda prompt: "cancel", start_dir=tmp_path)
    with pytest.raises(UserCancelled):
        dialog.choose_save_path("pkg.zip")

    def eof(prompt: str) -> str:
        raise EOFError

    with pytest.raises(UserCancelled):
        PromptDirectoryPicker(input_fn=eof).choose_directory(None)

    assert PromptSaveDialog(input_fn=lambda prompt: "", start_dir=tmp_path).choose_save_path("pkg.zip") == (
        tmp_path / "pkg.zip"
    )
    assert PromptDirectoryPicker(input_fn=lambda prompt: "").choose_directory(str(tmp_path)) == tmp_path


def test_compression_failure_is_fatal_and_leaves_no_file(tmp_path: Path) -> None:
    sink = MemoryDownloadSink()
    backend = ArchiveBackend(
        platform=PlatformCapabilities(
            save_dialog=FixedPathSaveDialog(tmp_path / "pkg.zip"),
            download_sink=sink,
            compressor=BrokenCompressor(),
        )
    )

    with pytest.raises(AssemblyFailure) as excinfo:
        backend.persist(_manifest())

    assert excinfo.value.attempts[-1]["method"] == "native_save"
    assert list(tmp_path.iterdir()) == []
    assert sink.delivered == []


def test_manifest_text_when_compression_unavailable() -> None:
    sink = MemoryDownloadSink()
    backend = ArchiveBackend(platform=PlatformCapabilities(download_sink=sink, compressor=None))

    result = backend.persist(_manifest())

    assert result.method == "manifest"
    assert sink.last is not None
    assert sink.last.file_name == "Warehouse_9_Manifest.txt"
    text = sink.last.data.decode("utf-8")
    assert "01_site.pdf" in text
    assert "egress.pdf" in text
    assert "Instructions:" in text


def test_io_error_falls_through_and_exhaustion_raises() -> None:
    backend = ArchiveBackend(platform=PlatformCapabilities(download_sink=FailingSink()))
    with pytest.raises(AssemblyFailure) as excinfo:
        backend.persist(_manifest())
    methods = [attempt["method"] for attempt in excinfo.value.attempts]
    assert methods == ["native_save", "directory", "download", "manifest"]
    assert excinfo.value.attempts[2]["outcome"] == "failed"


def test_no_capabilities_raises_assembly_failure() -> None:
    with pytest.raises(AssemblyFailure):
        ArchiveBackend(platform=PlatformCapabilities(compressor=None)).persist(_manifest())


def test_folder_download_sink(tmp_path: Path) -> None:
    backend = ArchiveBackend(platform=PlatformCapabilities(download_sink=FolderDownloadSink(tmp_path)))
    result = backend.persist(_manifest())
    assert result.location == str(tmp_path / "Warehouse_9_Submission.zip")
    assert [path.name for path in tmp_path.iterdir()] == ["Warehouse_9_Submission.zip"]


def test_notifications_expire_after_ttl() -> None:
    clock = FakeClock()
    center = NotificationCenter(clock=clock)
    backend = ArchiveBackend(
        platform=PlatformCapabilities(download_sink=MemoryDownloadSink()),
        notifier=center,
        notification_ttl_seconds=5.0,
    )
    backend.persist(_manifest())

    [notification] = center.active()
    assert notification.message == "Warehouse_9_Submission.zip: 3 files packaged"
    clock.now += 4.9
    assert len(center.active()) == 1
    clock.now += 0.2
    assert center.active() == []


def test_json_preference_store(tmp_path: Path) -> None:
    path = tmp_path / "prefs" / "preferences.json"
    store = JsonFilePreferenceStore(path)
    assert store.get(LAST_DIRECTORY_KEY) is None
    store.set(LAST_DIRECTORY_KEY, "/srv/exports")
    assert JsonFilePreferenceStore(path).get(LAST_DIRECTORY_KEY) == "/srv/exports"
    assert json.loads(path.read_text(encoding="utf-8")) == {LAST_DIRECTORY_KEY: "/srv/exports"}

    path.write_text("{not json", encoding="utf-8")
    assert store.get(LAST_DIRECTORY_KEY) is None


def test_manifest_text_lists_sizes() -> None:
    text = build_manifest_text(_manifest())
    assert "01_site.pdf  (4 B)" in text
    assert "Total: 3 file(s)" in text


def test_failed_rename_restores_directory_contents(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    folder = tmp_path / "Warehouse_9_Documents"
    folder.mkdir()
    (folder / "01_site.pdf").write_bytes(b"previous export")
    original = Path.replace
    calls = {"count": 0}

    def flaky_replace(self: Path, target: Path) -> Path:
        calls["count"] += 1
        if calls["count"] == 4:
            raise OSError("rename interrupted")
        return original(self, target)

    monkeypatch.setattr(Path, "replace", flaky_replace)
    sink = MemoryDownloadSink()
    backend = ArchiveBackend(
        platform=PlatformCapabilities(directory_picker=FixedDirectoryPicker(tmp_path), download_sink=sink),
    )

    result = backend.persist(_manifest())

    assert result.method == "download"
    assert [path.name for path in folder.iterdir()] == ["01_site.pdf"]
    assert (folder / "01_site.pdf").read_bytes() == b"previous export"


def test_directory_write_replaces_existing_files_without_leftovers(tmp_path: Path) -> None:
    folder = tmp_path / "Warehouse_9_Documents"
    folder.mkdir()
    (folder / "01_site.pdf").write_bytes(b"previous export")
    backend = ArchiveBackend(platform=PlatformCapabilities(directory_picker=FixedDirectoryPicker(tmp_path)))

    backend.persist(_manifest())

    assert sorted(path.name for path in folder.iterdir()) == ["00_Cover_Letter.txt", "01_site.pdf", "02_facility.pdf"]
    assert (folder / "01_site.pdf").read_bytes() == b"site"


def test_expired_notifications_are_dropped_when_posting() -> None:
    clock = FakeClock()
    center = NotificationCenter(clock=clock)
    backend = ArchiveBackend(platform=PlatformCapabilities(download_sink=MemoryDownloadSink()), notifier=center)

    backend.persist(_manifest())
    backend.persist(_manifest())
    assert center.pending_count() == 2

    for _ in range(3):
        clock.now += 10.0
        backend.persist(_manifest())
    assert center.pending_count() == 1

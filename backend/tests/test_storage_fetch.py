from __future__ import annotations

import asyncio
from pathlib import Path
import threading
import time

import pytest

from permitpack.config import Settings
from permitpack.models import DocumentRecord
from permitpack.storage import (
    StorageError,
    fetch_document_contents,
    load_document_bytes,
    normalize_backend,
    storage_loader,
)


def _records(count: int) -> list[DocumentRecord]:
    return [
        DocumentRecord(id=str(index), category="site_plan", file_name=f"doc{index}.pdf", storage_path=f"doc{index}.pdf")
        for index in range(count)
    ]


def test_fetch_respects_max_in_flight() -> None:
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}

    def loader(document: DocumentRecord) -> bytes:
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.02)
        with lock:
            state["active"] -= 1
        return document.id.encode("utf-8")

    fetched = asyncio.run(fetch_document_contents(_records(12), loader, max_in_flight=3))

    assert state["peak"] <= 3
    assert [document.content for document in fetched] == [str(index).encode("utf-8") for index in range(12)]


def test_failed_reads_become_missing_content(caplog: pytest.LogCaptureFixture) -> None:
    def loader(document: DocumentRecord) -> bytes:
        if document.id == "1":
            raise StorageError("gone")
        if document.id == "2":
            raise FileNotFoundError("missing file")
        return b"ok"

    fetched = asyncio.run(fetch_document_contents(_records(3), loader))

    assert [document.content for document in fetched] == [b"ok", None, None]
    events = [getattr(record, "event", None) for record in caplog.records]
    assert events.count("document_content_unavailable") == 2


def test_storage_loader_reads_local_files(tmp_path: Path) -> None:
    (tmp_path / "plans").mkdir()
    (tmp_path / "plans" / "site.pdf").write_bytes(b"%PDF-site")
    settings = Settings(storage_root=str(tmp_path), storage_backend="local")
    load = storage_loader(settings)

    stored = DocumentRecord(id="1", category="site_plan", file_name="site.pdf", storage_path="plans/site.pdf")
    inline = DocumentRecord(id="2", category="site_plan", file_name="b.pdf", content=b"inline")
    assert load(stored) == b"%PDF-site"
    assert load(inline) == b"inline"

    with pytest.raises(StorageError):
        load(DocumentRecord(id="3", category="site_plan", file_name="c.pdf"))
    with pytest.raises(StorageError):
        load_document_bytes(settings=settings, storage_path="plans/missing.pdf")


def test_normalize_backend() -> None:
    assert normalize_backend("FS") == "local"
    assert normalize_backend("s3") == "s3"
    with pytest.raises(StorageError):
        normalize_backend("ftp")


def test_invalid_s3_uri_is_rejected() -> None:
    with pytest.raises(StorageError):
        load_document_bytes(settings=Settings(), storage_path="s3://bucket-only")

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Sequence

from permitpack.config import Settings
from permitpack.models import DocumentRecord

logger = logging.getLogger("permitpack.storage")

DocumentLoader = Callable[[DocumentRecord], bytes]


class StorageError(RuntimeError):
    """Raised when document bytes cannot be read from storage."""


def normalize_backend(value: str) -> str:
    normalized = (value or "").strip().lower()
    if normalized in {"local", "filesystem", "fs"}:
        return "local"
    if normalized in {"s3"}:
        return "s3"
    raise StorageError(f"Unsupported STORAGE_BACKEND '{value}'. Use 'local' or 's3'.")


def _is_s3_uri(path: str) -> bool:
    return path.strip().lower().startswith("s3://")


def _parse_s3_uri(uri: str) -> tuple[str, str]:
    raw = uri.strip()
    if not _is_s3_uri(raw):
        raise StorageError(f"Not an S3 URI: '{uri}'")
    without_scheme = raw[5:]
    parts = without_scheme.split("/", 1)
    bucket = parts[0].strip()
    key = parts[1].strip() if len(parts) > 1 else ""
    if not bucket or not key:
        raise StorageError(f"Invalid S3 URI: '{uri}' (expected s3://<bucket>/<key>)")
    return bucket, key


def _resolve_local_path(settings: Settings, raw: str) -> Path:
    path = Path(raw)
    if path.is_absolute():
        return path
    return Path(settings.storage_root) / path


def load_document_bytes(*, settings: Settings, storage_path: str) -> bytes:
    raw = str(storage_path or "").strip()
    if not raw:
        raise StorageError("Missing storage path.")

    if _is_s3_uri(raw):
        bucket, key = _parse_s3_uri(raw)
        try:
            import boto3  # type: ignore
        except ImportError as exc:
            raise StorageError("boto3 is required for S3 storage backend.") from exc

        client = boto3.client("s3", region_name=settings.aws_region)
        try:
            response = client.get_object(Bucket=bucket, Key=key)
            body = response.get("Body")
            if body is None:
                raise StorageError(f"S3 get_object returned no body (bucket={bucket}, key={key}).")
            return body.read()
        except StorageError:
            raise
        except Exception as exc:  # pragma: no cover - depends on AWS runtime integration
            raise StorageError(f"Failed to read document from S3 (bucket={bucket}, key={key}): {exc}") from exc

    if normalize_backend(settings.storage_backend) == "s3":
        prefix = str(settings.s3_prefix or "").strip().strip("/")
        key = f"{prefix}/{raw.lstrip('/')}" if prefix else raw.lstrip("/")
        return load_document_bytes(settings=settings, storage_path=f"s3://{settings.s3_bucket}/{key}")

    path = _resolve_local_path(settings, raw)
    if not path.is_file():
        raise StorageError(f"Stored file not found at '{raw}'.")
    return path.read_bytes()


def storage_loader(settings: Settings) -> DocumentLoader:
    def load(document: DocumentRecord) -> bytes:
        if document.content is not None:
            return document.content
        if not document.storage_path:
            raise StorageError(f"Document '{document.id}' has no content and no storage path.")
        return load_document_bytes(settings=settings, storage_path=document.storage_path)

    return load


async def fetch_document_contents(
    documents: Sequence[DocumentRecord],
    loader: DocumentLoader,
    *,
    max_in_flight: int = 6,
) -> list[DocumentRecord]:
    """Load bytes for every document with at most ``max_in_flight`` reads running.

    A document whose bytes cannot be read comes back with ``content=None`` so
    assembly can skip it. Results keep input order, but callers must not rely
    on that for package order.
    """
    semaphore = asyncio.Semaphore(max(1, max_in_flight))

    async def fetch_one(document: DocumentRecord) -> DocumentRecord:
        async with semaphore:
            try:
                content = await asyncio.to_thread(loader, document)
            except (StorageError, OSError) as exc:
                logger.warning(
                    "document_content_unavailable",
                    extra={
                        "event": "document_content_unavailable",
                        "document_id": document.id,
                        "file_name": document.file_name,
                        "error": str(exc),
                    },
                )
                return document.with_content(None)
            return document.with_content(content)

    return list(await asyncio.gather(*(fetch_one(document) for document in documents)))

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import time
from uuid import uuid4

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from permitpack.config import settings
from permitpack.storage import StorageError, normalize_backend

router = APIRouter()

READY_CACHE_TTL_SECONDS = 30.0


@dataclass
class _ReadyCache:
    checked_at: float = 0.0
    ok: bool = False
    payload: dict[str, object] = field(default_factory=dict)

    def fresh(self, now: float) -> bool:
        return bool(self.payload) and now - self.checked_at <= READY_CACHE_TTL_SECONDS

    def store(self, ok: bool, payload: dict[str, object]) -> None:
        self.checked_at = time.time()
        self.ok = ok
        self.payload = payload


_ready_cache = _ReadyCache()


def reset_ready_cache() -> None:
    global _ready_cache
    _ready_cache = _ReadyCache()


def _probe_token() -> str:
    return f"{time.time()}-{uuid4()}"


def _probe_local_storage() -> dict[str, object]:
    """Round-trip a marker file through the storage root stored documents are read from."""
    root = Path(settings.storage_root)
    root.mkdir(parents=True, exist_ok=True)
    token = _probe_token()
    probe = root / ".ready_probe"
    try:
        probe.write_text(token, encoding="utf-8")
        matches = probe.read_text(encoding="utf-8") == token
    finally:
        probe.unlink(missing_ok=True)
    if not matches:
        raise StorageError("Local storage probe read back different content.")
    return {"ok": True, "backend": "local"}


def _probe_s3_storage() -> dict[str, object]:
    bucket = str(settings.s3_bucket or "").strip()
    if not bucket:
        raise StorageError("S3_BUCKET must be set when STORAGE_BACKEND is 's3'.")
    prefix = str(settings.s3_prefix or "").strip().strip("/")
    key = "/".join(part for part in (prefix, "readyz", settings.app_env, "permitpack.txt") if part)
    token = _probe_token()
    try:
        import boto3  # type: ignore
    except ImportError as exc:
        raise StorageError("boto3 is required for S3 storage backend.") from exc

    try:
        client = boto3.client("s3", region_name=settings.aws_region)
        client.put_object(Bucket=bucket, Key=key, Body=token.encode("utf-8"), ContentType="text/plain")
        body = client.get_object(Bucket=bucket, Key=key).get("Body")
        if body is None:
            raise StorageError("S3 get_object returned no Body")
        read_back = body.read().decode("utf-8", errors="replace")
    except StorageError:
        raise
    except Exception as exc:  # pragma: no cover - depends on AWS runtime integration
        raise StorageError(f"S3 readiness probe failed (bucket={bucket}, key={key}): {exc}") from exc
    if read_back != token:
        raise StorageError("S3 readiness probe read back different content.")
    return {"ok": True, "backend": "s3", "bucket": bucket, "key": key}


def _export_check() -> dict[str, object]:
    return {
        "ok": True,
        "compression": settings.archive_compression_enabled,
        "cover_letter_format": settings.cover_letter_format,
        "restricted": settings.restricted_context,
    }


@router.get("/")
def root() -> dict[str, str]:
    return {"service": "permitpack-backend", "status": "running"}


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "environment": settings.app_env}


@router.get("/ready", response_model=None)
def ready() -> JSONResponse:
    if _ready_cache.fresh(time.time()):
        return JSONResponse(status_code=200 if _ready_cache.ok else 503, content=_ready_cache.payload)

    checks: dict[str, object] = {"export": _export_check()}
    try:
        backend = normalize_backend(settings.storage_backend)
        checks["storage"] = _probe_s3_storage() if backend == "s3" else _probe_local_storage()
        ok = True
    except (StorageError, OSError) as exc:
        checks["storage"] = {"ok": False, "backend": settings.storage_backend, "error": str(exc)}
        ok = False

    payload: dict[str, object] = {
        "status": "ready" if ok else "not_ready",
        "environment": settings.app_env,
        "checks": checks,
    }
    _ready_cache.store(ok, payload)
    return JSONResponse(status_code=200 if ok else 503, content=payload)

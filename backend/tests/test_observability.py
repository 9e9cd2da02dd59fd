import json
import logging
from uuid import UUID

from fastapi.testclient import TestClient

from permitpack.main import app
from permitpack.observability import (
    JsonFormatter,
    export_scope,
    get_export_id,
    sanitize_for_logging,
)


def test_request_id_header_is_generated_when_missing() -> None:
    with TestClient(app) as client:
        response = client.get("/health")
    assert response.status_code == 200
    request_id = response.headers.get("X-Request-ID")
    assert request_id is not None
    UUID(request_id)


def test_request_id_header_is_preserved_when_provided() -> None:
    with TestClient(app) as client:
        response = client.get("/health", headers={"X-Request-ID": "demo-request-123"})
    assert response.status_code == 200
    assert response.headers.get("X-Request-ID") == "demo-request-123"


def test_request_started_log_redacts_sensitive_query_values(caplog) -> None:
    with TestClient(app) as client:
        with caplog.at_level(logging.INFO, logger="permitpack.api"):
            response = client.get("/health?token=supersecret&email=user@example.org&q=public")
    assert response.status_code == 200

    request_started_logs = [
        record for record in caplog.records if getattr(record, "event", None) == "request_started"
    ]
    assert request_started_logs
    query = request_started_logs[-1].query
    assert query["token"] == "[REDACTED]"
    assert query["email"] == "[REDACTED]"
    assert query["q"] == "public"


def test_sanitize_for_logging_redacts_contact_details_and_secrets() -> None:
    aws_access_key = "AKIA" "ABCDEFGHIJKLMNOP"
    payload = {
        "notes": f"Call (801) 441-8992 or mail permits@intralog.io, Bearer abc123, key {aws_access_key}",
        "contact_phone": "(801) 441-8992",
        "api_key": "plain-value",
    }

    sanitized = sanitize_for_logging(payload, max_string_length=2000)
    notes = sanitized["notes"]
    assert "441-8992" not in notes
    assert "permits@intralog.io" not in notes
    assert "[REDACTED_PHONE]" in notes
    assert "[REDACTED_EMAIL]" in notes
    assert "Bearer [REDACTED]" in notes
    assert "[REDACTED_AWS_ACCESS_KEY]" in notes
    assert sanitized["contact_phone"] == "[REDACTED]"
    assert sanitized["api_key"] == "[REDACTED]"


def test_sanitize_for_logging_summarises_document_content() -> None:
    sanitized = sanitize_for_logging(
        {
            "content": b"%PDF-1.7 body",
            "narrative": "Dear Staff, ...",
            "files": [b"abc"],
            "file_name": "site.pdf",
        }
    )
    assert sanitized["content"] == "[13 bytes]"
    assert sanitized["narrative"] == "[15 chars]"
    assert sanitized["files"] == ["[3 bytes]"]
    assert sanitized["file_name"] == "site.pdf"


def test_sanitize_for_logging_truncates_long_strings() -> None:
    assert sanitize_for_logging("x" * 50, max_string_length=10) == "xxxxxxxxxx...[truncated]"


def test_json_formatter_includes_export_id() -> None:
    with export_scope() as export_id:
        record = logging.LogRecord("permitpack.archive", logging.INFO, __file__, 1, "archive_persisted", None, None)
        record.event = "archive_persisted"
        record.location = "/home/user/pkg.zip"
        payload = json.loads(JsonFormatter().format(record))

    assert export_id.startswith("exp-") and len(export_id) == 16
    assert payload["export_id"] == export_id
    assert payload["request_id"] == "-"
    assert payload["event"] == "archive_persisted"
    assert payload["message"] == "archive_persisted"
    assert get_export_id() == "-"


def test_json_formatter_redacts_extras() -> None:
    record = logging.LogRecord("permitpack.api", logging.INFO, __file__, 1, "request_started", None, None)
    record.contact_email = "ops@example.com"
    record.narrative = "Dear Staff"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["contact_email"] == "[REDACTED]"
    assert payload["narrative"] == "[10 chars]"


def test_export_scope_accepts_explicit_id() -> None:
    with export_scope("exp-fixed") as export_id:
        assert export_id == "exp-fixed"
        assert get_export_id() == "exp-fixed"
    assert get_export_id() == "-"

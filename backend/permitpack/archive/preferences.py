from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger("permitpack.archive")

LAST_DIRECTORY_KEY = "lastDownloadPath"


class PreferenceStore(Protocol):
    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class InMemoryPreferenceStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonFilePreferenceStore:
    """Small persisted key/value file. Read failures degrade to "no preference"."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.is_file():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "preferences_unreadable",
                extra={"event": "preferences_unreadable", "path": str(self.path), "error": str(exc)},
            )
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(key): str(value) for key, value in payload.items()}

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        values = self._read()
        values[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(values, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            logger.warning(
                "preferences_not_saved",
                extra={"event": "preferences_not_saved", "path": str(self.path), "error": str(exc)},
            )

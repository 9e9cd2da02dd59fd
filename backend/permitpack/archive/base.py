from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from permitpack.models import PackageManifest


class PersistStatus(str, Enum):
    SAVED = "saved"
    CANCELLED = "cancelled"
    FELL_BACK = "fell_back"


@dataclass(frozen=True)
class PersistResult:
    status: PersistStatus
    method: str | None = None
    location: str | None = None
    entry_count: int = 0

    @classmethod
    def saved(cls, location: str, *, method: str, entry_count: int = 0) -> PersistResult:
        return cls(status=PersistStatus.SAVED, method=method, location=location, entry_count=entry_count)

    @classmethod
    def fell_back_to(cls, method: str, location: str, *, entry_count: int = 0) -> PersistResult:
        return cls(status=PersistStatus.FELL_BACK, method=method, location=location, entry_count=entry_count)

    @classmethod
    def cancelled(cls, method: str | None = None) -> PersistResult:
        return cls(status=PersistStatus.CANCELLED, method=method)

    @property
    def succeeded(self) -> bool:
        return self.status is not PersistStatus.CANCELLED


class UnsupportedCapability(RuntimeError):
    """Raised when the platform lacks what a persistence strategy needs."""


class UserCancelled(RuntimeError):
    """Raised when the user dismisses a save or directory dialog."""


class AssemblyFailure(RuntimeError):
    """Raised when an archive cannot be produced; nothing partial is left behind."""

    def __init__(self, message: str, attempts: list[dict[str, str]] | None = None) -> None:
        self.attempts = attempts or []
        super().__init__(message)


@dataclass(frozen=True)
class StrategyOutcome:
    location: str
    artifact_name: str


class ArchiveStrategy(Protocol):
    method: str

    def available(self) -> bool:
        ...

    def attempt(self, manifest: PackageManifest, suggested_name: str) -> StrategyOutcome:
        ...

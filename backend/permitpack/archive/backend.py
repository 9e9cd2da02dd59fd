from __future__ import annotations

import logging

from permitpack.archive.base import (
    ArchiveStrategy,
    AssemblyFailure,
    PersistResult,
    UnsupportedCapability,
    UserCancelled,
)
from permitpack.archive.notifications import DEFAULT_TTL_SECONDS, Notification, Notifier
from permitpack.archive.platform import PlatformCapabilities
from permitpack.archive.preferences import InMemoryPreferenceStore, PreferenceStore
from permitpack.archive.strategies import (
    DirectoryWriteStrategy,
    DownloadStrategy,
    ManifestTextStrategy,
    NativeSaveStrategy,
)
from permitpack.models import PackageManifest

logger = logging.getLogger("permitpack.archive")


def build_strategies(platform: PlatformCapabilities, preferences: PreferenceStore) -> list[ArchiveStrategy]:
    return [
        NativeSaveStrategy(platform.save_dialog, platform.compressor, restricted=platform.restricted),
        DirectoryWriteStrategy(platform.directory_picker, preferences),
        DownloadStrategy(platform.download_sink, platform.compressor),
        ManifestTextStrategy(platform.download_sink),
    ]


class ArchiveBackend:
    """Tries each persistence strategy in order until one succeeds or the user cancels."""

    def __init__(
        self,
        strategies: list[ArchiveStrategy] | None = None,
        *,
        platform: PlatformCapabilities | None = None,
        preferences: PreferenceStore | None = None,
        notifier: Notifier | None = None,
        notification_ttl_seconds: float = DEFAULT_TTL_SECONDS,
    ) -> None:
        self._preferences = preferences or InMemoryPreferenceStore()
        self._strategies = strategies or build_strategies(platform or PlatformCapabilities(), self._preferences)
        self._notifier = notifier
        self._notification_ttl_seconds = notification_ttl_seconds

    @property
    def methods(self) -> list[str]:
        return [strategy.method for strategy in self._strategies]

    def persist(self, manifest: PackageManifest, suggested_name: str | None = None) -> PersistResult:
        name = suggested_name or manifest.container_name
        attempts: list[dict[str, str]] = []

        for position, strategy in enumerate(self._strategies):
            if not strategy.available():
                attempts.append({"method": strategy.method, "outcome": "unavailable"})
                continue
            try:
                outcome = strategy.attempt(manifest, name)
            except UnsupportedCapability as exc:
                attempts.append({"method": strategy.method, "outcome": "unavailable", "error": str(exc)})
                continue
            except UserCancelled:
                logger.info(
                    "archive_persist_cancelled",
                    extra={"event": "archive_persist_cancelled", "method": strategy.method},
                )
                return PersistResult.cancelled(strategy.method)
            except AssemblyFailure as exc:
                logger.error(
                    "archive_assembly_failed",
                    extra={"event": "archive_assembly_failed", "method": strategy.method, "error": str(exc)},
                )
                exc.attempts = [*attempts, {"method": strategy.method, "outcome": "failed", "error": str(exc)}]
                raise
            except OSError as exc:
                logger.warning(
                    "archive_strategy_failed",
                    extra={"event": "archive_strategy_failed", "method": strategy.method, "error": str(exc)},
                )
                attempts.append({"method": strategy.method, "outcome": "failed", "error": str(exc)})
                continue

            logger.info(
                "archive_persisted",
                extra={
                    "event": "archive_persisted",
                    "method": strategy.method,
                    "artifact_name": outcome.artifact_name,
                    "entry_count": manifest.entry_count,
                    "skipped_attempts": attempts,
                },
            )
            if self._notifier is not None:
                self._notifier.notify(
                    Notification(
                        title="Export Complete",
                        artifact_name=outcome.artifact_name,
                        entry_count=manifest.entry_count,
                        location=outcome.location,
                        ttl_seconds=self._notification_ttl_seconds,
                    )
                )
            if position == 0:
                return PersistResult.saved(outcome.location, method=strategy.method, entry_count=manifest.entry_count)
            return PersistResult.fell_back_to(strategy.method, outcome.location, entry_count=manifest.entry_count)

        raise AssemblyFailure(
            "No persistence method succeeded; download the files individually instead.",
            attempts=attempts,
        )

from permitpack.archive.backend import ArchiveBackend, build_strategies
from permitpack.archive.base import (
    AssemblyFailure,
    PersistResult,
    PersistStatus,
    UnsupportedCapability,
    UserCancelled,
)
from permitpack.archive.compression import ZipCompressor, build_manifest_text
from permitpack.archive.notifications import Notification, NotificationCenter
from permitpack.archive.platform import (
    FixedDirectoryPicker,
    FixedPathSaveDialog,
    FolderDownloadSink,
    MemoryDownloadSink,
    PlatformCapabilities,
    PromptDirectoryPicker,
    PromptSaveDialog,
)
from permitpack.archive.preferences import InMemoryPreferenceStore, JsonFilePreferenceStore

__all__ = [
    "ArchiveBackend",
    "AssemblyFailure",
    "FixedDirectoryPicker",
    "FixedPathSaveDialog",
    "FolderDownloadSink",
    "InMemoryPreferenceStore",
    "JsonFilePreferenceStore",
    "MemoryDownloadSink",
    "Notification",
    "NotificationCenter",
    "PersistResult",
    "PersistStatus",
    "PlatformCapabilities",
    "PromptDirectoryPicker",
    "PromptSaveDialog",
    "UnsupportedCapability",
    "UserCancelled",
    "ZipCompressor",
    "build_manifest_text",
    "build_strategies",
]

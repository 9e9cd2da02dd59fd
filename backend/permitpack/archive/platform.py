from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
import tempfile
from typing import Callable, Protocol

from permitpack.archive.base import UserCancelled
from permitpack.archive.compression import ZipCompressor

InputFn = Callable[[str], str]
_CANCEL_WORDS = {"cancel", "q", "quit"}


class SaveDialog(Protocol):
    def choose_save_path(self, suggested_name: str) -> Path:
        ...


class DirectoryPicker(Protocol):
    def choose_directory(self, start_in: str | None) -> Path:
        ...


class DownloadSink(Protocol):
    def deliver(self, file_name: str, data: bytes, media_type: str) -> str:
        ...


def write_atomically(destination: Path, data: bytes) -> None:
    """Write ``data`` to a sibling temp file and move it into place."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{destination.name}.", suffix=".partial", dir=destination.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(temp_name, destination)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


class FixedPathSaveDialog:
    """Save dialog answered up front, e.g. by a ``--output`` flag."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def choose_save_path(self, suggested_name: str) -> Path:
        if self.path.is_dir():
            return self.path / suggested_name
        return self.path


class PromptSaveDialog:
    def __init__(self, input_fn: InputFn = input, start_dir: Path | None = None) -> None:
        self._input = input_fn
        self._start_dir = start_dir or Path.cwd()

    def choose_save_path(self, suggested_name: str) -> Path:
        default = self._start_dir / suggested_name
        answer = _ask(self._input, f"Save package as [{default}]: ")
        if not answer:
            return default
        path = Path(answer).expanduser()
        return path / suggested_name if path.is_dir() else path


class FixedDirectoryPicker:
    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def choose_directory(self, start_in: str | None) -> Path:
        del start_in
        return self.directory


class PromptDirectoryPicker:
    def __init__(self, input_fn: InputFn = input) -> None:
        self._input = input_fn

    def choose_directory(self, start_in: str | None) -> Path:
        default = Path(start_in) if start_in else Path.cwd()
        answer = _ask(self._input, f"Write package files into directory [{default}]: ")
        return Path(answer).expanduser() if answer else default


def _ask(input_fn: InputFn, prompt: str) -> str:
    try:
        answer = input_fn(prompt)
    except (EOFError, KeyboardInterrupt) as exc:
        raise UserCancelled("Prompt dismissed.") from exc
    answer = answer.strip()
    if answer.lower() in _CANCEL_WORDS:
        raise UserCancelled("Prompt cancelled.")
    return answer


@dataclass(frozen=True)
class DeliveredFile:
    file_name: str
    data: bytes
    media_type: str


class MemoryDownloadSink:
    """Collects the artifact so an HTTP handler can stream it back as the download."""

    def __init__(self) -> None:
        self.delivered: list[DeliveredFile] = []

    def deliver(self, file_name: str, data: bytes, media_type: str) -> str:
        self.delivered.append(DeliveredFile(file_name=file_name, data=data, media_type=media_type))
        return f"download:{file_name}"

    @property
    def last(self) -> DeliveredFile | None:
        return self.delivered[-1] if self.delivered else None


class FolderDownloadSink:
    def __init__(self, downloads_dir: Path | str) -> None:
        self.downloads_dir = Path(downloads_dir)

    def deliver(self, file_name: str, data: bytes, media_type: str) -> str:
        del media_type
        destination = self.downloads_dir / file_name
        write_atomically(destination, data)
        return str(destination)


@dataclass
class PlatformCapabilities:
    """What the current environment offers for persisting a package."""

    save_dialog: SaveDialog | None = None
    directory_picker: DirectoryPicker | None = None
    download_sink: DownloadSink | None = None
    compressor: ZipCompressor | None = field(default_factory=ZipCompressor)
    restricted: bool = False
